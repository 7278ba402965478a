"""
Verification module exceptions.

Each failure carries a ``reason`` the UI can switch on:
``not_found``, ``expired`` or ``mismatch``.
"""

from carepath.shared.exceptions import ValidationError


class VerificationError(ValidationError):
    """Base exception for verification code failures."""

    reason: str = "invalid"

    def __init__(self, message: str, user_id: str, channel: str):
        super().__init__(
            message,
            code="VERIFICATION_" + self.reason.upper(),
            details={"user_id": user_id, "channel": channel, "reason": self.reason},
        )


class TokenNotFoundError(VerificationError):
    """Raised when no code is pending for the (user, channel) pair."""

    reason = "not_found"

    def __init__(self, user_id: str, channel: str):
        super().__init__("No verification token found", user_id, channel)


class TokenExpiredError(VerificationError):
    """Raised when the pending code is past its expiry. The code is discarded."""

    reason = "expired"

    def __init__(self, user_id: str, channel: str):
        super().__init__("Verification token expired", user_id, channel)


class TokenMismatchError(VerificationError):
    """Raised when the entered code differs. The pending code is kept."""

    reason = "mismatch"

    def __init__(self, user_id: str, channel: str):
        super().__init__("Invalid verification token", user_id, channel)
