"""
Verification module interfaces.
"""

from typing import Protocol, runtime_checkable

from .models import VerificationChannel, VerificationOutcome, VerificationToken


@runtime_checkable
class IIdentityFlagUpdater(Protocol):
    """Narrow write access to the profile's verified flags."""

    async def mark_verified(self, user_id: str, channel: VerificationChannel) -> None:
        """
        Set ``email_verified`` or ``phone_verified`` on the user's profile.

        Raises:
            CarePathError: If the backend rejected the update
        """
        ...


@runtime_checkable
class IVerificationService(Protocol):
    """
    Interface for app-level one-time codes.

    Codes live in the local store for a short window and are single use.
    """

    async def store_verification_token(
        self,
        user_id: str,
        channel: VerificationChannel,
        token: str,
    ) -> VerificationToken:
        """Remember ``token`` for (user, channel), replacing any pending code."""
        ...

    async def verify_token(
        self,
        user_id: str,
        channel: VerificationChannel,
        input_token: str,
    ) -> VerificationOutcome:
        """
        Check an entered code.

        Raises:
            TokenNotFoundError: No pending code
            TokenExpiredError: Code past expiry (it is deleted)
            TokenMismatchError: Wrong code (it is kept for retry)
        """
        ...

    def generate_mock_otp(self) -> str:
        """A uniformly random six digit code."""
        ...
