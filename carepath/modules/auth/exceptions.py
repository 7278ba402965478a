"""
Authentication module exceptions.

The session manager never raises these across its boundary; it returns
them inside a Result so the UI can decide how to surface them.
"""

from typing import Any, Optional

from carepath.shared.exceptions import AuthenticationError, ExternalServiceError


class RemoteAuthError(ExternalServiceError):
    """
    Raised when the auth backend rejects a request or cannot be reached.

    ``message`` is the backend's own text so sign-in and sign-up screens can
    show it verbatim.
    """

    def __init__(
        self,
        message: str,
        code: str = "REMOTE_AUTH_ERROR",
        details: Optional[dict[str, Any]] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message, service="auth", code=code, details=details)
        self.status = status
        if status is not None:
            self.details["status"] = status

    @property
    def is_unauthorized(self) -> bool:
        """The backend said the credentials or session are no longer valid."""
        return self.status in (401, 403)


class NotAuthenticatedError(AuthenticationError):
    """Raised when an operation needs a signed-in user and there is none."""

    def __init__(self, message: str = "Not signed in"):
        super().__init__(message, code="NOT_AUTHENTICATED")


class NavigationError(AuthenticationError):
    """Raised when neither logout redirect target could be reached."""

    def __init__(self, routes: list[str]):
        super().__init__(
            "Could not navigate after logout",
            code="NAVIGATION_FAILED",
            details={"routes": routes},
        )
