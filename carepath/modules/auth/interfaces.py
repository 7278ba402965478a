"""
Authentication module interfaces.

The session manager depends on IAuthGateway, not on Supabase directly.
This enables testing with the in-memory gateway and swapping identity
backends without touching the reconciliation logic.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from carepath.shared.models import Result
from .models import AuthResponse, AuthSession, AuthState, AuthUser, SignOutScope


@runtime_checkable
class IAuthGateway(Protocol):
    """
    The remote identity backend as the device sees it.

    Every method raises RemoteAuthError when the backend rejects the
    request or cannot be reached in time.
    """

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuthResponse:
        """Register a new identity."""
        ...

    async def sign_in(self, email: str, password: str) -> AuthResponse:
        """Exchange credentials for a session."""
        ...

    async def sign_out(self, scope: SignOutScope = SignOutScope.LOCAL) -> None:
        """Invalidate this device's session, or every session of the user."""
        ...

    async def get_session(self) -> Optional[AuthSession]:
        """The current session, or None when signed out."""
        ...

    async def get_user(self) -> Optional[AuthUser]:
        """The current user, confirmed by a round-trip to the backend."""
        ...

    async def update_user(self, fields: dict[str, Any]) -> AuthUser:
        """Change email, phone, password or metadata of the current user."""
        ...

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        """Send a password reset link."""
        ...

    async def resend_confirmation(self, channel: str, address: str) -> None:
        """Resend the sign-up confirmation to an email address or phone."""
        ...

    async def send_one_time_code(self, phone: str) -> None:
        """Text a one-time passcode to ``phone``."""
        ...

    async def verify_one_time_code(self, phone: str, code: str, purpose: str = "sms") -> AuthResponse:
        """Check a texted passcode."""
        ...


@runtime_checkable
class INavigator(Protocol):
    """The slice of the UI router that logout needs."""

    async def replace(self, route: str) -> None:
        """Replace the current screen with ``route``."""
        ...


@runtime_checkable
class IAuthSessionManager(Protocol):
    """
    Interface for the session lifecycle exposed to screens.

    Operations return a Result instead of raising, except the three
    reconciliation checks which return plain state.
    """

    async def sign_up(self, email: str, password: str, metadata: Optional[dict[str, Any]] = None) -> Result:
        ...

    async def sign_in(self, email: str, password: str) -> Result:
        ...

    async def sign_out(self) -> Result:
        ...

    async def logout(self) -> Result:
        ...

    async def logout_and_redirect(self, navigator: INavigator) -> Result:
        ...

    async def is_logged_in(self) -> bool:
        ...

    async def initialize_auth(self) -> AuthState:
        ...

    async def refresh_auth_state(self) -> Result:
        ...
