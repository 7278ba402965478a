"""
Authentication module data models.

These models define the data structures used by the auth module
and exposed to the UI through the session manager.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
import jwt
from pydantic import BaseModel, Field

from .exceptions import RemoteAuthError


class SignOutScope(str, Enum):
    """How far a sign-out reaches on the backend."""

    LOCAL = "local"  # this device's session only
    GLOBAL = "global"  # every session of the user


class JWTPayload(BaseModel):
    """
    Decoded access token claims from Supabase.

    The device cannot verify the signature (only the backend holds the
    secret); the claims are read for expiry and identity only.
    """

    sub: str = Field(..., description="Subject (user ID)")
    email: Optional[str] = Field(None, description="User's email")
    exp: int = Field(..., description="Expiration timestamp")
    iat: Optional[int] = Field(None, description="Issued at timestamp")
    aud: str = Field(default="authenticated", description="Audience")
    role: str = Field(default="authenticated", description="User role")
    session_id: Optional[str] = Field(None, description="Backend session ID")

    # Supabase-specific claims
    app_metadata: dict = Field(default_factory=dict)
    user_metadata: dict = Field(default_factory=dict)

    @classmethod
    def from_access_token(cls, token: str) -> "JWTPayload":
        """Read the claims of an access token without verifying it."""
        try:
            claims = jwt.decode(
                token,
                options={
                    "verify_signature": False,
                    "verify_exp": False,
                    "verify_aud": False,
                },
            )
        except jwt.InvalidTokenError as e:
            raise RemoteAuthError(f"Malformed access token: {e}", code="INVALID_TOKEN")
        return cls(**claims)

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)


class AuthUser(BaseModel):
    """Identity record held by the auth backend."""

    id: str = Field(..., description="User ID (UUID from Supabase)")
    email: Optional[str] = Field(None, description="Email address")
    phone: Optional[str] = Field(None, description="Phone number")
    email_confirmed_at: Optional[datetime] = None
    phone_confirmed_at: Optional[datetime] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True, "extra": "ignore"}

    @property
    def email_verified(self) -> bool:
        return self.email_confirmed_at is not None

    @property
    def phone_verified(self) -> bool:
        return self.phone_confirmed_at is not None


class AuthSession(BaseModel):
    """A backend session handle."""

    access_token: str
    refresh_token: str = ""
    token_type: str = "bearer"
    expires_at: datetime
    user: AuthUser

    model_config = {"frozen": True}

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class AuthResponse(BaseModel):
    """
    What sign-up, sign-in and OTP verification return.

    ``session`` is None after a sign-up that still needs email confirmation,
    which is why sign-up success does not mean the user is signed in.
    """

    user: Optional[AuthUser] = None
    session: Optional[AuthSession] = None

    @property
    def requires_confirmation(self) -> bool:
        return self.user is not None and self.session is None


class LocalAuthFlags(BaseModel):
    """
    The device's cached view of who is signed in.

    A cache only: it is never trusted without a live remote session.
    """

    user_id: Optional[str] = None
    email: Optional[str] = None
    login_timestamp: Optional[datetime] = None
    is_logged_in: bool = False
    auto_login: bool = False

    @property
    def asserts_authentication(self) -> bool:
        return self.is_logged_in and self.auto_login


class AuthState(BaseModel):
    """Outcome of reconciling the local cache with the backend."""

    is_authenticated: bool = False
    session: Optional[AuthSession] = None


class LogoutReport(BaseModel):
    """What the comprehensive logout actually managed to do."""

    session_closed: bool = Field(default=False, description="Tracked session row closed")
    remote_signed_out: bool = Field(default=False, description="First global sign-out succeeded")
    compensation_attempted: bool = Field(default=False, description="A session survived and sign-out was retried")
    residual_session: bool = Field(default=False, description="A backend session may still be alive")
    purged_keys: list[str] = Field(default_factory=list, description="Local keys removed")


class RedirectOutcome(BaseModel):
    """Where logout_and_redirect landed."""

    route: str
    logout: Optional[LogoutReport] = None
