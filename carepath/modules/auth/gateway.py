"""
Auth gateway implementations.

SupabaseAuthGateway adapts the hosted Supabase Auth API. InMemoryAuthGateway
is a small identity backend for development and tests, including hooks to
simulate the partial failures logout has to compensate for.
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Optional, TypeVar

import jwt
from supabase import AsyncClient

from carepath.shared.clock import Clock, parse_timestamp, utc_now
from carepath.shared.database import call_remote

from .exceptions import RemoteAuthError
from .interfaces import IAuthGateway
from .models import AuthResponse, AuthSession, AuthUser, JWTPayload, SignOutScope

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SupabaseAuthGateway(IAuthGateway):
    """
    Gateway over ``client.auth``.

    Every call is bounded by the configured timeout. Backend errors are
    re-raised as RemoteAuthError with the backend's message and HTTP status.
    """

    def __init__(self, client: AsyncClient, timeout: float = 10.0):
        self._client = client
        self._timeout = timeout

    async def _call(self, awaitable: Awaitable[T], operation: str) -> T:
        try:
            return await call_remote(awaitable, self._timeout, operation)
        except RemoteAuthError:
            raise
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or e.__class__.__name__
            status = getattr(e, "status", None)
            logger.debug(f"Auth backend rejected '{operation}': {message}")
            raise RemoteAuthError(
                message,
                details={"operation": operation},
                status=status if isinstance(status, int) else None,
            ) from e

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuthResponse:
        response = await self._call(
            self._client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": metadata or {}},
            }),
            "sign up",
        )
        return self._map_response(response)

    async def sign_in(self, email: str, password: str) -> AuthResponse:
        response = await self._call(
            self._client.auth.sign_in_with_password({"email": email, "password": password}),
            "sign in",
        )
        return self._map_response(response)

    async def sign_out(self, scope: SignOutScope = SignOutScope.LOCAL) -> None:
        await self._call(self._client.auth.sign_out({"scope": scope.value}), "sign out")

    async def get_session(self) -> Optional[AuthSession]:
        session = await self._call(self._client.auth.get_session(), "get session")
        return self._map_session(session)

    async def get_user(self) -> Optional[AuthUser]:
        response = await self._call(self._client.auth.get_user(), "get user")
        if response is None:
            return None
        return self._map_user(getattr(response, "user", None))

    async def update_user(self, fields: dict[str, Any]) -> AuthUser:
        response = await self._call(self._client.auth.update_user(fields), "update user")
        user = self._map_user(getattr(response, "user", None))
        if user is None:
            raise RemoteAuthError("Update returned no user", details={"operation": "update user"})
        return user

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        await self._call(
            self._client.auth.reset_password_for_email(email, {"redirect_to": redirect_to}),
            "reset password",
        )

    async def resend_confirmation(self, channel: str, address: str) -> None:
        if channel == "phone":
            params = {"type": "sms", "phone": address}
        else:
            params = {"type": "signup", "email": address}
        await self._call(self._client.auth.resend(params), "resend confirmation")

    async def send_one_time_code(self, phone: str) -> None:
        await self._call(self._client.auth.sign_in_with_otp({"phone": phone}), "send code")

    async def verify_one_time_code(self, phone: str, code: str, purpose: str = "sms") -> AuthResponse:
        response = await self._call(
            self._client.auth.verify_otp({"phone": phone, "token": code, "type": purpose}),
            "verify code",
        )
        return self._map_response(response)

    # -------------------------------------------------------------------------
    # Mapping from supabase objects
    # -------------------------------------------------------------------------

    def _map_response(self, response: Any) -> AuthResponse:
        return AuthResponse(
            user=self._map_user(getattr(response, "user", None)),
            session=self._map_session(getattr(response, "session", None)),
        )

    def _map_user(self, user: Any) -> Optional[AuthUser]:
        if user is None:
            return None
        return AuthUser(
            id=str(user.id),
            email=getattr(user, "email", None) or None,
            phone=getattr(user, "phone", None) or None,
            email_confirmed_at=_optional_timestamp(getattr(user, "email_confirmed_at", None)),
            phone_confirmed_at=_optional_timestamp(getattr(user, "phone_confirmed_at", None)),
            user_metadata=getattr(user, "user_metadata", None) or {},
        )

    def _map_session(self, session: Any) -> Optional[AuthSession]:
        if session is None:
            return None
        access_token = session.access_token
        expires_at = getattr(session, "expires_at", None)
        if expires_at:
            expiry = datetime.fromtimestamp(int(expires_at), tz=timezone.utc)
        else:
            expiry = JWTPayload.from_access_token(access_token).expires_at
        user = self._map_user(getattr(session, "user", None))
        if user is None:
            claims = JWTPayload.from_access_token(access_token)
            user = AuthUser(id=claims.sub, email=claims.email)
        return AuthSession(
            access_token=access_token,
            refresh_token=getattr(session, "refresh_token", "") or "",
            token_type=getattr(session, "token_type", "bearer") or "bearer",
            expires_at=expiry,
            user=user,
        )


def _optional_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    return parse_timestamp(value)


class InMemoryAuthGateway(IAuthGateway):
    """
    In-process identity backend.

    For testing and development. Use SupabaseAuthGateway for production.

    Behaves like a single device talking to the backend: at most one local
    session, while the "server" tracks every issued session per user so a
    global sign-out can revoke them all.

    Fault hooks:
        fail_next(operation, times): make the next calls raise RemoteAuthError
        sticky_sign_outs: sign-outs that report success but leave the
            session alive (a partial failure the backend never admits to)
    """

    SESSION_LIFETIME = timedelta(hours=1)
    SIGNING_SECRET = "carepath-in-memory-gateway-signing-key"

    def __init__(
        self,
        require_email_confirmation: bool = False,
        clock: Optional[Clock] = None,
    ):
        self._require_confirmation = require_email_confirmation
        self._clock = clock or utc_now
        self._users: dict[str, dict[str, Any]] = {}  # by email
        self._server_sessions: dict[str, set[str]] = {}  # user_id -> access tokens
        self._session: Optional[AuthSession] = None
        self._failures: dict[str, int] = {}
        self._failure_message = "Service unavailable"
        self.sticky_sign_outs = 0
        self.calls: list[str] = []
        self.sent_codes: dict[str, str] = {}
        self.confirmations_sent: list[tuple[str, str]] = []
        self.password_resets: list[tuple[str, str]] = []

    # -------------------------------------------------------------------------
    # Test hooks
    # -------------------------------------------------------------------------

    def fail_next(self, operation: str, times: int = 1, message: str = "Service unavailable") -> None:
        """Make the next ``times`` calls of ``operation`` fail."""
        self._failures[operation] = times
        self._failure_message = message

    def confirm_email(self, email: str) -> None:
        """Simulate the user clicking the confirmation link."""
        self._users[email]["email_confirmed_at"] = self._clock()

    def revoke_all_sessions(self, user_id: str) -> None:
        """Simulate the backend dropping every session of a user."""
        self._server_sessions.pop(user_id, None)

    @property
    def server_session_count(self) -> int:
        return sum(len(tokens) for tokens in self._server_sessions.values())

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        remaining = self._failures.get(operation, 0)
        if remaining > 0:
            self._failures[operation] = remaining - 1
            raise RemoteAuthError(self._failure_message, status=503, details={"operation": operation})

    # -------------------------------------------------------------------------
    # Gateway
    # -------------------------------------------------------------------------

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuthResponse:
        self._enter("sign_up")
        if email in self._users:
            raise RemoteAuthError("User already registered", status=422)
        if len(password) < 6:
            raise RemoteAuthError("Password should be at least 6 characters", status=422)

        record = {
            "id": str(uuid.uuid4()),
            "email": email,
            "password": password,
            "phone": None,
            "email_confirmed_at": None if self._require_confirmation else self._clock(),
            "phone_confirmed_at": None,
            "user_metadata": dict(metadata or {}),
        }
        self._users[email] = record
        user = self._to_user(record)

        if self._require_confirmation:
            self.confirmations_sent.append(("email", email))
            return AuthResponse(user=user, session=None)
        return AuthResponse(user=user, session=self._issue_session(record))

    async def sign_in(self, email: str, password: str) -> AuthResponse:
        self._enter("sign_in")
        record = self._users.get(email)
        if record is None or record["password"] != password:
            raise RemoteAuthError("Invalid login credentials", status=400)
        if record["email_confirmed_at"] is None:
            raise RemoteAuthError("Email not confirmed", status=400)
        return AuthResponse(user=self._to_user(record), session=self._issue_session(record))

    async def sign_out(self, scope: SignOutScope = SignOutScope.LOCAL) -> None:
        self._enter("sign_out")
        if self.sticky_sign_outs > 0:
            self.sticky_sign_outs -= 1
            return
        session = self._session
        self._session = None
        if session is None:
            return
        tokens = self._server_sessions.get(session.user.id, set())
        if scope == SignOutScope.GLOBAL:
            tokens.clear()
        else:
            tokens.discard(session.access_token)

    async def get_session(self) -> Optional[AuthSession]:
        self._enter("get_session")
        session = self._session
        if session is None:
            return None
        if session.is_expired(self._clock()):
            self._session = None
            return None
        return session

    async def get_user(self) -> Optional[AuthUser]:
        self._enter("get_user")
        session = self._session
        if session is None:
            return None
        if session.access_token not in self._server_sessions.get(session.user.id, set()):
            raise RemoteAuthError("Session not found", status=401)
        return self._to_user(self._record_by_id(session.user.id))

    async def update_user(self, fields: dict[str, Any]) -> AuthUser:
        self._enter("update_user")
        if self._session is None:
            raise RemoteAuthError("Auth session missing!", status=401)
        record = self._record_by_id(self._session.user.id)
        if "email" in fields:
            new_email = fields["email"]
            if new_email != record["email"] and new_email in self._users:
                raise RemoteAuthError("Email address already registered", status=422)
            self._users.pop(record["email"])
            record["email"] = new_email
            self._users[new_email] = record
        if "password" in fields:
            if len(fields["password"]) < 6:
                raise RemoteAuthError("Password should be at least 6 characters", status=422)
            record["password"] = fields["password"]
        if "phone" in fields:
            record["phone"] = fields["phone"]
            record["phone_confirmed_at"] = None
        if "data" in fields:
            record["user_metadata"].update(fields["data"])
        return self._to_user(record)

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        self._enter("reset_password_for_email")
        # The backend does not reveal whether the address is registered
        self.password_resets.append((email, redirect_to))

    async def resend_confirmation(self, channel: str, address: str) -> None:
        self._enter("resend_confirmation")
        self.confirmations_sent.append((channel, address))

    async def send_one_time_code(self, phone: str) -> None:
        self._enter("send_one_time_code")
        self.sent_codes[phone] = f"{secrets.randbelow(1_000_000):06d}"

    async def verify_one_time_code(self, phone: str, code: str, purpose: str = "sms") -> AuthResponse:
        self._enter("verify_one_time_code")
        if self.sent_codes.get(phone) != code:
            raise RemoteAuthError("Token has expired or is invalid", status=403)
        del self.sent_codes[phone]
        record = next((r for r in self._users.values() if r["phone"] == phone), None)
        if record is None:
            raise RemoteAuthError("User not found", status=404)
        record["phone_confirmed_at"] = self._clock()
        return AuthResponse(user=self._to_user(record), session=self._issue_session(record))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _record_by_id(self, user_id: str) -> dict[str, Any]:
        for record in self._users.values():
            if record["id"] == user_id:
                return record
        raise RemoteAuthError("User not found", status=404)

    def _issue_session(self, record: dict[str, Any]) -> AuthSession:
        now = self._clock()
        expires_at = now + self.SESSION_LIFETIME
        access_token = jwt.encode(
            {
                "sub": record["id"],
                "email": record["email"],
                "aud": "authenticated",
                "role": "authenticated",
                "session_id": str(uuid.uuid4()),
                "iat": int(now.timestamp()),
                "exp": int(expires_at.timestamp()),
            },
            self.SIGNING_SECRET,
            algorithm="HS256",
        )
        session = AuthSession(
            access_token=access_token,
            refresh_token=secrets.token_urlsafe(16),
            expires_at=JWTPayload.from_access_token(access_token).expires_at,
            user=self._to_user(record),
        )
        self._server_sessions.setdefault(record["id"], set()).add(access_token)
        self._session = session
        return session

    def _to_user(self, record: dict[str, Any]) -> AuthUser:
        return AuthUser(
            id=record["id"],
            email=record["email"],
            phone=record["phone"],
            email_confirmed_at=record["email_confirmed_at"],
            phone_confirmed_at=record["phone_confirmed_at"],
            user_metadata=dict(record["user_metadata"]),
        )
