"""
Auth session manager implementation.

Orchestrates sign-up, sign-in and logout against the auth gateway, mirrors
a small cache of "who is signed in" into the local store, and reconciles
that cache with the backend, which is always the source of truth.

Every caller-facing operation returns a Result; gateway and store errors
are captured, logged and handed back, never raised to the screen.
"""

import asyncio
import logging
from typing import Any, Optional

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from carepath.shared.clock import Clock, parse_timestamp, utc_now
from carepath.shared.config import Settings, get_settings
from carepath.shared.exceptions import CarePathError, StorageError, ValidationError
from carepath.shared.models import Result
from carepath.shared.storage import IKeyValueStore
from carepath.shared import storage_keys as keys
from carepath.modules.activity.interfaces import IActivityLogger
from carepath.modules.activity.models import ActivityType
from carepath.modules.sessions.exceptions import SessionStateError
from carepath.modules.sessions.interfaces import ISessionTracker

from .exceptions import NavigationError, NotAuthenticatedError, RemoteAuthError
from .interfaces import IAuthGateway, IAuthSessionManager, INavigator
from .models import (
    AuthSession,
    AuthState,
    AuthUser,
    LocalAuthFlags,
    LogoutReport,
    RedirectOutcome,
    SignOutScope,
)

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)

TRUE = "true"
FALSE = "false"


def _validate_email(email: str) -> str:
    try:
        return _email_adapter.validate_python(email)
    except PydanticValidationError:
        raise ValidationError(f"Invalid email address: {email}", code="INVALID_EMAIL")


class AuthSessionManager(IAuthSessionManager):
    """
    Client-side session lifecycle.

    Session-mutating operations (sign up, sign in, sign out, logout) share
    one lock: the store belongs to this device, so a double-tapped logout or
    a logout racing a sign-in runs one after the other, never interleaved.
    """

    def __init__(
        self,
        gateway: IAuthGateway,
        store: IKeyValueStore,
        session_tracker: Optional[ISessionTracker] = None,
        activity_logger: Optional[IActivityLogger] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        self._gateway = gateway
        self._store = store
        self._tracker = session_tracker
        self._activity = activity_logger
        self._settings = settings or get_settings()
        self._clock = clock or utc_now
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Sign up / sign in
    # -------------------------------------------------------------------------

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Result:
        """
        Register a new account.

        Caches user id, email and timestamp but does NOT mark the device
        signed in: the backend may still require email confirmation.
        """
        async with self._lock:
            try:
                email = _validate_email(email)
                response = await self._gateway.sign_up(email, password, metadata or {})
                if response.user is not None:
                    await self._store.set_item(keys.AUTH_USER_ID, response.user.id)
                    await self._store.set_item(keys.USER_EMAIL, email)
                    await self._store.set_item(keys.LOGIN_TIMESTAMP, self._clock().isoformat())
            except CarePathError as e:
                logger.warning(f"Sign up failed: {e.message}")
                return Result.failure(e)

        logger.info(
            f"Signed up {email}"
            + (" (awaiting email confirmation)" if response.requires_confirmation else "")
        )
        return Result.success(response)

    async def sign_in(self, email: str, password: str) -> Result:
        """
        Sign in with email and password.

        On success every local auth flag is refreshed and a session row is
        opened for analytics. Bad credentials come back as RemoteAuthError
        carrying the backend's message.
        """
        async with self._lock:
            try:
                response = await self._gateway.sign_in(email, password)
                if response.user is None:
                    raise RemoteAuthError("Sign in returned no user")
                await self._write_flags(response.user.id, email)
            except CarePathError as e:
                logger.warning(f"Sign in failed: {e.message}")
                return Result.failure(e)

            await self._start_tracking(response.user.id)

        logger.info(f"Signed in user {response.user.id}")
        return Result.success(response)

    async def _write_flags(self, user_id: str, email: str) -> None:
        await self._store.set_item(keys.AUTH_USER_ID, user_id)
        await self._store.set_item(keys.USER_EMAIL, email)
        await self._store.set_item(keys.LOGIN_TIMESTAMP, self._clock().isoformat())
        await self._store.set_item(keys.IS_LOGGED_IN, TRUE)
        await self._store.set_item(keys.AUTO_LOGIN, TRUE)

    async def _start_tracking(self, user_id: str) -> None:
        if self._tracker is None:
            return
        try:
            if await self._tracker.has_active_session():
                # Previous session was never closed (crash or forced quit); it stays ACTIVE
                logger.warning(f"Previous session for user {user_id} was left open")
            await self._tracker.start_session(user_id, self._settings.device_info)
        except CarePathError as e:
            logger.warning(f"Could not start session tracking for user {user_id}: {e.message}")

    async def _end_tracking(self) -> bool:
        if self._tracker is None:
            return False
        try:
            user_id = await self._store.get_item(keys.AUTH_USER_ID)
            if not user_id:
                if await self._tracker.has_active_session():
                    logger.warning("Session pointer present without a cached user; leaving it open")
                return False
            await self._tracker.end_session(user_id)
            return True
        except SessionStateError as e:
            logger.debug(f"No session to close: {e.message}")
        except CarePathError as e:
            logger.warning(f"Could not close tracked session: {e.message}")
        return False

    # -------------------------------------------------------------------------
    # Sign out / logout
    # -------------------------------------------------------------------------

    async def sign_out(self) -> Result:
        """
        Plain sign-out of this device.

        If the backend refuses, the local cache is left as it is and the
        error is returned; use logout() when the user must end up signed out
        no matter what.
        """
        async with self._lock:
            return await self._sign_out()

    async def _sign_out(self) -> Result:
        try:
            await self._gateway.sign_out(SignOutScope.LOCAL)
        except CarePathError as e:
            logger.warning(f"Sign out failed: {e.message}")
            return Result.failure(e)

        # The session row only closes once the backend accepted the sign-out
        await self._end_tracking()
        try:
            await self._store.multi_remove(keys.SIGN_OUT_KEYS)
        except CarePathError as e:
            logger.warning(f"Sign out failed: {e.message}")
            return Result.failure(e)
        logger.info("Signed out")
        return Result.success(None)

    async def logout(self) -> Result:
        """
        Comprehensive logout.

        1. Invalidate every backend session of the user (failure tolerated).
        2. Purge the enumerated local keys, then scan the store for any
           remaining key of this subsystem's namespace.
        3. Ask the backend whether a session survived; if so, retry the
           sign-out once.

        The tracked session row is closed before step 1 while the client is
        still authenticated. The result is a success whenever the local
        purge completed, even if the backend may still hold a session; only
        a failed purge is reported as an error.
        """
        async with self._lock:
            report = LogoutReport()
            report.session_closed = await self._end_tracking()

            try:
                await self._gateway.sign_out(SignOutScope.GLOBAL)
                report.remote_signed_out = True
            except CarePathError as e:
                logger.warning(f"Remote sign out failed, continuing with local purge: {e.message}")

            try:
                report.purged_keys = await self._purge_local_state()
            except StorageError as e:
                logger.error(f"Local purge failed during logout: {e.message}")
                return Result.failure(e)

            if await self._remote_session_survives():
                report.compensation_attempted = True
                try:
                    await self._gateway.sign_out(SignOutScope.GLOBAL)
                except CarePathError as e:
                    report.residual_session = True
                    logger.warning(f"Retried remote sign out failed; backend session may remain: {e.message}")

        logger.info("Logged out")
        return Result.success(report)

    async def _purge_local_state(self) -> list[str]:
        await self._store.multi_remove(keys.STATIC_KEYS)
        leftovers = [k for k in await self._store.get_all_keys() if keys.is_owned_key(k)]
        if leftovers:
            await self._store.multi_remove(leftovers)
        return list(keys.STATIC_KEYS) + leftovers

    async def _remote_session_survives(self) -> bool:
        try:
            return await self._gateway.get_session() is not None
        except CarePathError as e:
            # Cannot confirm the sign-out took; assume it did not
            logger.warning(f"Could not confirm remote sign out: {e.message}")
            return True

    async def manual_logout(self) -> Result:
        """Sign out and stop the app from signing back in on next launch."""
        async with self._lock:
            try:
                await self._store.set_item(keys.AUTO_LOGIN, FALSE)
            except StorageError as e:
                return Result.failure(e)
            return await self._sign_out()

    async def set_auto_login(self, enabled: bool) -> Result:
        """Enable or disable signing in automatically on launch."""
        try:
            await self._store.set_item(keys.AUTO_LOGIN, TRUE if enabled else FALSE)
        except StorageError as e:
            return Result.failure(e)
        return Result.success(enabled)

    async def logout_and_redirect(self, navigator: INavigator) -> Result:
        """
        Log out, then always land on an unauthenticated screen.

        Navigation is attempted whatever logout returned; if the primary
        route cannot be shown the fallback route is tried.
        """
        logout = await self.logout()
        report = logout.data if logout.ok else None

        routes = [self._settings.logout_redirect_route, self._settings.logout_fallback_route]
        for route in routes:
            try:
                await navigator.replace(route)
            except Exception as e:
                logger.warning(f"Navigation to {route} after logout failed: {e}")
                continue
            if not logout.ok:
                return Result(data=RedirectOutcome(route=route), error=logout.error)
            return Result.success(RedirectOutcome(route=route, logout=report))

        logger.error("Could not navigate anywhere after logout")
        return Result.failure(NavigationError(routes))

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    async def _read_flags(self) -> LocalAuthFlags:
        login_timestamp = await self._store.get_item(keys.LOGIN_TIMESTAMP)
        return LocalAuthFlags(
            user_id=await self._store.get_item(keys.AUTH_USER_ID),
            email=await self._store.get_item(keys.USER_EMAIL),
            login_timestamp=parse_timestamp(login_timestamp) if login_timestamp else None,
            is_logged_in=await self._store.get_item(keys.IS_LOGGED_IN) == TRUE,
            auto_login=await self._store.get_item(keys.AUTO_LOGIN) == TRUE,
        )

    async def _clear_flags(self) -> None:
        try:
            await self._store.multi_remove(keys.AUTH_FLAG_KEYS)
        except StorageError as e:
            logger.warning(f"Could not clear stale auth flags: {e.message}")

    async def is_logged_in(self) -> bool:
        """
        True only when the cache says signed in with auto-login on AND the
        backend confirms a live session. Any error reads as signed out.
        """
        try:
            flags = await self._read_flags()
            if not flags.asserts_authentication:
                return False
            return await self._gateway.get_session() is not None
        except CarePathError as e:
            logger.debug(f"Login check failed: {e.message}")
            return False

    async def initialize_auth(self) -> AuthState:
        """
        Reconcile the cache with the backend at app start.

        A cache claiming a session the backend does not have (a ghost
        session) is purged.
        """
        try:
            flags = await self._read_flags()
            session = await self._gateway.get_session()
        except CarePathError as e:
            logger.warning(f"Auth initialization failed: {e.message}")
            return AuthState(is_authenticated=False)

        if flags.asserts_authentication and session is not None:
            return AuthState(is_authenticated=True, session=session)

        if flags.asserts_authentication:
            logger.warning(f"Purging ghost session for user {flags.user_id}")
        await self._clear_flags()
        return AuthState(is_authenticated=False)

    async def refresh_auth_state(self) -> Result:
        """
        Re-fetch the user and session from the backend, ignoring the cache.

        The cache is refreshed when the backend still knows the user and
        purged when it says the session is gone. Network failures are
        returned as errors and leave the cache untouched.
        """
        try:
            user = await self._gateway.get_user()
            session = await self._gateway.get_session() if user is not None else None
        except RemoteAuthError as e:
            if not e.is_unauthorized:
                return Result.failure(e)
            logger.info(f"Backend rejected the session: {e.message}")
            user, session = None, None
        except CarePathError as e:
            return Result.failure(e)

        if user is None or session is None:
            await self._clear_flags()
            return Result.success(AuthState(is_authenticated=False))

        try:
            await self._store.set_item(keys.AUTH_USER_ID, user.id)
            if user.email:
                await self._store.set_item(keys.USER_EMAIL, user.email)
        except StorageError as e:
            return Result.failure(e)
        return Result.success(AuthState(is_authenticated=True, session=session))

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def get_session(self) -> Result:
        """The backend's current session, or None."""
        try:
            session: Optional[AuthSession] = await self._gateway.get_session()
        except CarePathError as e:
            return Result.failure(e)
        return Result.success(session)

    async def get_current_user(self) -> Result:
        """The current user as confirmed by the backend, or None."""
        try:
            user: Optional[AuthUser] = await self._gateway.get_user()
        except CarePathError as e:
            return Result.failure(e)
        return Result.success(user)

    async def get_stored_user_data(self) -> Result:
        """The cached flags, for offline display. Not proof of a session."""
        try:
            return Result.success(await self._read_flags())
        except StorageError as e:
            return Result.failure(e)

    # -------------------------------------------------------------------------
    # Credential and contact changes
    # -------------------------------------------------------------------------

    async def reset_password(self, email: str) -> Result:
        """Send a password reset link that opens the app."""
        try:
            await self._gateway.reset_password_for_email(email, self._settings.password_reset_redirect)
        except CarePathError as e:
            return Result.failure(e)
        return Result.success(None)

    async def change_password(self, new_password: str) -> Result:
        return await self._update_user({"password": new_password}, "password_changed")

    async def update_email(self, new_email: str) -> Result:
        """Change the account email; the cached email follows on success."""
        try:
            new_email = _validate_email(new_email)
        except ValidationError as e:
            return Result.failure(e)
        result = await self._update_user({"email": new_email}, "email_updated")
        if result.ok:
            try:
                await self._store.set_item(keys.USER_EMAIL, new_email)
            except StorageError as e:
                return Result.failure(e)
        return result

    async def update_phone(self, phone: str) -> Result:
        return await self._update_user({"phone": phone}, "phone_updated")

    async def _update_user(self, fields: dict[str, Any], action: str) -> Result:
        try:
            user = await self._gateway.update_user(fields)
        except CarePathError as e:
            logger.warning(f"User update '{action}' failed: {e.message}")
            return Result.failure(e)
        if self._activity is not None:
            self._activity.log_activity(user.id, ActivityType.PROFILE_UPDATE, {"action": action})
        return Result.success(user)

    # -------------------------------------------------------------------------
    # Backend one-time passcodes
    # -------------------------------------------------------------------------

    async def send_email_verification(self) -> Result:
        """Resend the sign-up confirmation to the current user's email."""
        try:
            user = await self._gateway.get_user()
            if user is None:
                raise NotAuthenticatedError()
            if not user.email:
                raise ValidationError("No email found", code="NO_EMAIL")
            await self._gateway.resend_confirmation("email", user.email)
        except CarePathError as e:
            return Result.failure(e)
        return Result.success(None)

    async def send_phone_verification(self, phone: str) -> Result:
        try:
            await self._gateway.send_one_time_code(phone)
        except CarePathError as e:
            return Result.failure(e)
        return Result.success(None)

    async def verify_phone(self, phone: str, code: str) -> Result:
        try:
            response = await self._gateway.verify_one_time_code(phone, code, "sms")
        except CarePathError as e:
            return Result.failure(e)
        return Result.success(response)
