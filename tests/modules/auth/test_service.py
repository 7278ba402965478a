"""Tests for the auth session manager."""

import asyncio
import logging

import pytest
from unittest.mock import AsyncMock, MagicMock

from carepath.modules.activity.models import ActivityType
from carepath.modules.auth.exceptions import NavigationError, NotAuthenticatedError, RemoteAuthError
from carepath.modules.auth.gateway import InMemoryAuthGateway
from carepath.modules.auth.interfaces import IAuthSessionManager
from carepath.modules.auth.models import LogoutReport
from carepath.modules.auth.service import AuthSessionManager
from carepath.modules.sessions.models import SessionStatus
from carepath.shared import storage_keys as keys
from carepath.shared.exceptions import StorageError, ValidationError
from carepath.shared.storage import InMemoryStore


EMAIL = "user@example.com"
PASSWORD = "Secret123"


class BrokenPurgeStore(InMemoryStore):
    """Store whose bulk removal fails."""

    async def multi_remove(self, keys):
        raise StorageError("delete", message="disk full")


def make_navigator(*side_effects):
    navigator = MagicMock()
    navigator.replace = AsyncMock(side_effect=list(side_effects) or None)
    return navigator


class TestSignUp:
    def test_implements_interface(self, manager):
        """Should satisfy IAuthSessionManager."""
        assert isinstance(manager, IAuthSessionManager)

    @pytest.mark.asyncio
    async def test_caches_identity_but_not_login(self, manager, store, clock):
        """Sign-up alone should not mark the device signed in."""
        result = await manager.sign_up(EMAIL, PASSWORD, {"first_name": "Ada"})

        assert result.ok
        assert await store.get_item(keys.AUTH_USER_ID) == result.data.user.id
        assert await store.get_item(keys.USER_EMAIL) == EMAIL
        assert await store.get_item(keys.LOGIN_TIMESTAMP) == clock.now.isoformat()
        assert await store.get_item(keys.IS_LOGGED_IN) is None
        assert await store.get_item(keys.AUTO_LOGIN) is None
        assert not await manager.is_logged_in()

    @pytest.mark.asyncio
    async def test_awaiting_confirmation(self, store, settings, clock):
        """Should succeed without a session when confirmation is required."""
        gateway = InMemoryAuthGateway(require_email_confirmation=True, clock=clock)
        manager = AuthSessionManager(gateway, store, settings=settings, clock=clock)

        result = await manager.sign_up(EMAIL, PASSWORD)

        assert result.ok
        assert result.data.requires_confirmation
        assert gateway.confirmations_sent == [("email", EMAIL)]

    @pytest.mark.asyncio
    async def test_invalid_email(self, manager, gateway, store):
        """Should reject a malformed address before calling the backend."""
        result = await manager.sign_up("not-an-email", PASSWORD)

        assert not result.ok
        assert isinstance(result.error, ValidationError)
        assert result.error.code == "INVALID_EMAIL"
        assert "sign_up" not in gateway.calls
        assert await store.get_all_keys() == []

    @pytest.mark.asyncio
    async def test_backend_rejection(self, manager, registered_user):
        """Should hand back the backend's message."""
        result = await manager.sign_up(EMAIL, PASSWORD)

        assert not result.ok
        assert result.error.message == "User already registered"


class TestSignIn:
    @pytest.mark.asyncio
    async def test_writes_flags_and_starts_session(self, manager, store, session_repository, registered_user, clock):
        """Should cache every flag and open a tracked session."""
        result = await manager.sign_in(EMAIL, PASSWORD)

        assert result.ok
        assert await store.get_item(keys.AUTH_USER_ID) == registered_user
        assert await store.get_item(keys.USER_EMAIL) == EMAIL
        assert await store.get_item(keys.IS_LOGGED_IN) == "true"
        assert await store.get_item(keys.AUTO_LOGIN) == "true"
        [session] = session_repository.records
        assert session.status == SessionStatus.ACTIVE
        assert session.device_info == "pytest-device"
        assert await store.get_item(keys.CURRENT_SESSION_ID) == session.id
        assert await manager.is_logged_in()

    @pytest.mark.asyncio
    async def test_bad_password(self, manager, store, session_repository, registered_user):
        """Should return the backend's error and touch nothing."""
        result = await manager.sign_in(EMAIL, "wrong")

        assert not result.ok
        assert isinstance(result.error, RemoteAuthError)
        assert result.error.message == "Invalid login credentials"
        assert await store.get_all_keys() == []
        assert session_repository.records == []

    @pytest.mark.asyncio
    async def test_tracking_failure_does_not_fail_sign_in(self, gateway, store, settings, clock, registered_user):
        """Session tracking is best-effort."""
        tracker = MagicMock()
        tracker.has_active_session = AsyncMock(return_value=False)
        tracker.start_session = AsyncMock(side_effect=RemoteAuthError("table unavailable"))
        manager = AuthSessionManager(gateway, store, session_tracker=tracker, settings=settings, clock=clock)

        result = await manager.sign_in(EMAIL, PASSWORD)

        assert result.ok
        assert await store.get_item(keys.IS_LOGGED_IN) == "true"

    @pytest.mark.asyncio
    async def test_previous_session_left_open(self, manager, session_repository, registered_user, caplog):
        """A second sign-in without logout leaves the first row open."""
        await manager.sign_in(EMAIL, PASSWORD)

        with caplog.at_level(logging.WARNING):
            await manager.sign_in(EMAIL, PASSWORD)

        first, second = session_repository.records
        assert first.status == SessionStatus.ACTIVE
        assert second.status == SessionStatus.ACTIVE
        assert "left open" in caplog.text


class TestSignOut:
    @pytest.mark.asyncio
    async def test_closes_session_and_clears_flags(self, manager, store, session_repository, gateway, registered_user, clock):
        """Should end tracking, sign out remotely and clear the flags."""
        await manager.sign_in(EMAIL, PASSWORD)
        await store.set_item("theme_preference", "dark")
        clock.advance(minutes=5)

        result = await manager.sign_out()

        assert result.ok
        assert session_repository.records[0].duration_minutes == 5
        assert await gateway.get_session() is None
        assert await store.get_all_keys() == ["theme_preference"]

    @pytest.mark.asyncio
    async def test_backend_failure_keeps_cache(self, manager, store, gateway, session_repository, registered_user):
        """A refused sign-out should be reported and leave the flags and the open session."""
        await manager.sign_in(EMAIL, PASSWORD)
        gateway.fail_next("sign_out")

        result = await manager.sign_out()

        assert not result.ok
        assert await manager.is_logged_in()
        assert await store.get_item(keys.IS_LOGGED_IN) == "true"
        assert session_repository.records[0].logout_time is None
        assert await store.get_item(keys.CURRENT_SESSION_ID) == session_repository.records[0].id

    @pytest.mark.asyncio
    async def test_retry_after_refusal_records_full_interval(self, manager, gateway, session_repository, registered_user, clock):
        """The session should close on the first sign-out the backend accepts."""
        await manager.sign_in(EMAIL, PASSWORD)
        gateway.fail_next("sign_out")
        clock.advance(minutes=2)
        await manager.sign_out()
        clock.advance(minutes=3)

        result = await manager.sign_out()

        assert result.ok
        assert session_repository.records[0].duration_minutes == 5

    @pytest.mark.asyncio
    async def test_dangling_session_pointer_is_cleared(self, manager, store, registered_user, caplog):
        """A pointer to a missing row should not survive sign-out or warn on the next sign-in."""
        await manager.sign_in(EMAIL, PASSWORD)
        await store.set_item(keys.CURRENT_SESSION_ID, "session-404")

        assert (await manager.sign_out()).ok
        assert await store.get_item(keys.CURRENT_SESSION_ID) is None

        with caplog.at_level(logging.WARNING):
            await manager.sign_in(EMAIL, PASSWORD)
        assert "left open" not in caplog.text

    @pytest.mark.asyncio
    async def test_manual_logout_disables_auto_login(self, manager, store, gateway, registered_user):
        """Should sign out and leave nothing that would auto-login."""
        await manager.sign_in(EMAIL, PASSWORD)

        result = await manager.manual_logout()

        assert result.ok
        assert await store.get_item(keys.AUTO_LOGIN) is None
        assert not await manager.is_logged_in()

    @pytest.mark.asyncio
    async def test_set_auto_login(self, manager, store, registered_user):
        """Disabling auto-login should make the device read as signed out."""
        await manager.sign_in(EMAIL, PASSWORD)

        result = await manager.set_auto_login(False)

        assert result.ok
        assert await store.get_item(keys.AUTO_LOGIN) == "false"
        assert not await manager.is_logged_in()
        await manager.set_auto_login(True)
        assert await manager.is_logged_in()


class TestLogout:
    @pytest.mark.asyncio
    async def test_end_to_end(self, manager, store, session_repository, activity_logger, activity_repository, clock):
        """Sign up, sign in, wait 90 seconds, log out."""
        assert (await manager.sign_up(EMAIL, PASSWORD)).ok
        assert (await manager.sign_in(EMAIL, PASSWORD)).ok
        assert await manager.is_logged_in()

        clock.advance(seconds=90)
        result = await manager.logout()

        assert result.ok
        report = result.data
        assert isinstance(report, LogoutReport)
        assert report.session_closed
        assert report.remote_signed_out
        assert not report.compensation_attempted
        assert not report.residual_session

        [session] = session_repository.records
        assert session.status == SessionStatus.CLOSED
        assert session.duration_minutes == 2

        await activity_logger.flush()
        assert [r.activity_type for r in activity_repository.records] == [
            ActivityType.LOGIN,
            ActivityType.LOGOUT,
        ]
        assert activity_repository.records[-1].activity_data == {"session_duration": 2}

        assert not await manager.is_logged_in()
        assert await store.get_all_keys() == []

    @pytest.mark.asyncio
    async def test_revokes_every_backend_session(self, manager, gateway, registered_user):
        """Should sign out globally."""
        await manager.sign_in(EMAIL, PASSWORD)

        await manager.logout()

        assert gateway.server_session_count == 0

    @pytest.mark.asyncio
    async def test_scan_purges_only_owned_keys(self, manager, store, registered_user):
        """Should remove verification entries and keep unrelated data."""
        await manager.sign_in(EMAIL, PASSWORD)
        await store.set_item(keys.ONBOARDING_COMPLETED, "true")
        await store.set_item(keys.verification_key("email", registered_user), "{}")
        await store.set_item(keys.verification_key("phone", "someone-else"), "{}")
        await store.set_item("theme_preference", "dark")
        await store.set_item("verification_fax_x", "keep")

        result = await manager.logout()

        assert result.ok
        assert sorted(await store.get_all_keys()) == ["theme_preference", "verification_fax_x"]
        assert f"verification_email_{registered_user}" in result.data.purged_keys

    @pytest.mark.asyncio
    async def test_remote_failure_still_purges(self, manager, store, gateway, registered_user):
        """A failed remote sign-out should not stop the local purge."""
        await manager.sign_in(EMAIL, PASSWORD)
        gateway.fail_next("sign_out")

        result = await manager.logout()

        assert result.ok
        assert not result.data.remote_signed_out
        assert result.data.compensation_attempted
        assert not result.data.residual_session
        assert await store.get_all_keys() == []
        assert await gateway.get_session() is None

    @pytest.mark.asyncio
    async def test_compensates_surviving_session(self, manager, gateway, registered_user):
        """A session that survived sign-out should be signed out again."""
        await manager.sign_in(EMAIL, PASSWORD)
        gateway.sticky_sign_outs = 1

        result = await manager.logout()

        assert result.ok
        assert result.data.remote_signed_out
        assert result.data.compensation_attempted
        assert not result.data.residual_session
        assert await gateway.get_session() is None
        assert gateway.calls.count("sign_out") == 2

    @pytest.mark.asyncio
    async def test_double_failure_reports_residual_session(self, manager, store, gateway, registered_user, caplog):
        """Both sign-outs failing still leaves the device logged out locally."""
        await manager.sign_in(EMAIL, PASSWORD)
        gateway.fail_next("sign_out", times=2)

        with caplog.at_level(logging.WARNING):
            result = await manager.logout()

        assert result.ok
        assert result.data.residual_session
        assert await store.get_all_keys() == []
        assert not await manager.is_logged_in()
        assert "backend session may remain" in caplog.text

    @pytest.mark.asyncio
    async def test_unconfirmable_sign_out_is_retried(self, manager, gateway, registered_user):
        """If the check itself fails, assume the session survived."""
        await manager.sign_in(EMAIL, PASSWORD)
        gateway.fail_next("get_session")

        result = await manager.logout()

        assert result.ok
        assert result.data.compensation_attempted
        assert gateway.calls.count("sign_out") == 2

    @pytest.mark.asyncio
    async def test_purge_failure_is_reported(self, gateway, settings, clock, registered_user):
        """Only a failed local purge makes logout fail."""
        store = BrokenPurgeStore()
        manager = AuthSessionManager(gateway, store, settings=settings, clock=clock)
        await manager.sign_in(EMAIL, PASSWORD)

        result = await manager.logout()

        assert not result.ok
        assert isinstance(result.error, StorageError)

    @pytest.mark.asyncio
    async def test_concurrent_logouts(self, manager, session_repository, store, registered_user):
        """Two logouts at once should both succeed and close the session once."""
        await manager.sign_in(EMAIL, PASSWORD)

        first, second = await asyncio.gather(manager.logout(), manager.logout())

        assert first.ok and second.ok
        assert [first.data.session_closed, second.data.session_closed].count(True) == 1
        assert session_repository.records[0].status == SessionStatus.CLOSED
        assert await store.get_all_keys() == []

    @pytest.mark.asyncio
    async def test_logout_without_tracked_session(self, manager, registered_user):
        """Should succeed when no session pointer exists."""
        result = await manager.logout()

        assert result.ok
        assert not result.data.session_closed


class TestLogoutAndRedirect:
    @pytest.mark.asyncio
    async def test_navigates_to_welcome(self, manager, registered_user):
        """Should land on the welcome screen after logout."""
        await manager.sign_in(EMAIL, PASSWORD)
        navigator = make_navigator()

        result = await manager.logout_and_redirect(navigator)

        assert result.ok
        assert result.data.route == "/welcome"
        assert result.data.logout.remote_signed_out
        navigator.replace.assert_awaited_once_with("/welcome")

    @pytest.mark.asyncio
    async def test_falls_back_to_sign_in(self, manager, registered_user):
        """Should try the fallback route when the first fails."""
        navigator = make_navigator(RuntimeError("route not mounted"), None)

        result = await manager.logout_and_redirect(navigator)

        assert result.ok
        assert result.data.route == "/signin"
        assert [c.args[0] for c in navigator.replace.await_args_list] == ["/welcome", "/signin"]

    @pytest.mark.asyncio
    async def test_navigation_impossible(self, manager, registered_user):
        """Should report when no route could be shown."""
        navigator = make_navigator(RuntimeError("a"), RuntimeError("b"))

        result = await manager.logout_and_redirect(navigator)

        assert not result.ok
        assert isinstance(result.error, NavigationError)

    @pytest.mark.asyncio
    async def test_navigates_even_if_logout_failed(self, gateway, settings, clock, registered_user):
        """A failed logout should still leave the user on a signed-out screen."""
        manager = AuthSessionManager(gateway, BrokenPurgeStore(), settings=settings, clock=clock)
        navigator = make_navigator()

        result = await manager.logout_and_redirect(navigator)

        assert not result.ok
        assert isinstance(result.error, StorageError)
        assert result.data.route == "/welcome"
        navigator.replace.assert_awaited_once_with("/welcome")


class TestReconciliation:
    @pytest.mark.asyncio
    async def test_ghost_session_is_purged(self, manager, store, caplog):
        """Flags claiming a session the backend lacks should be cleared."""
        await store.set_item(keys.AUTH_USER_ID, "user-1")
        await store.set_item(keys.IS_LOGGED_IN, "true")
        await store.set_item(keys.AUTO_LOGIN, "true")
        await store.set_item("theme_preference", "dark")

        assert not await manager.is_logged_in()
        with caplog.at_level(logging.WARNING):
            state = await manager.initialize_auth()

        assert not state.is_authenticated
        assert state.session is None
        assert await store.get_all_keys() == ["theme_preference"]
        assert "ghost session" in caplog.text

    @pytest.mark.asyncio
    async def test_initialize_with_live_session(self, manager, registered_user):
        """Should report the backend session when flags agree."""
        await manager.sign_in(EMAIL, PASSWORD)

        state = await manager.initialize_auth()

        assert state.is_authenticated
        assert state.session.user.id == registered_user

    @pytest.mark.asyncio
    async def test_initialize_without_auto_login(self, manager, store, registered_user):
        """A live session without auto-login should not count."""
        await manager.sign_in(EMAIL, PASSWORD)
        await manager.set_auto_login(False)

        state = await manager.initialize_auth()

        assert not state.is_authenticated
        assert await store.get_item(keys.IS_LOGGED_IN) is None

    @pytest.mark.asyncio
    async def test_initialize_backend_unreachable(self, manager, gateway, store, registered_user):
        """Should read as signed out and keep the flags for a later retry."""
        await manager.sign_in(EMAIL, PASSWORD)
        gateway.fail_next("get_session")

        state = await manager.initialize_auth()

        assert not state.is_authenticated
        assert await store.get_item(keys.IS_LOGGED_IN) == "true"

    @pytest.mark.asyncio
    async def test_is_logged_in_swallows_errors(self, manager, gateway, registered_user):
        """Any error should read as signed out."""
        await manager.sign_in(EMAIL, PASSWORD)
        gateway.fail_next("get_session")

        assert not await manager.is_logged_in()
        assert await manager.is_logged_in()

    @pytest.mark.asyncio
    async def test_refresh_confirms_session(self, manager, store, registered_user):
        """Should refresh the cached identity from the backend."""
        await manager.sign_in(EMAIL, PASSWORD)
        await store.set_item(keys.USER_EMAIL, "stale@example.com")

        result = await manager.refresh_auth_state()

        assert result.ok
        assert result.data.is_authenticated
        assert await store.get_item(keys.USER_EMAIL) == EMAIL

    @pytest.mark.asyncio
    async def test_refresh_purges_revoked_session(self, manager, gateway, store, registered_user):
        """A session the backend rejects should clear the flags."""
        await manager.sign_in(EMAIL, PASSWORD)
        gateway.revoke_all_sessions(registered_user)

        result = await manager.refresh_auth_state()

        assert result.ok
        assert not result.data.is_authenticated
        assert await store.get_item(keys.IS_LOGGED_IN) is None

    @pytest.mark.asyncio
    async def test_refresh_network_failure_keeps_flags(self, manager, gateway, store, registered_user):
        """A transient failure should be returned without purging."""
        await manager.sign_in(EMAIL, PASSWORD)
        gateway.fail_next("get_user")

        result = await manager.refresh_auth_state()

        assert not result.ok
        assert result.error.status == 503
        assert await store.get_item(keys.IS_LOGGED_IN) == "true"

    @pytest.mark.asyncio
    async def test_refresh_signed_out(self, manager, store):
        """No backend user should read as signed out."""
        result = await manager.refresh_auth_state()

        assert result.ok
        assert not result.data.is_authenticated


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_session_and_user(self, manager, registered_user):
        """Should return the backend's view."""
        assert (await manager.get_session()).data is None

        await manager.sign_in(EMAIL, PASSWORD)

        assert (await manager.get_session()).data.user.id == registered_user
        assert (await manager.get_current_user()).data.email == EMAIL

    @pytest.mark.asyncio
    async def test_get_session_error(self, manager, gateway):
        """Should return backend errors instead of raising."""
        gateway.fail_next("get_session")
        result = await manager.get_session()
        assert not result.ok

    @pytest.mark.asyncio
    async def test_get_stored_user_data(self, manager, registered_user, clock):
        """Should read the cached flags."""
        await manager.sign_in(EMAIL, PASSWORD)

        result = await manager.get_stored_user_data()

        flags = result.data
        assert flags.user_id == registered_user
        assert flags.email == EMAIL
        assert flags.login_timestamp == clock.now
        assert flags.is_logged_in
        assert flags.auto_login


class TestAccountChanges:
    @pytest.mark.asyncio
    async def test_reset_password(self, manager, gateway):
        """Should send a reset link back into the app."""
        result = await manager.reset_password(EMAIL)

        assert result.ok
        assert gateway.password_resets == [(EMAIL, "carepath://reset-password")]

    @pytest.mark.asyncio
    async def test_change_password(self, manager, gateway, registered_user, activity_logger, activity_repository):
        """The new password should work for the next sign-in."""
        await manager.sign_in(EMAIL, PASSWORD)

        result = await manager.change_password("NewSecret456")
        await manager.logout()

        assert result.ok
        assert (await manager.sign_in(EMAIL, "NewSecret456")).ok
        await activity_logger.flush()
        updates = [r for r in activity_repository.records if r.activity_type == ActivityType.PROFILE_UPDATE]
        assert updates[0].activity_data == {"action": "password_changed"}

    @pytest.mark.asyncio
    async def test_change_password_signed_out(self, manager):
        """Should fail without a session."""
        result = await manager.change_password("NewSecret456")
        assert not result.ok
        assert result.error.is_unauthorized

    @pytest.mark.asyncio
    async def test_update_email(self, manager, store, registered_user):
        """Should update the cached email too."""
        await manager.sign_in(EMAIL, PASSWORD)

        result = await manager.update_email("new@example.com")

        assert result.ok
        assert result.data.email == "new@example.com"
        assert await store.get_item(keys.USER_EMAIL) == "new@example.com"

    @pytest.mark.asyncio
    async def test_update_email_invalid(self, manager, store, registered_user):
        """Should reject a malformed address."""
        await manager.sign_in(EMAIL, PASSWORD)

        result = await manager.update_email("nope")

        assert not result.ok
        assert await store.get_item(keys.USER_EMAIL) == EMAIL

    @pytest.mark.asyncio
    async def test_phone_verification_flow(self, manager, gateway, registered_user):
        """Should text a code and verify it."""
        await manager.sign_in(EMAIL, PASSWORD)
        assert (await manager.update_phone("+15550100")).ok

        assert (await manager.send_phone_verification("+15550100")).ok
        code = gateway.sent_codes["+15550100"]
        result = await manager.verify_phone("+15550100", code)

        assert result.ok
        assert result.data.user.phone_verified

    @pytest.mark.asyncio
    async def test_verify_phone_wrong_code(self, manager, gateway, registered_user):
        """Should return the backend's rejection."""
        await manager.sign_in(EMAIL, PASSWORD)
        await manager.update_phone("+15550100")
        await manager.send_phone_verification("+15550100")

        result = await manager.verify_phone("+15550100", "not-the-code")

        assert not result.ok

    @pytest.mark.asyncio
    async def test_send_email_verification(self, manager, gateway, registered_user):
        """Should resend the confirmation to the signed-in user's email."""
        await manager.sign_in(EMAIL, PASSWORD)

        result = await manager.send_email_verification()

        assert result.ok
        assert gateway.confirmations_sent[-1] == ("email", EMAIL)

    @pytest.mark.asyncio
    async def test_send_email_verification_signed_out(self, manager):
        """Should require a signed-in user."""
        result = await manager.send_email_verification()

        assert not result.ok
        assert isinstance(result.error, NotAuthenticatedError)
