"""
Session tracker implementation.

Opens a session row on login and closes it with a computed duration on
logout. The server assigns the row id, so the id of the open row is kept in
the local store as the device's "current session" pointer.

Known gap: if the app dies between start_session and end_session the row
stays ACTIVE forever. Nothing reaps such rows; they only affect analytics.
"""

import logging
from decimal import Decimal
from typing import Optional

from carepath.shared.clock import Clock, utc_now
from carepath.shared.locks import KeyedLocks
from carepath.shared.storage import IKeyValueStore
from carepath.shared.storage_keys import CURRENT_SESSION_ID
from carepath.modules.activity.interfaces import IActivityLogger
from carepath.modules.activity.models import ActivityType

from .exceptions import SessionNotFoundError, SessionStateError
from .interfaces import ISessionRepository, ISessionTracker
from .models import SessionRecord, SessionStats, duration_minutes, round_half_up

logger = logging.getLogger(__name__)


class SessionTracker(ISessionTracker):
    """
    Tracks login/logout intervals for analytics.

    start_session and end_session for the same user are serialised so a
    logout racing a login cannot close the wrong row.
    """

    def __init__(
        self,
        repository: ISessionRepository,
        store: IKeyValueStore,
        activity_logger: Optional[IActivityLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._repository = repository
        self._store = store
        self._activity = activity_logger
        self._clock = clock or utc_now
        self._locks = KeyedLocks()

    async def start_session(
        self,
        user_id: str,
        device_info: Optional[str] = None,
    ) -> SessionRecord:
        """Open a new session row and point the device at it."""
        async with self._locks.hold(user_id):
            record = await self._repository.create(
                user_id=user_id,
                login_time=self._clock(),
                device_info=device_info,
            )
            await self._store.set_item(CURRENT_SESSION_ID, record.id)

        logger.info(f"Started session {record.id} for user {user_id}")
        if self._activity is not None:
            self._activity.log_activity(user_id, ActivityType.LOGIN, {"device_info": device_info})
        return record

    async def end_session(self, user_id: str) -> SessionRecord:
        """
        Close the current session row.

        Raises:
            SessionStateError: If the device has no current session, the row
                it points at belongs to another user, or is already closed
            SessionNotFoundError: If the row it points at does not exist; the
                stale pointer is cleared
        """
        async with self._locks.hold(user_id):
            session_id = await self._store.get_item(CURRENT_SESSION_ID)
            if not session_id:
                raise SessionStateError(user_id=user_id)

            record = await self._repository.get(session_id)
            if record is None:
                await self._store.remove_item(CURRENT_SESSION_ID)
                raise SessionNotFoundError(session_id)
            if record.user_id != user_id:
                raise SessionStateError(
                    f"Session {session_id} belongs to another user",
                    user_id=user_id,
                    session_id=session_id,
                )
            if record.logout_time is not None:
                raise SessionStateError(
                    f"Session already closed: {session_id}",
                    user_id=user_id,
                    session_id=session_id,
                )

            logout_time = self._clock()
            minutes = duration_minutes(record.login_time, logout_time)
            closed = await self._repository.close(session_id, logout_time, minutes)
            await self._store.remove_item(CURRENT_SESSION_ID)

        logger.info(f"Closed session {session_id} for user {user_id} after {minutes} min")
        if self._activity is not None:
            self._activity.log_activity(user_id, ActivityType.LOGOUT, {"session_duration": minutes})
        return closed

    async def get_user_sessions(self, user_id: str, limit: int = 10) -> list[SessionRecord]:
        """Get a user's session history, most recent first."""
        return await self._repository.list_for_user(user_id, limit=limit)

    async def has_active_session(self) -> bool:
        """Whether the device currently points at a session row."""
        return bool(await self._store.get_item(CURRENT_SESSION_ID))

    async def get_user_stats(self, user_id: str) -> SessionStats:
        """Aggregate a user's session history."""
        total_sessions = await self._repository.count_for_user(user_id)
        durations = await self._repository.list_durations(user_id)
        latest = await self._repository.list_for_user(user_id, limit=1)

        average = 0
        if durations:
            average = round_half_up(Decimal(sum(durations)) / Decimal(len(durations)))

        total_activities = 0
        if self._activity is not None:
            total_activities = await self._activity.count_activities(user_id)

        return SessionStats(
            total_sessions=total_sessions,
            total_activities=total_activities,
            average_session_duration=average,
            last_login=latest[0].login_time if latest else None,
        )
