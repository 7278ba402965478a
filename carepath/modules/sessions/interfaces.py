"""
Session tracking interfaces.

The auth module depends on ISessionTracker to open a session row on
sign-in and close it on logout.
"""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from .models import SessionRecord, SessionStats


@runtime_checkable
class ISessionRepository(Protocol):
    """Storage for session rows."""

    async def create(
        self,
        user_id: str,
        login_time: datetime,
        device_info: Optional[str] = None,
    ) -> SessionRecord:
        """Insert a new ACTIVE row and return it with its server-assigned id."""
        ...

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        """Fetch a row by id, or None."""
        ...

    async def close(
        self,
        session_id: str,
        logout_time: datetime,
        duration_minutes: int,
    ) -> SessionRecord:
        """Write logout time and duration to a row."""
        ...

    async def list_for_user(self, user_id: str, limit: int = 10) -> list[SessionRecord]:
        """A user's rows, most recent login first."""
        ...

    async def count_for_user(self, user_id: str) -> int:
        """Number of rows, open or closed, for a user."""
        ...

    async def list_durations(self, user_id: str) -> list[int]:
        """Durations of a user's closed rows."""
        ...


@runtime_checkable
class ISessionTracker(Protocol):
    """
    Interface for session tracking.

    Records discrete login/logout intervals with computed duration.
    """

    async def start_session(
        self,
        user_id: str,
        device_info: Optional[str] = None,
    ) -> SessionRecord:
        """
        Open a new session row and remember it as the current session.

        Returns:
            The created ACTIVE SessionRecord
        """
        ...

    async def end_session(self, user_id: str) -> SessionRecord:
        """
        Close the current session row.

        Returns:
            The CLOSED SessionRecord with duration

        Raises:
            SessionStateError: If there is no current session
        """
        ...

    async def get_user_sessions(self, user_id: str, limit: int = 10) -> list[SessionRecord]:
        """List a user's sessions, most recent first."""
        ...

    async def has_active_session(self) -> bool:
        """Whether this device currently points at an open session."""
        ...

    async def get_user_stats(self, user_id: str) -> SessionStats:
        """Aggregate session analytics for a user."""
        ...
