"""
Activity module interfaces.

Other modules depend on IActivityLogger, never on the outbox or the
repository behind it.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from .models import ActivityRecord, ActivityType


@runtime_checkable
class IActivityRepository(Protocol):
    """Storage for activity records."""

    async def insert(self, record: ActivityRecord) -> ActivityRecord:
        """
        Persist a record.

        Returns:
            The stored record with ``id`` and ``timestamp`` assigned

        Raises:
            ActivityLogError: If the write failed
        """
        ...

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ActivityRecord]:
        """List a user's records, most recent first."""
        ...

    async def count_for_user(self, user_id: str) -> int:
        """Count a user's records."""
        ...


@runtime_checkable
class IActivityLogger(Protocol):
    """
    Interface for the audit trail.

    Logging is best-effort: callers never wait on, or fail because of,
    the underlying write.
    """

    def log_activity(
        self,
        user_id: str,
        activity_type: ActivityType,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        """Queue an activity record for writing."""
        ...

    async def flush(self) -> None:
        """Wait until every queued record has been written or dropped."""
        ...

    async def get_user_activities(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ActivityRecord]:
        """List a user's activity history, most recent first."""
        ...

    async def count_activities(self, user_id: str) -> int:
        """Count a user's activity records."""
        ...
