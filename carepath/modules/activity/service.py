"""
Activity logger implementation.

Records are queued in an in-process outbox and written by a background
drain task, so a slow or failing write never delays or fails the sign-in,
logout or verification that triggered it.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Optional

from .interfaces import IActivityLogger, IActivityRepository
from .models import ActivityRecord, ActivityType

logger = logging.getLogger(__name__)

DEFAULT_MAX_PENDING = 1000


class ActivityLogger(IActivityLogger):
    """
    Best-effort audit trail backed by an outbox.

    Usage:
        activity = ActivityLogger(SupabaseActivityRepository(client))
        activity.log_activity(user_id, ActivityType.LOGIN, {"device_info": "iPhone"})
        ...
        await activity.aclose()  # on shutdown
    """

    def __init__(
        self,
        repository: IActivityRepository,
        max_pending: int = DEFAULT_MAX_PENDING,
    ):
        self._repository = repository
        self._max_pending = max_pending
        self._outbox: deque[ActivityRecord] = deque()
        self._drain_task: Optional[asyncio.Task] = None
        self._dropped = 0

    @property
    def pending(self) -> int:
        """Number of records waiting to be written."""
        return len(self._outbox)

    @property
    def dropped(self) -> int:
        """Records discarded because the outbox overflowed or the write failed."""
        return self._dropped

    def log_activity(
        self,
        user_id: str,
        activity_type: ActivityType,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        """Queue an activity record. Never raises; bad records are dropped."""
        try:
            record = ActivityRecord(
                user_id=user_id,
                activity_type=ActivityType(activity_type),
                activity_data=data,
            )
        except ValueError as e:
            # pydantic's ValidationError is a ValueError
            self._dropped += 1
            logger.warning(f"Dropping invalid '{activity_type}' activity for user {user_id}: {e}")
            return

        if len(self._outbox) >= self._max_pending:
            discarded = self._outbox.popleft()
            self._dropped += 1
            logger.warning(
                f"Activity outbox full, dropping oldest '{discarded.activity_type.value}' "
                f"record for user {discarded.user_id}"
            )

        self._outbox.append(record)
        self._ensure_draining()

    def _ensure_draining(self) -> None:
        if self._drain_task is not None and not self._drain_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the records stay queued until flush()
            return
        self._drain_task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._outbox:
            record = self._outbox.popleft()
            try:
                await self._repository.insert(record)
            except Exception as e:
                self._dropped += 1
                logger.warning(
                    f"Failed to write '{record.activity_type.value}' activity "
                    f"for user {record.user_id}: {e}"
                )

    async def flush(self) -> None:
        """Wait until the outbox is empty."""
        while self._outbox or (self._drain_task is not None and not self._drain_task.done()):
            self._ensure_draining()
            if self._drain_task is not None:
                await self._drain_task

    async def aclose(self) -> None:
        """Drain remaining records before shutdown."""
        await self.flush()
        if self._dropped:
            logger.info(f"Activity logger closed with {self._dropped} dropped records")

    async def get_user_activities(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ActivityRecord]:
        """Get a user's activity history, most recent first."""
        return await self._repository.list_for_user(user_id, limit=limit, offset=offset)

    async def count_activities(self, user_id: str) -> int:
        """Count a user's activity records."""
        return await self._repository.count_for_user(user_id)
