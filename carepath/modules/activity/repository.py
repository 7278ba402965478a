"""
Activity repositories.

SupabaseActivityRepository writes to the ``user_activities`` table, where
the database assigns ``id`` and ``timestamp``. InMemoryActivityRepository
mirrors that behavior for development and tests.
"""

import itertools
from typing import Any, Optional

from carepath.shared.clock import Clock, parse_timestamp, utc_now
from carepath.shared.repository import BaseRepository
from .exceptions import ActivityLogError
from .models import ActivityRecord, ActivityType


class SupabaseActivityRepository(BaseRepository[ActivityRecord]):
    """Activity records in the ``user_activities`` table."""

    TABLE = "user_activities"

    async def insert(self, record: ActivityRecord) -> ActivityRecord:
        row = {
            "user_id": record.user_id,
            "activity_type": record.activity_type.value,
            "activity_data": record.activity_data,
        }
        try:
            result = await self._execute(self._db.table(self.TABLE).insert(row), "log activity")
        except Exception as e:
            raise ActivityLogError(record.user_id, record.activity_type.value, str(e)) from e

        if not result.data:
            raise ActivityLogError(
                record.user_id, record.activity_type.value, "insert returned no row"
            )
        return self._map_to_record(result.data[0])

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ActivityRecord]:
        query = (
            self._db.table(self.TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("timestamp", desc=True)
            .range(offset, offset + limit - 1)
        )
        result = await self._execute(query, "list activities")
        return [self._map_to_record(r) for r in result.data]

    async def count_for_user(self, user_id: str) -> int:
        query = self._db.table(self.TABLE).select("id", count="exact").eq("user_id", user_id)
        result = await self._execute(query, "count activities")
        return result.count or 0

    def _map_to_record(self, data: dict[str, Any]) -> ActivityRecord:
        """Map database row to ActivityRecord model."""
        timestamp = data.get("timestamp")
        return ActivityRecord(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            activity_type=ActivityType(data["activity_type"]),
            activity_data=data.get("activity_data"),
            timestamp=parse_timestamp(timestamp) if timestamp else None,
        )


class InMemoryActivityRepository:
    """
    Activity records held in a list.

    For testing and development. Use SupabaseActivityRepository for production.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utc_now
        self._records: list[ActivityRecord] = []
        self._ids = itertools.count(1)

    @property
    def records(self) -> list[ActivityRecord]:
        """All records in insertion order."""
        return list(self._records)

    async def insert(self, record: ActivityRecord) -> ActivityRecord:
        stored = record.model_copy(
            update={"id": f"activity-{next(self._ids)}", "timestamp": self._clock()}
        )
        self._records.append(stored)
        return stored

    async def list_for_user(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ActivityRecord]:
        mine = [r for r in reversed(self._records) if r.user_id == user_id]
        return mine[offset : offset + limit]

    async def count_for_user(self, user_id: str) -> int:
        return sum(1 for r in self._records if r.user_id == user_id)
