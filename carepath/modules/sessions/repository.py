"""
Session repositories.

SupabaseSessionRepository encapsulates all queries against the
``user_sessions`` table (columns: id, user_id, login_time, logout_time,
session_duration, device_info). InMemorySessionRepository mirrors it for
development and tests.
"""

import itertools
from datetime import datetime
from typing import Any, Optional

from carepath.shared.clock import parse_timestamp
from carepath.shared.repository import BaseRepository
from .exceptions import SessionNotFoundError
from .models import SessionRecord


class SupabaseSessionRepository(BaseRepository[SessionRecord]):
    """
    Repository for session rows.

    Note: This repository does NOT check the ACTIVE/CLOSED transition.
    The tracker is responsible for refusing to close a closed row.
    """

    TABLE = "user_sessions"

    async def create(
        self,
        user_id: str,
        login_time: datetime,
        device_info: Optional[str] = None,
    ) -> SessionRecord:
        row = {
            "user_id": user_id,
            "login_time": login_time.isoformat(),
            "device_info": device_info,
        }
        result = await self._execute(self._db.table(self.TABLE).insert(row), "start session")
        return self._map_to_record(result.data[0])

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        query = self._db.table(self.TABLE).select("*").eq("id", session_id)
        result = await self._execute(query, "get session")
        if not result.data:
            return None
        return self._map_to_record(result.data[0])

    async def close(
        self,
        session_id: str,
        logout_time: datetime,
        duration_minutes: int,
    ) -> SessionRecord:
        query = (
            self._db.table(self.TABLE)
            .update({
                "logout_time": logout_time.isoformat(),
                "session_duration": duration_minutes,
            })
            .eq("id", session_id)
        )
        result = await self._execute(query, "end session")
        if not result.data:
            raise SessionNotFoundError(session_id)
        return self._map_to_record(result.data[0])

    async def list_for_user(self, user_id: str, limit: int = 10) -> list[SessionRecord]:
        query = (
            self._db.table(self.TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("login_time", desc=True)
            .limit(limit)
        )
        result = await self._execute(query, "list sessions")
        return [self._map_to_record(r) for r in result.data]

    async def count_for_user(self, user_id: str) -> int:
        query = self._db.table(self.TABLE).select("id", count="exact").eq("user_id", user_id)
        result = await self._execute(query, "count sessions")
        return result.count or 0

    async def list_durations(self, user_id: str) -> list[int]:
        query = (
            self._db.table(self.TABLE)
            .select("session_duration")
            .eq("user_id", user_id)
            .not_.is_("session_duration", "null")
        )
        result = await self._execute(query, "session durations")
        return [int(r["session_duration"]) for r in result.data]

    def _map_to_record(self, data: dict[str, Any]) -> SessionRecord:
        """Map database row to SessionRecord model."""
        logout_time = data.get("logout_time")
        return SessionRecord(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            login_time=parse_timestamp(data["login_time"]),
            logout_time=parse_timestamp(logout_time) if logout_time else None,
            duration_minutes=data.get("session_duration"),
            device_info=data.get("device_info"),
        )


class InMemorySessionRepository:
    """
    Session rows held in a dict.

    For testing and development. Use SupabaseSessionRepository for production.
    """

    def __init__(self) -> None:
        self._records: dict[str, SessionRecord] = {}
        self._ids = itertools.count(1)

    @property
    def records(self) -> list[SessionRecord]:
        """All rows in creation order."""
        return list(self._records.values())

    async def create(
        self,
        user_id: str,
        login_time: datetime,
        device_info: Optional[str] = None,
    ) -> SessionRecord:
        record = SessionRecord(
            id=f"session-{next(self._ids)}",
            user_id=user_id,
            login_time=login_time,
            device_info=device_info,
        )
        self._records[record.id] = record
        return record

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        return self._records.get(session_id)

    async def close(
        self,
        session_id: str,
        logout_time: datetime,
        duration_minutes: int,
    ) -> SessionRecord:
        record = self._records.get(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        closed = record.model_copy(
            update={"logout_time": logout_time, "duration_minutes": duration_minutes}
        )
        self._records[session_id] = closed
        return closed

    async def list_for_user(self, user_id: str, limit: int = 10) -> list[SessionRecord]:
        mine = [r for r in self._records.values() if r.user_id == user_id]
        mine.sort(key=lambda r: r.login_time, reverse=True)
        return mine[:limit]

    async def count_for_user(self, user_id: str) -> int:
        return sum(1 for r in self._records.values() if r.user_id == user_id)

    async def list_durations(self, user_id: str) -> list[int]:
        return [
            r.duration_minutes
            for r in self._records.values()
            if r.user_id == user_id and r.duration_minutes is not None
        ]
