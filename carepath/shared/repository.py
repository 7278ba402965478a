"""
Base repository class for remote structured-store access.

Provides a common abstraction layer for all Supabase-backed repositories,
encapsulating client access and the per-call timeout.
"""

from typing import Any, Awaitable, Generic, TypeVar
from supabase import AsyncClient

from .database import call_remote


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base class for all Supabase repositories.

    Provides common functionality for table operations:
    - Supabase client access via self._db
    - Bounded execution of queries via self._execute
    - Generic type parameter for model type hints

    Subclasses implement domain-specific data access methods and handle
    dict-to-Pydantic model mapping internally.

    Example:
        class SessionRepository(BaseRepository[SessionRecord]):
            async def get(self, session_id: str) -> Optional[SessionRecord]:
                result = await self._execute(
                    self._db.table("user_sessions").select("*").eq("id", session_id),
                    "get session",
                )
                if not result.data:
                    return None
                return self._map_to_record(result.data[0])
    """

    def __init__(self, db: AsyncClient, timeout: float = 10.0) -> None:
        """
        Initialize the repository with a Supabase client.

        Args:
            db: Supabase client instance for table operations.
            timeout: Seconds allowed for each query.
        """
        self._db = db
        self._timeout = timeout

    async def _execute(self, query: Any, operation: str) -> Any:
        """Execute a query builder and wait for its response."""
        execution: Awaitable[Any] = query.execute()
        return await call_remote(execution, self._timeout, operation)
