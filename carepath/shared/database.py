"""
Remote client factory for Supabase.

CarePath runs on the user's device, so it only ever uses the anon key;
row level security on the backend scopes every query to the signed-in user.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar
from supabase import acreate_client, AsyncClient

from .config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Module-level client cache
_client: Optional[AsyncClient] = None


async def get_supabase_client() -> AsyncClient:
    """
    Get the shared Supabase client (anon key).

    The same client backs both the auth gateway and the structured-store
    repositories so table writes carry the signed-in user's session.

    Returns:
        Supabase async client
    """
    global _client

    if _client is None:
        settings = get_settings()
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise RuntimeError(
                "Supabase configuration missing. "
                "Set SUPABASE_URL and SUPABASE_ANON_KEY environment variables."
            )
        _client = await acreate_client(
            settings.supabase_url,
            settings.supabase_anon_key,
        )

    return _client


def reset_client_cache() -> None:
    """
    Reset the cached client.

    Useful for testing or when configuration changes.
    """
    global _client
    _client = None


async def call_remote(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """
    Await a remote call, bounded by ``timeout`` seconds.

    A timeout is reported as a recoverable RemoteAuthError so callers such as
    logout can carry on with their local work.
    """
    # Imported here: the auth module depends on shared, not the other way round
    from carepath.modules.auth.exceptions import RemoteAuthError

    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Remote call '{operation}' timed out after {timeout}s")
        raise RemoteAuthError(
            f"Request timed out: {operation}",
            code="REMOTE_TIMEOUT",
            details={"operation": operation, "timeout": timeout},
        )
