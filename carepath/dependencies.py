"""
Dependency injection setup.

This module provides the "container" that wires together all module
implementations. Each module exposes its service through an interface,
and this file creates the concrete implementations.

With ``backend="memory"`` every remote collaborator is replaced by its
in-memory counterpart, which is how tests and offline demos run.
"""

from typing import TYPE_CHECKING, Optional

from carepath.shared.config import Settings, get_settings

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from supabase import AsyncClient
    from carepath.shared.storage import IKeyValueStore
    from carepath.modules.activity.interfaces import IActivityLogger
    from carepath.modules.auth.interfaces import IAuthGateway, IAuthSessionManager
    from carepath.modules.sessions.interfaces import ISessionTracker
    from carepath.modules.verification.interfaces import IVerificationService


class ServiceContainer:
    """
    Container for all service instances.

    Services are created lazily on first access and cached as singletons
    within the container. The Supabase client is created up front by
    create_container() because creating it is asynchronous.
    """

    def __init__(self, settings: Settings, client: "Optional[AsyncClient]" = None) -> None:
        if settings.backend == "supabase" and client is None:
            raise ValueError("A Supabase client is required for the supabase backend")
        self.settings = settings
        self._client = client
        self._store: "IKeyValueStore | None" = None
        self._gateway: "IAuthGateway | None" = None
        self._activity: "IActivityLogger | None" = None
        self._sessions: "ISessionTracker | None" = None
        self._verification: "IVerificationService | None" = None
        self._auth: "IAuthSessionManager | None" = None

    @property
    def uses_memory(self) -> bool:
        return self.settings.backend == "memory"

    @property
    def store(self) -> "IKeyValueStore":
        """Get the local key-value store."""
        if self._store is None:
            from carepath.shared.storage import create_store
            self._store = create_store(self.settings)
        return self._store

    @property
    def gateway(self) -> "IAuthGateway":
        """Get the auth gateway instance."""
        if self._gateway is None:
            from carepath.modules.auth.gateway import InMemoryAuthGateway, SupabaseAuthGateway
            if self.uses_memory:
                self._gateway = InMemoryAuthGateway()
            else:
                self._gateway = SupabaseAuthGateway(self._client, self.settings.remote_timeout_seconds)
        return self._gateway

    @property
    def activity(self) -> "IActivityLogger":
        """Get the activity logger instance."""
        if self._activity is None:
            from carepath.modules.activity.repository import (
                InMemoryActivityRepository,
                SupabaseActivityRepository,
            )
            from carepath.modules.activity.service import ActivityLogger
            if self.uses_memory:
                repository = InMemoryActivityRepository()
            else:
                repository = SupabaseActivityRepository(self._client, self.settings.remote_timeout_seconds)
            self._activity = ActivityLogger(repository)
        return self._activity

    @property
    def sessions(self) -> "ISessionTracker":
        """Get the session tracker instance."""
        if self._sessions is None:
            from carepath.modules.sessions.repository import (
                InMemorySessionRepository,
                SupabaseSessionRepository,
            )
            from carepath.modules.sessions.service import SessionTracker
            if self.uses_memory:
                repository = InMemorySessionRepository()
            else:
                repository = SupabaseSessionRepository(self._client, self.settings.remote_timeout_seconds)
            self._sessions = SessionTracker(repository, self.store, activity_logger=self.activity)
        return self._sessions

    @property
    def verification(self) -> "IVerificationService":
        """Get the verification service instance."""
        if self._verification is None:
            from carepath.modules.verification.repository import (
                InMemoryProfileFlagRepository,
                SupabaseProfileFlagRepository,
            )
            from carepath.modules.verification.service import VerificationService
            if self.uses_memory:
                flags = InMemoryProfileFlagRepository()
            else:
                flags = SupabaseProfileFlagRepository(self._client, self.settings.remote_timeout_seconds)
            self._verification = VerificationService(
                self.store,
                flags,
                activity_logger=self.activity,
                ttl_minutes=self.settings.verification_token_ttl_minutes,
            )
        return self._verification

    @property
    def auth(self) -> "IAuthSessionManager":
        """Get the auth session manager instance."""
        if self._auth is None:
            from carepath.modules.auth.service import AuthSessionManager
            self._auth = AuthSessionManager(
                self.gateway,
                self.store,
                session_tracker=self.sessions,
                activity_logger=self.activity,
                settings=self.settings,
            )
        return self._auth

    def reset(self) -> None:
        """
        Reset all cached services.

        This is primarily for testing - allows tests to get fresh
        service instances with different mock dependencies.
        """
        self._store = None
        self._gateway = None
        self._activity = None
        self._sessions = None
        self._verification = None
        self._auth = None


async def create_container(settings: Optional[Settings] = None) -> ServiceContainer:
    """Build a container, creating the Supabase client when it is needed."""
    settings = settings or get_settings()
    client = None
    if settings.backend == "supabase":
        from carepath.shared.database import get_supabase_client
        client = await get_supabase_client()
    return ServiceContainer(settings, client)


# Module-level container singleton
_container: ServiceContainer | None = None


async def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = await create_container()
    return _container


def reset_container() -> None:
    """
    Reset the service container.

    This clears the cached container, so the next call to get_container()
    will create a fresh container with new service instances.

    Primarily used for testing.
    """
    global _container
    _container = None


async def get_auth_manager() -> "IAuthSessionManager":
    """Shortcut for screens that only need the session manager."""
    return (await get_container()).auth
