"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules:
a controllable clock and the in-memory stand-ins for every remote service.
"""

import pytest
import pytest_asyncio
from datetime import datetime, timezone, timedelta

from carepath.dependencies import reset_container
from carepath.shared.config import Settings, get_settings
from carepath.shared.database import reset_client_cache
from carepath.shared.storage import InMemoryStore
from carepath.modules.activity.repository import InMemoryActivityRepository
from carepath.modules.activity.service import ActivityLogger
from carepath.modules.auth.gateway import InMemoryAuthGateway
from carepath.modules.auth.service import AuthSessionManager
from carepath.modules.sessions.repository import InMemorySessionRepository
from carepath.modules.sessions.service import SessionTracker
from carepath.modules.verification.repository import InMemoryProfileFlagRepository
from carepath.modules.verification.service import VerificationService


TEST_EMAIL = "user@example.com"
TEST_PASSWORD = "Secret123"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset cached settings, client and container before and after each test."""
    get_settings.cache_clear()
    reset_client_cache()
    reset_container()
    yield
    get_settings.cache_clear()
    reset_client_cache()
    reset_container()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings for a fully in-process run."""
    return Settings(
        _env_file=None,
        backend="memory",
        storage_backend="memory",
        device_info="pytest-device",
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def gateway(clock) -> InMemoryAuthGateway:
    return InMemoryAuthGateway(clock=clock)


@pytest.fixture
def activity_repository(clock) -> InMemoryActivityRepository:
    return InMemoryActivityRepository(clock=clock)


@pytest.fixture
def activity_logger(activity_repository) -> ActivityLogger:
    return ActivityLogger(activity_repository)


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def tracker(session_repository, store, activity_logger, clock) -> SessionTracker:
    return SessionTracker(session_repository, store, activity_logger=activity_logger, clock=clock)


@pytest.fixture
def profile_flags() -> InMemoryProfileFlagRepository:
    return InMemoryProfileFlagRepository()


@pytest.fixture
def verification(store, profile_flags, activity_logger, clock) -> VerificationService:
    return VerificationService(store, profile_flags, activity_logger=activity_logger, clock=clock)


@pytest.fixture
def manager(gateway, store, tracker, activity_logger, settings, clock) -> AuthSessionManager:
    return AuthSessionManager(
        gateway,
        store,
        session_tracker=tracker,
        activity_logger=activity_logger,
        settings=settings,
        clock=clock,
    )


@pytest_asyncio.fixture
async def registered_user(gateway) -> str:
    """Register the standard test user on the backend and return its id (signed out)."""
    response = await gateway.sign_up(TEST_EMAIL, TEST_PASSWORD)
    await gateway.sign_out()
    gateway.calls.clear()
    return response.user.id
