"""
Session tracking module.

Records login-to-logout intervals with their duration for analytics.

Public API:
- ISessionTracker: Interface for session tracking
- SessionTracker: Implementation
- SessionRecord / SessionStatus / SessionStats: Data models
- duration_minutes: The half-up minute rounding rule
- SessionStateError: Raised when no session is open
"""

from .interfaces import ISessionTracker, ISessionRepository
from .models import (
    SessionRecord,
    SessionStatus,
    SessionStats,
    duration_minutes,
    round_half_up,
)
from .exceptions import SessionStateError, SessionNotFoundError
from .repository import SupabaseSessionRepository, InMemorySessionRepository
from .service import SessionTracker

__all__ = [
    # Interfaces
    "ISessionTracker",
    "ISessionRepository",
    # Models
    "SessionRecord",
    "SessionStatus",
    "SessionStats",
    "duration_minutes",
    "round_half_up",
    # Exceptions
    "SessionStateError",
    "SessionNotFoundError",
    # Repositories
    "SupabaseSessionRepository",
    "InMemorySessionRepository",
    # Service
    "SessionTracker",
]
