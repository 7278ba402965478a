"""
Activity module.

Append-only audit trail of user actions, written through an outbox.

Public API:
- IActivityLogger: Interface for logging activities
- ActivityLogger: Outbox-backed implementation
- ActivityRecord / ActivityType: Data models
- Activity repositories (Supabase and in-memory)
"""

from .interfaces import IActivityLogger, IActivityRepository
from .models import ActivityRecord, ActivityType
from .exceptions import ActivityLogError
from .repository import SupabaseActivityRepository, InMemoryActivityRepository
from .service import ActivityLogger

__all__ = [
    # Interfaces
    "IActivityLogger",
    "IActivityRepository",
    # Models
    "ActivityRecord",
    "ActivityType",
    # Exceptions
    "ActivityLogError",
    # Repositories
    "SupabaseActivityRepository",
    "InMemoryActivityRepository",
    # Service
    "ActivityLogger",
]
