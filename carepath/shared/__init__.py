"""
Shared infrastructure for CarePath.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- database: Supabase client factory and bounded remote calls
- storage: Local persistent key-value store and its key registry
- exceptions: Base exception classes
- models: The {data, error} result pair

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .clock import utc_now, parse_timestamp
from .database import get_supabase_client, reset_client_cache, call_remote
from .exceptions import (
    CarePathError,
    ValidationError,
    AuthenticationError,
    ExternalServiceError,
    StorageError,
)
from .locks import KeyedLocks
from .models import Result
from .storage import IKeyValueStore, InMemoryStore, FileStore, create_store

__all__ = [
    "Settings",
    "get_settings",
    "utc_now",
    "parse_timestamp",
    "get_supabase_client",
    "reset_client_cache",
    "call_remote",
    "CarePathError",
    "ValidationError",
    "AuthenticationError",
    "ExternalServiceError",
    "StorageError",
    "KeyedLocks",
    "Result",
    "IKeyValueStore",
    "InMemoryStore",
    "FileStore",
    "create_store",
]
