"""
Centralized configuration for CarePath.

All settings are loaded from environment variables with sensible defaults.
Backend credentials are namespaced (SUPABASE_*), local storage under STORAGE_*.
"""

from functools import lru_cache
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "CarePath"
    debug: bool = False

    # Which remote collaborators to wire ("memory" runs fully in-process)
    backend: Literal["supabase", "memory"] = "supabase"

    # Supabase (client apps only ever hold the anon key)
    supabase_url: str = ""
    supabase_anon_key: str = ""

    # Local persistent store, chosen once by the host
    storage_backend: Literal["memory", "file"] = "file"
    storage_path: str = ".carepath/storage.json"

    # Remote calls
    remote_timeout_seconds: float = 10.0

    # Verification codes
    verification_token_ttl_minutes: int = 10

    # Redirect targets
    password_reset_redirect: str = "carepath://reset-password"
    logout_redirect_route: str = "/welcome"
    logout_fallback_route: str = "/signin"

    # History paging defaults
    session_history_limit: int = 10
    activity_history_limit: int = 50

    # Recorded on each session row
    device_info: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
