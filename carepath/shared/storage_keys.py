"""
Registry of every local store key the session subsystem owns.

Keys are enumerated explicitly. Cleanup code removes exactly these keys
(plus well-formed members of the verification family) and nothing else,
so unrelated data kept by the host app in the same store is never touched.
"""

import re
from typing import Optional


# Local Auth Flags
AUTH_USER_ID = "auth_user_id"
USER_EMAIL = "user_email"
LOGIN_TIMESTAMP = "login_timestamp"
IS_LOGGED_IN = "is_logged_in"
AUTO_LOGIN = "auto_login"

# Session Tracker pointer
CURRENT_SESSION_ID = "current_session_id"

# Cache-invalidation-only keys written by other screens
USER_PROFILE_DATA = "user_profile_data"
CACHED_PROFILE_PICTURE = "cached_profile_picture"
ONBOARDING_COMPLETED = "onboarding_completed"

AUTH_FLAG_KEYS: tuple[str, ...] = (
    AUTH_USER_ID,
    USER_EMAIL,
    LOGIN_TIMESTAMP,
    IS_LOGGED_IN,
    AUTO_LOGIN,
)

CACHE_KEYS: tuple[str, ...] = (
    USER_PROFILE_DATA,
    CACHED_PROFILE_PICTURE,
    ONBOARDING_COMPLETED,
)

# Cleared by a plain sign-out; the session pointer is left to the tracker
SIGN_OUT_KEYS: tuple[str, ...] = AUTH_FLAG_KEYS + (USER_PROFILE_DATA, CACHED_PROFILE_PICTURE)

# Every fixed key, in purge order
STATIC_KEYS: tuple[str, ...] = AUTH_FLAG_KEYS + (CURRENT_SESSION_ID,) + CACHE_KEYS

VERIFICATION_CHANNELS: tuple[str, ...] = ("email", "phone")

_VERIFICATION_KEY = re.compile(r"^verification_(email|phone)_(.+)$")


def verification_key(channel: str, user_id: str) -> str:
    """Key holding the pending verification token for (user, channel)."""
    if channel not in VERIFICATION_CHANNELS:
        raise ValueError(f"Unknown verification channel: {channel}")
    return f"verification_{channel}_{user_id}"


def parse_verification_key(key: str) -> Optional[tuple[str, str]]:
    """Split a verification key into (channel, user_id), or None."""
    match = _VERIFICATION_KEY.match(key)
    if match is None:
        return None
    return match.group(1), match.group(2)


def is_owned_key(key: str) -> bool:
    """Whether ``key`` belongs to the session subsystem's namespace."""
    return key in STATIC_KEYS or parse_verification_key(key) is not None
