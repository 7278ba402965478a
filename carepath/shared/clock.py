"""Time helpers. Everything in CarePath is timezone-aware UTC."""

from datetime import datetime, timezone
from typing import Callable, Union

from dateutil.parser import isoparse


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """
    Parse a timestamp coming back from the backend.

    Postgres returns a variable number of fractional digits and either
    ``Z`` or ``+00:00``; naive values are assumed to be UTC.
    """
    parsed = value if isinstance(value, datetime) else isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
