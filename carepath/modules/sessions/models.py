"""
Session tracking data models.

A SessionRecord is one login-to-logout interval, kept for analytics.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    """Lifecycle of a session row. CLOSED is terminal."""

    ACTIVE = "active"
    CLOSED = "closed"


class SessionRecord(BaseModel):
    """A server-held row for one login-to-logout interval."""

    id: str = Field(..., description="Record ID (assigned by the server)")
    user_id: str = Field(..., description="User the session belongs to")
    login_time: datetime = Field(..., description="When the session started")
    logout_time: Optional[datetime] = Field(None, description="When it was closed")
    duration_minutes: Optional[int] = Field(None, ge=0, description="Whole minutes, half-up")
    device_info: Optional[str] = Field(None, description="Free-form device description")

    @property
    def status(self) -> SessionStatus:
        return SessionStatus.CLOSED if self.logout_time is not None else SessionStatus.ACTIVE


class SessionStats(BaseModel):
    """Aggregated session analytics for a user."""

    total_sessions: int = Field(default=0, ge=0)
    total_activities: int = Field(default=0, ge=0)
    average_session_duration: int = Field(default=0, ge=0, description="Minutes, half-up")
    last_login: Optional[datetime] = None


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def duration_minutes(login_time: datetime, logout_time: datetime) -> int:
    """
    Whole minutes between login and logout, rounded half-up.

    90 seconds is 2 minutes, 89 seconds is 1. A logout that appears to come
    before the login (clock skew between device and server) counts as 0.
    """
    elapsed = logout_time - login_time
    micros = (elapsed.days * 86_400 + elapsed.seconds) * 1_000_000 + elapsed.microseconds
    if micros <= 0:
        return 0
    return round_half_up(Decimal(micros) / Decimal(60_000_000))
