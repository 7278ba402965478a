"""
Activity module data models.

Activity records form an append-only audit trail of user actions.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class ActivityType(str, Enum):
    """Kinds of user action recorded in the audit trail."""

    LOGIN = "login"
    LOGOUT = "logout"
    PROFILE_UPDATE = "profile_update"
    HEALTH_ASSESSMENT = "health_assessment"
    APPOINTMENT_SCHEDULED = "appointment_scheduled"
    MESSAGE_SENT = "message_sent"


class ActivityRecord(BaseModel):
    """
    A single audit trail entry.

    ``id`` and ``timestamp`` are assigned by the store when the record is
    written, so both are absent on records still waiting in the outbox.
    """

    id: Optional[str] = Field(None, description="Record ID (assigned on insert)")
    user_id: str = Field(..., description="User the action belongs to")
    activity_type: ActivityType = Field(..., description="Kind of action")
    activity_data: Optional[dict[str, Any]] = Field(None, description="Free-form payload")
    timestamp: Optional[datetime] = Field(None, description="Write time (assigned on insert)")

    model_config = {"frozen": True}
