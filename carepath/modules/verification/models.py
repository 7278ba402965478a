"""
Verification module data models.
"""

from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field


class VerificationChannel(str, Enum):
    """Where a verification code was sent."""

    EMAIL = "email"
    PHONE = "phone"

    @property
    def profile_flag(self) -> str:
        """Profile column set once the channel is verified."""
        return f"{self.value}_verified"


class VerificationToken(BaseModel):
    """
    A pending one-time code for a (user, channel) pair.

    Stored as JSON in the local store; issuing a new code for the same pair
    replaces this one.
    """

    user_id: str = Field(..., description="User the code was issued to")
    channel: VerificationChannel = Field(..., description="Email or phone")
    token: str = Field(..., description="The code itself")
    issued_at: datetime = Field(..., description="Issue time")
    expires_at: datetime = Field(..., description="Last instant the code is accepted")

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class VerificationOutcome(BaseModel):
    """Result of a successful verification."""

    verified: bool = True
    channel: VerificationChannel
    flag_updated: bool = Field(
        default=True,
        description="Whether the profile's verified flag was written",
    )
