"""
Activity module exceptions.

These never escape ActivityLogger.log_activity; they are raised by the
repositories and logged by the outbox drain.
"""

from carepath.shared.exceptions import CarePathError


class ActivityLogError(CarePathError):
    """Raised when an activity record could not be written."""

    def __init__(self, user_id: str, activity_type: str, message: str):
        super().__init__(
            f"Failed to log '{activity_type}' activity: {message}",
            code="ACTIVITY_LOG_FAILED",
            details={"user_id": user_id, "activity_type": activity_type},
        )
