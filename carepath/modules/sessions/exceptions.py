"""
Session tracking exceptions.
"""

from typing import Optional

from carepath.shared.exceptions import CarePathError


class SessionStateError(CarePathError):
    """Raised when an operation needs a session in a state it is not in."""

    def __init__(
        self,
        message: str = "No active session found",
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ):
        details = {}
        if user_id is not None:
            details["user_id"] = user_id
        if session_id is not None:
            details["session_id"] = session_id
        super().__init__(message, code="SESSION_STATE", details=details)


class SessionNotFoundError(SessionStateError):
    """Raised when the local pointer names a session row that does not exist."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}", session_id=session_id)
