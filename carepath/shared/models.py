"""
Shared data models used across modules.

These models are shared infrastructure, not business logic.
Module-specific models should stay in their respective module directories.
"""

from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, Field

from .exceptions import CarePathError


T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """
    A ``{data, error}`` pair returned across the session subsystem boundary.

    Exactly one of ``data`` / ``error`` is meaningful: callers check
    ``error`` (or ``ok``) and decide how to surface failures.
    """

    data: Optional[T] = Field(None, description="Operation payload on success")
    error: Optional[CarePathError] = Field(None, description="Typed error on failure")

    model_config = {
        "arbitrary_types_allowed": True,
        "frozen": True,
    }

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.error is None

    @classmethod
    def success(cls, data: Any = None) -> "Result":
        return cls(data=data)

    @classmethod
    def failure(cls, error: CarePathError) -> "Result":
        return cls(error=error)
