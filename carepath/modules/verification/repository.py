"""
Profile flag repositories.

The verified flags live on the ``user_profiles`` row keyed by ``user_id``.
Only these two columns are ever written from this module.
"""

from typing import Optional

from carepath.shared.clock import Clock, utc_now
from carepath.shared.exceptions import CarePathError
from carepath.shared.repository import BaseRepository
from .models import VerificationChannel


class SupabaseProfileFlagRepository(BaseRepository[None]):
    """Writes verified flags to the ``user_profiles`` table."""

    TABLE = "user_profiles"

    def __init__(self, db, timeout: float = 10.0, clock: Optional[Clock] = None) -> None:
        super().__init__(db, timeout)
        self._clock = clock or utc_now

    async def mark_verified(self, user_id: str, channel: VerificationChannel) -> None:
        query = (
            self._db.table(self.TABLE)
            .update({
                channel.profile_flag: True,
                "updated_at": self._clock().isoformat(),
            })
            .eq("user_id", user_id)
        )
        result = await self._execute(query, f"mark {channel.value} verified")
        if not result.data:
            raise CarePathError(
                f"Profile not found for user {user_id}",
                code="PROFILE_NOT_FOUND",
                details={"user_id": user_id},
            )


class InMemoryProfileFlagRepository:
    """
    Verified flags held in a dict.

    For testing and development.
    """

    def __init__(self) -> None:
        self.flags: dict[str, dict[str, bool]] = {}
        self.fail_with: Optional[CarePathError] = None

    async def mark_verified(self, user_id: str, channel: VerificationChannel) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.flags.setdefault(user_id, {})[channel.profile_flag] = True

    def is_verified(self, user_id: str, channel: VerificationChannel) -> bool:
        return self.flags.get(user_id, {}).get(channel.profile_flag, False)
