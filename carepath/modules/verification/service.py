"""
Verification token service implementation.

Issues and checks short-lived, single-use codes kept in the local store
under ``verification_{channel}_{user_id}``. This is app-level gating, separate
from the backend's own SMS one-time passcodes handled by the auth module.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional, Union

import pydantic

from carepath.shared.clock import Clock, utc_now
from carepath.shared.exceptions import CarePathError, StorageError
from carepath.shared.storage import IKeyValueStore
from carepath.shared.storage_keys import verification_key
from carepath.modules.activity.interfaces import IActivityLogger
from carepath.modules.activity.models import ActivityType

from .exceptions import TokenExpiredError, TokenMismatchError, TokenNotFoundError
from .interfaces import IIdentityFlagUpdater, IVerificationService
from .models import VerificationChannel, VerificationOutcome, VerificationToken

logger = logging.getLogger(__name__)

DEFAULT_TTL_MINUTES = 10
OTP_MIN = 100_000
OTP_MAX = 999_999


class VerificationService(IVerificationService):
    """
    Short-lived verification codes, independent per (user, channel).
    """

    def __init__(
        self,
        store: IKeyValueStore,
        flag_updater: IIdentityFlagUpdater,
        activity_logger: Optional[IActivityLogger] = None,
        ttl_minutes: int = DEFAULT_TTL_MINUTES,
        clock: Optional[Clock] = None,
    ):
        self._store = store
        self._flags = flag_updater
        self._activity = activity_logger
        self._ttl = timedelta(minutes=ttl_minutes)
        self._clock = clock or utc_now

    async def store_verification_token(
        self,
        user_id: str,
        channel: Union[VerificationChannel, str],
        token: str,
    ) -> VerificationToken:
        """Remember a code for (user, channel), overwriting any pending one."""
        channel = VerificationChannel(channel)
        now = self._clock()
        entry = VerificationToken(
            user_id=user_id,
            channel=channel,
            token=token,
            issued_at=now,
            expires_at=now + self._ttl,
        )
        await self._store.set_item(verification_key(channel.value, user_id), entry.model_dump_json())
        logger.debug(f"Stored {channel.value} verification code for user {user_id}")
        return entry

    async def verify_token(
        self,
        user_id: str,
        channel: Union[VerificationChannel, str],
        input_token: str,
    ) -> VerificationOutcome:
        """
        Check an entered code against the pending one.

        A matching code is deleted before the profile flag is written, so it
        can never be used twice even if the flag update fails.
        """
        channel = VerificationChannel(channel)
        key = verification_key(channel.value, user_id)

        raw = await self._store.get_item(key)
        if raw is None:
            raise TokenNotFoundError(user_id, channel.value)

        try:
            entry = VerificationToken.model_validate_json(raw)
        except pydantic.ValidationError as e:
            raise StorageError("read", key=key, message=f"Corrupt verification entry: {e}") from e

        if entry.is_expired(self._clock()):
            await self._store.remove_item(key)
            logger.info(f"Expired {channel.value} verification code discarded for user {user_id}")
            raise TokenExpiredError(user_id, channel.value)

        if not secrets.compare_digest(entry.token, input_token):
            raise TokenMismatchError(user_id, channel.value)

        await self._store.remove_item(key)

        flag_updated = True
        try:
            await self._flags.mark_verified(user_id, channel)
        except CarePathError as e:
            flag_updated = False
            logger.warning(
                f"Verified {channel.value} for user {user_id} but could not update profile: {e.message}"
            )

        if flag_updated and self._activity is not None:
            self._activity.log_activity(
                user_id,
                ActivityType.PROFILE_UPDATE,
                {"action": f"{channel.value}_verified"},
            )

        return VerificationOutcome(channel=channel, flag_updated=flag_updated)

    def generate_mock_otp(self) -> str:
        """Six digit code, uniform over 100000..999999."""
        return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))

    async def issue_verification_code(
        self,
        user_id: str,
        channel: Union[VerificationChannel, str],
    ) -> str:
        """Generate a code, store it for (user, channel) and return it for delivery."""
        code = self.generate_mock_otp()
        await self.store_verification_token(user_id, channel, code)
        return code
