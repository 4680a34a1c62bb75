"""Repository for OtpChallenge model."""

from __future__ import annotations

from datetime import datetime

from billink.core.models import OtpChallenge
from billink.core.repositories.base import BaseRepository


class OtpChallengeRepository(BaseRepository[OtpChallenge]):
    """Expiring one-time-code store keyed by phone number."""

    def __init__(self) -> None:
        super().__init__(OtpChallenge)

    async def get_for_phone(self, phone_number: str) -> OtpChallenge | None:
        return await self.model.get_or_none(phone_number=phone_number)

    async def delete_for_phone(self, phone_number: str) -> int:
        return await self.model.filter(phone_number=phone_number).delete()

    async def purge_expired(self, now: datetime) -> int:
        return await self.model.filter(expires_at__lte=now).delete()
