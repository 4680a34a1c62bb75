"""Repository for RateTier model."""

from __future__ import annotations

from tortoise import timezone

from billink.core.models import RateTier
from billink.core.repositories.base import BaseRepository


class RateTierRepository(BaseRepository[RateTier]):
    """RateTier-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(RateTier)

    async def active(self) -> list[RateTier]:
        return await self.model.filter(is_active=True).order_by("consumption_min")

    async def deactivate_all(self) -> int:
        return await self.model.filter(is_active=True).update(
            is_active=False, updated_at=timezone.now()
        )
