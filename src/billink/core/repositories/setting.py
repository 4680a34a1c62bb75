"""Repository for SystemSetting model."""

from __future__ import annotations

from billink.core.models import SystemSetting
from billink.core.repositories.base import BaseRepository


class SystemSettingRepository(BaseRepository[SystemSetting]):
    """Key/value settings access."""

    def __init__(self) -> None:
        super().__init__(SystemSetting)

    async def get_value(self, key: str) -> str | None:
        setting = await self.model.get_or_none(setting_key=key)
        return setting.setting_value if setting else None

    async def upsert(self, key: str, value: str, updated_by: str | None) -> SystemSetting:
        setting, _ = await self.model.update_or_create(
            defaults={"setting_value": value, "updated_by": updated_by},
            setting_key=key,
        )
        return setting
