"""Business configuration with hard-coded fallbacks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from tortoise.transactions import in_transaction

from billink.config import Settings, settings
from billink.core.actors import Actor
from billink.core.errors import DependencyError, InvalidInputError
from billink.core.models import RateTier
from billink.core.penalties import PenaltySettings
from billink.core.rates import RateSchedule, Tier, validate_tiers
from billink.core.repositories.rate import RateTierRepository
from billink.core.repositories.setting import SystemSettingRepository
from billink.services.audit import AuditService

logger = logging.getLogger(__name__)

SENIOR_DISCOUNT_KEY = "senior_citizen_discount"
LATE_PAYMENT_FEE_KEY = "late_payment_fee"
GRACE_PERIOD_KEY = "due_date_grace_period"

EDITABLE_KEYS = frozenset({SENIOR_DISCOUNT_KEY, LATE_PAYMENT_FEE_KEY, GRACE_PERIOD_KEY})


@dataclass(frozen=True)
class BillingSettings:
    """Every configurable value the billing core needs, resolved once."""

    senior_discount_percent: Decimal
    senior_citizen_age: int
    penalty: PenaltySettings
    rate_schedule: RateSchedule


class SettingsService:
    """
    Reads configuration from the ``system_settings`` and ``rate_tier`` tables.

    Every getter falls back to the process defaults when a value is missing,
    malformed, or the database cannot be reached.
    """

    def __init__(
        self,
        setting_repo: SystemSettingRepository,
        rate_repo: RateTierRepository,
        audit: AuditService,
        defaults: Settings = settings,
    ):
        self._setting_repo = setting_repo
        self._rate_repo = rate_repo
        self._audit = audit
        self._defaults = defaults

    async def _load_value(self, key: str) -> str | None:
        try:
            return await self._setting_repo.get_value(key)
        except Exception as e:
            raise DependencyError(f"Setting {key} is unavailable.", key=key) from e

    async def _load_tiers(self) -> list[RateTier]:
        try:
            return await self._rate_repo.active()
        except Exception as e:
            raise DependencyError("Rate tiers are unavailable.") from e

    async def _get_raw(self, key: str) -> str | None:
        try:
            return await self._load_value(key)
        except DependencyError:
            logger.warning("Could not read setting %s; using default.", key, exc_info=True)
            return None

    async def get_decimal(
        self,
        key: str,
        default: Decimal,
        minimum: Decimal = Decimal("0"),
        maximum: Decimal | None = None,
    ) -> Decimal:
        raw = await self._get_raw(key)
        if raw is None or raw.strip() == "":
            return default
        try:
            value = Decimal(raw.strip())
        except InvalidOperation:
            logger.warning("Setting %s=%r is not a number; using %s.", key, raw, default)
            return default
        if not value.is_finite() or value < minimum or (maximum is not None and value > maximum):
            logger.warning("Setting %s=%r is out of range; using %s.", key, raw, default)
            return default
        return value

    async def get_int(self, key: str, default: int) -> int:
        value = await self.get_decimal(key, Decimal(default))
        return int(value)

    async def senior_discount_percent(self) -> Decimal:
        return await self.get_decimal(
            SENIOR_DISCOUNT_KEY,
            self._defaults.DEFAULT_SENIOR_DISCOUNT_PERCENT,
            maximum=Decimal("100"),
        )

    async def penalty_settings(self) -> PenaltySettings:
        return PenaltySettings(
            late_payment_fee=await self.get_decimal(
                LATE_PAYMENT_FEE_KEY, self._defaults.DEFAULT_LATE_PAYMENT_FEE
            ),
            grace_period_days=await self.get_int(
                GRACE_PERIOD_KEY, self._defaults.DEFAULT_GRACE_PERIOD_DAYS
            ),
        )

    async def rate_schedule(self) -> RateSchedule:
        """
        Schedule built from active tiers. With no tiers configured the schedule
        uses the reference table; if tiers cannot be loaded at all, every unit
        is charged at the flat default rate.
        """
        schedule_args = {
            "default_rate": self._defaults.DEFAULT_RATE_PER_UNIT,
            "excess_rate": self._defaults.EXCESS_RATE_PER_UNIT,
            "excess_base_amount": self._defaults.EXCESS_BASE_AMOUNT,
            "excess_threshold": self._defaults.EXCESS_THRESHOLD,
        }
        try:
            rows = await self._load_tiers()
        except DependencyError:
            logger.error(
                "Could not load rate tiers; charging flat default rate %s per unit.",
                self._defaults.DEFAULT_RATE_PER_UNIT,
                exc_info=True,
            )
            flat = Tier(Decimal("0"), None, rate_per_unit=self._defaults.DEFAULT_RATE_PER_UNIT)
            return RateSchedule([flat], **schedule_args)

        if not rows:
            logger.warning("No water rates configured; using the reference rate table.")
        tiers = [
            Tier(
                consumption_min=row.consumption_min,
                consumption_max=row.consumption_max,
                rate_per_unit=row.rate_per_unit,
                fixed_amount=row.fixed_amount,
            )
            for row in rows
        ]
        return RateSchedule(tiers, **schedule_args)

    async def resolve(self) -> BillingSettings:
        return BillingSettings(
            senior_discount_percent=await self.senior_discount_percent(),
            senior_citizen_age=self._defaults.SENIOR_CITIZEN_AGE,
            penalty=await self.penalty_settings(),
            rate_schedule=await self.rate_schedule(),
        )

    async def update(self, values: dict[str, Any], actor: Actor) -> list[str]:
        """
        Stores recognised settings and ignores unknown keys.

        Returns:
            The keys that were written.
        """
        cleaned: dict[str, str] = {}
        for key, value in values.items():
            if key not in EDITABLE_KEYS:
                logger.info("Ignoring unknown setting %s", key)
                continue
            try:
                number = Decimal(str(value).strip())
            except InvalidOperation:
                raise InvalidInputError(f"{key} must be a number.", field=key) from None
            if not number.is_finite() or number < 0:
                raise InvalidInputError(f"{key} must be a non-negative number.", field=key)
            if key == SENIOR_DISCOUNT_KEY and number > 100:
                raise InvalidInputError(f"{key} must not exceed 100.", field=key)
            cleaned[key] = str(number)

        async with in_transaction():
            for key, value in cleaned.items():
                await self._setting_repo.upsert(key, value, actor.id)

        if cleaned:
            await self._audit.record(
                actor, "settings_updated", "system_settings", details={"updated": cleaned}
            )
        return list(cleaned)

    async def replace_rate_tiers(self, tiers: list[Tier], actor: Actor) -> list[RateTier]:
        """Deactivates every active tier and inserts ``tiers`` in one transaction."""
        ordered = validate_tiers(tiers)
        async with in_transaction():
            await self._rate_repo.deactivate_all()
            created = [
                await self._rate_repo.create(
                    consumption_min=tier.consumption_min,
                    consumption_max=tier.consumption_max,
                    rate_per_unit=tier.rate_per_unit,
                    fixed_amount=tier.fixed_amount,
                    is_active=True,
                    created_by=actor.id,
                )
                for tier in ordered
            ]
        await self._audit.record(
            actor, "rate_tiers_replaced", "rate_tier", details={"count": len(created)}
        )
        return created
