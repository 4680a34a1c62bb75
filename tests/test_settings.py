"""Tests for database-backed business settings and rate tiers."""

from decimal import Decimal

import pytest

from billink.core.errors import InvalidInputError, InvalidRateTierError
from billink.core.models import AuditLog, RateTier, SystemSetting
from billink.core.rates import Tier
from billink.services.settings import (
    GRACE_PERIOD_KEY,
    LATE_PAYMENT_FEE_KEY,
    SENIOR_DISCOUNT_KEY,
)


@pytest.mark.asyncio
async def test_defaults_without_rows(services):
    config = await services.settings.resolve()

    assert config.senior_discount_percent == Decimal("5")
    assert config.senior_citizen_age == 60
    assert config.penalty.late_payment_fee == Decimal("0")
    assert config.penalty.grace_period_days == 0
    assert config.rate_schedule.uses_fallback_table


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["abc", "", "150", "-3", "NaN"])
async def test_unusable_discount_falls_back(services, raw):
    await SystemSetting.create(setting_key=SENIOR_DISCOUNT_KEY, setting_value=raw)

    assert await services.settings.senior_discount_percent() == Decimal("5")


@pytest.mark.asyncio
async def test_stored_values_are_used(services):
    await SystemSetting.create(setting_key=SENIOR_DISCOUNT_KEY, setting_value="20")
    await SystemSetting.create(setting_key=GRACE_PERIOD_KEY, setting_value="3")

    config = await services.settings.resolve()

    assert config.senior_discount_percent == Decimal("20")
    assert config.penalty.grace_period_days == 3


@pytest.mark.asyncio
async def test_update_writes_known_keys_and_audits(services, admin):
    written = await services.settings.update(
        {LATE_PAYMENT_FEE_KEY: "25.50", "theme": "dark"}, admin
    )

    assert written == [LATE_PAYMENT_FEE_KEY]
    assert await services.settings.get_decimal(LATE_PAYMENT_FEE_KEY, Decimal("0")) == Decimal(
        "25.50"
    )
    assert not await SystemSetting.filter(setting_key="theme").exists()

    stored = await SystemSetting.get(setting_key=LATE_PAYMENT_FEE_KEY)
    assert stored.updated_by == admin.id
    audit = await AuditLog.get(action="settings_updated")
    assert audit.details == {"updated": {LATE_PAYMENT_FEE_KEY: "25.50"}}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "values",
    [
        {SENIOR_DISCOUNT_KEY: "101"},
        {LATE_PAYMENT_FEE_KEY: "-1"},
        {GRACE_PERIOD_KEY: "soon"},
    ],
)
async def test_update_rejects_invalid_values(services, admin, values):
    with pytest.raises(InvalidInputError):
        await services.settings.update(values, admin)

    assert await SystemSetting.all().count() == 0


@pytest.mark.asyncio
async def test_configured_tiers_drive_billing(services, admin):
    await services.settings.replace_rate_tiers(
        [
            Tier(Decimal("11"), None, rate_per_unit=Decimal("25")),
            Tier(Decimal("0"), Decimal("10"), fixed_amount=Decimal("200")),
        ],
        admin,
    )

    small = await services.calculator.compute_gross_amount(0, 5)
    large = await services.calculator.compute_gross_amount(0, 20)

    assert small.gross_amount == Decimal("200.00")
    assert large.gross_amount == Decimal("500.00")


@pytest.mark.asyncio
async def test_replacing_tiers_deactivates_old_ones(services, admin):
    flat = [Tier(Decimal("0"), None, rate_per_unit=Decimal("20"))]
    await services.settings.replace_rate_tiers(flat, admin)
    await services.settings.replace_rate_tiers(
        [Tier(Decimal("0"), None, rate_per_unit=Decimal("40"))], admin
    )

    assert await RateTier.filter(is_active=True).count() == 1
    assert await RateTier.filter(is_active=False).count() == 1
    gross = await services.calculator.compute_gross_amount(0, 10)
    assert gross.gross_amount == Decimal("400.00")


@pytest.mark.asyncio
async def test_overlapping_tiers_keep_previous_configuration(services, admin):
    await services.settings.replace_rate_tiers(
        [Tier(Decimal("0"), None, rate_per_unit=Decimal("20"))], admin
    )

    with pytest.raises(InvalidRateTierError):
        await services.settings.replace_rate_tiers(
            [
                Tier(Decimal("0"), Decimal("10"), fixed_amount=Decimal("100")),
                Tier(Decimal("5"), None, rate_per_unit=Decimal("30")),
            ],
            admin,
        )

    gross = await services.calculator.compute_gross_amount(0, 10)
    assert gross.gross_amount == Decimal("200.00")


@pytest.mark.asyncio
async def test_unreachable_rate_table_charges_flat_default(services, monkeypatch):
    async def broken_active():
        raise ConnectionError("database is down")

    monkeypatch.setattr(services.settings._rate_repo, "active", broken_active)

    gross = await services.calculator.compute_gross_amount(0, 10)

    assert gross.gross_amount == Decimal("300.00")


@pytest.mark.asyncio
async def test_unreachable_settings_store_uses_defaults(services, monkeypatch):
    async def broken_get_value(key):
        raise ConnectionError("database is down")

    monkeypatch.setattr(services.settings._setting_repo, "get_value", broken_get_value)

    config = await services.settings.resolve()

    assert config.senior_discount_percent == Decimal("5")
    assert config.penalty.late_payment_fee == Decimal("0")
