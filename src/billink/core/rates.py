"""Consumption-based water rate schedule."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from billink.core.calculations import round_money, to_decimal
from billink.core.errors import InvalidRateTierError

logger = logging.getLogger(__name__)

# Reference charges (PHP) by whole cubic metres, used when no tiers are configured.
FALLBACK_RATE_TABLE: dict[int, int] = {
    10: 267, 11: 295, 12: 323, 13: 351, 14: 379, 15: 407, 16: 435, 17: 463,
    18: 491, 19: 519, 20: 547, 21: 577, 22: 607, 23: 637, 24: 667, 25: 697,
    26: 727, 27: 757, 28: 787, 29: 817, 30: 847, 31: 879, 32: 911, 33: 943,
    34: 975, 35: 1007, 36: 1039, 37: 1071, 38: 1103, 39: 1135, 40: 1167,
    41: 1202, 42: 1237, 43: 1271, 44: 1305, 45: 1340, 46: 1374, 47: 1408,
    48: 1443, 49: 1477, 50: 1512, 51: 1547, 52: 1581, 53: 1616, 54: 1650,
    55: 1685, 56: 1719, 57: 1753, 58: 1788, 59: 1822, 60: 1857, 61: 1891,
    62: 1925, 63: 1960, 64: 1994, 65: 2029, 66: 2063, 67: 2098, 68: 2132,
    69: 2166, 70: 2201, 71: 2235, 72: 2270, 73: 2304, 74: 2339, 75: 2373,
    76: 2408, 77: 2442, 78: 2477, 79: 2511, 80: 2546, 81: 2580, 82: 2615,
    83: 2649, 84: 2684, 85: 2718, 86: 2753, 87: 2787, 88: 2822, 89: 2856,
    90: 2891, 91: 2925, 92: 2960, 93: 2994, 94: 3029, 95: 3063, 96: 3098,
    97: 3132, 98: 3166, 99: 3201, 100: 3235,
}  # fmt: skip


@dataclass(frozen=True)
class Tier:
    """A consumption range and its pricing rule."""

    consumption_min: Decimal
    consumption_max: Decimal | None = None
    rate_per_unit: Decimal | None = None
    fixed_amount: Decimal | None = None

    def contains(self, consumption: Decimal) -> bool:
        if consumption < self.consumption_min:
            return False
        return self.consumption_max is None or consumption <= self.consumption_max

    def charge(self, consumption: Decimal) -> Decimal:
        if self.fixed_amount is not None:
            return self.fixed_amount
        if self.rate_per_unit is not None:
            return consumption * self.rate_per_unit
        raise ValueError(f"Tier starting at {self.consumption_min} has no price")


def validate_tiers(tiers: Iterable[Tier]) -> list[Tier]:
    """
    Checks that tiers partition consumption space and returns them sorted.

    Raises:
        InvalidRateTierError: on overlapping ranges, inverted bounds, negative
            values, or tiers that set both or neither of the pricing rules.
    """
    ordered = sorted(tiers, key=lambda t: t.consumption_min)
    for tier in ordered:
        if (tier.rate_per_unit is None) == (tier.fixed_amount is None):
            raise InvalidRateTierError(
                "Each tier needs exactly one of rate_per_unit or fixed_amount."
            )
        if tier.consumption_min < 0:
            raise InvalidRateTierError("consumption_min must not be negative.")
        if tier.consumption_max is not None and tier.consumption_max < tier.consumption_min:
            raise InvalidRateTierError("consumption_max must be >= consumption_min.")
        price = tier.rate_per_unit if tier.rate_per_unit is not None else tier.fixed_amount
        if price < 0:
            raise InvalidRateTierError("Tier prices must not be negative.")

    for previous, current in zip(ordered, ordered[1:]):
        if previous.consumption_max is None or current.consumption_min <= previous.consumption_max:
            raise InvalidRateTierError(
                f"Tier starting at {current.consumption_min} overlaps the previous tier."
            )
    return ordered


class RateSchedule:
    """Resolves a consumption quantity to a charge.

    Configured tiers are searched in ascending ``consumption_min`` order. With no
    tiers at all, the reference table plus a linear excess formula is used.
    Any unexpected failure degrades to ``consumption * default_rate``.
    """

    def __init__(
        self,
        tiers: Iterable[Tier] = (),
        *,
        default_rate: Decimal,
        excess_rate: Decimal,
        excess_base_amount: Decimal,
        excess_threshold: Decimal,
    ):
        self._tiers = sorted(tiers, key=lambda t: t.consumption_min)
        self.default_rate = default_rate
        self.excess_rate = excess_rate
        self.excess_base_amount = excess_base_amount
        self.excess_threshold = excess_threshold

    @property
    def tiers(self) -> list[Tier]:
        return list(self._tiers)

    @property
    def uses_fallback_table(self) -> bool:
        return not self._tiers

    def resolve(self, consumption: object) -> Decimal:
        """Returns the charge for ``consumption`` rounded to cents."""
        quantity = to_decimal(consumption, "consumption")
        try:
            if self._tiers:
                amount = self._resolve_tiers(quantity)
            else:
                amount = self._resolve_fallback_table(quantity)
        except Exception:
            logger.error(
                "Rate calculation failed for consumption %s; "
                "charging flat default rate %s per unit.",
                quantity,
                self.default_rate,
                exc_info=True,
            )
            amount = quantity * self.default_rate
        return round_money(amount)

    def _resolve_tiers(self, consumption: Decimal) -> Decimal:
        for tier in self._tiers:
            if tier.contains(consumption):
                return tier.charge(consumption)

        bounded = [t.consumption_max for t in self._tiers if t.consumption_max is not None]
        ceiling = max(bounded) if bounded else None
        if ceiling is not None and consumption > ceiling:
            return self._excess_charge(consumption, ceiling)

        logger.warning("No rate tier covers consumption %s; charging 0.", consumption)
        return Decimal("0")

    def _excess_charge(self, consumption: Decimal, ceiling: Decimal) -> Decimal:
        base = next(
            (
                t.fixed_amount
                for t in self._tiers
                if t.consumption_min == ceiling and t.fixed_amount is not None
            ),
            self.excess_base_amount,
        )
        rate = next(
            (
                t.rate_per_unit
                for t in self._tiers
                if t.consumption_min > ceiling and t.rate_per_unit is not None
            ),
            self.excess_rate,
        )
        return base + (consumption - ceiling) * rate

    def _resolve_fallback_table(self, consumption: Decimal) -> Decimal:
        if consumption > self.excess_threshold:
            excess = consumption - self.excess_threshold
            return excess * self.excess_rate + self.excess_base_amount
        # Fractional consumption is truncated, not rounded, before lookup.
        return Decimal(FALLBACK_RATE_TABLE.get(int(consumption), 0))
