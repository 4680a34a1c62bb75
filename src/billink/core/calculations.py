"""Core business logic for calculations."""

from __future__ import annotations

import math
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from billink.core.errors import InvalidInputError, InvalidReadingError

CENT = Decimal("0.01")
SECONDS_PER_DAY = 24 * 60 * 60


def round_money(value: Decimal) -> Decimal:
    """Rounds a monetary value to two decimal places, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: object, field: str = "value") -> Decimal:
    """
    Converts user or database input to a finite, non-negative Decimal.

    Raises:
        InvalidInputError: if the value is not numeric, not finite or negative.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"{field} must be a number.", field=field)
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"{field} must be a number.", field=field) from None
    if not number.is_finite():
        raise InvalidInputError(f"{field} must be finite.", field=field)
    if number < 0:
        raise InvalidInputError(f"{field} must not be negative.", field=field)
    return number


def calculate_consumption(current_reading: object, previous_reading: object) -> Decimal:
    """
    Calculates the consumption between two meter readings.

    Args:
        current_reading: The most recent meter reading.
        previous_reading: The reading the previous bill ended on.

    Returns:
        ``current_reading - previous_reading``.

    Raises:
        InvalidInputError: if either reading is not a finite non-negative number.
        InvalidReadingError: if the current reading is below the previous one.
    """
    current = to_decimal(current_reading, "current_reading")
    previous = to_decimal(previous_reading, "previous_reading")
    if current < previous:
        raise InvalidReadingError(current=str(current), previous=str(previous))
    return current - previous


def calculate_age(birthdate: date, on: date) -> int:
    """Whole years between ``birthdate`` and ``on``."""
    age = on.year - birthdate.year
    if (on.month, on.day) < (birthdate.month, birthdate.day):
        age -= 1
    return age


def is_senior(birthdate: date | None, on: date, senior_age: int = 60) -> bool:
    """True when the customer is at least ``senior_age`` on the given date."""
    if birthdate is None:
        return False
    return calculate_age(birthdate, on) >= senior_age


def apply_discount(amount: Decimal, percent: Decimal) -> tuple[Decimal, Decimal]:
    """
    Applies a percentage discount.

    Returns:
        A ``(discounted_amount, discount)`` pair, both rounded to cents.
    """
    discounted = round_money(amount * (Decimal("100") - percent) / Decimal("100"))
    return discounted, round_money(amount) - discounted


def _as_datetime(value: date | datetime, tzinfo=None) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None and tzinfo is not None:
        value = value.replace(tzinfo=tzinfo)
    return value


def days_overdue(due_date: date | datetime, as_of: date | datetime) -> int:
    """Days elapsed since the due date, rounding any partial day up."""
    tzinfo = getattr(as_of, "tzinfo", None) or getattr(due_date, "tzinfo", None)
    delta = _as_datetime(as_of, tzinfo) - _as_datetime(due_date, tzinfo)
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)
