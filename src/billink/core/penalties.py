"""Late-payment penalty calculation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from billink.core.calculations import days_overdue, round_money

BASE_PENALTY_RATE = Decimal("0.10")
PENALTY_STEP_RATE = Decimal("0.02")
PENALTY_STEP_DAYS = 30
MAX_PENALTY_RATE = Decimal("0.50")


@dataclass(frozen=True)
class PenaltySettings:
    """Penalty knobs resolved from system configuration."""

    late_payment_fee: Decimal = Decimal("0")
    grace_period_days: int = 0


@dataclass(frozen=True)
class PenaltyResult:
    """Outcome of a penalty calculation."""

    penalty_amount: Decimal
    days_overdue: int
    penalty_rate: Decimal
    in_grace_period: bool = False

    @property
    def has_penalty(self) -> bool:
        return self.penalty_amount > 0


NO_PENALTY = PenaltyResult(Decimal("0.00"), 0, Decimal("0"))


def penalty_rate_for(days: int) -> Decimal:
    """
    Percentage-schedule rate for ``days`` chargeable overdue days.

    10% once overdue. Once the bill is past its first 30 days, every complete
    30-day period it has been overdue adds 2%, so 31 to 59 days is 12%, 60 to
    89 days is 14%, and the 50% cap is reached at 600 days.

    Counting only the periods after day 30 (``(days - 30) // 30``) would leave
    a bill 45 days overdue at 10%, while billing practice charges 12% there.
    Counting every started period would charge 12% at 60 days, before the
    second period is complete. The elapsed-period count satisfies both.
    """
    if days <= 0:
        return Decimal("0")
    rate = BASE_PENALTY_RATE
    if days > PENALTY_STEP_DAYS:
        rate += PENALTY_STEP_RATE * (days // PENALTY_STEP_DAYS)
    return min(rate, MAX_PENALTY_RATE)


def calculate_penalty(
    base_amount: Decimal,
    due_date: date | datetime,
    as_of: date | datetime,
    settings: PenaltySettings,
) -> PenaltyResult:
    """
    Computes the penalty owed on ``base_amount`` as of a given date.

    A configured flat late-payment fee replaces the percentage schedule
    entirely. Grace-period days never count toward the percentage schedule.
    """
    overdue = days_overdue(due_date, as_of)
    if overdue <= 0:
        return NO_PENALTY

    grace = max(settings.grace_period_days, 0)
    if overdue <= grace:
        return PenaltyResult(Decimal("0.00"), overdue, Decimal("0"), in_grace_period=True)

    if settings.late_payment_fee > 0:
        return PenaltyResult(round_money(settings.late_payment_fee), overdue, Decimal("0"))

    rate = penalty_rate_for(overdue - grace)
    return PenaltyResult(round_money(base_amount * rate), overdue, rate)
