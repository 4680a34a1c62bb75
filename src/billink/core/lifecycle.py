"""Bill status state machine."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from billink.core.errors import AlreadyPaidError, InvalidTransitionError
from billink.core.models import Bill, BillStatus

ALLOWED_TRANSITIONS: dict[BillStatus, frozenset[BillStatus]] = {
    BillStatus.UNPAID: frozenset(
        {
            BillStatus.OVERDUE,
            BillStatus.PARTIALLY_PAID,
            BillStatus.PAID,
            BillStatus.REJECTED,
        }
    ),
    BillStatus.OVERDUE: frozenset(
        {BillStatus.PARTIALLY_PAID, BillStatus.PAID, BillStatus.REJECTED}
    ),
    BillStatus.PARTIALLY_PAID: frozenset(
        {BillStatus.PARTIALLY_PAID, BillStatus.PAID, BillStatus.REJECTED}
    ),
    # A rejected proof-of-payment is reopened only by an explicit resubmission.
    BillStatus.REJECTED: frozenset({BillStatus.UNPAID}),
    BillStatus.PAID: frozenset(),
}

PAYABLE_STATUSES = frozenset(
    {BillStatus.UNPAID, BillStatus.OVERDUE, BillStatus.PARTIALLY_PAID}
)
PENALTY_STATUSES = frozenset({BillStatus.UNPAID, BillStatus.OVERDUE})


def can_transition(current: BillStatus, target: BillStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: BillStatus, target: BillStatus) -> None:
    """Raises ``InvalidTransitionError`` if ``current -> target`` is not allowed."""
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Bill cannot move from {current.value} to {target.value}.",
            current=current.value,
            target=target.value,
        )


@dataclass(frozen=True)
class PaymentAllocation:
    """How a payment amount was split across a bill."""

    penalty_paid: Decimal
    principal_paid: Decimal
    excess: Decimal
    previous_status: BillStatus
    new_status: BillStatus

    @property
    def applied(self) -> Decimal:
        return self.penalty_paid + self.principal_paid


def apply_payment(bill: Bill, amount: Decimal) -> PaymentAllocation:
    """
    Applies ``amount`` to the bill in memory: outstanding penalty first, then
    principal. Whatever is left over is returned as ``excess``.

    The caller persists the bill.
    """
    if bill.status is BillStatus.PAID:
        raise AlreadyPaidError(bill_id=str(bill.id))

    penalty_paid = min(amount, bill.penalty)
    principal_paid = min(amount - penalty_paid, bill.net_due)
    excess = amount - penalty_paid - principal_paid

    settled = bill.penalty == penalty_paid and bill.net_due == principal_paid
    new_status = BillStatus.PAID if settled else BillStatus.PARTIALLY_PAID
    ensure_transition(bill.status, new_status)

    previous_status = bill.status
    bill.penalty -= penalty_paid
    bill.net_due -= principal_paid
    bill.amount_paid += penalty_paid + principal_paid
    bill.status = new_status
    return PaymentAllocation(penalty_paid, principal_paid, excess, previous_status, new_status)
