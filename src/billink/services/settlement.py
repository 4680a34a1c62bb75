"""Payment settlement: cashier payments and online proof-of-payment review."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from tortoise import timezone
from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from billink.core.actors import Actor
from billink.core.errors import (
    AlreadyPaidError,
    DuplicateReceiptError,
    InvalidInputError,
    NotFoundError,
    SubmissionAlreadyReviewedError,
)
from billink.core.lifecycle import (
    PAYABLE_STATUSES,
    PaymentAllocation,
    apply_payment,
    ensure_transition,
)
from billink.core.models import (
    Bill,
    BillStatus,
    CreditTransaction,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    PaymentSubmission,
    SubmissionStatus,
    TransactionType,
)
from billink.core.repositories.bill import BillRepository
from billink.core.repositories.payment import (
    PaymentRecordRepository,
    PaymentSubmissionRepository,
)
from billink.services.audit import AuditService
from billink.services.credit import CreditLedger, positive_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentOutcome:
    """What a settled payment did to the bill and, for overpayments, to credit."""

    bill: Bill
    payment: PaymentRecord
    allocation: PaymentAllocation
    credit_transaction: CreditTransaction | None = None

    @property
    def change_given(self) -> Decimal:
        return self.payment.change_given

    @property
    def credited(self) -> Decimal:
        if self.credit_transaction is None:
            return Decimal("0.00")
        return self.credit_transaction.amount


def _require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInputError(f"{field} is required.", field=field)
    return str(value).strip()


class SettlementService:
    """Applies payments to bills and keeps bill status, payment records and credit in step."""

    def __init__(
        self,
        bill_repo: BillRepository,
        payment_repo: PaymentRecordRepository,
        submission_repo: PaymentSubmissionRepository,
        ledger: CreditLedger,
        audit: AuditService,
    ):
        self._bill_repo = bill_repo
        self._payment_repo = payment_repo
        self._submission_repo = submission_repo
        self._ledger = ledger
        self._audit = audit

    async def _lock_payable_bill(self, bill_id: UUID) -> Bill:
        bill = await self._bill_repo.get_for_update(bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found.", bill_id=str(bill_id))
        if bill.status is BillStatus.PAID:
            raise AlreadyPaidError(bill_id=str(bill.id))
        return bill

    async def _credit_excess(
        self, bill: Bill, excess: Decimal, actor: Actor
    ) -> CreditTransaction | None:
        if excess <= 0:
            return None
        customer = await self._ledger.lock_customer(bill.customer_id)
        return await self._ledger.post(
            customer,
            TransactionType.CREDIT,
            excess,
            actor,
            description=f"Overpayment on bill #{bill.number}",
            reference_type="overpayment",
            reference_id=bill.id,
        )

    async def record_cashier_payment(
        self,
        bill_id: UUID,
        amount: object,
        receipt_number: str,
        actor: Actor,
        method: PaymentMethod = PaymentMethod.CASH,
        credit_excess: bool = False,
    ) -> PaymentOutcome:
        """
        Records money taken at the counter.

        The amount covers outstanding penalty first, then principal. Any
        excess is handed back as change, or added to the customer's credit
        when ``credit_excess`` is set. A rejected bill is reopened first.

        Raises:
            DuplicateReceiptError: if the receipt number was already used.
            AlreadyPaidError: if the bill is already paid.
        """
        value = positive_amount(amount)
        receipt = _require_text(receipt_number, "receipt_number")
        if await self._payment_repo.receipt_exists(receipt):
            raise DuplicateReceiptError(receipt_number=receipt)

        try:
            async with in_transaction():
                bill = await self._lock_payable_bill(bill_id)
                if bill.status is BillStatus.REJECTED:
                    ensure_transition(bill.status, BillStatus.UNPAID)
                    bill.status = BillStatus.UNPAID

                allocation = apply_payment(bill, value)
                await bill.save()

                credit_txn = None
                if credit_excess:
                    credit_txn = await self._credit_excess(bill, allocation.excess, actor)
                payment = await self._payment_repo.create(
                    customer_id=bill.customer_id,
                    bill_id=bill.id,
                    amount_paid=allocation.applied,
                    penalty_paid=allocation.penalty_paid,
                    change_given=Decimal("0.00") if credit_excess else allocation.excess,
                    method=method,
                    receipt_number=receipt,
                    status=PaymentStatus.PAID,
                    created_by=actor.id,
                )
        except IntegrityError:
            raise DuplicateReceiptError(receipt_number=receipt) from None

        logger.info(
            "Cashier payment %s on bill %s: %s applied, bill now %s",
            receipt,
            bill.number,
            allocation.applied,
            bill.status.value,
        )
        await self._audit.record(
            actor,
            "payment_recorded",
            "bill",
            bill.id,
            details={
                "receipt_number": receipt,
                "method": method,
                "amount_received": value,
                "penalty_paid": allocation.penalty_paid,
                "principal_paid": allocation.principal_paid,
                "change_given": payment.change_given,
                "credited": credit_txn.amount if credit_txn else Decimal("0"),
                "previous_status": allocation.previous_status,
                "status": allocation.new_status,
            },
        )
        return PaymentOutcome(bill, payment, allocation, credit_txn)

    async def submit_proof(
        self,
        bill_id: UUID,
        amount: object,
        payment_method: str,
        proof_path: str,
        actor: Actor,
        reference_number: str | None = None,
        notes: str | None = None,
    ) -> PaymentSubmission:
        """
        Stores a customer's proof of an external payment for review.

        Submitting against a rejected bill reopens it as unpaid.
        """
        value = positive_amount(amount)
        method = _require_text(payment_method, "payment_method")
        path = _require_text(proof_path, "proof_path")
        reference = reference_number.strip() if reference_number else None

        async with in_transaction():
            bill = await self._lock_payable_bill(bill_id)
            reopened = bill.status is BillStatus.REJECTED
            if reopened:
                ensure_transition(bill.status, BillStatus.UNPAID)
                bill.status = BillStatus.UNPAID
                await bill.save()
            submission = await self._submission_repo.create(
                customer_id=bill.customer_id,
                bill_id=bill.id,
                amount=value,
                payment_method=method,
                reference_number=reference,
                proof_path=path,
                notes=notes,
                status=SubmissionStatus.PENDING,
            )

        await self._audit.record(
            actor,
            "proof_submitted",
            "payment_submission",
            submission.id,
            details={"bill_id": bill.id, "amount": value, "reopened": reopened},
        )
        return submission

    async def _lock_pending_submission(self, submission_id: UUID) -> PaymentSubmission:
        submission = await self._submission_repo.get_for_update(submission_id)
        if submission is None:
            raise NotFoundError(
                f"Payment submission {submission_id} not found.",
                submission_id=str(submission_id),
            )
        if submission.status is not SubmissionStatus.PENDING:
            raise SubmissionAlreadyReviewedError(
                submission_id=str(submission.id), status=submission.status.value
            )
        return submission

    async def approve_submission(self, submission_id: UUID, actor: Actor) -> PaymentOutcome:
        """
        Accepts a proof-of-payment and records it as an online payment.

        Money beyond what the bill owes is added to the customer's credit.

        Raises:
            DuplicateReceiptError: if the reference number was already used as
                a receipt.
        """
        receipt = None
        try:
            async with in_transaction():
                submission = await self._lock_pending_submission(submission_id)
                bill = await self._lock_payable_bill(submission.bill_id)

                receipt = (
                    submission.reference_number or f"ONLINE-{submission.id.hex[:12].upper()}"
                )
                if await self._payment_repo.receipt_exists(receipt):
                    raise DuplicateReceiptError(receipt_number=receipt)

                allocation = apply_payment(bill, submission.amount)
                await bill.save()
                credit_txn = await self._credit_excess(bill, allocation.excess, actor)
                payment = await self._payment_repo.create(
                    customer_id=bill.customer_id,
                    bill_id=bill.id,
                    amount_paid=allocation.applied,
                    penalty_paid=allocation.penalty_paid,
                    method=PaymentMethod.ONLINE,
                    receipt_number=receipt,
                    status=PaymentStatus.PAID,
                    created_by=actor.id,
                )

                submission.status = SubmissionStatus.APPROVED
                submission.reviewed_by = actor.id
                submission.reviewed_at = timezone.now()
                await submission.save()
        except IntegrityError:
            raise DuplicateReceiptError(receipt_number=receipt) from None

        logger.info("Approved payment submission %s for bill %s", submission.id, bill.number)
        await self._audit.record(
            actor,
            "proof_approved",
            "payment_submission",
            submission.id,
            details={
                "bill_id": bill.id,
                "receipt_number": receipt,
                "amount": submission.amount,
                "credited": credit_txn.amount if credit_txn else Decimal("0"),
                "previous_status": allocation.previous_status,
                "status": allocation.new_status,
            },
        )
        return PaymentOutcome(bill, payment, allocation, credit_txn)

    async def reject_submission(
        self, submission_id: UUID, actor: Actor, reason: str | None = None
    ) -> PaymentSubmission:
        """
        Rejects a proof-of-payment. An unsettled bill moves to ``Rejected``
        until the customer submits again; balances are untouched.
        """
        async with in_transaction():
            submission = await self._lock_pending_submission(submission_id)
            bill = await self._bill_repo.get_for_update(submission.bill_id)
            if bill is None:
                raise NotFoundError(
                    f"Bill {submission.bill_id} not found.", bill_id=str(submission.bill_id)
                )
            previous_status = bill.status
            if bill.status in PAYABLE_STATUSES:
                ensure_transition(bill.status, BillStatus.REJECTED)
                bill.status = BillStatus.REJECTED
                await bill.save()

            submission.status = SubmissionStatus.REJECTED
            submission.reviewed_by = actor.id
            submission.reviewed_at = timezone.now()
            if reason:
                submission.notes = reason
            await submission.save()

        logger.info("Rejected payment submission %s", submission.id)
        await self._audit.record(
            actor,
            "proof_rejected",
            "payment_submission",
            submission.id,
            details={
                "bill_id": bill.id,
                "reason": reason,
                "previous_status": previous_status,
                "status": bill.status,
            },
        )
        return submission
