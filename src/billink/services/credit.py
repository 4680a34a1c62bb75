"""Customer credit ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from tortoise.transactions import in_transaction

from billink.core.actors import Actor
from billink.core.calculations import round_money, to_decimal
from billink.core.errors import (
    AlreadyPaidError,
    ConcurrentUpdateError,
    CreditLimitExceededError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidInputError,
    LedgerConsistencyError,
    NotFoundError,
)
from billink.core.lifecycle import PaymentAllocation, apply_payment
from billink.core.models import (
    Bill,
    BillStatus,
    CreditTransaction,
    Customer,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    TransactionType,
)
from billink.core.repositories.bill import BillRepository
from billink.core.repositories.credit import CreditTransactionRepository
from billink.core.repositories.customer import CustomerRepository
from billink.core.repositories.payment import PaymentRecordRepository
from billink.services.audit import AuditService
from billink.services.notifications import Notifier, bill_paid_with_credit_text

logger = logging.getLogger(__name__)


def positive_amount(value: object, field: str = "amount") -> Decimal:
    """Parses a strictly positive monetary amount, rounded to cents."""
    try:
        amount = to_decimal(value, field)
    except InvalidInputError as e:
        raise InvalidAmountError(e.message, field=field) from None
    amount = round_money(amount)
    if amount <= 0:
        raise InvalidAmountError(field=field)
    return amount


def credit_receipt_number(bill: Bill, transaction: CreditTransaction) -> str:
    return f"CREDIT-{bill.number}-{transaction.id.hex[:8].upper()}"


@dataclass(frozen=True)
class CreditApplication:
    """Result of paying a bill from the customer's credit balance."""

    bill: Bill
    transaction: CreditTransaction
    payment: PaymentRecord
    allocation: PaymentAllocation

    @property
    def new_balance(self) -> Decimal:
        return self.transaction.new_balance


class CreditLedger:
    """
    The only writer of ``Customer.credit_balance``.

    Every balance change appends a ``CreditTransaction`` in the same database
    transaction. ``lock_customer`` and ``post`` are meant to be composed into
    larger transactions (bill creation, settlement); the public operations
    open their own.
    """

    def __init__(
        self,
        customer_repo: CustomerRepository,
        transaction_repo: CreditTransactionRepository,
        bill_repo: BillRepository,
        payment_repo: PaymentRecordRepository,
        audit: AuditService,
        notifier: Notifier,
    ):
        self._customer_repo = customer_repo
        self._transaction_repo = transaction_repo
        self._bill_repo = bill_repo
        self._payment_repo = payment_repo
        self._audit = audit
        self._notifier = notifier

    async def lock_customer(self, customer_id: UUID) -> Customer:
        """
        Loads the customer for a balance change and verifies the cached
        balance against the ledger. Must run inside a transaction.
        """
        customer = await self._customer_repo.get_for_update(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found.", customer_id=str(customer_id))
        await self._check_consistency(customer)
        return customer

    async def _check_consistency(self, customer: Customer) -> Decimal:
        ledger = await self._transaction_repo.ledger_total(customer.id)
        if ledger != customer.credit_balance:
            logger.error(
                "Credit ledger mismatch for customer %s: cached %s, ledger %s",
                customer.id,
                customer.credit_balance,
                ledger,
            )
            raise LedgerConsistencyError(
                customer_id=str(customer.id),
                cached=str(customer.credit_balance),
                ledger=str(ledger),
            )
        return ledger

    async def post(
        self,
        customer: Customer,
        transaction_type: TransactionType,
        amount: Decimal,
        actor: Actor,
        description: str | None = None,
        reference_type: str | None = None,
        reference_id: UUID | str | None = None,
    ) -> CreditTransaction:
        """
        Writes one balance change and its ledger row.

        ``amount`` is positive for credits and debits and signed for
        adjustments. The balance write is a compare-and-set on
        ``balance_version``; losing the race raises ``ConcurrentUpdateError``.
        """
        previous = customer.credit_balance
        if transaction_type is TransactionType.DEBIT:
            new_balance = previous - amount
        else:
            new_balance = previous + amount

        if new_balance < 0:
            raise InsufficientBalanceError(
                available=str(previous), requested=str(amount)
            )
        if (
            transaction_type is TransactionType.CREDIT
            and customer.credit_limit is not None
            and new_balance > customer.credit_limit
        ):
            raise CreditLimitExceededError(
                limit=str(customer.credit_limit), new_balance=str(new_balance)
            )

        written = await self._customer_repo.compare_and_set_balance(
            customer.id, customer.balance_version, new_balance
        )
        if not written:
            raise ConcurrentUpdateError(customer_id=str(customer.id))
        customer.credit_balance = new_balance
        customer.balance_version += 1

        return await self._transaction_repo.create(
            customer_id=customer.id,
            transaction_type=transaction_type,
            amount=amount,
            previous_balance=previous,
            new_balance=new_balance,
            description=description,
            reference_type=reference_type,
            reference_id=str(reference_id) if reference_id is not None else None,
            created_by=actor.id,
        )

    async def _record(self, actor: Actor, action: str, txn: CreditTransaction) -> None:
        await self._audit.record(
            actor,
            action,
            "customer",
            txn.customer_id,
            details={
                "transaction_id": txn.id,
                "amount": txn.amount,
                "previous_balance": txn.previous_balance,
                "new_balance": txn.new_balance,
            },
        )

    async def credit(
        self,
        customer_id: UUID,
        amount: object,
        actor: Actor,
        description: str | None = None,
        reference_type: str | None = None,
        reference_id: UUID | str | None = None,
    ) -> CreditTransaction:
        """Adds ``amount`` to the customer's balance."""
        value = positive_amount(amount)
        async with in_transaction():
            customer = await self.lock_customer(customer_id)
            txn = await self.post(
                customer,
                TransactionType.CREDIT,
                value,
                actor,
                description=description or "Credit added",
                reference_type=reference_type,
                reference_id=reference_id,
            )
        logger.info("Credited %s to customer %s", value, customer_id)
        await self._record(actor, "credit_added", txn)
        return txn

    async def debit(
        self,
        customer_id: UUID,
        amount: object,
        actor: Actor,
        description: str | None = None,
        reference_type: str | None = None,
        reference_id: UUID | str | None = None,
    ) -> CreditTransaction:
        """Removes ``amount`` from the balance; never lets it go negative."""
        value = positive_amount(amount)
        async with in_transaction():
            customer = await self.lock_customer(customer_id)
            txn = await self.post(
                customer,
                TransactionType.DEBIT,
                value,
                actor,
                description=description or "Credit used",
                reference_type=reference_type,
                reference_id=reference_id,
            )
        logger.info("Debited %s from customer %s", value, customer_id)
        await self._record(actor, "credit_debited", txn)
        return txn

    async def adjust(
        self, customer_id: UUID, new_balance: object, reason: str, actor: Actor
    ) -> CreditTransaction:
        """Sets the balance directly, recording the signed difference."""
        if not reason or not reason.strip():
            raise InvalidInputError("An adjustment needs a reason.", field="reason")
        try:
            target = round_money(to_decimal(new_balance, "new_balance"))
        except InvalidInputError as e:
            raise InvalidAmountError(e.message, field="new_balance") from None

        async with in_transaction():
            customer = await self.lock_customer(customer_id)
            delta = target - customer.credit_balance
            txn = await self.post(
                customer,
                TransactionType.ADJUSTMENT,
                delta,
                actor,
                description=reason.strip(),
                reference_type="manual_adjustment",
            )
        logger.info("Adjusted credit for customer %s by %s", customer_id, delta)
        await self._record(actor, "credit_adjusted", txn)
        return txn

    async def apply_to_bill(
        self, bill_id: UUID, actor: Actor, amount: object | None = None
    ) -> CreditApplication:
        """
        Pays a bill from credit: ledger debit, payment record and bill update
        in one transaction.

        Without ``amount`` as much credit as the bill needs is used. The amount
        is capped at what the bill still owes.
        """
        requested = positive_amount(amount) if amount is not None else None

        async with in_transaction():
            bill = await self._bill_repo.get_for_update(bill_id)
            if bill is None:
                raise NotFoundError(f"Bill {bill_id} not found.", bill_id=str(bill_id))
            if bill.status is BillStatus.PAID:
                raise AlreadyPaidError(bill_id=str(bill.id))

            customer = await self.lock_customer(bill.customer_id)
            available = customer.credit_balance
            if requested is not None and requested > available:
                raise InsufficientBalanceError(
                    available=str(available), requested=str(requested)
                )
            value = min(requested if requested is not None else available, bill.total_due)
            if value <= 0:
                raise InsufficientBalanceError(available=str(available))

            allocation = apply_payment(bill, value)
            bill.credit_applied += value
            await bill.save()

            txn = await self.post(
                customer,
                TransactionType.DEBIT,
                value,
                actor,
                description=f"Payment for bill #{bill.number}",
                reference_type="bill_payment",
                reference_id=bill.id,
            )
            payment = await self._payment_repo.create(
                customer_id=customer.id,
                bill_id=bill.id,
                amount_paid=allocation.applied,
                penalty_paid=allocation.penalty_paid,
                method=PaymentMethod.CREDIT,
                receipt_number=credit_receipt_number(bill, txn),
                status=PaymentStatus.PAID,
                created_by=actor.id,
            )

        logger.info("Applied %s credit to bill %s (%s)", value, bill.id, bill.status.value)
        await self._audit.record(
            actor,
            "credit_applied",
            "bill",
            bill.id,
            details={
                "amount": value,
                "status": allocation.new_status,
                "previous_status": allocation.previous_status,
                "new_balance": txn.new_balance,
                "receipt_number": payment.receipt_number,
            },
        )
        if bill.status is BillStatus.PAID:
            await self._notifier.notify(
                customer.phone_number, bill_paid_with_credit_text(bill.number, value)
            )
        return CreditApplication(bill, txn, payment, allocation)

    async def balance(self, customer_id: UUID) -> Decimal:
        customer = await self._customer_repo.get(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found.", customer_id=str(customer_id))
        return customer.credit_balance

    async def history(self, customer_id: UUID, limit: int = 20) -> list[CreditTransaction]:
        return await self._transaction_repo.history(customer_id, limit)

    async def reconcile(self, customer_id: UUID) -> Decimal:
        """
        Verifies that the cached balance equals the ledger sum.

        Raises:
            LedgerConsistencyError: on any mismatch. The balance is never
                corrected automatically.
        """
        customer = await self._customer_repo.get(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found.", customer_id=str(customer_id))
        return await self._check_consistency(customer)
