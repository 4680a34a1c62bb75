"""Tests for the customer credit ledger."""

import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio

from billink.core.errors import (
    AlreadyPaidError,
    ConcurrentUpdateError,
    CreditLimitExceededError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidInputError,
    LedgerConsistencyError,
)
from billink.core.models import (
    AuditLog,
    Bill,
    BillStatus,
    CreditTransaction,
    Customer,
    PaymentMethod,
    PaymentRecord,
    TransactionType,
)


async def _balance(customer_id) -> Decimal:
    return (await Customer.get(id=customer_id)).credit_balance


@pytest.mark.asyncio
async def test_credit_then_debit_chains_balances(services, admin, make_customer):
    customer = await make_customer()

    first = await services.credit.credit(customer.id, "100", admin)
    second = await services.credit.debit(customer.id, Decimal("30"), admin)

    assert first.previous_balance == Decimal("0")
    assert first.new_balance == Decimal("100.00")
    assert second.transaction_type is TransactionType.DEBIT
    assert second.previous_balance == first.new_balance
    assert second.new_balance == Decimal("70.00")
    assert await _balance(customer.id) == Decimal("70.00")
    assert await services.credit.reconcile(customer.id) == Decimal("70.00")

    refreshed = await Customer.get(id=customer.id)
    assert refreshed.balance_version == 2

    actions = {log.action for log in await AuditLog.filter(entity_id=str(customer.id))}
    assert actions == {"credit_added", "credit_debited"}


@pytest.mark.asyncio
async def test_debit_never_goes_negative(services, admin, make_customer):
    customer = await make_customer()
    await services.credit.credit(customer.id, 50, admin)

    with pytest.raises(InsufficientBalanceError):
        await services.credit.debit(customer.id, 50.01, admin)

    assert await _balance(customer.id) == Decimal("50.00")
    assert await CreditTransaction.filter(customer_id=customer.id).count() == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, "-5", "abc", None, float("inf")])
async def test_rejects_non_positive_amounts(services, admin, make_customer, amount):
    customer = await make_customer()

    with pytest.raises(InvalidAmountError):
        await services.credit.credit(customer.id, amount, admin)

    assert await CreditTransaction.all().count() == 0


@pytest.mark.asyncio
async def test_credit_limit_is_enforced(services, admin, make_customer):
    customer = await make_customer(credit_limit=Decimal("100"))
    await services.credit.credit(customer.id, 80, admin)

    with pytest.raises(CreditLimitExceededError):
        await services.credit.credit(customer.id, 30, admin)

    assert await _balance(customer.id) == Decimal("80.00")


@pytest.mark.asyncio
async def test_adjust_records_signed_delta(services, admin, make_customer):
    customer = await make_customer()
    await services.credit.credit(customer.id, 100, admin)

    txn = await services.credit.adjust(customer.id, "80", "Meter misread refund reversed", admin)

    assert txn.transaction_type is TransactionType.ADJUSTMENT
    assert txn.amount == Decimal("-20.00")
    assert txn.new_balance == Decimal("80.00")
    assert txn.reference_type == "manual_adjustment"
    assert await services.credit.reconcile(customer.id) == Decimal("80.00")


@pytest.mark.asyncio
async def test_adjust_requires_reason_and_valid_balance(services, admin, make_customer):
    customer = await make_customer()

    with pytest.raises(InvalidInputError):
        await services.credit.adjust(customer.id, 10, "   ", admin)
    with pytest.raises(InvalidAmountError):
        await services.credit.adjust(customer.id, -10, "Correction", admin)


@pytest.mark.asyncio
async def test_history_is_most_recent_first(services, admin, make_customer):
    customer = await make_customer()
    for amount in (10, 20, 30):
        await services.credit.credit(customer.id, amount, admin)

    history = await services.credit.history(customer.id, limit=2)

    assert len(history) == 2
    assert [t.amount for t in history] == [Decimal("30.00"), Decimal("20.00")]


@pytest.mark.asyncio
async def test_reconcile_detects_tampered_balance(services, admin, make_customer):
    customer = await make_customer()
    await services.credit.credit(customer.id, 100, admin)
    await Customer.filter(id=customer.id).update(credit_balance=Decimal("999"))

    with pytest.raises(LedgerConsistencyError) as exc_info:
        await services.credit.reconcile(customer.id)
    assert exc_info.value.code == "ledger_inconsistent"

    # The mismatch also blocks further mutations and is never auto-corrected.
    with pytest.raises(LedgerConsistencyError):
        await services.credit.debit(customer.id, 10, admin)
    assert await _balance(customer.id) == Decimal("999.00")


@pytest.mark.asyncio
async def test_concurrent_debits_never_overdraw(services, admin, make_customer):
    customer = await make_customer()
    await services.credit.credit(customer.id, 100, admin)

    results = await asyncio.gather(
        services.credit.debit(customer.id, 60, admin),
        services.credit.debit(customer.id, 60, admin),
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, CreditTransaction)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], (InsufficientBalanceError, ConcurrentUpdateError))
    assert await _balance(customer.id) == Decimal("40.00")
    assert await services.credit.reconcile(customer.id) == Decimal("40.00")


@pytest_asyncio.fixture
async def unpaid_bill(services, admin, make_customer) -> Bill:
    customer = await make_customer()
    result = await services.billing.create_bill(customer.id, 30, admin, previous_reading=10)
    return result.bill


@pytest.mark.asyncio
async def test_apply_to_bill_partially_then_fully(services, admin, unpaid_bill, sender):
    customer_id = unpaid_bill.customer_id
    await services.credit.credit(customer_id, 200, admin)

    partial = await services.credit.apply_to_bill(unpaid_bill.id, admin)

    assert partial.allocation.principal_paid == Decimal("200.00")
    bill = await Bill.get(id=unpaid_bill.id)
    assert bill.status is BillStatus.PARTIALLY_PAID
    assert bill.net_due == Decimal("347.00")
    assert bill.credit_applied == Decimal("200.00")
    assert await _balance(customer_id) == Decimal("0.00")

    await services.credit.credit(customer_id, 1000, admin)
    full = await services.credit.apply_to_bill(unpaid_bill.id, admin)

    assert full.transaction.amount == Decimal("347.00")
    assert full.new_balance == Decimal("653.00")
    bill = await Bill.get(id=unpaid_bill.id)
    assert bill.status is BillStatus.PAID
    assert bill.net_due == Decimal("0.00")
    assert bill.credit_applied == Decimal("547.00")

    payments = await PaymentRecord.filter(bill_id=bill.id)
    assert len(payments) == 2
    assert all(p.method is PaymentMethod.CREDIT for p in payments)
    assert len({p.receipt_number for p in payments}) == 2
    assert "fully paid" in sender.sent[-1][1]

    with pytest.raises(AlreadyPaidError):
        await services.credit.apply_to_bill(unpaid_bill.id, admin)


@pytest.mark.asyncio
async def test_apply_to_bill_needs_enough_credit(services, admin, unpaid_bill):
    with pytest.raises(InsufficientBalanceError):
        await services.credit.apply_to_bill(unpaid_bill.id, admin)

    await services.credit.credit(unpaid_bill.customer_id, 50, admin)
    with pytest.raises(InsufficientBalanceError):
        await services.credit.apply_to_bill(unpaid_bill.id, admin, amount=80)

    bill = await Bill.get(id=unpaid_bill.id)
    assert bill.status is BillStatus.UNPAID


@pytest.mark.asyncio
async def test_apply_to_bill_is_atomic(services, admin, unpaid_bill, monkeypatch):
    await services.credit.credit(unpaid_bill.customer_id, 100, admin)

    async def broken_create(**kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(services.credit._payment_repo, "create", broken_create)

    with pytest.raises(RuntimeError):
        await services.credit.apply_to_bill(unpaid_bill.id, admin)

    bill = await Bill.get(id=unpaid_bill.id)
    assert bill.status is BillStatus.UNPAID
    assert bill.net_due == Decimal("547.00")
    assert bill.credit_applied == Decimal("0.00")
    assert await _balance(unpaid_bill.customer_id) == Decimal("100.00")
    assert await CreditTransaction.filter(customer_id=unpaid_bill.customer_id).count() == 1
