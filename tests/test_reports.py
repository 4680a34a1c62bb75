"""Tests for operator reports."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from billink.core.models import BillStatus
from billink.core.repositories.bill import BillFilter


@pytest.mark.asyncio
async def test_outstanding_balances_exclude_paid_bills(services, admin, cashier, make_customer):
    customer = await make_customer()
    open_bill = await services.billing.create_bill(customer.id, 30, admin, previous_reading=10)
    partial = await services.billing.create_bill(customer.id, 50, admin, previous_reading=30)
    paid = await services.billing.create_bill(customer.id, 70, admin, previous_reading=50)
    await services.settlement.record_cashier_payment(partial.bill.id, 200, "OR-A", cashier)
    await services.settlement.record_cashier_payment(paid.bill.id, 547, "OR-B", cashier)

    report = await services.reports.outstanding_balances()

    assert {b.id for b in report.bills} == {open_bill.bill.id, partial.bill.id}
    assert report.total_principal == Decimal("894.00")
    assert report.total_penalties == Decimal("0")
    assert report.total_due == Decimal("894.00")
    assert all(b.customer.meter_number == customer.meter_number for b in report.bills)


@pytest.mark.asyncio
async def test_outstanding_balances_can_be_filtered(services, admin, make_customer):
    first = await make_customer()
    second = await make_customer()
    await services.billing.create_bill(first.id, 30, admin, previous_reading=10)
    await services.billing.create_bill(second.id, 30, admin, previous_reading=10)

    report = await services.reports.outstanding_balances(BillFilter(customer_id=second.id))

    assert [b.customer_id for b in report.bills] == [second.id]
    assert report.total_due == Decimal("547.00")


@pytest.mark.asyncio
async def test_overdue_report_flags_stale_penalties(services, admin, make_customer):
    customer = await make_customer()
    today = date.today()
    await services.billing.create_bill(
        customer.id, 30, admin, previous_reading=10, due_date=today - timedelta(days=10)
    )

    before = await services.reports.overdue_bills(as_of=today)
    assert len(before) == 1
    assert before[0].penalty.penalty_amount == Decimal("54.70")
    assert before[0].should_update_penalty is True

    await services.penalty.process_overdue_bills(as_of=today)

    after = await services.reports.overdue_bills(as_of=today)
    assert after[0].bill.status is BillStatus.OVERDUE
    assert after[0].should_update_penalty is False


@pytest.mark.asyncio
async def test_customers_with_credit(services, admin, make_customer):
    holder = await make_customer()
    await make_customer()
    await services.credit.credit(holder.id, "50.00", admin)

    customers = await services.reports.customers_with_credit()

    assert [c.id for c in customers] == [holder.id]


@pytest.mark.asyncio
async def test_credit_history_respects_limit(services, admin, make_customer):
    customer = await make_customer()
    for _ in range(3):
        await services.credit.credit(customer.id, 10, admin)

    assert len(await services.reports.credit_history(customer.id, limit=2)) == 2
    assert len(await services.reports.credit_history(customer.id)) == 3
