"""Tests for cashier payments and proof-of-payment review."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from billink.core.errors import (
    AlreadyPaidError,
    DuplicateReceiptError,
    InvalidAmountError,
    InvalidInputError,
    SubmissionAlreadyReviewedError,
)
from billink.core.models import (
    AuditLog,
    Bill,
    BillStatus,
    Customer,
    PaymentMethod,
    PaymentRecord,
    PaymentSubmission,
    SubmissionStatus,
)


@pytest_asyncio.fixture
async def bill(services, admin, make_customer) -> Bill:
    """An unpaid 547.00 bill."""
    customer = await make_customer()
    result = await services.billing.create_bill(customer.id, 30, admin, previous_reading=10)
    return result.bill


@pytest_asyncio.fixture
async def overdue_bill(services, admin, make_customer) -> Bill:
    """A 547.00 bill that fell due 45 days ago, with the penalty swept in."""
    customer = await make_customer()
    result = await services.billing.create_bill(
        customer.id,
        30,
        admin,
        previous_reading=10,
        due_date=date.today() - timedelta(days=45),
    )
    await services.penalty.process_overdue_bills(as_of=date.today())
    return await Bill.get(id=result.bill.id)


@pytest.mark.asyncio
async def test_cashier_payment_gives_change(services, cashier, bill):
    outcome = await services.settlement.record_cashier_payment(
        bill.id, "600", "OR-0001", cashier
    )

    assert outcome.change_given == Decimal("53.00")
    assert outcome.credited == Decimal("0.00")
    assert outcome.allocation.principal_paid == Decimal("547.00")

    stored = await Bill.get(id=bill.id)
    assert stored.status is BillStatus.PAID
    assert stored.net_due == Decimal("0.00")
    assert stored.amount_paid == Decimal("547.00")

    payment = await PaymentRecord.get(receipt_number="OR-0001")
    assert payment.amount_paid == Decimal("547.00")
    assert payment.change_given == Decimal("53.00")
    assert payment.method is PaymentMethod.CASH
    assert payment.created_by == cashier.id

    audit = await AuditLog.get(action="payment_recorded")
    assert audit.details["status"] == "Paid"
    assert audit.details["change_given"] == "53.00"


@pytest.mark.asyncio
async def test_partial_payments_settle_bill(services, cashier, bill):
    first = await services.settlement.record_cashier_payment(bill.id, 200, "OR-1", cashier)
    assert first.bill.status is BillStatus.PARTIALLY_PAID
    assert first.bill.net_due == Decimal("347.00")

    second = await services.settlement.record_cashier_payment(bill.id, 347, "OR-2", cashier)
    assert second.bill.status is BillStatus.PAID
    assert second.change_given == Decimal("0")

    with pytest.raises(AlreadyPaidError):
        await services.settlement.record_cashier_payment(bill.id, 10, "OR-3", cashier)
    assert await PaymentRecord.filter(bill_id=bill.id).count() == 2


@pytest.mark.asyncio
async def test_duplicate_receipt_is_rejected(services, cashier, bill):
    await services.settlement.record_cashier_payment(bill.id, 100, "OR-DUP", cashier)

    with pytest.raises(DuplicateReceiptError):
        await services.settlement.record_cashier_payment(bill.id, 100, "OR-DUP", cashier)

    stored = await Bill.get(id=bill.id)
    assert stored.net_due == Decimal("447.00")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "amount, receipt, error",
    [(0, "OR-9", InvalidAmountError), ("-1", "OR-9", InvalidAmountError), (10, " ", InvalidInputError)],
)
async def test_cashier_payment_validation(services, cashier, bill, amount, receipt, error):
    with pytest.raises(error):
        await services.settlement.record_cashier_payment(bill.id, amount, receipt, cashier)
    assert await PaymentRecord.all().count() == 0


@pytest.mark.asyncio
async def test_payment_covers_penalty_first(services, cashier, overdue_bill):
    assert overdue_bill.status is BillStatus.OVERDUE
    assert overdue_bill.penalty == Decimal("65.64")

    outcome = await services.settlement.record_cashier_payment(
        overdue_bill.id, 100, "OR-PEN", cashier
    )

    assert outcome.allocation.penalty_paid == Decimal("65.64")
    assert outcome.allocation.principal_paid == Decimal("34.36")
    stored = await Bill.get(id=overdue_bill.id)
    assert stored.status is BillStatus.PARTIALLY_PAID
    assert stored.penalty == Decimal("0.00")
    assert stored.net_due == Decimal("512.64")

    payment = await PaymentRecord.get(receipt_number="OR-PEN")
    assert payment.penalty_paid == Decimal("65.64")


@pytest.mark.asyncio
async def test_excess_can_go_to_credit(services, cashier, bill):
    outcome = await services.settlement.record_cashier_payment(
        bill.id, 600, "OR-CR", cashier, credit_excess=True
    )

    assert outcome.change_given == Decimal("0.00")
    assert outcome.credited == Decimal("53.00")
    customer = await Customer.get(id=bill.customer_id)
    assert customer.credit_balance == Decimal("53.00")
    assert await services.credit.reconcile(customer.id) == Decimal("53.00")


@pytest.mark.asyncio
async def test_approved_proof_becomes_online_payment(services, admin, bill):
    submission = await services.settlement.submit_proof(
        bill.id, 547, "GCash", "proofs/gcash-1.jpg", admin, reference_number="GC-123"
    )
    assert submission.status is SubmissionStatus.PENDING

    outcome = await services.settlement.approve_submission(submission.id, admin)

    assert outcome.bill.status is BillStatus.PAID
    assert outcome.payment.method is PaymentMethod.ONLINE
    assert outcome.payment.receipt_number == "GC-123"
    stored = await PaymentSubmission.get(id=submission.id)
    assert stored.status is SubmissionStatus.APPROVED
    assert stored.reviewed_by == admin.id
    assert stored.reviewed_at is not None

    with pytest.raises(SubmissionAlreadyReviewedError):
        await services.settlement.approve_submission(submission.id, admin)


@pytest.mark.asyncio
async def test_racing_receipt_on_approval_is_a_duplicate(
    services, admin, cashier, bill, make_customer, monkeypatch
):
    other = await make_customer()
    other_bill = await services.billing.create_bill(other.id, 30, admin, previous_reading=10)
    await services.settlement.record_cashier_payment(other_bill.bill.id, 547, "GC-1", cashier)
    submission = await services.settlement.submit_proof(
        bill.id, 547, "GCash", "proofs/gcash-2.jpg", admin, reference_number="GC-1"
    )

    # The receipt is taken between the existence check and the insert.
    async def receipt_is_free(receipt_number):
        return False

    monkeypatch.setattr(services.settlement._payment_repo, "receipt_exists", receipt_is_free)

    with pytest.raises(DuplicateReceiptError) as exc_info:
        await services.settlement.approve_submission(submission.id, admin)
    assert exc_info.value.context == {"receipt_number": "GC-1"}

    assert (await PaymentSubmission.get(id=submission.id)).status is SubmissionStatus.PENDING
    stored = await Bill.get(id=bill.id)
    assert stored.status is BillStatus.UNPAID
    assert stored.amount_paid == Decimal("0")
    assert await PaymentRecord.filter(bill_id=bill.id).count() == 0


@pytest.mark.asyncio
async def test_approved_overpayment_is_credited(services, admin, bill):
    submission = await services.settlement.submit_proof(
        bill.id, 600, "Bank transfer", "proofs/bank.png", admin
    )

    outcome = await services.settlement.approve_submission(submission.id, admin)

    assert outcome.payment.receipt_number.startswith("ONLINE-")
    assert outcome.credited == Decimal("53.00")
    customer = await Customer.get(id=bill.customer_id)
    assert customer.credit_balance == Decimal("53.00")


@pytest.mark.asyncio
async def test_rejected_proof_can_be_resubmitted(services, admin, bill):
    submission = await services.settlement.submit_proof(
        bill.id, 100, "GCash", "proofs/blurry.jpg", admin
    )

    await services.settlement.reject_submission(submission.id, admin, reason="Unreadable")

    stored_bill = await Bill.get(id=bill.id)
    assert stored_bill.status is BillStatus.REJECTED
    assert stored_bill.net_due == Decimal("547.00")
    rejected = await PaymentSubmission.get(id=submission.id)
    assert rejected.status is SubmissionStatus.REJECTED
    assert rejected.notes == "Unreadable"

    with pytest.raises(SubmissionAlreadyReviewedError):
        await services.settlement.reject_submission(submission.id, admin)

    retry = await services.settlement.submit_proof(
        bill.id, 100, "GCash", "proofs/clear.jpg", admin
    )
    assert (await Bill.get(id=bill.id)).status is BillStatus.UNPAID

    outcome = await services.settlement.approve_submission(retry.id, admin)
    assert outcome.bill.status is BillStatus.PARTIALLY_PAID
    assert outcome.bill.net_due == Decimal("447.00")


@pytest.mark.asyncio
async def test_cashier_payment_reopens_rejected_bill(services, admin, cashier, bill):
    submission = await services.settlement.submit_proof(
        bill.id, 100, "GCash", "proofs/fake.jpg", admin
    )
    await services.settlement.reject_submission(submission.id, admin)

    outcome = await services.settlement.record_cashier_payment(
        bill.id, 547, "OR-REOPEN", cashier
    )

    assert outcome.allocation.previous_status is BillStatus.UNPAID
    assert outcome.bill.status is BillStatus.PAID


@pytest.mark.asyncio
async def test_rejecting_proof_leaves_paid_bill_alone(services, admin, cashier, bill):
    submission = await services.settlement.submit_proof(
        bill.id, 547, "GCash", "proofs/late.jpg", admin
    )
    await services.settlement.record_cashier_payment(bill.id, 547, "OR-FIRST", cashier)

    with pytest.raises(AlreadyPaidError):
        await services.settlement.approve_submission(submission.id, admin)

    await services.settlement.reject_submission(submission.id, admin, reason="Paid at counter")

    assert (await Bill.get(id=bill.id)).status is BillStatus.PAID
    assert (await PaymentSubmission.get(id=submission.id)).status is SubmissionStatus.REJECTED
