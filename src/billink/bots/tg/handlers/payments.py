"""Handlers for cashier payments and proof-of-payment review."""

from __future__ import annotations

from uuid import UUID

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from billink.bots.tg.handlers.utils import describe_error, parse_decimal
from billink.bots.tg.keyboards.inline import (
    BillActionCallback,
    ReviewCallback,
    get_bills_keyboard,
    get_review_keyboard,
)
from billink.bots.tg.keyboards.reply import PENDING_PROOFS, RECORD_PAYMENT
from billink.bots.tg.middlewares.access import RoleAccessMiddleware
from billink.bots.tg.states import CashierPayment, ProofReview
from billink.core.actors import Actor, Role
from billink.core.errors import BillingError
from billink.core.lifecycle import PAYABLE_STATUSES
from billink.core.models import BillStatus
from billink.core.repositories.bill import BillFilter
from billink.services.container import Services

router = Router(name=__name__)

router.message.middleware(RoleAccessMiddleware([Role.ADMIN, Role.CASHIER]))
router.callback_query.middleware(RoleAccessMiddleware([Role.ADMIN, Role.CASHIER]))

OPEN_STATUSES = tuple(PAYABLE_STATUSES | {BillStatus.REJECTED})


# --- Cashier payment FSM ---
@router.message(F.text == RECORD_PAYMENT)
async def handle_record_payment(message: Message, state: FSMContext) -> None:
    await state.set_state(CashierPayment.enter_meter)
    await message.answer("Enter the customer's meter number:")


@router.message(CashierPayment.enter_meter)
async def handle_payment_meter(
    message: Message, state: FSMContext, services: Services
) -> None:
    if not message.text:
        return
    customer = await services.customers.get_by_meter(message.text.strip())
    if customer is None:
        await message.answer("No customer has that meter number. Try again or /cancel.")
        return

    bills = await services.bills.find(
        BillFilter(customer_id=customer.id, statuses=OPEN_STATUSES)
    )
    if not bills:
        await state.clear()
        await message.answer(f"{customer.full_name} has no unpaid bills.")
        return

    await state.set_state(CashierPayment.select_bill)
    await message.answer(
        f"Unpaid bills for <b>{customer.full_name}</b>:",
        reply_markup=get_bills_keyboard(bills, action="pay").as_markup(),
    )


@router.callback_query(CashierPayment.select_bill, BillActionCallback.filter(F.action == "pay"))
async def handle_payment_bill(
    query: CallbackQuery,
    callback_data: BillActionCallback,
    state: FSMContext,
    services: Services,
) -> None:
    if not isinstance(query.message, Message):
        return
    await query.answer()

    bill = await services.bills.get(UUID(callback_data.bill_id))
    if bill is None:
        await query.message.edit_text("Bill not found.")
        await state.clear()
        return

    await state.update_data(bill_id=str(bill.id))
    await state.set_state(CashierPayment.enter_amount)
    penalty_line = f"\nPenalty: ₱{bill.penalty:.2f}" if bill.penalty > 0 else ""
    await query.message.edit_text(
        f"Bill <b>#{bill.number}</b>\nPrincipal: ₱{bill.net_due:.2f}{penalty_line}\n"
        f"Total due: <b>₱{bill.total_due:.2f}</b>\n\nEnter the amount received:"
    )


@router.message(CashierPayment.enter_amount)
async def handle_payment_amount(message: Message, state: FSMContext) -> None:
    amount = parse_decimal(message.text)
    if amount is None or amount <= 0:
        await message.answer("Please enter an amount greater than zero.")
        return
    await state.update_data(amount=str(amount))
    await state.set_state(CashierPayment.enter_receipt)
    await message.answer("Enter the official receipt number:")


@router.message(CashierPayment.enter_receipt)
async def handle_payment_receipt(
    message: Message, state: FSMContext, services: Services, actor: Actor
) -> None:
    if not message.text:
        return
    data = await state.get_data()
    try:
        outcome = await services.settlement.record_cashier_payment(
            UUID(data["bill_id"]), data["amount"], message.text, actor
        )
    except BillingError as e:
        await message.answer(describe_error(e))
        if e.code != "duplicate_receipt":
            await state.clear()
        return

    await state.clear()
    lines = [
        f"✅ Payment recorded on bill <b>#{outcome.bill.number}</b>.",
        f"Applied: ₱{outcome.allocation.applied:.2f}",
    ]
    if outcome.allocation.penalty_paid > 0:
        lines.append(f"Of which penalty: ₱{outcome.allocation.penalty_paid:.2f}")
    if outcome.change_given > 0:
        lines.append(f"Change: <b>₱{outcome.change_given:.2f}</b>")
    lines.append(f"Bill status: {outcome.bill.status.value}")
    await message.answer("\n".join(lines))


# --- Proof-of-payment review ---
@router.message(F.text == PENDING_PROOFS)
async def handle_pending_proofs(message: Message, services: Services) -> None:
    submissions = await services.submissions.pending()
    if not submissions:
        await message.answer("No proofs of payment are waiting for review.")
        return

    for submission in submissions:
        reference = submission.reference_number or "—"
        await message.answer(
            f"<b>{submission.customer.full_name}</b> · bill #{submission.bill.number}\n"
            f"Amount: ₱{submission.amount:.2f} via {submission.payment_method}\n"
            f"Reference: {reference}\nProof: {submission.proof_path}",
            reply_markup=get_review_keyboard(submission).as_markup(),
        )


@router.callback_query(ReviewCallback.filter(F.action == "approve"))
async def handle_approve_proof(
    query: CallbackQuery,
    callback_data: ReviewCallback,
    services: Services,
    actor: Actor,
) -> None:
    if not isinstance(query.message, Message):
        return
    await query.answer()
    try:
        outcome = await services.settlement.approve_submission(
            UUID(callback_data.submission_id), actor
        )
    except BillingError as e:
        await query.message.edit_text(describe_error(e))
        return

    credited = f"\n₱{outcome.credited:.2f} added to credit." if outcome.credited > 0 else ""
    await query.message.edit_text(
        f"✅ Approved. Bill #{outcome.bill.number} is now "
        f"{outcome.bill.status.value}.{credited}"
    )


@router.callback_query(ReviewCallback.filter(F.action == "reject"))
async def handle_reject_proof(
    query: CallbackQuery, callback_data: ReviewCallback, state: FSMContext
) -> None:
    if not isinstance(query.message, Message):
        return
    await query.answer()
    await state.update_data(submission_id=callback_data.submission_id)
    await state.set_state(ProofReview.enter_reject_reason)
    await query.message.answer("Why is this proof being rejected?")


@router.message(ProofReview.enter_reject_reason)
async def handle_reject_reason(
    message: Message, state: FSMContext, services: Services, actor: Actor
) -> None:
    data = await state.get_data()
    await state.clear()
    try:
        await services.settlement.reject_submission(
            UUID(data["submission_id"]), actor, reason=message.text
        )
    except BillingError as e:
        await message.answer(describe_error(e))
        return
    await message.answer("Proof of payment rejected. The customer may submit again.")
