"""Handlers for customer credit balances."""

from __future__ import annotations

from uuid import UUID

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, InlineKeyboardButton, Message
from aiogram.utils.keyboard import InlineKeyboardBuilder

from billink.bots.tg.handlers.utils import describe_error, parse_decimal
from billink.bots.tg.keyboards.inline import (
    BillActionCallback,
    CreditActionCallback,
    get_bills_keyboard,
)
from billink.bots.tg.keyboards.reply import CREDIT
from billink.bots.tg.middlewares.access import RoleAccessMiddleware
from billink.bots.tg.states import CreditManagement
from billink.core.actors import Actor, Role
from billink.core.errors import BillingError
from billink.core.lifecycle import PAYABLE_STATUSES
from billink.core.models import TransactionType
from billink.core.repositories.bill import BillFilter
from billink.services.container import Services

router = Router(name=__name__)

router.message.middleware(RoleAccessMiddleware([Role.ADMIN, Role.CASHIER]))
router.callback_query.middleware(RoleAccessMiddleware([Role.ADMIN, Role.CASHIER]))

HISTORY_SIZE = 5


@router.message(F.text == CREDIT)
async def handle_credit(message: Message, state: FSMContext) -> None:
    await state.set_state(CreditManagement.enter_meter)
    await message.answer("Enter the customer's meter number:")


@router.message(CreditManagement.enter_meter)
async def handle_credit_meter(
    message: Message, state: FSMContext, services: Services
) -> None:
    if not message.text:
        return
    customer = await services.customers.get_by_meter(message.text.strip())
    if customer is None:
        await message.answer("No customer has that meter number. Try again or /cancel.")
        return
    await state.clear()

    history = await services.credit.history(customer.id, limit=HISTORY_SIZE)
    lines = [
        f"<b>{customer.full_name}</b> ({customer.meter_number})",
        f"Credit balance: <b>₱{customer.credit_balance:.2f}</b>",
    ]
    if history:
        lines.append("\nRecent transactions:")
        for txn in history:
            sign = "−" if txn.transaction_type is TransactionType.DEBIT else "+"
            lines.append(
                f"{txn.created_at:%Y-%m-%d} {sign}₱{abs(txn.amount):.2f} "
                f"→ ₱{txn.new_balance:.2f} {txn.description or ''}"
            )

    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(
            text="➕ Add credit",
            callback_data=CreditActionCallback(
                action="topup", customer_id=str(customer.id)
            ).pack(),
        )
    )
    await message.answer("\n".join(lines), reply_markup=builder.as_markup())

    if customer.credit_balance > 0:
        bills = await services.bills.find(
            BillFilter(customer_id=customer.id, statuses=tuple(PAYABLE_STATUSES))
        )
        if bills:
            await message.answer(
                "Settle a bill from credit:",
                reply_markup=get_bills_keyboard(bills, action="credit").as_markup(),
            )


@router.callback_query(CreditActionCallback.filter(F.action == "topup"))
async def handle_topup(
    query: CallbackQuery, callback_data: CreditActionCallback, state: FSMContext
) -> None:
    if not isinstance(query.message, Message):
        return
    await query.answer()
    await state.update_data(customer_id=callback_data.customer_id)
    await state.set_state(CreditManagement.enter_amount)
    await query.message.answer("Enter the amount to add:")


@router.message(CreditManagement.enter_amount)
async def handle_topup_amount(
    message: Message, state: FSMContext, services: Services, actor: Actor
) -> None:
    amount = parse_decimal(message.text)
    if amount is None:
        await message.answer("Invalid format. Please enter a number.")
        return

    data = await state.get_data()
    await state.clear()
    try:
        txn = await services.credit.credit(
            UUID(data["customer_id"]),
            amount,
            actor,
            description="Counter top-up",
            reference_type="manual_topup",
        )
    except BillingError as e:
        await message.answer(describe_error(e))
        return
    await message.answer(f"✅ Credit added. New balance: <b>₱{txn.new_balance:.2f}</b>")


@router.callback_query(BillActionCallback.filter(F.action == "credit"))
async def handle_pay_from_credit(
    query: CallbackQuery,
    callback_data: BillActionCallback,
    services: Services,
    actor: Actor,
) -> None:
    if not isinstance(query.message, Message):
        return
    await query.answer()
    try:
        applied = await services.credit.apply_to_bill(UUID(callback_data.bill_id), actor)
    except BillingError as e:
        await query.message.edit_text(describe_error(e))
        return

    await query.message.edit_text(
        f"✅ ₱{applied.transaction.amount:.2f} of credit applied to bill "
        f"<b>#{applied.bill.number}</b>.\n"
        f"Bill status: {applied.bill.status.value}\n"
        f"Remaining credit: ₱{applied.new_balance:.2f}"
    )
