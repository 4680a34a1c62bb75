"""Handlers for the bill entry process (FSM)."""

from __future__ import annotations

from decimal import Decimal

from aiogram import F, Router
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from billink.bots.tg.handlers.utils import describe_error, parse_decimal
from billink.bots.tg.keyboards.inline import ConfirmCallback, get_confirm_keyboard
from billink.bots.tg.keyboards.reply import NEW_BILL
from billink.bots.tg.middlewares.access import RoleAccessMiddleware
from billink.bots.tg.states import BillEntry
from billink.core.actors import Actor, Role
from billink.core.errors import BillingError
from billink.services.container import Services

router = Router(name=__name__)

router.message.middleware(RoleAccessMiddleware([Role.ADMIN, Role.ENCODER]))
router.callback_query.middleware(RoleAccessMiddleware([Role.ADMIN, Role.ENCODER]))


@router.message(F.text == NEW_BILL)
async def handle_new_bill(message: Message, state: FSMContext) -> None:
    """Starts bill entry by asking for the customer's meter number."""
    await state.set_state(BillEntry.enter_meter)
    await message.answer("Enter the customer's meter number:")


@router.message(BillEntry.enter_meter)
async def handle_meter_number(
    message: Message, state: FSMContext, services: Services
) -> None:
    if not message.text:
        return
    customer = await services.customers.get_by_meter(message.text.strip())
    if customer is None:
        await message.answer("No customer has that meter number. Try again or /cancel.")
        return

    last_bill = await services.bills.last_for_customer(customer.id)
    previous = last_bill.current_reading if last_bill else Decimal("0")
    await state.update_data(customer_id=str(customer.id), previous_reading=str(previous))
    await state.set_state(BillEntry.enter_reading)
    await message.answer(
        f"<b>{customer.full_name}</b> ({customer.meter_number})\n"
        f"Previous reading: <b>{previous:f}</b>\n\nEnter the current reading:"
    )


@router.message(BillEntry.enter_reading)
async def handle_current_reading(
    message: Message, state: FSMContext, services: Services
) -> None:
    reading = parse_decimal(message.text)
    if reading is None:
        await message.answer("Invalid format. Please enter a number.")
        return

    data = await state.get_data()
    customer = await services.customers.get(data["customer_id"])
    try:
        preview = await services.calculator.compute_gross_amount(
            data["previous_reading"], reading, customer.birthdate if customer else None
        )
    except BillingError as e:
        await message.answer(describe_error(e))
        return

    await state.update_data(current_reading=str(reading))
    await state.set_state(BillEntry.confirm_entry)
    lines = [
        f"Consumption: <b>{preview.consumption}</b> m³",
        f"Charge: ₱{preview.base_amount:.2f}",
    ]
    if preview.is_senior:
        lines.append(f"Senior discount: −₱{preview.senior_discount:.2f}")
    lines.append(f"Amount due: <b>₱{preview.gross_amount:.2f}</b>")
    lines.append("\nCreate this bill?")
    await message.answer(
        "\n".join(lines), reply_markup=get_confirm_keyboard("bill").as_markup()
    )


@router.callback_query(BillEntry.confirm_entry, ConfirmCallback.filter(F.action == "bill"))
async def handle_bill_confirmation(
    query: CallbackQuery,
    callback_data: ConfirmCallback,
    state: FSMContext,
    services: Services,
    actor: Actor,
) -> None:
    if not isinstance(query.message, Message):
        return
    await query.answer()

    data = await state.get_data()
    await state.clear()
    if not callback_data.confirmed:
        await query.message.edit_text("Bill entry cancelled.")
        return

    try:
        result = await services.billing.create_bill(
            data["customer_id"],
            data["current_reading"],
            actor,
            previous_reading=data["previous_reading"],
        )
    except BillingError as e:
        await query.message.edit_text(describe_error(e))
        return

    bill = result.bill
    await query.message.edit_text(
        f"✅ {result.message}\n\n"
        f"Bill <b>#{bill.number}</b> · {bill.status.value}\n"
        f"Gross: ₱{bill.gross_amount:.2f}\n"
        f"Credit applied: ₱{bill.credit_applied:.2f}\n"
        f"Net due: <b>₱{bill.net_due:.2f}</b> by {bill.due_date:%b %d, %Y}"
    )
