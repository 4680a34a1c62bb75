"""FSM states for the bot."""

from aiogram.fsm.state import State, StatesGroup


class BillEntry(StatesGroup):
    """States for creating a bill from a meter reading."""

    enter_meter = State()
    enter_reading = State()
    confirm_entry = State()


class CashierPayment(StatesGroup):
    """States for recording a counter payment."""

    enter_meter = State()
    select_bill = State()
    enter_amount = State()
    enter_receipt = State()


class ProofReview(StatesGroup):
    """States for reviewing online proof-of-payment."""

    enter_reject_reason = State()


class CreditManagement(StatesGroup):
    """States for credit balance look-up and top-up."""

    enter_meter = State()
    enter_amount = State()
