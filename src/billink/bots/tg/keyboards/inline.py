"""Inline keyboard builders."""

from aiogram.filters.callback_data import CallbackData
from aiogram.types import InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from billink.core.models import Bill, PaymentSubmission


class BillActionCallback(CallbackData, prefix="bill"):
    """
    Callback data for bill actions.
    - pay: record a cashier payment
    - credit: settle from credit balance
    """

    action: str
    bill_id: str


class ConfirmCallback(CallbackData, prefix="cnf"):
    """Callback data for yes/no confirmations."""

    action: str  # e.g., 'bill'
    confirmed: bool


class ReviewCallback(CallbackData, prefix="rev"):
    """Callback data for proof-of-payment review."""

    action: str  # 'approve' or 'reject'
    submission_id: str


class CreditActionCallback(CallbackData, prefix="crd"):
    """Callback data for credit actions on a customer."""

    action: str  # 'topup'
    customer_id: str


def get_bills_keyboard(bills: list[Bill], action: str = "pay") -> InlineKeyboardBuilder:
    """One button per bill showing its number, status and total due."""
    builder = InlineKeyboardBuilder()
    for bill in bills:
        builder.row(
            InlineKeyboardButton(
                text=f"#{bill.number} · {bill.status.value} · ₱{bill.total_due:.2f}",
                callback_data=BillActionCallback(action=action, bill_id=str(bill.id)).pack(),
            )
        )
    return builder


def get_confirm_keyboard(action: str) -> InlineKeyboardBuilder:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(
            text="✅ Confirm",
            callback_data=ConfirmCallback(action=action, confirmed=True).pack(),
        ),
        InlineKeyboardButton(
            text="❌ Cancel",
            callback_data=ConfirmCallback(action=action, confirmed=False).pack(),
        ),
    )
    return builder


def get_review_keyboard(submission: PaymentSubmission) -> InlineKeyboardBuilder:
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(
            text="✅ Approve",
            callback_data=ReviewCallback(
                action="approve", submission_id=str(submission.id)
            ).pack(),
        ),
        InlineKeyboardButton(
            text="❌ Reject",
            callback_data=ReviewCallback(
                action="reject", submission_id=str(submission.id)
            ).pack(),
        ),
    )
    return builder
