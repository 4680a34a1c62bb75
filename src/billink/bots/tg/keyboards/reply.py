"""Reply keyboard builders."""

from aiogram.types import KeyboardButton, ReplyKeyboardMarkup
from aiogram.utils.keyboard import ReplyKeyboardBuilder

from billink.core.actors import Role

NEW_BILL = "📝 New bill"
RECORD_PAYMENT = "💵 Record payment"
PENDING_PROOFS = "🧾 Pending proofs"
CREDIT = "💳 Credit balance"
ADMIN_PANEL = "⚙️ Admin panel"
RUN_SWEEP = "⏱ Run penalty sweep"
OVERDUE_REPORT = "📊 Overdue bills"
OUTSTANDING_REPORT = "📋 Outstanding balances"
SHOW_SETTINGS = "🔧 Billing settings"
BACK_TO_MAIN = "⬅️ Back to main menu"


def get_main_menu(role: Role) -> ReplyKeyboardMarkup:
    """Builds the main menu reply keyboard for the operator's role."""
    builder = ReplyKeyboardBuilder()
    if role in (Role.ADMIN, Role.ENCODER):
        builder.row(KeyboardButton(text=NEW_BILL))
    if role in (Role.ADMIN, Role.CASHIER):
        builder.row(
            KeyboardButton(text=RECORD_PAYMENT),
            KeyboardButton(text=PENDING_PROOFS),
        )
        builder.row(KeyboardButton(text=CREDIT))
    if role is Role.ADMIN:
        builder.row(KeyboardButton(text=ADMIN_PANEL))
    return builder.as_markup(resize_keyboard=True)


def get_admin_panel() -> ReplyKeyboardMarkup:
    """Builds the admin panel reply keyboard."""
    builder = ReplyKeyboardBuilder()
    builder.row(
        KeyboardButton(text=OVERDUE_REPORT),
        KeyboardButton(text=OUTSTANDING_REPORT),
    )
    builder.row(
        KeyboardButton(text=RUN_SWEEP),
        KeyboardButton(text=SHOW_SETTINGS),
    )
    builder.row(KeyboardButton(text=BACK_TO_MAIN))
    return builder.as_markup(resize_keyboard=True)
