from __future__ import annotations

from decimal import Decimal, InvalidOperation

from billink.core.errors import BillingError

ERROR_MESSAGES: dict[str, str] = {
    "invalid_input": "Please enter a valid non-negative number.",
    "invalid_reading": "The current reading cannot be lower than the previous reading.",
    "invalid_amount": "The amount must be greater than zero.",
    "already_paid": "This bill is already paid.",
    "insufficient_balance": "The customer does not have enough credit.",
    "duplicate_receipt": "That receipt number has already been used.",
    "duplicate_billing_period": "This customer already has a bill for this month.",
    "invalid_transition": "This bill cannot take that action in its current state.",
    "credit_limit_exceeded": "This would exceed the customer's credit limit.",
    "concurrent_update": "The record changed while you were working. Please try again.",
    "submission_reviewed": "This submission has already been reviewed.",
    "not_found": "Record not found.",
    "ledger_inconsistent": (
        "Credit balance does not match the ledger. "
        "The operation was stopped; please contact an administrator."
    ),
}


def describe_error(error: BillingError) -> str:
    """Operator-facing text for a billing error, keyed by its stable code."""
    return f"⚠️ {ERROR_MESSAGES.get(error.code, error.message)}"


def parse_decimal(text: str | None) -> Decimal | None:
    if not text:
        return None
    try:
        value = Decimal(text.strip().replace(",", ""))
    except InvalidOperation:
        return None
    return value if value.is_finite() else None
