"""Error taxonomy for billing operations.

Every error carries a stable ``code`` so callers can tell "your input was
wrong" apart from "this is already settled" and "try again later" without
parsing messages.
"""

from __future__ import annotations


class BillingError(Exception):
    """Base class for all billing failures."""

    code = "billing_error"
    default_message = "Billing operation failed."

    def __init__(self, message: str | None = None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


# --- Validation ---


class ValidationError(BillingError):
    code = "validation_error"
    default_message = "The request is invalid."


class InvalidInputError(ValidationError):
    code = "invalid_input"
    default_message = "Input must be a finite, non-negative number."


class InvalidReadingError(ValidationError):
    code = "invalid_reading"
    default_message = (
        "Current reading must be greater than or equal to previous reading."
    )


class InvalidAmountError(ValidationError):
    code = "invalid_amount"
    default_message = "Amount must be a positive number."


class InvalidRateTierError(ValidationError):
    code = "invalid_rate_tier"
    default_message = "Rate tiers are invalid."


# --- State conflicts ---


class StateConflictError(BillingError):
    code = "state_conflict"
    default_message = "The operation conflicts with the current state."


class AlreadyPaidError(StateConflictError):
    code = "already_paid"
    default_message = "Bill is already paid."


class InsufficientBalanceError(StateConflictError):
    code = "insufficient_balance"
    default_message = "Insufficient credit balance."


class DuplicateReceiptError(StateConflictError):
    code = "duplicate_receipt"
    default_message = "A payment with this receipt number already exists."


class DuplicateBillingPeriodError(StateConflictError):
    code = "duplicate_billing_period"
    default_message = "Customer already has a bill for this month."


class InvalidTransitionError(StateConflictError):
    code = "invalid_transition"
    default_message = "Bill status change is not allowed."


class CreditLimitExceededError(StateConflictError):
    code = "credit_limit_exceeded"
    default_message = "Credit balance would exceed the customer's credit limit."


class ConcurrentUpdateError(StateConflictError):
    code = "concurrent_update"
    default_message = "The record was modified concurrently. Try again."


class SubmissionAlreadyReviewedError(StateConflictError):
    code = "submission_reviewed"
    default_message = "Payment submission was already reviewed."


class NotFoundError(BillingError):
    code = "not_found"
    default_message = "Record not found."


# --- Dependencies and consistency ---


class DependencyError(BillingError):
    code = "dependency_unavailable"
    default_message = "A required service is unavailable. Try again later."


class LedgerConsistencyError(BillingError):
    code = "ledger_inconsistent"
    default_message = "Credit balance does not match the transaction ledger."


# --- OTP ---


class OtpError(BillingError):
    code = "otp_error"
    default_message = "Phone verification failed."


class OtpNotFoundError(OtpError):
    code = "otp_not_found"
    default_message = "No verification code was requested for this number."


class OtpExpiredError(OtpError):
    code = "otp_expired"
    default_message = "Verification code has expired."


class OtpMismatchError(OtpError):
    code = "otp_mismatch"
    default_message = "Verification code is incorrect."


class OtpDeliveryError(OtpError):
    code = "otp_delivery_failed"
    default_message = "Could not deliver the verification code."
