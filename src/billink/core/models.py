"""Domain models for the Billink application."""

from __future__ import annotations

import enum
import uuid
from decimal import Decimal

from tortoise import fields, models


class CustomerStatus(str, enum.Enum):
    """Registration state of a customer account."""

    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class BillStatus(str, enum.Enum):
    """Lifecycle states of a bill."""

    UNPAID = "Unpaid"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    OVERDUE = "Overdue"
    REJECTED = "Rejected"


class TransactionType(str, enum.Enum):
    """Kinds of credit ledger entries."""

    CREDIT = "credit"
    DEBIT = "debit"
    ADJUSTMENT = "adjustment"


class PaymentMethod(str, enum.Enum):
    """How a payment reached the utility."""

    CASH = "Cash"
    CHECK = "Check"
    CREDIT = "Credit"
    ONLINE = "Online"


class PaymentStatus(str, enum.Enum):
    """Status of a payment record."""

    PAID = "Paid"
    PENDING = "Pending"
    REJECTED = "Rejected"


class SubmissionStatus(str, enum.Enum):
    """Review state of an online proof-of-payment."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


MONEY = {"max_digits": 12, "decimal_places": 2}


class BaseModel(models.Model):
    """Abstract base model with common fields."""

    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        abstract = True


class Customer(BaseModel):
    """A water service account holder."""

    first_name = fields.CharField(max_length=100)
    last_name = fields.CharField(max_length=100)
    meter_number = fields.CharField(max_length=50, unique=True)
    phone_number = fields.CharField(max_length=20, null=True)
    phone_verified = fields.BooleanField(default=False)
    birthdate = fields.DateField(null=True)
    status = fields.CharEnumField(CustomerStatus, default=CustomerStatus.PENDING)
    credit_balance = fields.DecimalField(**MONEY, default=Decimal("0"))
    credit_limit = fields.DecimalField(**MONEY, null=True)
    balance_version = fields.IntField(
        default=0, description="Bumped on every credit balance write"
    )

    bills: fields.ReverseRelation[Bill]
    credit_transactions: fields.ReverseRelation[CreditTransaction]
    payments: fields.ReverseRelation[PaymentRecord]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __str__(self) -> str:
        return f"{self.full_name} ({self.meter_number})"


class Bill(BaseModel):
    """A water bill issued from a pair of meter readings."""

    customer: fields.ForeignKeyRelation[Customer] = fields.ForeignKeyField(
        "models.Customer", related_name="bills"
    )
    meter_number = fields.CharField(max_length=50)
    previous_reading = fields.DecimalField(max_digits=12, decimal_places=3)
    current_reading = fields.DecimalField(max_digits=12, decimal_places=3)
    consumption = fields.DecimalField(max_digits=12, decimal_places=3)
    gross_amount = fields.DecimalField(
        **MONEY, description="Amount after senior discount, before credit"
    )
    senior_discount = fields.DecimalField(**MONEY, default=Decimal("0"))
    credit_applied = fields.DecimalField(**MONEY, default=Decimal("0"))
    amount_paid = fields.DecimalField(**MONEY, default=Decimal("0"))
    penalty = fields.DecimalField(**MONEY, default=Decimal("0"))
    net_due = fields.DecimalField(
        **MONEY, description="Principal still owed, excluding penalty"
    )
    billing_date = fields.DateField(
        description="Day the reading was billed; its month is the billing period"
    )
    due_date = fields.DateField()
    status = fields.CharEnumField(BillStatus, max_length=20, default=BillStatus.UNPAID)
    is_archived = fields.BooleanField(default=False)
    created_by = fields.CharField(max_length=64, null=True)

    payments: fields.ReverseRelation[PaymentRecord]
    submissions: fields.ReverseRelation[PaymentSubmission]

    @property
    def number(self) -> str:
        """Short, human-friendly bill number."""
        return self.id.hex[:8].upper()

    @property
    def total_due(self) -> Decimal:
        return self.net_due + self.penalty

    def __str__(self) -> str:
        return f"Bill {self.id} ({self.status.value}): {self.total_due}"


class RateTier(BaseModel):
    """A consumption range priced either per unit or at a fixed amount."""

    consumption_min = fields.DecimalField(max_digits=12, decimal_places=3)
    consumption_max = fields.DecimalField(max_digits=12, decimal_places=3, null=True)
    rate_per_unit = fields.DecimalField(max_digits=12, decimal_places=4, null=True)
    fixed_amount = fields.DecimalField(**MONEY, null=True)
    is_active = fields.BooleanField(default=True)
    created_by = fields.CharField(max_length=64, null=True)

    def __str__(self) -> str:
        upper = self.consumption_max if self.consumption_max is not None else "∞"
        return f"Tier {self.consumption_min}-{upper}"


class CreditTransaction(BaseModel):
    """Append-only entry in a customer's credit ledger."""

    customer: fields.ForeignKeyRelation[Customer] = fields.ForeignKeyField(
        "models.Customer", related_name="credit_transactions"
    )
    transaction_type = fields.CharEnumField(TransactionType)
    amount = fields.DecimalField(
        **MONEY, description="Signed delta for adjustments, positive otherwise"
    )
    previous_balance = fields.DecimalField(**MONEY)
    new_balance = fields.DecimalField(**MONEY)
    description = fields.CharField(max_length=255, null=True)
    reference_type = fields.CharField(max_length=50, null=True)
    reference_id = fields.CharField(max_length=64, null=True)
    created_by = fields.CharField(max_length=64, null=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self) -> str:
        return (
            f"{self.transaction_type.value} {self.amount}: "
            f"{self.previous_balance} -> {self.new_balance}"
        )


class PaymentRecord(BaseModel):
    """A settled (or pending) payment against a bill."""

    customer: fields.ForeignKeyRelation[Customer] = fields.ForeignKeyField(
        "models.Customer", related_name="payments"
    )
    bill: fields.ForeignKeyRelation[Bill] = fields.ForeignKeyField(
        "models.Bill", related_name="payments"
    )
    amount_paid = fields.DecimalField(**MONEY)
    penalty_paid = fields.DecimalField(**MONEY, default=Decimal("0"))
    change_given = fields.DecimalField(**MONEY, default=Decimal("0"))
    method = fields.CharEnumField(PaymentMethod, default=PaymentMethod.CASH)
    receipt_number = fields.CharField(max_length=64, unique=True)
    status = fields.CharEnumField(PaymentStatus, default=PaymentStatus.PAID)
    payment_date = fields.DatetimeField(auto_now_add=True)
    created_by = fields.CharField(max_length=64, null=True)

    def __str__(self) -> str:
        return f"Payment {self.receipt_number}: {self.amount_paid}"


class PaymentSubmission(BaseModel):
    """Customer-submitted proof of an external payment awaiting review."""

    customer: fields.ForeignKeyRelation[Customer] = fields.ForeignKeyField(
        "models.Customer", related_name="submissions"
    )
    bill: fields.ForeignKeyRelation[Bill] = fields.ForeignKeyField(
        "models.Bill", related_name="submissions"
    )
    amount = fields.DecimalField(**MONEY)
    payment_method = fields.CharField(max_length=50)
    reference_number = fields.CharField(max_length=64, null=True)
    proof_path = fields.CharField(max_length=255)
    notes = fields.TextField(null=True)
    status = fields.CharEnumField(SubmissionStatus, default=SubmissionStatus.PENDING)
    reviewed_by = fields.CharField(max_length=64, null=True)
    reviewed_at = fields.DatetimeField(null=True)


class SystemSetting(BaseModel):
    """Key/value business configuration editable by administrators."""

    setting_key = fields.CharField(max_length=100, unique=True)
    setting_value = fields.CharField(max_length=255)
    updated_by = fields.CharField(max_length=64, null=True)

    def __str__(self) -> str:
        return f"{self.setting_key}={self.setting_value}"


class AuditLog(BaseModel):
    """Who did what to which entity."""

    user_id = fields.CharField(max_length=64, null=True)
    role = fields.CharField(max_length=20, null=True)
    action = fields.CharField(max_length=100)
    entity = fields.CharField(max_length=100, null=True)
    entity_id = fields.CharField(max_length=64, null=True)
    details = fields.JSONField(null=True)
    ip_address = fields.CharField(max_length=64, null=True)

    class Meta:
        ordering = ["-created_at"]


class OtpChallenge(BaseModel):
    """A one-time code awaiting verification for a phone number."""

    phone_number = fields.CharField(max_length=20, unique=True)
    code_hash = fields.CharField(max_length=64)
    purpose = fields.CharField(max_length=30)
    expires_at = fields.DatetimeField()
    attempts = fields.IntField(default=0)
    customer: fields.ForeignKeyNullableRelation[Customer] = fields.ForeignKeyField(
        "models.Customer", related_name="otp_challenges", null=True
    )
