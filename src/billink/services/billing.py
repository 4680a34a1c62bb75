"""Bill calculation and creation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from tortoise.transactions import in_transaction

from billink.config import Settings, settings
from billink.core import calculations
from billink.core.actors import Actor
from billink.core.errors import DuplicateBillingPeriodError, NotFoundError
from billink.core.models import (
    Bill,
    BillStatus,
    CreditTransaction,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
    TransactionType,
)
from billink.core.repositories.bill import BillRepository
from billink.core.repositories.customer import CustomerRepository
from billink.core.repositories.payment import PaymentRecordRepository
from billink.services.audit import AuditService
from billink.services.credit import CreditLedger, credit_receipt_number
from billink.services.notifications import (
    Notifier,
    bill_issued_text,
    bill_paid_with_credit_text,
)
from billink.services.settings import BillingSettings, SettingsService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GrossAmount:
    """Charge for one pair of readings before any credit is applied."""

    consumption: Decimal
    base_amount: Decimal  # Rate schedule charge
    senior_discount: Decimal
    gross_amount: Decimal
    is_senior: bool


class BillingCalculator:
    """Turns meter readings into a gross amount due."""

    def __init__(self, settings_service: SettingsService):
        self._settings_service = settings_service

    @staticmethod
    def calculate(
        previous_reading: object,
        current_reading: object,
        birthdate: date | None,
        billing_date: date,
        config: BillingSettings,
    ) -> GrossAmount:
        consumption = calculations.calculate_consumption(current_reading, previous_reading)
        base_amount = config.rate_schedule.resolve(consumption)

        senior = calculations.is_senior(birthdate, billing_date, config.senior_citizen_age)
        if senior:
            gross, discount = calculations.apply_discount(
                base_amount, config.senior_discount_percent
            )
        else:
            gross, discount = base_amount, Decimal("0.00")

        return GrossAmount(
            consumption=consumption,
            base_amount=base_amount,
            senior_discount=discount,
            gross_amount=gross,
            is_senior=senior,
        )

    async def compute_gross_amount(
        self,
        previous_reading: object,
        current_reading: object,
        birthdate: date | None = None,
        billing_date: date | None = None,
    ) -> GrossAmount:
        """
        Calculates consumption and the discounted charge.

        Raises:
            InvalidInputError: if a reading is not a finite non-negative number.
            InvalidReadingError: if the current reading is below the previous one.
        """
        # Validate before touching configuration.
        calculations.calculate_consumption(current_reading, previous_reading)
        config = await self._settings_service.resolve()
        return self.calculate(
            previous_reading,
            current_reading,
            birthdate,
            billing_date or date.today(),
            config,
        )


@dataclass(frozen=True)
class BillCreationResult:
    """A newly created bill and whatever credit was applied to it."""

    bill: Bill
    gross: GrossAmount
    credit_transaction: CreditTransaction | None = None
    payment: PaymentRecord | None = None

    @property
    def credit_applied(self) -> Decimal:
        return self.bill.credit_applied

    @property
    def message(self) -> str:
        if self.bill.status is BillStatus.PAID and self.credit_applied > 0:
            return "Bill created and fully paid using credit balance."
        if self.bill.status is BillStatus.PARTIALLY_PAID:
            return (
                f"Bill created. ₱{self.credit_applied:.2f} credit applied, "
                f"₱{self.bill.net_due:.2f} remaining."
            )
        return "Bill created successfully."


class BillingService:
    """Creates bills from meter readings and settles them against credit."""

    def __init__(
        self,
        customer_repo: CustomerRepository,
        bill_repo: BillRepository,
        payment_repo: PaymentRecordRepository,
        calculator: BillingCalculator,
        ledger: CreditLedger,
        audit: AuditService,
        notifier: Notifier,
        config: Settings = settings,
    ):
        self._customer_repo = customer_repo
        self._bill_repo = bill_repo
        self._payment_repo = payment_repo
        self._calculator = calculator
        self._ledger = ledger
        self._audit = audit
        self._notifier = notifier
        self._config = config

    async def create_bill(
        self,
        customer_id: UUID,
        current_reading: object,
        actor: Actor,
        previous_reading: object | None = None,
        due_date: date | None = None,
        billing_date: date | None = None,
    ) -> BillCreationResult:
        """
        Creates a bill and applies any available credit.

        When ``previous_reading`` is omitted, the current reading of the
        customer's last bill is used (0 for the first bill). The bill row, the
        credit debit and the credit payment record are written in one
        transaction.

        Raises:
            NotFoundError: if the customer does not exist.
            InvalidInputError, InvalidReadingError: on bad readings.
            DuplicateBillingPeriodError: if an encoder bills the same customer
                twice in one calendar month.
        """
        billing_date = billing_date or date.today()
        customer = await self._customer_repo.get(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found.", customer_id=str(customer_id))

        if previous_reading is None:
            last_bill = await self._bill_repo.last_for_customer(customer.id)
            previous_reading = last_bill.current_reading if last_bill else Decimal("0")

        gross = await self._calculator.compute_gross_amount(
            previous_reading, current_reading, customer.birthdate, billing_date
        )

        due_date = due_date or billing_date + timedelta(days=self._config.BILL_DUE_DAYS)
        amount = gross.gross_amount
        credit_txn = None
        payment = None

        async with in_transaction():
            customer = await self._ledger.lock_customer(customer.id)
            # Checked under the customer lock so two encoders cannot both pass.
            if actor.is_encoder and await self._bill_repo.has_active_bill_in_month(
                customer.id, billing_date
            ):
                raise DuplicateBillingPeriodError(
                    customer_id=str(customer.id), month=f"{billing_date:%Y-%m}"
                )

            credit = min(customer.credit_balance, amount) if amount > 0 else Decimal("0.00")
            if credit >= amount:
                status = BillStatus.PAID
            elif credit > 0:
                status = BillStatus.PARTIALLY_PAID
            else:
                status = BillStatus.UNPAID

            bill = await self._bill_repo.create(
                customer_id=customer.id,
                meter_number=customer.meter_number,
                previous_reading=calculations.to_decimal(previous_reading, "previous_reading"),
                current_reading=calculations.to_decimal(current_reading, "current_reading"),
                consumption=gross.consumption,
                gross_amount=amount,
                senior_discount=gross.senior_discount,
                credit_applied=credit,
                amount_paid=credit,
                net_due=amount - credit,
                billing_date=billing_date,
                due_date=due_date,
                status=status,
                created_by=actor.id,
            )

            if credit > 0:
                credit_txn = await self._ledger.post(
                    customer,
                    TransactionType.DEBIT,
                    credit,
                    actor,
                    description=f"Auto-applied to bill #{bill.number}",
                    reference_type="bill_payment",
                    reference_id=bill.id,
                )
                payment = await self._payment_repo.create(
                    customer_id=customer.id,
                    bill_id=bill.id,
                    amount_paid=credit,
                    method=PaymentMethod.CREDIT,
                    receipt_number=credit_receipt_number(bill, credit_txn),
                    status=PaymentStatus.PAID,
                    created_by=actor.id,
                )

        logger.info(
            "Created bill %s for customer %s: gross %s, credit %s, status %s",
            bill.number,
            customer.id,
            amount,
            credit,
            status.value,
        )
        await self._audit.record(
            actor,
            "bill_created",
            "bill",
            bill.id,
            details={
                "customer_id": customer.id,
                "consumption": gross.consumption,
                "gross_amount": amount,
                "senior_discount": gross.senior_discount,
                "credit_applied": credit,
                "net_due": bill.net_due,
                "status": status,
            },
        )

        if status is BillStatus.PAID and credit > 0:
            text = bill_paid_with_credit_text(bill.number, credit)
        else:
            text = bill_issued_text(bill.number, bill.net_due, due_date)
        await self._notifier.notify(customer.phone_number, text)

        return BillCreationResult(bill, gross, credit_txn, payment)
