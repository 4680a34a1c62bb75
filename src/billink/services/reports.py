"""Read-only reports over bills and credit."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from uuid import UUID

from billink.core.lifecycle import PAYABLE_STATUSES, PENALTY_STATUSES
from billink.core.models import Bill, CreditTransaction, Customer
from billink.core.penalties import PenaltyResult
from billink.core.repositories.bill import BillFilter, BillRepository
from billink.core.repositories.credit import CreditTransactionRepository
from billink.core.repositories.customer import CustomerRepository
from billink.services.penalty import PenaltyService


@dataclass(frozen=True)
class OverdueBill:
    bill: Bill
    penalty: PenaltyResult

    @property
    def should_update_penalty(self) -> bool:
        return self.penalty.penalty_amount != self.bill.penalty


@dataclass(frozen=True)
class OutstandingReport:
    bills: list[Bill]

    @property
    def total_principal(self) -> Decimal:
        return sum((b.net_due for b in self.bills), Decimal("0"))

    @property
    def total_penalties(self) -> Decimal:
        return sum((b.penalty for b in self.bills), Decimal("0"))

    @property
    def total_due(self) -> Decimal:
        return self.total_principal + self.total_penalties


class ReportService:
    """Builds the operator-facing listings."""

    def __init__(
        self,
        bill_repo: BillRepository,
        customer_repo: CustomerRepository,
        transaction_repo: CreditTransactionRepository,
        penalty_service: PenaltyService,
    ):
        self._bill_repo = bill_repo
        self._customer_repo = customer_repo
        self._transaction_repo = transaction_repo
        self._penalty_service = penalty_service

    async def outstanding_balances(
        self, bill_filter: BillFilter | None = None, limit: int | None = None
    ) -> OutstandingReport:
        """Bills that still owe money. Defaults to every payable status."""
        bill_filter = bill_filter or BillFilter()
        if not bill_filter.statuses:
            bill_filter = replace(bill_filter, statuses=tuple(PAYABLE_STATUSES))
        return OutstandingReport(await self._bill_repo.find(bill_filter, limit))

    async def overdue_bills(self, as_of: date | None = None) -> list[OverdueBill]:
        """Unpaid and overdue bills past due, each with its penalty as of ``as_of``."""
        as_of = as_of or self._penalty_service.today()
        bills = await self._bill_repo.list_overdue(as_of, PENALTY_STATUSES)
        return [
            OverdueBill(bill, await self._penalty_service.calculate_penalty(bill, as_of))
            for bill in bills
        ]

    async def customers_with_credit(
        self, min_balance: Decimal = Decimal("0.01"), max_balance: Decimal | None = None
    ) -> list[Customer]:
        return await self._customer_repo.with_credit(min_balance, max_balance)

    async def credit_history(
        self, customer_id: UUID, limit: int = 20
    ) -> list[CreditTransaction]:
        return await self._transaction_repo.history(customer_id, limit)
