"""Repository for CreditTransaction model."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from tortoise.functions import Sum

from billink.core.calculations import round_money
from billink.core.models import CreditTransaction, TransactionType
from billink.core.repositories.base import BaseRepository


class CreditTransactionRepository(BaseRepository[CreditTransaction]):
    """Credit ledger repository operations."""

    def __init__(self) -> None:
        super().__init__(CreditTransaction)

    async def history(self, customer_id: UUID, limit: int = 20) -> list[CreditTransaction]:
        """Most recent transactions first."""
        return (
            await self.model.filter(customer_id=customer_id)
            .order_by("-created_at")
            .limit(limit)
        )

    async def ledger_total(self, customer_id: UUID) -> Decimal:
        """Balance implied by every transaction for the customer, summed per type."""
        rows = (
            await self.model.filter(customer_id=customer_id)
            .annotate(total=Sum("amount"))
            .group_by("transaction_type")
            .order_by("transaction_type")
            .values("transaction_type", "total")
        )
        total = Decimal("0")
        for row in rows:
            # SQLite sums decimals as floats.
            amount = round_money(Decimal(str(row["total"] or 0)))
            if TransactionType(row["transaction_type"]) is TransactionType.DEBIT:
                total -= amount
            else:
                total += amount
        return total
