"""Repository for Bill model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from dateutil.relativedelta import relativedelta
from tortoise import timezone

from billink.core.models import Bill, BillStatus
from billink.core.repositories.base import BaseRepository


@dataclass(frozen=True)
class BillFilter:
    """Optional filters for bill listings."""

    customer_id: UUID | None = None
    statuses: tuple[BillStatus, ...] = ()
    due_from: date | None = None
    due_to: date | None = None
    include_archived: bool = False

    def to_filters(self) -> dict:
        filters: dict = {}
        if self.customer_id is not None:
            filters["customer_id"] = self.customer_id
        if self.statuses:
            filters["status__in"] = list(self.statuses)
        if self.due_from is not None:
            filters["due_date__gte"] = self.due_from
        if self.due_to is not None:
            filters["due_date__lte"] = self.due_to
        if not self.include_archived:
            filters["is_archived"] = False
        return filters


class BillRepository(BaseRepository[Bill]):
    """Bill-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(Bill)

    async def find(self, bill_filter: BillFilter, limit: int | None = None) -> list[Bill]:
        query = self.model.filter(**bill_filter.to_filters()).order_by("due_date")
        if limit is not None:
            query = query.limit(limit)
        return await query.prefetch_related("customer")

    async def list_overdue(
        self, as_of: date, statuses: frozenset[BillStatus] | set[BillStatus]
    ) -> list[Bill]:
        """Unarchived bills in one of ``statuses`` whose due date is before ``as_of``."""
        return await self.model.filter(
            status__in=list(statuses), due_date__lt=as_of, is_archived=False
        ).order_by("due_date")

    async def has_active_bill_in_month(self, customer_id: UUID, on: date) -> bool:
        """True if a non-archived bill covers the same billing month as ``on``."""
        month_start = on.replace(day=1)
        return await self.model.filter(
            customer_id=customer_id,
            is_archived=False,
            billing_date__gte=month_start,
            billing_date__lt=month_start + relativedelta(months=1),
        ).exists()

    async def last_for_customer(self, customer_id: UUID) -> Bill | None:
        return await self.model.filter(customer_id=customer_id).order_by("-created_at").first()

    async def update_penalty_if_status(
        self,
        bill_id: UUID,
        allowed: frozenset[BillStatus] | set[BillStatus],
        penalty: Decimal,
        status: BillStatus,
    ) -> bool:
        """
        Sets penalty and status only while the bill is still in ``allowed``.

        Returns False when a concurrent writer moved the bill out of those
        states between read and write.
        """
        updated = await self.model.filter(id=bill_id, status__in=list(allowed)).update(
            penalty=penalty, status=status, updated_at=timezone.now()
        )
        return updated == 1
