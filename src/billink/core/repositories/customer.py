"""Repository for Customer model."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from tortoise import timezone

from billink.core.models import Customer
from billink.core.repositories.base import BaseRepository


class CustomerRepository(BaseRepository[Customer]):
    """Customer-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(Customer)

    async def get_by_meter(self, meter_number: str) -> Customer | None:
        return await self.model.get_or_none(meter_number=meter_number)

    async def get_by_phone(self, phone_number: str) -> Customer | None:
        return await self.model.filter(phone_number=phone_number).first()

    async def compare_and_set_balance(
        self, customer_id: UUID, expected_version: int, new_balance: Decimal
    ) -> bool:
        """
        Writes ``new_balance`` only if nobody else has written since
        ``expected_version`` was read.
        """
        updated = await self.model.filter(
            id=customer_id, balance_version=expected_version
        ).update(
            credit_balance=new_balance,
            balance_version=expected_version + 1,
            updated_at=timezone.now(),
        )
        return updated == 1

    async def with_credit(
        self, min_balance: Decimal = Decimal("0"), max_balance: Decimal | None = None
    ) -> list[Customer]:
        """Customers whose credit balance falls in the given range."""
        query = self.model.filter(credit_balance__gte=min_balance)
        if max_balance is not None:
            query = query.filter(credit_balance__lte=max_balance)
        return await query.order_by("-credit_balance")
