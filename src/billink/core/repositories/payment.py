"""Repositories for payment records and proof-of-payment submissions."""

from __future__ import annotations

from billink.core.models import PaymentRecord, PaymentSubmission, SubmissionStatus
from billink.core.repositories.base import BaseRepository


class PaymentRecordRepository(BaseRepository[PaymentRecord]):
    """PaymentRecord-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(PaymentRecord)

    async def receipt_exists(self, receipt_number: str) -> bool:
        return await self.model.filter(receipt_number=receipt_number).exists()


class PaymentSubmissionRepository(BaseRepository[PaymentSubmission]):
    """PaymentSubmission-specific repository operations."""

    def __init__(self) -> None:
        super().__init__(PaymentSubmission)

    async def pending(self) -> list[PaymentSubmission]:
        return (
            await self.model.filter(status=SubmissionStatus.PENDING)
            .order_by("created_at")
            .prefetch_related("customer", "bill")
        )
