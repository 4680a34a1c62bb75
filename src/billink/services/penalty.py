"""Late-payment penalty sweep."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from zoneinfo import ZoneInfo

from billink.config import Settings, settings
from billink.core import penalties
from billink.core.actors import SYSTEM_ACTOR
from billink.core.errors import NotFoundError
from billink.core.lifecycle import PENALTY_STATUSES
from billink.core.models import Bill, BillStatus
from billink.core.penalties import PenaltyResult
from billink.core.repositories.bill import BillRepository
from billink.services.audit import AuditService
from billink.services.settings import SettingsService

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Counters for one run of the penalty sweep."""

    processed: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0  # Settled by someone else between read and write
    failed: int = 0


@dataclass(frozen=True)
class PenaltySummary:
    """Penalty position of a single bill."""

    bill: Bill
    base_amount: Decimal
    current_penalty: Decimal
    calculated: PenaltyResult

    @property
    def total_due(self) -> Decimal:
        return self.base_amount + self.calculated.penalty_amount

    @property
    def needs_update(self) -> bool:
        return self.calculated.penalty_amount != self.current_penalty


class PenaltyService:
    """Computes penalties for overdue bills and stores them."""

    def __init__(
        self,
        bill_repo: BillRepository,
        settings_service: SettingsService,
        audit: AuditService,
        config: Settings = settings,
    ):
        self._bill_repo = bill_repo
        self._settings_service = settings_service
        self._audit = audit
        self._config = config

    def today(self) -> date:
        return datetime.now(ZoneInfo(self._config.TIMEZONE)).date()

    async def process_overdue_bills(self, as_of: date | None = None) -> SweepResult:
        """
        Recomputes the penalty of every unpaid or overdue bill past its due date.

        Each bill is written with a single conditional update that only applies
        while the bill is still unpaid or overdue, so a payment landing mid-sweep
        is never overwritten. Bills whose penalty and status are already current
        are not written at all.
        """
        as_of = as_of or self.today()
        penalty_settings = await self._settings_service.penalty_settings()
        bills = await self._bill_repo.list_overdue(as_of, PENALTY_STATUSES)
        result = SweepResult()
        logger.info("Penalty sweep as of %s: %d candidate bills", as_of, len(bills))

        for bill in bills:
            result.processed += 1
            try:
                calculated = penalties.calculate_penalty(
                    bill.net_due, bill.due_date, as_of, penalty_settings
                )
                if (
                    calculated.penalty_amount == bill.penalty
                    and bill.status is BillStatus.OVERDUE
                ):
                    result.unchanged += 1
                    continue

                written = await self._bill_repo.update_penalty_if_status(
                    bill.id, PENALTY_STATUSES, calculated.penalty_amount, BillStatus.OVERDUE
                )
                if not written:
                    result.skipped += 1
                    logger.info("Bill %s changed during the sweep; skipped.", bill.number)
                    continue
            except Exception:
                result.failed += 1
                logger.error("Failed to apply penalty to bill %s", bill.id, exc_info=True)
                continue

            result.updated += 1
            logger.info(
                "Applied penalty %s to bill %s (%d days overdue)",
                calculated.penalty_amount,
                bill.number,
                calculated.days_overdue,
            )
            await self._audit.record(
                SYSTEM_ACTOR,
                "penalty_applied",
                "bill",
                bill.id,
                details={
                    "previous_penalty": bill.penalty,
                    "penalty": calculated.penalty_amount,
                    "days_overdue": calculated.days_overdue,
                    "penalty_rate": calculated.penalty_rate,
                    "previous_status": bill.status,
                },
            )

        logger.info(
            "Penalty sweep finished: %d processed, %d updated, %d unchanged, "
            "%d skipped, %d failed",
            result.processed,
            result.updated,
            result.unchanged,
            result.skipped,
            result.failed,
        )
        return result

    async def calculate_penalty(self, bill: Bill, as_of: date | None = None) -> PenaltyResult:
        if bill.status is BillStatus.PAID:
            return penalties.NO_PENALTY
        penalty_settings = await self._settings_service.penalty_settings()
        return penalties.calculate_penalty(
            bill.net_due, bill.due_date, as_of or self.today(), penalty_settings
        )

    async def penalty_summary(self, bill_id: UUID, as_of: date | None = None) -> PenaltySummary:
        bill = await self._bill_repo.get(bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found.", bill_id=str(bill_id))
        calculated = await self.calculate_penalty(bill, as_of)
        return PenaltySummary(
            bill=bill,
            base_amount=bill.net_due,
            current_penalty=bill.penalty,
            calculated=calculated,
        )
