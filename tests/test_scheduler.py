"""Tests for the background job scheduler."""

import logging
from datetime import date, timedelta
from decimal import Decimal

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from billink.core.models import Bill, BillStatus
from billink.services.scheduler import SchedulerService


@pytest.fixture
def scheduler_service(services) -> SchedulerService:
    return SchedulerService(
        penalty_service=services.penalty,
        otp_service=services.otp,
        scheduler=AsyncIOScheduler(timezone="Asia/Manila"),
    )


@pytest.mark.asyncio
async def test_start_registers_jobs(scheduler_service):
    scheduler_service.start()
    try:
        job_ids = {job.id for job in scheduler_service._scheduler.get_jobs()}
        assert job_ids == {"penalty_sweep", "otp_purge"}
    finally:
        scheduler_service.shutdown()


@pytest.mark.asyncio
async def test_scheduled_sweep_updates_overdue_bills(
    scheduler_service, services, admin, make_customer, caplog
):
    customer = await make_customer()
    created = await services.billing.create_bill(
        customer.id,
        30,
        admin,
        previous_reading=10,
        due_date=date.today() - timedelta(days=5),
    )

    with caplog.at_level(logging.INFO):
        await scheduler_service._run_penalty_sweep()

    assert "Starting scheduled penalty sweep." in caplog.text
    assert "1 of 1 bills updated" in caplog.text
    bill = await Bill.get(id=created.bill.id)
    assert bill.status is BillStatus.OVERDUE
    assert bill.penalty == Decimal("54.70")


@pytest.mark.asyncio
async def test_scheduled_sweep_logs_failures(scheduler_service, monkeypatch, caplog):
    async def broken_sweep(as_of=None):
        raise ConnectionError("database is down")

    monkeypatch.setattr(scheduler_service._penalty_service, "process_overdue_bills", broken_sweep)

    with caplog.at_level(logging.ERROR):
        await scheduler_service._run_penalty_sweep()

    assert "Scheduled penalty sweep failed: database is down" in caplog.text
