"""Handlers for admin commands."""

from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from billink.bots.tg.handlers.utils import describe_error
from billink.bots.tg.keyboards.reply import (
    ADMIN_PANEL,
    OUTSTANDING_REPORT,
    OVERDUE_REPORT,
    RUN_SWEEP,
    SHOW_SETTINGS,
    get_admin_panel,
)
from billink.bots.tg.middlewares.access import RoleAccessMiddleware
from billink.core.actors import Actor, Role
from billink.core.errors import BillingError
from billink.services.container import Services
from billink.services.scheduler import SchedulerService
from billink.services.settings import EDITABLE_KEYS

router = Router(name=__name__)

router.message.middleware(RoleAccessMiddleware([Role.ADMIN]))

MAX_LISTED = 30


@router.message(F.text == ADMIN_PANEL)
async def handle_admin_panel(message: Message) -> None:
    """Shows the admin panel."""
    await message.answer("Admin panel:", reply_markup=get_admin_panel())


@router.message(F.text == RUN_SWEEP)
async def handle_run_sweep(message: Message, scheduler_service: SchedulerService) -> None:
    await message.answer("Running the penalty sweep...")
    result = await scheduler_service.run_penalty_sweep_now()
    await message.answer(
        f"Penalty sweep finished.\n"
        f"Checked: {result.processed}\nUpdated: {result.updated}\n"
        f"Unchanged: {result.unchanged}\nSkipped: {result.skipped}\n"
        f"Failed: {result.failed}"
    )


@router.message(F.text == OVERDUE_REPORT)
async def handle_overdue_report(message: Message, services: Services) -> None:
    overdue = await services.reports.overdue_bills()
    if not overdue:
        await message.answer("No overdue bills.")
        return

    lines = [f"<b>Overdue bills ({len(overdue)})</b>"]
    for item in overdue[:MAX_LISTED]:
        flag = " ⚠️ penalty outdated" if item.should_update_penalty else ""
        lines.append(
            f"#{item.bill.number} · {item.penalty.days_overdue}d · "
            f"₱{item.bill.net_due:.2f} + ₱{item.penalty.penalty_amount:.2f}{flag}"
        )
    if len(overdue) > MAX_LISTED:
        lines.append(f"...and {len(overdue) - MAX_LISTED} more")
    await message.answer("\n".join(lines))


@router.message(F.text == OUTSTANDING_REPORT)
async def handle_outstanding_report(message: Message, services: Services) -> None:
    report = await services.reports.outstanding_balances()
    await message.answer(
        f"<b>Outstanding balances</b>\n"
        f"Bills: {len(report.bills)}\n"
        f"Principal: ₱{report.total_principal:.2f}\n"
        f"Penalties: ₱{report.total_penalties:.2f}\n"
        f"Total: <b>₱{report.total_due:.2f}</b>"
    )


@router.message(F.text == SHOW_SETTINGS)
async def handle_show_settings(message: Message, services: Services) -> None:
    config = await services.settings.resolve()
    schedule = config.rate_schedule
    tiers = (
        "reference table"
        if schedule.uses_fallback_table
        else f"{len(schedule.tiers)} configured tiers"
    )
    await message.answer(
        f"<b>Billing settings</b>\n"
        f"Senior discount: {config.senior_discount_percent}%\n"
        f"Late payment fee: ₱{config.penalty.late_payment_fee:.2f}\n"
        f"Grace period: {config.penalty.grace_period_days} days\n"
        f"Rates: {tiers}\n\n"
        f"Change with /set &lt;key&gt; &lt;value&gt;. Keys: {', '.join(sorted(EDITABLE_KEYS))}"
    )


@router.message(Command("set"))
async def handle_set_setting(
    message: Message, command: CommandObject, services: Services, actor: Actor
) -> None:
    parts = (command.args or "").split()
    if len(parts) != 2:
        await message.answer("Usage: /set &lt;key&gt; &lt;value&gt;")
        return
    key, value = parts
    if key not in EDITABLE_KEYS:
        await message.answer(f"Unknown setting. Keys: {', '.join(sorted(EDITABLE_KEYS))}")
        return
    try:
        await services.settings.update({key: value}, actor)
    except BillingError as e:
        await message.answer(describe_error(e))
        return
    await message.answer(f"✅ {key} set to {value}.")
