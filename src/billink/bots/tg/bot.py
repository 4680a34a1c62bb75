"""Main entry point for the Telegram operator console."""

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from tortoise import Tortoise

from billink.bots.tg.handlers import admin, billing, common, credits, payments
from billink.config import settings
from billink.core.db import TORTOISE_ORM
from billink.services.container import build_services
from billink.services.scheduler import SchedulerService

logger = logging.getLogger(__name__)


async def on_startup(dispatcher: Dispatcher, bot: Bot):
    """Actions on bot startup."""
    logger.info("Initializing database...")
    await Tortoise.init(config=TORTOISE_ORM)
    logger.info("Database initialized.")

    services = build_services()
    scheduler_service = SchedulerService(
        penalty_service=services.penalty,
        otp_service=services.otp,
        scheduler=AsyncIOScheduler(timezone=settings.TIMEZONE),
    )
    scheduler_service.start()

    dispatcher["services"] = services
    dispatcher["scheduler_service"] = scheduler_service
    logger.info("Services injected into dispatcher.")

    logger.info("Deleting webhook and dropping pending updates...")
    await bot.delete_webhook(drop_pending_updates=True)
    logger.info("Webhook deleted.")
    logger.info("Bot started.")


async def on_shutdown(dispatcher: Dispatcher, bot: Bot):
    """Actions on bot shutdown."""
    logger.info("Closing connections...")
    scheduler_service = dispatcher.get("scheduler_service")
    if scheduler_service is not None:
        scheduler_service.shutdown()
    await Tortoise.close_connections()
    await bot.session.close()
    logger.info("Connections closed.")


async def main():
    """Initializes and starts the bot."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    logger.info("Starting bot initialization...")

    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode="HTML"),
    )
    dp = Dispatcher()

    # Register startup and shutdown hooks
    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)

    # Register routers; common first so /cancel wins over any FSM state
    dp.include_router(common.router)
    dp.include_router(billing.router)
    dp.include_router(payments.router)
    dp.include_router(credits.router)
    dp.include_router(admin.router)

    await dp.start_polling(bot, dispatcher=dp)


def run():
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Bot stopped manually.")


if __name__ == "__main__":
    run()
