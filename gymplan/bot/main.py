from __future__ import annotations

import asyncio

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage

from gymplan.bot.handlers import setup_routers
from gymplan.bot.middlewares import ServicesMiddleware
from gymplan.bot.scheduler import PlanJobsScheduler
from gymplan.core import get_settings
from gymplan.core.logging import configure_logging
from gymplan.db import get_supabase_client
from gymplan.drive import DriveClient, LinkValidator
from gymplan.scheduling.service import PlanService


async def _run_bot() -> None:
    settings = get_settings()
    logger = configure_logging()

    store = get_supabase_client()
    links: LinkValidator | None = None
    drive: DriveClient | None = None
    if settings.drive_access_token or settings.drive_api_key:
        drive = DriveClient.from_settings(settings)
        links = LinkValidator(drive, store, concurrency=settings.link_check_concurrency)
    else:
        logger.info("No Google Drive credentials, link checks disabled")

    plans = PlanService(
        store,
        link_validator=links,
        urgent_threshold=settings.urgent_threshold_days,
    )

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher(storage=MemoryStorage())
    services = ServicesMiddleware(plans, settings)
    dp.message.middleware(services)
    dp.callback_query.middleware(services)
    dp.include_router(setup_routers())

    logger.info("Starting bot in %s environment", settings.environment)

    scheduler = PlanJobsScheduler(bot, plans, links, settings)
    await scheduler.start()

    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        # Graceful shutdown
        await scheduler.stop()
        await plans.cancel_background()
        if drive is not None:
            await drive.close()
        await store.close()
        await bot.session.close()


def main() -> None:
    asyncio.run(_run_bot())


if __name__ == "__main__":
    main()
