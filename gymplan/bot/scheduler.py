from __future__ import annotations

import logging

from aiogram import Bot
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from gymplan.bot.handlers.priorities import format_priorities
from gymplan.core import Settings
from gymplan.db.models import RenewalPriority
from gymplan.drive.validator import LinkValidator
from gymplan.scheduling.service import PlanService

logger = logging.getLogger(__name__)


class PlanJobsScheduler:
    """
    APScheduler manager for background plan jobs.

    - periodic sweep of stored Drive links, clearing the ones that are gone;
    - daily renewal digest to the owner chat (when configured).
    """

    def __init__(
        self,
        bot: Bot,
        plans: PlanService,
        links: LinkValidator | None,
        settings: Settings,
    ) -> None:
        self.bot = bot
        self.plans = plans
        self.links = links
        self.settings = settings
        self.scheduler: AsyncIOScheduler | None = None

    async def start(self) -> None:
        """
        Initialize and start the scheduler.
        """
        self.scheduler = AsyncIOScheduler()

        if self.links is not None:
            self.scheduler.add_job(
                self.sweep_links,
                IntervalTrigger(minutes=self.settings.link_check_interval_minutes),
                id="drive_link_sweep",
                name="Drive Link Sweep",
                max_instances=1,
                coalesce=True,
            )

        if self.settings.owner_chat_id is not None:
            self.scheduler.add_job(
                self.send_renewal_digest,
                CronTrigger(hour=self.settings.digest_hour, minute=0),
                id="renewal_digest",
                name="Daily Renewal Digest",
            )

        self.scheduler.start()
        logger.info("Plan jobs scheduler started")

    async def stop(self) -> None:
        """
        Stop the scheduler gracefully.
        """
        if self.scheduler:
            self.scheduler.shutdown()
            logger.info("Plan jobs scheduler stopped")

    async def sweep_links(self) -> list[int]:
        """
        Check every live plan's Drive link and clear those that no longer resolve.
        """
        if self.links is None:
            return []

        try:
            plans = await self.plans.store.list_active_plans()
            cleared = await self.links.heal_links(plans)
        except Exception as exc:
            logger.exception("Error during Drive link sweep: %s", exc)
            return []

        logger.info("Drive link sweep completed, %d link(s) cleared", len(cleared))
        return cleared

    async def send_renewal_digest(self) -> bool:
        """
        Send the owner the customers that need a new plan (expired, none, urgent).

        Returns whether a message was sent.
        """
        chat_id = self.settings.owner_chat_id
        if chat_id is None:
            return False

        try:
            rows = await self.plans.training_priorities()
            pending = [r for r in rows if r.priority != RenewalPriority.GOOD]
            if not pending:
                logger.debug("No customers need a plan renewal today")
                return False

            await self.bot.send_message(
                chat_id=chat_id,
                text=format_priorities(pending, only_pending=True),
                parse_mode="HTML",
            )
        except Exception as exc:
            logger.exception("Error sending renewal digest: %s", exc)
            return False
        return True
