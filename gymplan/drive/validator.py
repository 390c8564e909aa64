from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from gymplan.db.models import Mesocycle
from gymplan.db.store import PlanStore

from .client import DriveClient, DriveNetworkError

logger = logging.getLogger(__name__)


class LinkValidator:
    """
    Keeps stored plan share links in line with what exists on Drive.

    Checks are independent and idempotent, so any number may run at once.
    A link is cleared only after a definite "missing" answer; network trouble
    leaves it untouched.
    """

    def __init__(
        self,
        drive: DriveClient,
        store: PlanStore,
        *,
        concurrency: int = 8,
    ) -> None:
        self.drive = drive
        self.store = store
        self._semaphore = asyncio.Semaphore(concurrency)

    async def ensure_valid(self, plan_id: int, link: str | None) -> bool:
        if not link:
            return False

        async with self._semaphore:
            try:
                exists = await self.drive.head_check(link)
            except DriveNetworkError as exc:
                logger.warning("Could not verify link of plan %s: %s", plan_id, exc)
                return True

        if not exists:
            logger.info("Drive file for plan %s is gone", plan_id)
        return exists

    async def _heal_one(self, plan: Mesocycle) -> int | None:
        link = plan.drive_link
        if await self.ensure_valid(plan.id, link):
            return None
        # No-op when the stored link is no longer the one checked
        if not await self.store.clear_plan_link(plan.id, link):
            logger.info("Link of plan %s changed during the check, keeping it", plan.id)
            return None
        plan.drive_link = None
        return plan.id

    async def heal_links(
        self,
        plans: Iterable[Mesocycle],
        *,
        online: bool = True,
    ) -> list[int]:
        """
        Validate every plan that carries a link and clear the stale ones.

        Returns the ids of plans whose link was cleared. Does nothing while
        offline. If the surrounding task is cancelled, checks that had not
        answered yet leave their plans untouched.
        """

        if not online:
            logger.debug("Offline, skipping Drive link checks")
            return []

        to_check = [p for p in plans if p.id is not None and p.drive_link]
        if not to_check:
            return []

        results = await asyncio.gather(
            *(self._heal_one(plan) for plan in to_check),
            return_exceptions=True,
        )

        cleared: list[int] = []
        for plan, result in zip(to_check, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error("Link check failed for plan %s: %s", plan.id, result)
                continue
            if result is not None:
                cleared.append(result)

        if cleared:
            logger.info("Cleared %d stale Drive link(s): %s", len(cleared), cleared)
        return cleared
