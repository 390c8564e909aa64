from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import date

from gymplan.core.clock import Clock, SystemClock
from gymplan.core.errors import OverlapError, ValidationError
from gymplan.core.validation import normalize_plan_name, validate_date_range
from gymplan.db.models import (
    Customer,
    CustomerPriority,
    FieldConfig,
    Mesocycle,
    OverlapResult,
    PlanStatus,
    PlanView,
)
from gymplan.db.store import PlanStore
from gymplan.drive.validator import LinkValidator

from .dates import next_free_start
from .overlap import check_overlap
from .priority import DEFAULT_URGENT_THRESHOLD, rank_customers
from .status import classify_plan
from .templates import PlanDraft, audit_custom_fields, instantiate

logger = logging.getLogger(__name__)


class PlanService:
    """
    Plan operations used by the front-end.

    Creating or editing a customer's plan runs the overlap check and the write
    under one per-customer lock, so two writers cannot both pass the check
    with colliding dates.
    """

    def __init__(
        self,
        store: PlanStore,
        *,
        clock: Clock | None = None,
        link_validator: LinkValidator | None = None,
        urgent_threshold: int = DEFAULT_URGENT_THRESHOLD,
    ) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        self.link_validator = link_validator
        self.urgent_threshold = urgent_threshold
        self._customer_locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._background: set[asyncio.Task[list[int]]] = set()

    # --- Reads ---

    async def list_plans(
        self,
        customer_id: int,
        *,
        heal_links: bool = True,
        online: bool = True,
    ) -> list[PlanView]:
        """
        Customer's plans with status computed for today.

        When a link validator is configured, stale Drive links are checked in
        a background task; the listing itself never waits for the network.
        """

        plans = await self.store.list_plans_for_customer(customer_id)
        today = self.clock.today()
        views = [PlanView(plan=p, status=classify_plan(p, today)) for p in plans]

        if heal_links and online and self.link_validator is not None:
            self.schedule_link_check(plans)
        return views

    async def get_plan(self, plan_id: int) -> PlanView | None:
        plan = await self.store.get_plan(plan_id)
        if plan is None:
            return None
        return PlanView(plan=plan, status=classify_plan(plan, self.clock.today()))

    async def check_overlap(
        self,
        customer_id: int,
        start_date: date | None,
        end_date: date | None = None,
        exclude_plan_id: int | None = None,
    ) -> OverlapResult:
        plans = await self.store.list_plans_for_customer(customer_id)
        return check_overlap(plans, start_date, end_date, exclude_plan_id)

    async def suggest_start_date(self, customer_id: int) -> date:
        """Day after the customer's last plan ends, or today."""
        plans = await self.store.list_plans_for_customer(customer_id)
        suggested = next_free_start(plans)
        today = self.clock.today()
        if suggested is None or suggested < today:
            return today
        return suggested

    async def get_customer(self, customer_id: int) -> Customer | None:
        return await self.store.get_customer(customer_id)

    async def training_priorities(self) -> list[CustomerPriority]:
        customers = await self.store.list_active_customers()
        plans = await self.store.list_active_plans()
        return rank_customers(customers, plans, self.clock.today(), self.urgent_threshold)

    # --- Templates ---

    async def list_templates(self, days_per_week: int | None = None) -> list[Mesocycle]:
        return await self.store.list_templates(days_per_week)

    async def draft_from_template(self, template_id: int) -> PlanDraft:
        template = await self.store.get_plan(template_id)
        if template is None or not template.is_template:
            raise ValidationError(f"Template {template_id} not found", field="template_id")
        return instantiate(template)

    async def orphaned_fields(self, plan: Mesocycle | PlanDraft) -> dict[str, list[str]]:
        configs: list[FieldConfig] = await self.store.list_field_configs()
        return audit_custom_fields(plan.routines, configs)

    # --- Writes ---

    async def save_plan(self, plan: Mesocycle, *, supersede: bool = False) -> int:
        """
        Create or update a plan. Returns the plan id.

        Raises ValidationError for bad input and OverlapError when the dates
        collide with another live plan of the same customer. With
        `supersede=True` the colliding plans are archived instead, and put back
        if the new plan cannot be written.
        """

        plan = plan.model_copy(update={"name": normalize_plan_name(plan.name)})

        if plan.is_template:
            # Template dates are placeholders and are never checked
            plan = plan.model_copy(update={"customer_id": None})
            return await self._write(plan)

        validate_date_range(plan.start_date, plan.end_date)
        if plan.customer_id is None:
            raise ValidationError("A plan needs a customer", field="customer_id")
        if plan.start_date is None:
            raise ValidationError("A plan needs a start date", field="start_date")

        async with self._customer_locks[plan.customer_id]:
            existing = await self.store.list_plans_for_customer(plan.customer_id)
            result = check_overlap(existing, plan.start_date, plan.end_date, plan.id)
            # Archived plans do not hold their dates
            if not (result.has_overlap and plan.active):
                return await self._write(plan)

            if not supersede:
                raise OverlapError(plan.customer_id, result.conflict_ids)
            logger.info(
                "Archiving plan(s) %s of customer %s superseded by '%s'",
                result.conflict_ids,
                plan.customer_id,
                plan.name,
            )
            await self.store.archive_plans(result.conflict_ids)
            try:
                return await self._write(plan)
            except Exception:
                logger.warning(
                    "Saving '%s' failed, restoring superseded plan(s) %s",
                    plan.name,
                    result.conflict_ids,
                )
                await self.store.restore_plans(result.conflict_ids)
                raise

    async def save_template(self, plan: Mesocycle) -> int:
        template = plan.model_copy(update={"is_template": True, "customer_id": None})
        return await self.save_plan(template)

    async def _write(self, plan: Mesocycle) -> int:
        if plan.id is not None:
            await self.store.update_plan(plan.id, plan)
            logger.info("Updated plan %s", plan.id)
            return plan.id
        plan_id = await self.store.create_plan(plan)
        logger.info("Created plan %s for customer %s", plan_id, plan.customer_id)
        return plan_id

    async def archive_plan(self, plan_id: int) -> None:
        await self.store.archive_plans([plan_id])
        logger.info("Archived plan %s", plan_id)

    async def delete_plan(self, plan_id: int) -> None:
        await self.store.delete_plan(plan_id)
        logger.info("Deleted plan %s", plan_id)

    async def attach_link(self, plan_id: int, link: str) -> None:
        await self.store.update_plan_link(plan_id, link)

    # --- Background link checks ---

    def schedule_link_check(self, plans: list[Mesocycle]) -> asyncio.Task[list[int]] | None:
        """
        Fire-and-forget Drive link validation for the given plans.

        The task is kept referenced until it finishes; `cancel_background`
        abandons pending checks.
        """

        if self.link_validator is None:
            return None
        if not any(p.drive_link for p in plans):
            return None

        task = asyncio.create_task(
            self.link_validator.heal_links([p.model_copy() for p in plans])
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def cancel_background(self) -> None:
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def count_by_status(views: list[PlanView]) -> dict[PlanStatus, int]:
    counts = {status: 0 for status in PlanStatus}
    for view in views:
        counts[view.status] += 1
    return counts
