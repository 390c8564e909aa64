from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from datetime import date

import pytest

# Handlers configure logging from settings at import time
os.environ.setdefault("BOT_TOKEN", "123456:test-token")
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")

from gymplan.db.models import (  # noqa: E402
    Customer,
    FieldConfig,
    Mesocycle,
    Payment,
    Routine,
    RoutineItem,
)
from gymplan.scheduling.templates import filter_templates  # noqa: E402


def make_plan(
    plan_id: int | None,
    start: date | None,
    end: date | None,
    *,
    customer_id: int | None = 1,
    active: bool = True,
    is_template: bool = False,
    drive_link: str | None = None,
    name: str | None = None,
    routines: list[Routine] | None = None,
) -> Mesocycle:
    return Mesocycle(
        id=plan_id,
        customer_id=customer_id,
        name=name or f"Plan {plan_id}",
        start_date=start,
        end_date=end,
        active=active,
        is_template=is_template,
        drive_link=drive_link,
        routines=routines or [],
    )


def make_template(template_id: int, days: int, *, name: str | None = None) -> Mesocycle:
    routines = [
        Routine(
            id=template_id * 100 + n,
            name=f"Day {n}",
            items=[
                RoutineItem(
                    id=template_id * 1000 + n,
                    exercise_id=10 + n,
                    exercise_name=f"Exercise {n}",
                    notes="slow eccentric",
                    series="4",
                    reps="8-10",
                    custom_fields={"tempo": "3-1-1", "rest": "90s"},
                )
            ],
        )
        for n in range(1, days + 1)
    ]
    return Mesocycle(
        id=template_id,
        customer_id=None,
        name=name or f"Template {days}d",
        start_date=date(2020, 1, 1),
        end_date=date(2020, 2, 1),
        is_template=True,
        routines=routines,
    )


class FakeStore:
    """In-memory PlanStore."""

    def __init__(self) -> None:
        self.plans: dict[int, Mesocycle] = {}
        self.customers: dict[int, Customer] = {}
        self.field_configs: list[FieldConfig] = []
        self.payments: list[Payment] = []
        self.link_updates: list[tuple[int, str | None]] = []
        self._next_id = 1

    def add(self, plan: Mesocycle) -> Mesocycle:
        if plan.id is None:
            plan = plan.model_copy(update={"id": self._allocate()})
        self._next_id = max(self._next_id, plan.id + 1)
        self.plans[plan.id] = plan
        return plan

    def _allocate(self) -> int:
        plan_id = self._next_id
        self._next_id += 1
        return plan_id

    async def list_plans_for_customer(self, customer_id: int) -> list[Mesocycle]:
        # Yield so concurrent writers interleave between read and write
        await asyncio.sleep(0)
        return [
            p.model_copy(deep=True)
            for p in self.plans.values()
            if p.customer_id == customer_id and not p.is_template
        ]

    async def get_plan(self, plan_id: int) -> Mesocycle | None:
        plan = self.plans.get(plan_id)
        return plan.model_copy(deep=True) if plan else None

    async def create_plan(self, plan: Mesocycle) -> int:
        await asyncio.sleep(0)
        plan_id = self._allocate()
        self.plans[plan_id] = plan.model_copy(update={"id": plan_id}, deep=True)
        return plan_id

    async def update_plan(self, plan_id: int, plan: Mesocycle) -> None:
        self.plans[plan_id] = plan.model_copy(update={"id": plan_id}, deep=True)

    async def delete_plan(self, plan_id: int) -> None:
        self.plans.pop(plan_id, None)

    async def list_templates(self, days_filter: int | None = None) -> list[Mesocycle]:
        return filter_templates(
            (p.model_copy(deep=True) for p in self.plans.values()), days_filter
        )

    async def update_plan_link(self, plan_id: int, link: str | None) -> None:
        self.link_updates.append((plan_id, link))
        self.plans[plan_id] = self.plans[plan_id].model_copy(update={"drive_link": link})

    async def clear_plan_link(self, plan_id: int, expected: str) -> bool:
        if self.plans[plan_id].drive_link != expected:
            return False
        await self.update_plan_link(plan_id, None)
        return True

    async def archive_plans(self, plan_ids: Sequence[int]) -> None:
        for plan_id in plan_ids:
            self.plans[plan_id] = self.plans[plan_id].model_copy(update={"active": False})

    async def restore_plans(self, plan_ids: Sequence[int]) -> None:
        for plan_id in plan_ids:
            self.plans[plan_id] = self.plans[plan_id].model_copy(update={"active": True})

    async def list_active_plans(self) -> list[Mesocycle]:
        return [
            p.model_copy(deep=True)
            for p in self.plans.values()
            if p.active and not p.is_template
        ]

    async def list_active_customers(self) -> list[Customer]:
        return [c for c in self.customers.values() if c.active]

    async def get_customer(self, customer_id: int) -> Customer | None:
        return self.customers.get(customer_id)

    async def list_field_configs(self) -> list[FieldConfig]:
        return list(self.field_configs)

    async def list_payments_for_customer(self, customer_id: int) -> list[Payment]:
        return [p for p in self.payments if p.customer_id == customer_id]


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()
