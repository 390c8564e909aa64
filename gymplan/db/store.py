from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .models import Customer, FieldConfig, Mesocycle, Payment


class PlanStore(Protocol):
    """
    Persistence operations the scheduling core relies on.

    `SupabaseClient` is the production implementation.
    """

    async def list_plans_for_customer(self, customer_id: int) -> list[Mesocycle]: ...

    async def get_plan(self, plan_id: int) -> Mesocycle | None: ...

    async def create_plan(self, plan: Mesocycle) -> int: ...

    async def update_plan(self, plan_id: int, plan: Mesocycle) -> None: ...

    async def delete_plan(self, plan_id: int) -> None: ...

    async def list_templates(self, days_filter: int | None = None) -> list[Mesocycle]: ...

    async def update_plan_link(self, plan_id: int, link: str | None) -> None: ...

    async def clear_plan_link(self, plan_id: int, expected: str) -> bool: ...

    async def archive_plans(self, plan_ids: Sequence[int]) -> None: ...

    async def restore_plans(self, plan_ids: Sequence[int]) -> None: ...

    async def list_active_plans(self) -> list[Mesocycle]: ...

    async def list_active_customers(self) -> list[Customer]: ...

    async def get_customer(self, customer_id: int) -> Customer | None: ...

    async def list_field_configs(self) -> list[FieldConfig]: ...

    async def list_payments_for_customer(self, customer_id: int) -> list[Payment]: ...
