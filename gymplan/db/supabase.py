from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from gymplan.core import Settings, get_settings
from gymplan.db.models import (
    Customer,
    FieldConfig,
    Mesocycle,
    Payment,
    Routine,
    RoutineItem,
)
from gymplan.scheduling.templates import effective_days_per_week, filter_templates

logger = logging.getLogger(__name__)

# Plan with its routines and their items, in builder order
_PLAN_SELECT = "*,routines(*,routine_items(*))"
_PLAN_ORDER_PARAMS = {
    "routines.order": "id.asc",
    "routines.routine_items.order": "order_index.asc",
}
_PLAN_COLUMNS = (
    "id,customer_id,name,start_date,end_date,days_per_week,"
    "is_template,active,drive_link,notes"
)


class SupabaseError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def _plan_from_row(row: dict[str, Any]) -> Mesocycle:
    """
    Convert a `mesocycles` row (optionally with embedded routines) into a model.
    """

    routines: list[Routine] = []
    for routine_row in sorted(row.get("routines") or [], key=lambda r: r.get("id") or 0):
        item_rows = sorted(
            routine_row.get("routine_items") or [],
            key=lambda i: i.get("order_index") or 0,
        )
        routines.append(
            Routine(
                id=routine_row.get("id"),
                name=routine_row.get("name") or "",
                day_group=routine_row.get("day_group") or "",
                items=[RoutineItem.model_validate(item) for item in item_rows],
            )
        )

    plan_fields = {k: v for k, v in row.items() if k != "routines"}
    return Mesocycle.model_validate({**plan_fields, "routines": routines})


def _plan_payload(plan: Mesocycle) -> dict[str, Any]:
    return {
        "customer_id": None if plan.is_template else plan.customer_id,
        "name": plan.name,
        "start_date": plan.start_date.isoformat() if plan.start_date else None,
        "end_date": plan.end_date.isoformat() if plan.end_date else None,
        "notes": plan.notes or "",
        "active": plan.active,
        "is_template": plan.is_template,
        "days_per_week": effective_days_per_week(plan),
    }


def _item_payload(routine_id: int, order_index: int, item: RoutineItem) -> dict[str, Any]:
    return {
        "routine_id": routine_id,
        "exercise_id": item.exercise_id,
        "exercise_name": item.exercise_name,
        "series": item.series,
        "reps": item.reps,
        "rpe": item.rpe or "",
        "notes": item.notes or "",
        "intensity": item.intensity or "",
        "order_index": order_index,
        "custom_fields": item.custom_fields or None,
    }


class SupabaseClient:
    """
    Minimal async Supabase REST client for plan scheduling.

    Implements the `PlanStore` operations over PostgREST.
    Service role key is used, so RLS is bypassed; access is restricted in code.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        base_url = str(self._settings.supabase_url).rstrip("/")
        self._rest = httpx.AsyncClient(
            base_url=f"{base_url}/rest/v1",
            headers={
                "apikey": self._settings.supabase_service_key,
                "Authorization": f"Bearer {self._settings.supabase_service_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=10.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self._rest.aclose()

    async def _select(
        self,
        table: str,
        params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        response = await self._rest.get(f"/{table}", params={"select": "*", **params})
        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase REST GET failed for '{table}'",
                status_code=response.status_code,
                detail=response.text,
            )
        return response.json()

    async def _get_single_row(
        self,
        table: str,
        params: dict[str, Any],
    ) -> dict[str, Any] | None:
        items = await self._select(table, {**params, "limit": 1})
        if not items:
            return None
        return items[0]

    async def _insert_rows(
        self,
        table: str,
        payload: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        response = await self._rest.post(
            f"/{table}",
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase REST INSERT failed for '{table}'",
                status_code=response.status_code,
                detail=response.text,
            )
        items: list[dict[str, Any]] = response.json()
        if len(items) != len(payload):
            raise SupabaseError(
                f"Unexpected insert response for table '{table}'",
                detail=response.text,
            )
        return items

    async def _insert_row(
        self,
        table: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        items = await self._insert_rows(table, [payload])
        return items[0]

    async def _patch(
        self,
        table: str,
        params: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        response = await self._rest.patch(
            f"/{table}",
            params=params,
            json=payload,
            headers={"Prefer": "return=representation"},
        )
        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase REST PATCH failed for '{table}'",
                status_code=response.status_code,
                detail=response.text,
            )
        return response.json()

    async def _delete(self, table: str, params: dict[str, Any]) -> None:
        response = await self._rest.delete(f"/{table}", params=params)
        if response.status_code >= 400:
            raise SupabaseError(
                f"Supabase REST DELETE failed for '{table}'",
                status_code=response.status_code,
                detail=response.text,
            )

    # --- Plans ---

    async def list_plans_for_customer(self, customer_id: int) -> list[Mesocycle]:
        """
        Return the customer's plans (templates excluded), newest start first.
        """

        rows = await self._select(
            "mesocycles",
            {
                "select": _PLAN_SELECT,
                "customer_id": f"eq.{customer_id}",
                "is_template": "eq.false",
                "order": "start_date.desc",
                **_PLAN_ORDER_PARAMS,
            },
        )
        return [_plan_from_row(row) for row in rows]

    async def get_plan(self, plan_id: int) -> Mesocycle | None:
        row = await self._get_single_row(
            "mesocycles",
            {"select": _PLAN_SELECT, "id": f"eq.{plan_id}", **_PLAN_ORDER_PARAMS},
        )
        if row is None:
            return None
        return _plan_from_row(row)

    async def _write_routines(self, plan_id: int, routines: Sequence[Routine]) -> list[int]:
        """
        Insert routines and their items for a plan. Returns the new routine ids.

        If the items cannot be written, the routines inserted here are removed
        again before the error propagates.
        """

        if not routines:
            return []

        routine_rows = await self._insert_rows(
            "routines",
            [
                {"mesocycle_id": plan_id, "name": r.name, "day_group": r.day_group or ""}
                for r in routines
            ],
        )
        routine_ids = [int(row["id"]) for row in routine_rows]

        items_payload = [
            _item_payload(routine_id, order_index, item)
            for routine, routine_id in zip(routines, routine_ids)
            for order_index, item in enumerate(routine.items)
        ]
        if items_payload:
            try:
                await self._insert_rows("routine_items", items_payload)
            except Exception:
                await self._delete_routines(routine_ids)
                raise
        return routine_ids

    async def _delete_routines(self, routine_ids: Sequence[int]) -> None:
        if not routine_ids:
            return
        ids = ",".join(str(i) for i in routine_ids)
        await self._delete("routines", {"id": f"in.({ids})"})

    async def create_plan(self, plan: Mesocycle) -> int:
        """
        Insert a plan with its routines and items. Returns the new plan id.

        If writing the routines fails, the freshly inserted plan row is removed
        again so no half-built plan is left behind.
        """

        row = await self._insert_row("mesocycles", _plan_payload(plan))
        plan_id = int(row["id"])
        try:
            await self._write_routines(plan_id, plan.routines)
        except Exception:
            logger.warning("Rolling back plan %s after routine write failure", plan_id)
            await self._delete("mesocycles", {"id": f"eq.{plan_id}"})
            raise
        return plan_id

    async def update_plan(self, plan_id: int, plan: Mesocycle) -> None:
        """
        Overwrite plan fields and replace its routines.

        New routines are written before anything else changes and the old ones
        are removed last. A failure at any step puts back what was already
        changed, so the stored plan is either the old one or the new one.
        """

        previous = await self.get_plan(plan_id)
        if previous is None:
            raise SupabaseError("Plan not found", status_code=404)
        old_routine_ids = [r.id for r in previous.routines if r.id is not None]

        new_routine_ids = await self._write_routines(plan_id, plan.routines)
        try:
            updated = await self._patch(
                "mesocycles",
                {"id": f"eq.{plan_id}"},
                _plan_payload(plan),
            )
            if not updated:
                raise SupabaseError("Plan not found", status_code=404)
        except Exception:
            await self._delete_routines(new_routine_ids)
            raise

        try:
            await self._delete_routines(old_routine_ids)
        except Exception:
            logger.warning("Restoring plan %s after failed routine replacement", plan_id)
            await self._delete_routines(new_routine_ids)
            await self._patch("mesocycles", {"id": f"eq.{plan_id}"}, _plan_payload(previous))
            raise

    async def delete_plan(self, plan_id: int) -> None:
        # routines and routine_items cascade in the schema
        await self._delete("mesocycles", {"id": f"eq.{plan_id}"})

    async def list_templates(self, days_filter: int | None = None) -> list[Mesocycle]:
        """
        Return templates ordered by days per week and name.

        The days filter is applied here rather than in SQL because templates
        saved without `days_per_week` fall back to their routine count.
        """

        rows = await self._select(
            "mesocycles",
            {
                "select": _PLAN_SELECT,
                "is_template": "eq.true",
                "order": "days_per_week.asc,name.asc",
                **_PLAN_ORDER_PARAMS,
            },
        )
        return filter_templates((_plan_from_row(row) for row in rows), days_filter)

    async def update_plan_link(self, plan_id: int, link: str | None) -> None:
        await self._patch("mesocycles", {"id": f"eq.{plan_id}"}, {"drive_link": link})

    async def clear_plan_link(self, plan_id: int, expected: str) -> bool:
        """
        Clear the plan's Drive link only if it still equals `expected`.

        Returns whether a row was changed.
        """

        updated = await self._patch(
            "mesocycles",
            {"id": f"eq.{plan_id}", "drive_link": f"eq.{expected}"},
            {"drive_link": None},
        )
        return bool(updated)

    async def archive_plans(self, plan_ids: Sequence[int]) -> None:
        if not plan_ids:
            return
        ids = ",".join(str(i) for i in plan_ids)
        await self._patch("mesocycles", {"id": f"in.({ids})"}, {"active": False})

    async def restore_plans(self, plan_ids: Sequence[int]) -> None:
        if not plan_ids:
            return
        ids = ",".join(str(i) for i in plan_ids)
        await self._patch("mesocycles", {"id": f"in.({ids})"}, {"active": True})

    async def list_active_plans(self) -> list[Mesocycle]:
        """
        All live customer plans without their routines (for aggregate views).
        """

        rows = await self._select(
            "mesocycles",
            {
                "select": _PLAN_COLUMNS,
                "is_template": "eq.false",
                "active": "eq.true",
                "order": "end_date.desc.nullsfirst",
            },
        )
        return [_plan_from_row(row) for row in rows]

    # --- Customers, fields, payments ---

    async def list_active_customers(self) -> list[Customer]:
        rows = await self._select(
            "customers",
            {
                "select": "*,tariff:tariffs(*)",
                "active": "eq.true",
                "order": "last_name.asc,first_name.asc",
            },
        )
        return [Customer.model_validate(row) for row in rows]

    async def get_customer(self, customer_id: int) -> Customer | None:
        row = await self._get_single_row(
            "customers",
            {"select": "*,tariff:tariffs(*)", "id": f"eq.{customer_id}"},
        )
        if row is None:
            return None
        return Customer.model_validate(row)

    async def list_field_configs(self) -> list[FieldConfig]:
        rows = await self._select(
            "exercise_field_config",
            {"order": "created_at.asc"},
        )
        return [FieldConfig.model_validate(row) for row in rows]

    async def list_payments_for_customer(self, customer_id: int) -> list[Payment]:
        rows = await self._select(
            "payments",
            {"customer_id": f"eq.{customer_id}", "order": "payment_date.desc"},
        )
        return [Payment.model_validate(row) for row in rows]


_supabase_client: SupabaseClient | None = None


def get_supabase_client() -> SupabaseClient:
    """
    Lazy singleton for SupabaseClient.
    """

    global _supabase_client
    if _supabase_client is None:
        _supabase_client = SupabaseClient()
    return _supabase_client
