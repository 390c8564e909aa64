from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from gymplan.core.validation import normalize_plan_name, validate_date_range, validate_weeks
from gymplan.db.models import FieldConfig, Mesocycle, Routine, RoutineItem

from .dates import project_end_date


def _new_local_id() -> str:
    return uuid.uuid4().hex


class PlanDraft(BaseModel):
    """
    Plan structure being assembled in the builder, not yet bound to a
    customer or dates.
    """

    routines: list[Routine] = Field(default_factory=list)
    source_template_id: Optional[int] = None
    source_template_name: Optional[str] = None

    @property
    def days_per_week(self) -> int:
        return len(self.routines)

    def finalize(
        self,
        *,
        customer_id: int,
        name: str,
        start_date: date,
        end_date: date | None = None,
        weeks: int | None = None,
        notes: str = "",
    ) -> Mesocycle:
        """
        Bind the draft to a customer and a date range.

        `weeks` projects the end date from the start when no explicit end is
        given. Raises ValidationError for an empty name, a non-positive week
        count or an end before the start.
        """

        clean_name = normalize_plan_name(name)
        if end_date is None and weeks is not None:
            end_date = project_end_date(start_date, validate_weeks(weeks))
        validate_date_range(start_date, end_date)

        return Mesocycle(
            customer_id=customer_id,
            name=clean_name,
            start_date=start_date,
            end_date=end_date,
            days_per_week=self.days_per_week,
            is_template=False,
            notes=notes,
            routines=[r.model_copy(deep=True) for r in self.routines],
        )


def _copy_item(item: RoutineItem) -> RoutineItem:
    return RoutineItem(
        local_id=_new_local_id(),
        exercise_id=item.exercise_id,
        exercise_name=item.exercise_name,
        notes=item.notes,
        series=item.series,
        reps=item.reps,
        rpe=item.rpe,
        intensity=item.intensity,
        custom_fields=dict(item.custom_fields),
    )


def instantiate(template: Mesocycle) -> PlanDraft:
    """
    Copy a template's day/exercise structure into an independent draft.

    Every routine and item gets a fresh local id and no database id, and
    custom field maps are copied, so editing the draft never reaches back into
    the template. Dates, customer and the template flag are left behind.
    """

    routines = [
        Routine(
            local_id=_new_local_id(),
            name=routine.name,
            day_group=routine.day_group,
            items=[_copy_item(item) for item in routine.items],
        )
        for routine in template.routines
    ]
    return PlanDraft(
        routines=routines,
        source_template_id=template.id,
        source_template_name=template.name,
    )


def effective_days_per_week(plan: Mesocycle) -> int:
    if plan.days_per_week:
        return plan.days_per_week
    return len(plan.routines)


def filter_templates(
    templates: Iterable[Mesocycle],
    days_per_week: int | None = None,
) -> list[Mesocycle]:
    templates = [t for t in templates if t.is_template]
    if days_per_week is None:
        return templates
    return [t for t in templates if effective_days_per_week(t) == days_per_week]


def audit_custom_fields(
    routines: Iterable[Routine],
    field_configs: Iterable[FieldConfig],
) -> dict[str, list[str]]:
    """
    Map item key -> custom field keys that no longer match an active field
    configuration.

    Orphaned values are kept on the item; this only reports them so the
    builder can flag them. Items are keyed by local id, falling back to the
    database id.
    """

    active_keys = {c.field_key for c in field_configs if c.is_active and not c.is_deleted}
    orphans: dict[str, list[str]] = {}
    for routine in routines:
        for item in routine.items:
            stale = sorted(k for k in item.custom_fields if k not in active_keys)
            if not stale:
                continue
            key = item.local_id or str(item.id)
            orphans[key] = stale
    return orphans
