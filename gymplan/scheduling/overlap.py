from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from gymplan.db.models import Mesocycle, OverlapResult

from .dates import effective_end


def ranges_overlap(
    start_a: date,
    end_a: date | None,
    start_b: date,
    end_b: date | None,
) -> bool:
    """
    Closed-interval intersection with open ends treated as +infinity.

    Ranges that share a single boundary day overlap.
    """

    return start_a <= effective_end(end_b) and start_b <= effective_end(end_a)


def blocking_plans(
    plans: Iterable[Mesocycle],
    exclude_plan_id: int | None = None,
) -> list[Mesocycle]:
    """Plans that take part in date exclusivity: live, non-template, not excluded."""

    return [
        p
        for p in plans
        if not p.is_template
        and p.active
        and (exclude_plan_id is None or p.id != exclude_plan_id)
    ]


def check_overlap(
    plans: Iterable[Mesocycle],
    start_date: date | None,
    end_date: date | None = None,
    exclude_plan_id: int | None = None,
) -> OverlapResult:
    """
    Decide whether [start_date, end_date] collides with any of the customer's
    live plans.

    `plans` must all belong to the same customer. A candidate without a start
    date has no range and never collides. A stored plan without a start date
    is treated as having started at the beginning of time.
    """

    if start_date is None:
        return OverlapResult(has_overlap=False)

    conflicts = [
        p.id
        for p in blocking_plans(plans, exclude_plan_id)
        if ranges_overlap(p.start_date or date.min, p.end_date, start_date, end_date)
    ]
    conflict_ids = [cid for cid in conflicts if cid is not None]
    return OverlapResult(has_overlap=bool(conflicts), conflict_ids=conflict_ids)
