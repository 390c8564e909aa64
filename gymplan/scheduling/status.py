from __future__ import annotations

from datetime import date

from gymplan.db.models import Mesocycle, PlanStatus


def classify_plan(plan: Mesocycle, as_of: date) -> PlanStatus:
    """
    Lifecycle state of a plan on `as_of`.

    Archived plans stay archived. Otherwise the state follows from the dates:
    future before the start, active from start through end (inclusive, or
    forever when there is no end), expired afterwards. A plan without a start
    date counts as starting on `as_of`.
    """

    if not plan.active:
        return PlanStatus.ARCHIVED

    start = plan.start_date or as_of
    if start > as_of:
        return PlanStatus.FUTURE
    if plan.end_date is None or plan.end_date >= as_of:
        return PlanStatus.ACTIVE
    return PlanStatus.EXPIRED
