from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date, timedelta

from gymplan.db.models import Mesocycle


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_end(year: int, month: int) -> date:
    return date(year, month, days_in_month(year, month))


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of the month."""
    return date(year, month, 1), month_end(year, month)


def add_months(year: int, month: int, count: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + count
    return index // 12, index % 12 + 1


def project_end_date(start: date, weeks: int) -> date:
    """
    End date suggested by the plan builder: start plus whole weeks.

    A 4-week plan starting on a Monday ends on the Monday four weeks later.
    """

    return start + timedelta(days=7 * weeks)


def effective_end(end: date | None) -> date:
    # Open-ended plans run "forever"
    return end if end is not None else date.max


def days_between(start: date, end: date) -> int:
    return (end - start).days


def next_free_start(plans: Iterable[Mesocycle]) -> date | None:
    """
    Day after the latest end date among the customer's live plans.

    Returns None when there is nothing to follow or when the latest plan has
    no end date (nothing can start after an indefinite plan).
    """

    live = [p for p in plans if not p.is_template and p.active]
    if not live:
        return None
    if any(p.end_date is None for p in live):
        return None
    latest = max(p.end_date for p in live if p.end_date is not None)
    return latest + timedelta(days=1)
