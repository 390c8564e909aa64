from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from gymplan.db.models import (
    Customer,
    CustomerPriority,
    Mesocycle,
    RenewalAssessment,
    RenewalPriority,
)

from .dates import days_between

DEFAULT_URGENT_THRESHOLD = 7

_PRIORITY_ORDER = {
    RenewalPriority.EXPIRED: 0,
    RenewalPriority.NONE: 1,
    RenewalPriority.URGENT: 2,
    RenewalPriority.GOOD: 3,
}


def most_relevant_plan(plans: Iterable[Mesocycle]) -> Mesocycle | None:
    """
    The plan that decides a customer's renewal priority.

    An open-ended live plan wins; otherwise the one ending last.
    """

    live = [p for p in plans if not p.is_template and p.active]
    if not live:
        return None
    open_ended = [p for p in live if p.end_date is None]
    if open_ended:
        return open_ended[0]
    return max(live, key=lambda p: p.end_date)


def classify_renewal(
    plan: Mesocycle | None,
    as_of: date,
    urgent_threshold: int = DEFAULT_URGENT_THRESHOLD,
) -> RenewalAssessment:
    if plan is None:
        return RenewalAssessment(priority=RenewalPriority.NONE)
    if plan.end_date is None:
        return RenewalAssessment(priority=RenewalPriority.GOOD)

    remaining = days_between(as_of, plan.end_date)
    if remaining < 0:
        priority = RenewalPriority.EXPIRED
    elif remaining <= urgent_threshold:
        priority = RenewalPriority.URGENT
    else:
        priority = RenewalPriority.GOOD
    return RenewalAssessment(priority=priority, days_remaining=remaining)


def _cancels_this_month(customer: Customer, as_of: date) -> bool:
    end = customer.membership_end_date
    return end is not None and (end.year, end.month) == (as_of.year, as_of.month)


def _sort_key(row: CustomerPriority) -> tuple[int, float]:
    if row.days_remaining is not None:
        days: float = row.days_remaining
    elif row.priority == RenewalPriority.NONE:
        days = -1
    else:
        days = float("inf")
    return _PRIORITY_ORDER[row.priority], days


def rank_customers(
    customers: Iterable[Customer],
    plans: Iterable[Mesocycle],
    as_of: date,
    urgent_threshold: int = DEFAULT_URGENT_THRESHOLD,
) -> list[CustomerPriority]:
    """
    Order active customers by how soon they need a new plan.

    Customers whose membership ends this month are skipped. Expired first,
    then customers without any plan, then urgent, then good; ties broken by
    fewest days remaining.
    """

    by_customer: dict[int, list[Mesocycle]] = {}
    for plan in plans:
        if plan.customer_id is not None:
            by_customer.setdefault(plan.customer_id, []).append(plan)

    rows: list[CustomerPriority] = []
    for customer in customers:
        if not customer.active or _cancels_this_month(customer, as_of):
            continue
        plan = most_relevant_plan(by_customer.get(customer.id, []))
        assessment = classify_renewal(plan, as_of, urgent_threshold)
        rows.append(
            CustomerPriority(
                customer=customer,
                plan_id=plan.id if plan else None,
                plan_end_date=plan.end_date if plan else None,
                priority=assessment.priority,
                days_remaining=assessment.days_remaining,
            )
        )

    return sorted(rows, key=_sort_key)
