from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from gymplan.db.models import Charge, Payment, StatementLine, UnpaidMonth
from gymplan.scheduling.dates import add_months

from .proration import Amount, compute_charge

# Tolerances for cash rounding at the desk
PAID_MARGIN = Decimal("0.05")
UNPAID_MARGIN = Decimal("1.00")


def statement_line(charge: Charge, paid: Decimal) -> StatementLine:
    required = charge.charged
    return StatementLine(
        required=required,
        paid=paid,
        is_paid=paid >= required - PAID_MARGIN,
        debt=max(Decimal("0"), required - paid),
    )


def paid_in_month(payments: Iterable[Payment], year: int, month: int) -> Decimal:
    return sum(
        (
            p.amount
            for p in payments
            if p.payment_date.year == year and p.payment_date.month == month
        ),
        Decimal("0"),
    )


def find_unpaid_months(
    tariff_amount: Amount | None,
    join_date: date,
    payments: Iterable[Payment],
    as_of: date,
    lookback_months: int = 24,
) -> list[UnpaidMonth]:
    """
    Billing months from the join month through the current month that were
    not covered by payments.

    The join month is prorated. Months older than `lookback_months` are not
    examined.
    """

    payments = list(payments)
    year, month = join_date.year, join_date.month
    floor = add_months(as_of.year, as_of.month, -lookback_months)
    if (year, month) < floor:
        year, month = floor

    unpaid: list[UnpaidMonth] = []
    while (year, month) <= (as_of.year, as_of.month):
        required = compute_charge(tariff_amount, year, month, join_date).charged
        paid = paid_in_month(payments, year, month)
        if required > 0 and paid < required - UNPAID_MARGIN:
            unpaid.append(UnpaidMonth(year=year, month=month, required=required, paid=paid))
        year, month = add_months(year, month, 1)

    return unpaid


def is_debtor(unpaid_months: list[UnpaidMonth], threshold: int = 2) -> bool:
    return len(unpaid_months) > threshold
