from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from gymplan.db.models import Charge
from gymplan.scheduling.dates import days_in_month

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

Amount = Union[Decimal, int, float, str]


def to_amount(value: Amount | None) -> Decimal | None:
    """
    Parse a currency amount. Returns None for missing, unparseable or
    negative values.
    """

    if value is None:
        return None
    try:
        # str() first so floats keep their printed value instead of binary noise
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_charge(
    tariff_amount: Amount | None,
    billing_year: int,
    billing_month: int,
    join_date: date | None,
    custom_amount: Amount | None = None,
) -> Charge:
    """
    Amount due for one billing month.

    A customer who joined during the billing month after day 1 pays only for
    the days from the join date through month end. Any other month is charged
    in full; being "close" to the join month does not count.

    Without a usable tariff the custom amount is authoritative and charged in
    full.
    """

    month_days = days_in_month(billing_year, billing_month)
    month_start = date(billing_year, billing_month, 1)

    base = to_amount(tariff_amount)
    if base is None:
        if tariff_amount is not None:
            logger.debug("Ignoring invalid tariff amount %r", tariff_amount)
        fallback = to_amount(custom_amount) or Decimal("0")
        return Charge(
            base=fallback,
            charged=fallback,
            is_prorated=False,
            days_charged=month_days,
            from_date=month_start,
        )

    joined_this_month = (
        join_date is not None
        and join_date.year == billing_year
        and join_date.month == billing_month
    )
    if not joined_this_month or join_date.day <= 1:
        return Charge(
            base=base,
            charged=base,
            is_prorated=False,
            days_charged=month_days,
            from_date=month_start,
        )

    days_charged = month_days - join_date.day + 1
    # Single rounding step at the end
    charged = min(round2(base * days_charged / month_days), base)
    return Charge(
        base=base,
        charged=charged,
        is_prorated=True,
        days_charged=days_charged,
        from_date=join_date,
    )
