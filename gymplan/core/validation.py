from __future__ import annotations

from datetime import date, datetime

from .errors import ValidationError


def normalize_plan_name(raw: str | None) -> str:
    """
    Strip surrounding whitespace and reject empty names.
    """

    value = (raw or "").strip()
    if not value:
        raise ValidationError("Plan name is required", field="name")
    return value


def validate_date_range(start_date: date | None, end_date: date | None) -> None:
    """
    Reject ranges that end before they start. Open ends are allowed.
    """

    if start_date is not None and end_date is not None and end_date < start_date:
        raise ValidationError(
            f"End date {end_date.isoformat()} is before start date {start_date.isoformat()}",
            field="end_date",
        )


def validate_weeks(weeks: int) -> int:
    if weeks <= 0:
        raise ValidationError("Number of weeks must be positive", field="weeks")
    return weeks


_DATE_FORMATS = ("%d.%m.%Y", "%Y-%m-%d")


def parse_user_date(raw: str) -> date:
    """
    Parse a date typed by staff: DD.MM.YYYY or ISO YYYY-MM-DD.
    """

    value = raw.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValidationError(f"Unrecognized date: {value!r}", field="date")


def parse_billing_month(raw: str) -> tuple[int, int]:
    """
    Parse a billing month given as YYYY-MM or MM.YYYY.
    """

    value = raw.strip()
    for fmt in ("%Y-%m", "%m.%Y"):
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return parsed.year, parsed.month
    raise ValidationError(f"Unrecognized month: {value!r}", field="month")
