"""Calendar-day helpers shared by schemas and services."""

import calendar
from datetime import date, datetime, timedelta
from typing import Annotated, Any

from pydantic import BeforeValidator


def normalize_day(value: Any) -> date:
    """Strip time-of-day from a date-like value.

    Accepts ``date``, ``datetime`` and ISO-8601 strings such as
    ``2024-03-01`` or ``2024-03-01T09:30:00.000Z``.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10 and text[10] in ("T", " "):
            text = text[:10]
        try:
            return date.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid date: {value}") from None
    raise ValueError(f"Invalid date: {value!r}")


CalendarDay = Annotated[date, BeforeValidator(normalize_day)]


def parse_month(value: str) -> tuple[date, date]:
    """Return the first and last day for a ``YYYY-MM`` string."""
    try:
        year_str, month_str = value.strip().split("-")
        year, month = int(year_str), int(month_str)
        last = calendar.monthrange(year, month)[1]
    except (ValueError, calendar.IllegalMonthError):
        raise ValueError(f"Invalid month '{value}', expected YYYY-MM") from None
    return date(year, month, 1), date(year, month, last)


STATS_PERIODS = ("today", "week", "month", "year")


def period_bounds(period: str | None, today: date) -> tuple[date, date]:
    """Resolve a named statistics period to an inclusive date range."""
    if period == "today":
        return today, today
    if period == "week":
        return today - timedelta(days=7), today
    if period == "month":
        return today.replace(day=1), today
    return today.replace(month=1, day=1), today
