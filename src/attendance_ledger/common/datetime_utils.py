from __future__ import annotations

import calendar
from datetime import date, datetime


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def is_weekend(value: date) -> bool:
    return value.weekday() >= 5


def month_dates(year: int, month: int) -> list[date]:
    """All calendar dates of a month, weekends included (the grid greys them out)."""
    days = calendar.monthrange(year, month)[1]
    return [date(year, month, day) for day in range(1, days + 1)]


def today_local() -> date:
    """Current local date.

    Note: Wrapped so tests can patch it easier.
    """
    return datetime.now().date()
