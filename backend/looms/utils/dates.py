"""Calendar helpers for dashboard and report windows."""

import calendar
from datetime import date, timedelta


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move (year, month) by delta months, e.g. (2026, 1) -1 → (2025, 12)."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_label(year: int, month: int) -> str:
    """'Oct 2026', the label the dashboard trend chart expects."""
    return f"{calendar.month_abbr[month]} {year}"


def last_n_days(today: date, days: int) -> date:
    return today - timedelta(days=days)
