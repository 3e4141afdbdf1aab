from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings

DEFAULT_TRAILING_DAYS = 30
DEFAULT_TRAILING_MONTHS = 6


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def _add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def month_bounds(year: int, month: int) -> Period:
    if not 1 <= month <= 12:
        raise ValueError("Month must be between 1 and 12")
    first = date(year, month, 1)
    last = _add_months(first, 1) - date.resolution
    return Period(f"{year:04d}-{month:02d}", first, last)


def year_months(year: Optional[int] = None, *, today: Optional[date] = None) -> list[Period]:
    if year is None:
        year = (today or local_today()).year
    return [month_bounds(year, month) for month in range(1, 13)]


def trailing_days(
    days: Optional[int] = None, *, today: Optional[date] = None
) -> Period:
    """Window of ``days`` calendar days ending today, i.e. (today - days, today]."""
    if days is None:
        days = DEFAULT_TRAILING_DAYS
    if days < 1:
        raise ValueError("Days must be a positive number")
    today = today or local_today()
    start = today - timedelta(days=days - 1)
    return Period(f"{days} days", start, today)


def trailing_months(
    months: Optional[int] = None, *, today: Optional[date] = None
) -> list[Period]:
    if months is None:
        months = DEFAULT_TRAILING_MONTHS
    if months < 1:
        raise ValueError("Months must be a positive number")
    current = (today or local_today()).replace(day=1)
    out: list[Period] = []
    for offset in range(months - 1, -1, -1):
        first = _add_months(current, -offset)
        out.append(month_bounds(first.year, first.month))
    return out


def resolve_range(start: Optional[date], end: Optional[date]) -> Optional[Period]:
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise ValueError("Date range requires both start and end dates")
    if start > end:
        raise ValueError("Start date must be before end date")
    return Period("custom", start, end)
