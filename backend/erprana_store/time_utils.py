from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def shift_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def period_start(period: str, now: datetime | None = None) -> datetime:
    current = now or utc_now()
    if period == "day":
        return current.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return current - timedelta(days=7)
    if period == "month":
        return shift_months(current, -1)
    if period == "quarter":
        return shift_months(current, -3)
    if period == "year":
        return shift_months(current, -12)
    raise ValueError(f"Unsupported period: {period}")
