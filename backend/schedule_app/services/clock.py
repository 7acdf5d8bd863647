from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, List

from ..errors import InvalidDateFormat

Clock = Callable[[], datetime]

_DATE_RE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


def fixed_clock(moment: datetime) -> Clock:
    """Clock that always returns ``moment`` (must be timezone-aware)."""
    if moment.tzinfo is None:
        raise ValueError("fixed_clock needs an aware datetime")
    return lambda: moment


def anchor_today(clock: Clock, tz: tzinfo) -> date:
    return clock().astimezone(tz).date()


def window_dates(today: date, horizon_days: int) -> List[date]:
    """Dates of the half-open window [today, today + horizon_days)."""
    return [today + timedelta(days=i) for i in range(horizon_days)]


def parse_date(raw: str) -> date:
    """Parse ``D/M/YYYY`` (zero padding optional)."""
    m = _DATE_RE.match(raw or "")
    if not m:
        raise InvalidDateFormat(f"expected D/M/YYYY, got {raw!r}")
    day, month, year = (int(g) for g in m.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise InvalidDateFormat(f"not a calendar date: {raw!r}") from e


def format_date(d: date) -> str:
    return f"{d.day}/{d.month}/{d.year}"
