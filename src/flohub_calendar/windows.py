"""View window calculation.

Every window starts at the first instant of its first day and ends on the
last millisecond of its last day (23:59:59.999), both inclusive. Weeks start
on Monday.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.parser import ParserError, isoparse
from dateutil.parser import parse as parse_dt

from .errors import InvalidRequest, InvalidWindow
from .models import ViewToken, ViewWindow

END_OF_DAY = time(23, 59, 59, 999000)


def get_timezone(name: str | None, default: str = "UTC") -> ZoneInfo:
    """Look up an IANA zone, raising InvalidRequest for unknown names."""
    key = name or default
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidRequest(f"Unknown timezone: {key}") from None


def parse_view(value: str | ViewToken) -> ViewToken:
    try:
        return ViewToken(str(value).strip().lower())
    except ValueError:
        raise InvalidWindow(f"Unknown view: {value!r}") from None


def start_of_day(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def end_of_day(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, END_OF_DAY, tzinfo=tz)


def local_date(now: datetime, tz: ZoneInfo) -> date:
    """Calendar date of ``now`` in ``tz``. Naive values are taken as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    return now.astimezone(tz).date()


def _to_date(value: Any, tz: ZoneInfo) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return local_date(value, tz) if value.tzinfo else value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_dt(str(value))
    except (ParserError, ValueError, OverflowError):
        return None
    return local_date(parsed, tz) if parsed.tzinfo else parsed.date()


def _week(today: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    monday = today - timedelta(days=today.weekday())
    return start_of_day(monday, tz), end_of_day(monday + timedelta(days=6), tz)


def compute_window(
    view: ViewToken | str,
    now: datetime,
    timezone: ZoneInfo,
    custom_range: tuple[Any, Any] | None = None,
) -> ViewWindow:
    """Turn a view token plus "now" into a concrete window in ``timezone``."""
    view = parse_view(view)
    today = local_date(now, timezone)

    if view is ViewToken.TODAY:
        start, end = start_of_day(today, timezone), end_of_day(today, timezone)
    elif view is ViewToken.TOMORROW:
        tomorrow = today + timedelta(days=1)
        start, end = start_of_day(tomorrow, timezone), end_of_day(tomorrow, timezone)
    elif view is ViewToken.WEEK:
        start, end = _week(today, timezone)
    elif view is ViewToken.MONTH:
        last = calendar.monthrange(today.year, today.month)[1]
        start = start_of_day(today.replace(day=1), timezone)
        end = end_of_day(today.replace(day=last), timezone)
    else:
        first, last = custom_range if custom_range else (None, None)
        first, last = _to_date(first, timezone), _to_date(last, timezone)
        if first is None or last is None or last < first:
            start, end = _week(today, timezone)
        else:
            start, end = start_of_day(first, timezone), end_of_day(last, timezone)

    return ViewWindow(start=start, end=end, view=view, timezone=timezone)


def parse_instant(value: str | None, tz: ZoneInfo) -> datetime:
    """Parse an ISO-8601 bound. Naive values are read in ``tz``."""
    if not value or not isinstance(value, str):
        raise InvalidWindow("Missing timeMin or timeMax")
    try:
        parsed = isoparse(value.strip())
    except (ValueError, OverflowError):
        raise InvalidWindow(f"Invalid date format for time bound: {value}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def window_from_bounds(
    time_min: str | None,
    time_max: str | None,
    timezone: ZoneInfo,
    view: ViewToken | str = ViewToken.CUSTOM,
) -> ViewWindow:
    """Build a window from explicit request bounds."""
    start = parse_instant(time_min, timezone)
    end = parse_instant(time_max, timezone)
    if end < start:
        raise InvalidWindow("timeMax is before timeMin")
    return ViewWindow(start=start, end=end, view=parse_view(view), timezone=timezone)
