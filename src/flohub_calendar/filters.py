"""View-specific inclusion rules and ordering."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from .models import CalendarEvent, ViewToken, ViewWindow
from .windows import end_of_day, local_date, parse_view, start_of_day


def start_instant(event: CalendarEvent, tz: ZoneInfo) -> datetime | None:
    """Start as an instant; all-day events start at local midnight."""
    start = getattr(event, "start", None)
    if isinstance(start, datetime):
        return start
    if isinstance(start, date):
        return start_of_day(start, tz)
    return None


def effective_end(event: CalendarEvent, tz: ZoneInfo) -> datetime:
    """Instant an event stops being relevant to a day view.

    All-day events run to the end of their last day (a later end date is
    exclusive). Timed events without an end run to the end of their start day.
    """
    start, end = event.start, event.end
    if isinstance(start, datetime):
        if isinstance(end, datetime):
            return end
        return end_of_day(start.astimezone(tz).date(), tz)
    last_day = start
    if isinstance(end, date) and end > start:
        last_day = end - timedelta(days=1)
    return end_of_day(last_day, tz)


def order_events(events: Iterable[CalendarEvent], tz: ZoneInfo) -> list[CalendarEvent]:
    """Sort by start instant then id, dropping events without a start."""
    keyed = [(start_instant(e, tz), e.id, e) for e in events]
    keyed = [item for item in keyed if item[0] is not None]
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [event for _, _, event in keyed]


def _not_ended(event: CalendarEvent, now: datetime, tz: ZoneInfo) -> bool:
    return effective_end(event, tz) >= now


def filter_events(
    events: Iterable[CalendarEvent],
    view: ViewToken | str,
    window: ViewWindow,
    now: datetime,
) -> list[CalendarEvent]:
    """Apply the view's inclusion rule and sort ascending by start.

    today/tomorrow keep events that have not ended yet relative to ``now``.
    Wider views keep events starting at or after the start of today, so
    earlier events from today still show while earlier days are dropped.
    """
    view = parse_view(view)
    tz = window.timezone
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    today_start = start_of_day(local_date(now, tz), tz)

    kept: list[CalendarEvent] = []
    for event in events:
        start = start_instant(event, tz)
        if start is None:
            continue
        if view in (ViewToken.TODAY, ViewToken.TOMORROW):
            if not _not_ended(event, now, tz):
                continue
        elif start < today_start:
            continue
        kept.append(event)
    return order_events(kept, tz)
