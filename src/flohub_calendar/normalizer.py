"""Map provider-specific raw events onto the canonical CalendarEvent."""

from __future__ import annotations

import hashlib
import json
import logging
import re
from datetime import date, datetime, time, timezone
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.parser import ParserError
from dateutil.parser import parse as parse_dt

from .errors import NormalizationSkipped
from .models import CalendarEvent, CalendarSource, SourceKind

logger = logging.getLogger("flohub-calendar")

DEFAULT_TITLE = "No Title"

_DATE_ONLY = re.compile(r"\d{4}-\d{2}-\d{2}")

# calendar_id prefixes for sources that are not primary-account calendars
CALENDAR_ID_PREFIXES = {
    SourceKind.EXCHANGE: "o365_",
    SourceKind.WEBHOOK: "webhook_",
    SourceKind.ICAL: "ical_",
    SourceKind.APPLE: "apple_",
    SourceKind.OTHER: "other_",
}


def _zone(name: Any, fallback: timezone | ZoneInfo) -> timezone | ZoneInfo:
    if not name or not isinstance(name, str):
        return fallback
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return fallback


def parse_temporal(value: Any, tz: timezone | ZoneInfo = timezone.utc) -> date | datetime | None:
    """Resolve one provider time value.

    Handles ``{"dateTime": ..., "timeZone": ...}`` / ``{"date": ...}`` objects,
    ISO-8601 strings and ``date``/``datetime`` values. Bare dates come back as
    ``date``; everything else as an aware ``datetime`` (naive input is read in
    ``tz``). Returns None when nothing usable is present.
    """
    if value is None or value == "":
        return None
    if isinstance(value, Mapping):
        if value.get("dateTime"):
            return parse_temporal(value["dateTime"], _zone(value.get("timeZone"), tz))
        if value.get("date"):
            return parse_temporal(value["date"], tz)
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if _DATE_ONLY.fullmatch(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None
    try:
        parsed = parse_dt(text)
    except (ParserError, ValueError, OverflowError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_shape(value: date | datetime, like: date | datetime, tz) -> date | datetime:
    """Coerce ``value`` to the all-day/timed shape of ``like``."""
    if isinstance(like, datetime):
        if isinstance(value, datetime):
            return value
        return datetime.combine(value, time.min, tzinfo=tz)
    if isinstance(value, datetime):
        return value.date()
    return value


def classify(source: CalendarSource) -> str:
    tags = set(source.tags)
    if "work" in tags:
        return "work"
    if "personal" in tags or not tags:
        return "personal"
    return "work" if source.kind is SourceKind.EXCHANGE else "personal"


def _provider_tags(raw: Mapping[str, Any]) -> list[str]:
    tags: list[str] = []
    extended = raw.get("extendedProperties")
    private = extended.get("private") if isinstance(extended, Mapping) else None
    stored = private.get("tags") if isinstance(private, Mapping) else None
    if isinstance(stored, str):
        try:
            stored = json.loads(stored)
        except ValueError:
            stored = None
    if isinstance(stored, list):
        tags.extend(str(t) for t in stored)
    categories = raw.get("categories")
    if isinstance(categories, (list, tuple)):
        tags.extend(str(c) for c in categories)
    return tags


def calendar_id_for(source: CalendarSource) -> str:
    prefix = CALENDAR_ID_PREFIXES.get(source.kind)
    if prefix is None:
        return source.connection or source.id
    return f"{prefix}{source.id}"


def _synthetic_id(source: CalendarSource, start: date | datetime, title: str) -> str:
    digest = hashlib.sha1(f"{source.id}|{start.isoformat()}|{title}".encode()).hexdigest()[:16]
    return f"{source.id}_{digest}"


def _resolve_start(raw: Mapping[str, Any], tz) -> date | datetime:
    start = parse_temporal(_first(raw, "start", "startTime", "dtstart"), tz)
    if start is None:
        raise NormalizationSkipped("no resolvable start")
    return start


def _to_event(raw: Mapping[str, Any], source: CalendarSource, tz) -> CalendarEvent:
    start = _resolve_start(raw, tz)
    end = parse_temporal(_first(raw, "end", "endTime", "dtend"), tz)

    if raw.get("isAllDay") and isinstance(start, datetime):
        start = start.date()
    if end is not None:
        end = _as_shape(end, start, tz)
        if end < start:
            logger.debug("Dropping end before start for event in '%s'", source.id)
            end = None

    title = str(_first(raw, "title", "summary", "subject") or DEFAULT_TITLE)
    event_id = _first(raw, "id", "uid")
    tags = list(dict.fromkeys([*source.tags, *_provider_tags(raw)]))

    return CalendarEvent(
        id=str(event_id) if event_id is not None else _synthetic_id(source, start, title),
        calendar_id=str(raw.get("calendarId") or calendar_id_for(source)),
        title=title,
        start=start,
        end=end,
        description=str(_first(raw, "description", "bodyPreview", "body") or ""),
        source=classify(source),
        calendar_name=str(raw.get("calendarName") or source.display_name),
        tags=tags,
        kind=source.kind,
    )


def normalize(
    raw: Mapping[str, Any],
    source: CalendarSource,
    *,
    tz: timezone | ZoneInfo = timezone.utc,
) -> CalendarEvent | None:
    """Convert one raw provider event. Returns None if it cannot be placed."""
    if not isinstance(raw, Mapping):
        logger.debug("Skipping non-object event from '%s'", source.id)
        return None
    try:
        return _to_event(raw, source, tz)
    except (NormalizationSkipped, TypeError, ValueError) as e:
        logger.debug("Skipping event from '%s': %s", source.id, e)
        return None
