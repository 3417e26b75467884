"""iCalendar (.ics) feed fetcher."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

import httpx
import recurring_ical_events
from icalendar import Calendar

from ..models import CalendarSource, Credentials, ViewWindow
from .base import FetchResult, RawEvent

logger = logging.getLogger("flohub-calendar")

DEFAULT_TIMEOUT = 10.0


def feed_url(connection: str) -> str:
    if connection.startswith("webcal://"):
        return "https://" + connection[len("webcal://"):]
    return connection


def _text(vevent: Any, key: str) -> str:
    value = vevent.get(key)
    return str(value) if value else ""


def vevent_to_raw(vevent: Any) -> RawEvent | None:
    """Convert a VEVENT occurrence into a raw dict. None without DTSTART."""
    dtstart = vevent.get("dtstart")
    if dtstart is None:
        return None
    start: date | datetime = dtstart.dt
    dtend = vevent.get("dtend")
    end = dtend.dt if dtend is not None else None

    uid = _text(vevent, "uid")
    return {
        # occurrences of one recurring event share a UID
        "id": f"{uid}_{start.isoformat()}" if uid else None,
        "summary": _text(vevent, "summary"),
        "description": _text(vevent, "description"),
        "start": start,
        "end": end,
    }


def parse_feed(content: bytes | str, window: ViewWindow) -> list[RawEvent]:
    calendar = Calendar.from_ical(content)
    occurrences = recurring_ical_events.of(calendar).between(window.start, window.end)
    events = []
    for vevent in occurrences:
        raw = vevent_to_raw(vevent)
        if raw is not None:
            events.append(raw)
    return events


class ICalFetcher:
    """Downloads a feed and expands its events over the window."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = DEFAULT_TIMEOUT):
        self._client = http_client
        self._timeout = timeout

    async def _download(self, url: str) -> bytes:
        if self._client is not None:
            response = await self._client.get(url, timeout=self._timeout)
            response.raise_for_status()
            return response.content
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content

    async def fetch(
        self,
        source: CalendarSource,
        window: ViewWindow,
        credentials: Credentials,
    ) -> FetchResult:
        url = feed_url(source.connection)
        logger.info("Fetching calendar feed '%s' from: %s", source.id, url)
        try:
            content = await self._download(url)
            events = parse_feed(content, window)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch calendar feed '%s': %s", source.id, e)
            return FetchResult.failed(source, e)
        return FetchResult(events=events)
