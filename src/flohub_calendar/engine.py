"""Read and write operations over a user's configured calendars."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

import httpx
from dateutil.parser import isoparse

from .aggregator import DEFAULT_FETCH_TIMEOUT, AggregationReport, aggregate_with_report
from .backends.registry import Fetchers, build_fetchers
from .errors import InvalidRequest, UnsupportedWrite
from .filters import filter_events, order_events
from .models import (
    CalendarEvent,
    CalendarSource,
    Credentials,
    SourceKind,
    UserCalendarSettings,
    ViewToken,
    ViewWindow,
    requires_session,
)
from .normalizer import CALENDAR_ID_PREFIXES, calendar_id_for, normalize
from .settings import resolve, resolve_request
from .windows import compute_window, get_timezone, parse_view, window_from_bounds

logger = logging.getLogger("flohub-calendar")


class CalendarEngine:
    """Stateless facade: resolve sources, fetch, merge, filter.

    Holds only configuration; every call builds its own window and results.
    """

    def __init__(
        self,
        settings: UserCalendarSettings,
        credentials: Credentials,
        *,
        default_timezone: str = "UTC",
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        include_placeholders: bool = False,
        fetchers: Fetchers | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.settings = settings
        self.credentials = credentials
        self.default_timezone = default_timezone
        self.fetch_timeout = fetch_timeout
        self.include_placeholders = include_placeholders
        self._fetchers = fetchers
        self._http_client = http_client
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _fetchers_for(self, include_placeholders: bool | None) -> Fetchers:
        if self._fetchers is not None:
            return self._fetchers
        if include_placeholders is None:
            include_placeholders = self.include_placeholders
        return build_fetchers(include_placeholders=include_placeholders, http_client=self._http_client)

    def sources(self) -> list[CalendarSource]:
        return resolve(self.settings)

    async def _collect(
        self,
        sources: Sequence[CalendarSource],
        window: ViewWindow,
        include_placeholders: bool | None,
    ) -> AggregationReport:
        if requires_session(sources):
            self.credentials.require(SourceKind.PRIMARY)
        return await aggregate_with_report(
            sources,
            window,
            self.credentials,
            fetchers=self._fetchers_for(include_placeholders),
            timeout=self.fetch_timeout,
        )

    async def list_events(
        self,
        time_min: str | None,
        time_max: str | None,
        *,
        calendar_ids: Sequence[str] | None = None,
        webhook_url: str | None = None,
        tz_name: str | None = None,
        use_sources: bool = True,
        view: ViewToken | str | None = None,
        include_placeholders: bool | None = None,
    ) -> list[CalendarEvent]:
        """Events between explicit bounds, ordered by start.

        Without ``view`` every merged event is returned; with one, that
        view's inclusion rule is applied as well.

        Raises:
            InvalidWindow: bounds missing or unparseable.
            InvalidRequest: unknown timezone.
            Unauthenticated: no valid primary-account credential.
        """
        tz = get_timezone(tz_name, self.default_timezone)
        token = parse_view(view) if view else ViewToken.CUSTOM
        window = window_from_bounds(time_min, time_max, tz, token)
        sources = resolve_request(
            self.settings,
            use_sources=use_sources,
            calendar_ids=calendar_ids,
            webhook_url=webhook_url,
        )
        events = (await self._collect(sources, window, include_placeholders)).events
        if view:
            return filter_events(events, token, window, self._clock())
        return order_events(events, tz)

    async def get_view(
        self,
        view: ViewToken | str,
        *,
        tz_name: str | None = None,
        custom_range: tuple[Any, Any] | None = None,
        include_placeholders: bool | None = None,
    ) -> tuple[ViewWindow, AggregationReport]:
        """Compute the window for ``view`` and aggregate it.

        The returned report holds the filtered events plus the error of every
        source that failed, keyed by source id.
        """
        tz = get_timezone(tz_name, self.default_timezone)
        now = self._clock()
        window = compute_window(view, now, tz, custom_range)
        report = await self._collect(self.sources(), window, include_placeholders)
        events = filter_events(report.events, window.view, window, now)
        return window, AggregationReport(events=events, errors=dict(report.errors))

    # -----------------------------------------------------------------------
    # Write path (primary provider only)
    # -----------------------------------------------------------------------

    def _write_target(self, calendar_id: str) -> CalendarSource:
        for source in self.sources():
            if calendar_id in (source.id, source.connection, calendar_id_for(source)):
                if source.kind is not SourceKind.PRIMARY or source.is_oauth_account:
                    raise UnsupportedWrite(
                        f"Creating events in {source.kind} calendars is not implemented"
                    )
                return source
        if calendar_id.startswith(tuple(CALENDAR_ID_PREFIXES.values())):
            raise UnsupportedWrite("Creating events in this calendar type is not implemented")
        return CalendarSource(id=calendar_id, kind=SourceKind.PRIMARY, connection=calendar_id)

    async def create_event(
        self,
        calendar_id: str,
        title: str,
        start: str,
        end: str,
        *,
        description: str = "",
        source: str | None = None,
        tags: Sequence[str] | None = None,
        tz_name: str | None = None,
    ) -> CalendarEvent:
        """Create an event in a primary-account calendar.

        Raises:
            InvalidRequest: missing fields or unparseable times.
            UnsupportedWrite: target is not a primary-account calendar.
            Unauthenticated: no valid primary-account credential.
        """
        if not calendar_id or not title or not start or not end:
            raise InvalidRequest("Missing required event fields")
        if source not in (None, "work", "personal"):
            raise InvalidRequest(f"Invalid source classification: {source}")
        tz = get_timezone(tz_name, self.default_timezone)
        try:
            dt_start, dt_end = isoparse(start), isoparse(end)
        except ValueError:
            raise InvalidRequest("Invalid start or end time") from None
        dt_start = dt_start if dt_start.tzinfo else dt_start.replace(tzinfo=tz)
        dt_end = dt_end if dt_end.tzinfo else dt_end.replace(tzinfo=tz)
        if dt_end < dt_start:
            raise InvalidRequest("Event ends before it starts")

        target = self._write_target(calendar_id)
        self.credentials.require(SourceKind.PRIMARY)

        writer = self._fetchers_for(None)[SourceKind.PRIMARY]
        if not hasattr(writer, "create_event"):
            raise UnsupportedWrite("Primary fetcher does not support event creation")
        raw = await writer.create_event(
            target.connection or target.id,
            title,
            dt_start,
            dt_end,
            self.credentials,
            description=description,
            source=source,
            tags=tags,
            timezone=tz.key,
        )
        event = normalize(raw, target, tz=tz)
        if event is None:
            raise InvalidRequest("Provider returned an event without a start")
        if source:
            event.source = source
        return event
