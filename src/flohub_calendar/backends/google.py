"""Google Calendar API fetcher (primary account)."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Sequence

from ..errors import ProviderWriteFailed, Unauthenticated
from ..models import CalendarSource, Credentials, SourceKind, ViewWindow
from .base import FetchResult, RawEvent
from .placeholder import PlaceholderFetcher

logger = logging.getLogger("flohub-calendar")

MAX_RESULTS = 250


def _rfc3339(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


class GoogleCalendarFetcher:
    """Events for one Google calendar, using the signed-in user's credential.

    Sources whose connection is an ``oauth:<label>`` marker belong to
    additional Google accounts this process holds no token for; they are
    delegated to the placeholder fetcher.
    """

    def __init__(self, placeholders: PlaceholderFetcher | None = None, max_results: int = MAX_RESULTS):
        self._placeholders = placeholders or PlaceholderFetcher()
        self._max_results = max_results

    def _build_service(self, google_credentials: Any):
        from googleapiclient.discovery import build

        return build("calendar", "v3", credentials=google_credentials, cache_discovery=False)

    def _list_events_sync(self, calendar_id: str, window: ViewWindow, google_credentials: Any) -> list[RawEvent]:
        service = self._build_service(google_credentials)
        items: list[RawEvent] = []
        page_token = None

        while True:
            events_result = (
                service.events()
                .list(
                    calendarId=calendar_id,
                    timeMin=_rfc3339(window.start),
                    timeMax=_rfc3339(window.end),
                    singleEvents=True,
                    orderBy="startTime",
                    maxResults=self._max_results,
                    pageToken=page_token,
                )
                .execute()
            )
            items.extend(events_result.get("items", []))
            page_token = events_result.get("nextPageToken")
            if not page_token:
                break

        calendar_name = events_result.get("summary")
        if calendar_name:
            for item in items:
                item.setdefault("calendarName", calendar_name)
        return items

    async def fetch(
        self,
        source: CalendarSource,
        window: ViewWindow,
        credentials: Credentials,
    ) -> FetchResult:
        if source.is_oauth_account:
            return await self._placeholders.fetch(source, window, credentials)
        if not credentials.has(SourceKind.PRIMARY):
            return FetchResult.failed(source, "no valid Google credential")

        calendar_id = source.connection or source.id
        loop = asyncio.get_running_loop()
        try:
            items = await loop.run_in_executor(
                None, self._list_events_sync, calendar_id, window, credentials.google
            )
        except Exception as e:
            logger.warning("Google Calendar API error for '%s': %s", calendar_id, e)
            return FetchResult.failed(source, e)
        return FetchResult(events=items)

    # -----------------------------------------------------------------------
    # Write path
    # -----------------------------------------------------------------------

    def _insert_event_sync(self, calendar_id: str, body: dict[str, Any], google_credentials: Any) -> RawEvent:
        from googleapiclient.errors import HttpError

        service = self._build_service(google_credentials)
        try:
            return service.events().insert(calendarId=calendar_id, body=body).execute()
        except HttpError as e:
            status = e.resp.status
            if status == 401:
                raise Unauthenticated("Google rejected the credential") from e
            reason = getattr(e, "reason", None) or str(e)
            raise ProviderWriteFailed(f"Google API create error: {reason}", status) from e

    async def create_event(
        self,
        calendar_id: str,
        title: str,
        start: datetime,
        end: datetime,
        credentials: Credentials,
        description: str = "",
        source: str | None = None,
        tags: Sequence[str] | None = None,
        timezone: str = "UTC",
    ) -> RawEvent:
        credentials.require(SourceKind.PRIMARY)
        body: dict[str, Any] = {
            "summary": title,
            "description": description or "",
            "start": {"dateTime": start.isoformat(), "timeZone": timezone},
            "end": {"dateTime": end.isoformat(), "timeZone": timezone},
        }
        private: dict[str, str] = {}
        if tags:
            private["tags"] = json.dumps(list(tags))
        if source:
            private["source"] = source
        if private:
            body["extendedProperties"] = {"private": private}

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, self._insert_event_sync, calendar_id, body, credentials.google
        )
        logger.info("Google event created: %s in '%s'", title, calendar_id)
        return result
