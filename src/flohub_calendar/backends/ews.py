"""Exchange / Microsoft 365 fetcher via exchangelib."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Any

from ..models import PRIMARY_SENTINEL_ID, CalendarSource, Credentials, SourceKind, ViewWindow
from .base import FetchResult, RawEvent

logger = logging.getLogger("flohub-calendar")


def _iso(value: Any) -> str | None:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return None


def item_to_raw(item: Any) -> RawEvent:
    """Flatten an exchangelib CalendarItem into the provider's JSON shape."""
    is_all_day = bool(getattr(item, "is_all_day", False))
    start, end = getattr(item, "start", None), getattr(item, "end", None)
    if is_all_day:
        start_raw = {"date": _iso(start.date() if isinstance(start, datetime) else start)}
        end_raw = {"date": _iso(end.date() if isinstance(end, datetime) else end)} if end else None
    else:
        start_raw = {"dateTime": _iso(start)}
        end_raw = {"dateTime": _iso(end)} if end else None
    body = getattr(item, "text_body", None) or getattr(item, "body", None)
    return {
        "id": getattr(item, "id", None),
        "subject": getattr(item, "subject", None),
        "start": start_raw,
        "end": end_raw,
        "isAllDay": is_all_day,
        "bodyPreview": str(body) if body else "",
        "categories": list(getattr(item, "categories", None) or []),
    }


class ExchangeCalendarFetcher:
    """Calendar view of one mailbox calendar.

    The connection reference names a calendar folder below the default
    calendar. ``primary``, an empty value or an ``oauth:`` account marker
    select the default calendar itself.
    """

    def _get_account(self, credentials: Credentials):
        from exchangelib import DELEGATE, OAUTH2, Account, Configuration, OAuth2AuthorizationCodeCredentials
        from oauthlib.oauth2 import OAuth2Token

        ews_credentials = OAuth2AuthorizationCodeCredentials(
            client_id=None,
            client_secret=None,
            access_token=OAuth2Token({"access_token": credentials.exchange_token, "token_type": "Bearer"}),
        )
        config = Configuration(
            server=credentials.exchange_server,
            credentials=ews_credentials,
            auth_type=OAUTH2,
        )
        return Account(
            primary_smtp_address=credentials.exchange_mailbox,
            config=config,
            autodiscover=False,
            access_type=DELEGATE,
        )

    def _folder(self, account: Any, source: CalendarSource):
        name = source.connection
        if not name or name == PRIMARY_SENTINEL_ID or source.is_oauth_account:
            return account.calendar
        return account.calendar / name

    def _list_events_sync(self, source: CalendarSource, window: ViewWindow, credentials: Credentials) -> list[RawEvent]:
        from exchangelib import EWSDateTime, EWSTimeZone

        account = self._get_account(credentials)
        folder = self._folder(account, source)
        tz = EWSTimeZone(window.timezone.key)
        # view() expands recurring items and pages through the whole range
        items = folder.view(
            start=EWSDateTime.from_datetime(window.start.astimezone(tz)),
            end=EWSDateTime.from_datetime(window.end.astimezone(tz)),
        ).order_by("start")
        return [item_to_raw(item) for item in items]

    async def fetch(
        self,
        source: CalendarSource,
        window: ViewWindow,
        credentials: Credentials,
    ) -> FetchResult:
        if not credentials.has(SourceKind.EXCHANGE):
            logger.warning("Exchange credentials not set for '%s'", source.id)
            return FetchResult.failed(source, "Microsoft authentication required")

        loop = asyncio.get_running_loop()
        try:
            events = await loop.run_in_executor(None, self._list_events_sync, source, window, credentials)
        except Exception as e:
            logger.warning("Failed to fetch Exchange events for '%s': %s", source.id, e)
            return FetchResult.failed(source, e)
        return FetchResult(events=events)
