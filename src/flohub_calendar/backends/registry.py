"""Fetcher selection by source kind."""

from __future__ import annotations

from typing import Mapping, assert_never

import httpx

from ..models import SourceKind
from .base import EventFetcher
from .placeholder import PlaceholderFetcher

Fetchers = Mapping[SourceKind, EventFetcher]


def fetcher_for(
    kind: SourceKind,
    *,
    include_placeholders: bool = False,
    http_client: httpx.AsyncClient | None = None,
) -> EventFetcher:
    """Create the fetcher for ``kind``."""
    placeholders = PlaceholderFetcher(include_placeholders)
    match kind:
        case SourceKind.PRIMARY:
            from .google import GoogleCalendarFetcher
            return GoogleCalendarFetcher(placeholders)
        case SourceKind.EXCHANGE:
            from .ews import ExchangeCalendarFetcher
            return ExchangeCalendarFetcher()
        case SourceKind.WEBHOOK:
            from .webhook import WebhookFetcher
            return WebhookFetcher(http_client)
        case SourceKind.ICAL:
            from .ical import ICalFetcher
            return ICalFetcher(http_client)
        case SourceKind.APPLE | SourceKind.OTHER:
            return placeholders
        case _:
            assert_never(kind)


def build_fetchers(
    *,
    include_placeholders: bool = False,
    http_client: httpx.AsyncClient | None = None,
) -> dict[SourceKind, EventFetcher]:
    """One fetcher per kind. Fetchers hold no per-request state and are shared."""
    return {
        kind: fetcher_for(kind, include_placeholders=include_placeholders, http_client=http_client)
        for kind in SourceKind
    }
