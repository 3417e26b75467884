"""Webhook URL fetcher (e.g. a Power Automate flow returning JSON events)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from ..models import CalendarSource, Credentials, ViewWindow
from ..normalizer import parse_temporal
from .base import FetchResult, RawEvent

logger = logging.getLogger("flohub-calendar")

DEFAULT_TIMEOUT = 10.0


class WebhookPayloadError(ValueError):
    pass


def extract_events(payload: Any) -> list[RawEvent]:
    """Pull the event list out of a webhook response body.

    Accepts a bare array, or an object with exactly one array-valued field
    (``events`` is preferred if several are present).
    """
    if isinstance(payload, list):
        return [e for e in payload if isinstance(e, dict)]
    if isinstance(payload, dict):
        arrays = [v for v in payload.values() if isinstance(v, list)]
        if len(arrays) == 1:
            return [e for e in arrays[0] if isinstance(e, dict)]
        if isinstance(payload.get("events"), list):
            return [e for e in payload["events"] if isinstance(e, dict)]
    raise WebhookPayloadError("expected a JSON array or an object with one array field")


def _as_instant(value: Any, window: ViewWindow) -> datetime | None:
    parsed = parse_temporal(value, window.timezone)
    if parsed is None or isinstance(parsed, datetime):
        return parsed
    return datetime.combine(parsed, datetime.min.time(), tzinfo=window.timezone)


def in_window(event: RawEvent, window: ViewWindow) -> bool:
    """Client-side window check; the webhook contract has no range parameter."""
    start = _as_instant(event.get("startTime") or event.get("start"), window)
    if start is None:
        return False
    end = _as_instant(event.get("endTime") or event.get("end"), window)

    starts_inside = start >= window.start and (end is None or end <= window.end)
    straddles_start = start < window.start and end is not None and end > window.start
    return starts_inside or straddles_start


class WebhookFetcher:
    """Single unauthenticated GET against the source URL."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = DEFAULT_TIMEOUT):
        self._client = http_client
        self._timeout = timeout

    async def _get_json(self, url: str) -> Any:
        if self._client is not None:
            response = await self._client.get(url, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.json()

    async def fetch(
        self,
        source: CalendarSource,
        window: ViewWindow,
        credentials: Credentials,
    ) -> FetchResult:
        url = source.connection
        logger.info("Fetching webhook events for '%s'", source.id)
        try:
            payload = await self._get_json(url)
            raw_events = extract_events(payload)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch webhook events for '%s': %s", source.id, e)
            return FetchResult.failed(source, e)

        events = [e for e in raw_events if in_window(e, window)]
        logger.debug("Webhook '%s': %d of %d events in window", source.id, len(events), len(raw_events))
        return FetchResult(events=events)
