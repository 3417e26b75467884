"""Resolve user calendar settings into the list of sources to fetch."""

from __future__ import annotations

import logging
from typing import Sequence
from urllib.parse import urlparse

from .models import (
    PRIMARY_SENTINEL_ID,
    CalendarSource,
    LegacySettings,
    ModernSettings,
    SourceKind,
    UserCalendarSettings,
)

logger = logging.getLogger("flohub-calendar")

LEGACY_WEBHOOK_ID = "legacy-webhook"
LEGACY_WEBHOOK_NAME = "Work Calendar (O365)"


def is_http_url(value: str | None) -> bool:
    if not value:
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def resolve(settings: UserCalendarSettings) -> list[CalendarSource]:
    """Return the enabled sources described by ``settings``.

    A non-empty modern source list is used as is (minus disabled entries) and
    legacy fields are never consulted. Otherwise sources are synthesized from
    the legacy calendar ids and webhook URL.
    """
    if isinstance(settings, ModernSettings) and settings.sources:
        return [s for s in settings.sources if s.enabled]
    if isinstance(settings, LegacySettings):
        return _from_legacy(settings)
    return _from_legacy(LegacySettings())


def _from_legacy(settings: LegacySettings) -> list[CalendarSource]:
    ids = [i for i in settings.selected_calendar_ids if i] or [PRIMARY_SENTINEL_ID]
    sources = [
        CalendarSource(id=cal_id, kind=SourceKind.PRIMARY, connection=cal_id, name="Google Calendar")
        for cal_id in dict.fromkeys(ids)
    ]
    url = settings.webhook_url
    if is_http_url(url):
        sources.append(CalendarSource(
            id=LEGACY_WEBHOOK_ID,
            kind=SourceKind.WEBHOOK,
            connection=url.strip(),
            tags=("work",),
            name=LEGACY_WEBHOOK_NAME,
        ))
    elif url:
        logger.debug("Ignoring malformed legacy webhook URL: %r", url)
    return sources


def resolve_request(
    settings: UserCalendarSettings,
    *,
    use_sources: bool = True,
    calendar_ids: Sequence[str] | None = None,
    webhook_url: str | None = None,
) -> list[CalendarSource]:
    """Resolve sources for a read request.

    With ``use_sources`` the stored settings decide. Without it, the explicit
    request parameters are treated as a legacy settings pair.
    """
    if use_sources:
        return resolve(settings)
    return resolve(LegacySettings(tuple(calendar_ids or ()), webhook_url))
