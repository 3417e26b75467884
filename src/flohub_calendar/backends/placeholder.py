"""Stand-in events for providers without a real integration."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..models import CalendarSource, Credentials, SourceKind, ViewWindow
from .base import FetchResult, RawEvent

logger = logging.getLogger("flohub-calendar")

_COPY = {
    SourceKind.APPLE: (
        "Apple Calendar Integration",
        "This is a placeholder for Apple Calendar integration. To see your actual Apple "
        "Calendar events, you'll need to set up calendar sync in your device settings.",
    ),
    SourceKind.OTHER: (
        "External Calendar Integration",
        "This is a placeholder for external calendar integration. To see your actual "
        "events, you'll need to set up calendar sync with this provider.",
    ),
}


def placeholder_event(source: CalendarSource, now: datetime) -> RawEvent:
    """One synthetic event starting at ``now`` and lasting an hour."""
    if source.kind in _COPY:
        title, description = _COPY[source.kind]
    else:
        label = source.connection.split(":", 1)[-1] or "Additional"
        title = f"Events from {source.display_name}"
        description = f"This is a placeholder for events from your additional account ({label})."
    return {
        "id": f"{source.kind}_placeholder_{source.id}",
        "summary": title,
        "description": description,
        "start": {"dateTime": now.isoformat()},
        "end": {"dateTime": (now + timedelta(hours=1)).isoformat()},
    }


class PlaceholderFetcher:
    """Fetcher for kinds that have no integration yet.

    Emits a single placeholder event when ``include_placeholders`` is set
    and nothing otherwise.
    """

    def __init__(
        self,
        include_placeholders: bool = False,
        clock: Callable[[], datetime] | None = None,
    ):
        self._include = include_placeholders
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def fetch(
        self,
        source: CalendarSource,
        window: ViewWindow,
        credentials: Credentials,
    ) -> FetchResult:
        if not self._include:
            return FetchResult()
        logger.info("Added placeholder for %s calendar: %s", source.kind, source.display_name)
        return FetchResult(events=[placeholder_event(source, self._clock())])
