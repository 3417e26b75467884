"""Concurrent fetch, normalization and deduplication across sources."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Sequence

from .backends.base import EventFetcher, FetchResult
from .backends.registry import Fetchers, build_fetchers
from .models import CalendarEvent, CalendarSource, Credentials, ViewWindow
from .normalizer import normalize

logger = logging.getLogger("flohub-calendar")

DEFAULT_FETCH_TIMEOUT = 10.0


@dataclass
class AggregationReport:
    events: list[CalendarEvent] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)  # source id -> message


async def _fetch_one(
    fetcher: EventFetcher,
    source: CalendarSource,
    window: ViewWindow,
    credentials: Credentials,
    timeout: float,
) -> FetchResult:
    """Run one fetcher, turning timeouts and stray exceptions into a failed result."""
    try:
        return await asyncio.wait_for(fetcher.fetch(source, window, credentials), timeout)
    except asyncio.TimeoutError:
        logger.warning("Fetch for '%s' timed out after %.1fs", source.id, timeout)
        return FetchResult.failed(source, f"timed out after {timeout}s")
    except Exception as e:
        logger.warning("Failed to fetch events from '%s': %s", source.id, e)
        return FetchResult.failed(source, e)


def merge(
    sources: Sequence[CalendarSource],
    results: Sequence[FetchResult],
    window: ViewWindow,
) -> AggregationReport:
    """Normalize and deduplicate results in source order. First id wins."""
    report = AggregationReport()
    seen: set[str] = set()
    for source, result in zip(sources, results):
        if result.error is not None:
            report.errors[source.id] = str(result.error)
            continue
        for raw in result.events:
            event = normalize(raw, source, tz=window.timezone)
            if event is None or event.id in seen:
                continue
            seen.add(event.id)
            report.events.append(event)
    return report


async def aggregate_with_report(
    sources: Sequence[CalendarSource],
    window: ViewWindow,
    credentials: Credentials,
    *,
    fetchers: Fetchers | None = None,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> AggregationReport:
    active = [s for s in sources if s.enabled]
    if fetchers is None:
        fetchers = build_fetchers()

    # gather keeps input order, so merging is independent of completion order
    results = await asyncio.gather(*(
        _fetch_one(fetchers[s.kind], s, window, credentials, timeout) for s in active
    ))
    report = merge(active, results, window)
    logger.info(
        "Aggregated %d event(s) from %d source(s), %d failed",
        len(report.events), len(active), len(report.errors),
    )
    return report


async def aggregate(
    sources: Sequence[CalendarSource],
    window: ViewWindow,
    credentials: Credentials,
    *,
    fetchers: Fetchers | None = None,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> list[CalendarEvent]:
    """Fetch every enabled source concurrently and return the merged events.

    Failed sources contribute nothing. The result is unordered; ordering is
    left to the view filter.
    """
    report = await aggregate_with_report(sources, window, credentials, fetchers=fetchers, timeout=timeout)
    return report.events
