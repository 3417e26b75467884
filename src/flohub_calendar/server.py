#!/usr/bin/env python3
"""
flohub-calendar: calendar aggregation MCP server.

Merges events from Google, Exchange, webhook and iCal sources configured in a
YAML settings file, and filters them for dashboard views.

Environment variables:
    CALENDAR_CONFIG: path to calendar_settings.yaml (default: /config/calendar_settings.yaml)
"""

import logging
import sys
from typing import Any

from mcp.server.fastmcp import FastMCP

from .cache import EventCache, MemoryCache
from .config import EngineConfig, load_config, load_credentials
from .engine import CalendarEngine
from .errors import CalendarError
from .models import CalendarEvent

logger = logging.getLogger("flohub-calendar")


# ---------------------------------------------------------------------------
# Module-level state
# ---------------------------------------------------------------------------

_config: EngineConfig = EngineConfig()
_engine: CalendarEngine | None = None
_cache: EventCache = MemoryCache()


def _get_engine() -> CalendarEngine:
    """Engine for the loaded config. Lazy-initializes on first access."""
    global _engine
    if _engine is None:
        _engine = CalendarEngine(
            _config.settings,
            load_credentials(_config),
            default_timezone=_config.timezone,
            fetch_timeout=_config.fetch_timeout,
            include_placeholders=_config.include_placeholders,
        )
    return _engine


def _error(exc: CalendarError) -> dict[str, Any]:
    return {"error": str(exc), "status": exc.status}


def _events_to_dicts(events: list[CalendarEvent]) -> list[dict[str, Any]]:
    return [e.to_dict() for e in events]


# ---------------------------------------------------------------------------
# MCP Server + Tools
# ---------------------------------------------------------------------------

mcp = FastMCP("flohub-calendar")


@mcp.tool()
async def list_sources() -> dict:
    """List the calendar sources that will be fetched.

    Returns id, name, kind and tags for each enabled source.
    """
    sources = _get_engine().sources()
    return {
        "sources": [
            {"id": s.id, "name": s.display_name, "kind": str(s.kind), "tags": list(s.tags)}
            for s in sources
        ]
    }


@mcp.tool()
async def list_events(
    time_min: str = "",
    time_max: str = "",
    calendar_ids: list[str] | None = None,
    webhook_url: str = "",
    timezone: str = "",
    use_sources: bool = True,
    view: str = "",
    show_placeholders: bool = False,
) -> list[dict] | dict:
    """List merged events from all configured calendars, ordered by start.

    Args:
        time_min: Window lower bound (ISO 8601, e.g. "2026-02-13T00:00:00Z"). Required.
        time_max: Window upper bound (ISO 8601). Required.
        calendar_ids: Explicit primary calendar ids, used when use_sources is false.
        webhook_url: Webhook URL override, used when use_sources is false.
        timezone: IANA timezone name for naive times and day boundaries.
        use_sources: Resolve calendars from stored settings (true) or from the arguments above.
        view: Optional view rule to apply: today, tomorrow, week, month or custom.
        show_placeholders: Include placeholder events for integrations that don't exist yet.
    """
    key = (
        "list_events", time_min, time_max, tuple(calendar_ids or ()), webhook_url,
        timezone, use_sources, view, show_placeholders,
    )
    cached, hit = _cache.get(key)
    if hit:
        return cached

    try:
        events = await _get_engine().list_events(
            time_min,
            time_max,
            calendar_ids=calendar_ids,
            webhook_url=webhook_url or None,
            tz_name=timezone or None,
            use_sources=use_sources,
            view=view or None,
            include_placeholders=show_placeholders or None,
        )
    except CalendarError as e:
        return _error(e)

    result = _events_to_dicts(events)
    _cache.put(key, result, _config.cache_ttl)
    return result


@mcp.tool()
async def get_view(
    view: str = "today",
    timezone: str = "",
    custom_start: str = "",
    custom_end: str = "",
    show_placeholders: bool = False,
) -> dict:
    """Events for a dashboard view, with the window that was used.

    Args:
        view: today, tomorrow, week, month or custom.
        timezone: IANA timezone name. Defaults to the configured timezone.
        custom_start: First day of a custom range (e.g. "2026-02-13").
        custom_end: Last day of a custom range. Invalid ranges fall back to the current week.
        show_placeholders: Include placeholder events for integrations that don't exist yet.
    """
    custom_range = (custom_start, custom_end) if custom_start or custom_end else None
    try:
        window, report = await _get_engine().get_view(
            view,
            tz_name=timezone or None,
            custom_range=custom_range,
            include_placeholders=show_placeholders or None,
        )
    except CalendarError as e:
        return _error(e)

    result = {
        "view": str(window.view),
        "start": window.start.isoformat(),
        "end": window.end.isoformat(),
        "timezone": window.timezone.key,
        "count": len(report.events),
        "events": _events_to_dicts(report.events),
    }
    if report.errors:
        # failed sources are left out of events, not fatal
        result["errors"] = dict(report.errors)
    return result


@mcp.tool()
async def create_event(
    calendar_id: str,
    title: str,
    start: str,
    end: str,
    description: str = "",
    source: str = "",
    tags: list[str] | None = None,
    timezone: str = "",
) -> dict:
    """Create an event in a Google calendar.

    Other calendar kinds cannot be written to and answer with status 501.

    Args:
        calendar_id: Target Google calendar id (e.g. "primary")
        title: Event title
        start: Start date/time (ISO 8601, e.g. "2026-02-14T14:00:00")
        end: End date/time (ISO 8601, e.g. "2026-02-14T15:00:00")
        description: Event description (optional)
        source: "work" or "personal" (optional)
        tags: Tags stored with the event (optional)
        timezone: IANA timezone for naive start/end values (optional)
    """
    try:
        event = await _get_engine().create_event(
            calendar_id,
            title,
            start,
            end,
            description=description,
            source=source or None,
            tags=tags,
            tz_name=timezone or None,
        )
    except CalendarError as e:
        return _error(e)
    except Exception as e:
        logger.exception("Error creating event")
        return {"error": f"Failed to create event: {e}", "status": 500}

    clear = getattr(_cache, "clear", None)
    if clear is not None:
        clear()
    return {"status": 201, "event": event.to_dict()}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Entry point for console script and python -m."""
    global _config, _engine

    # MCP stdio servers must NEVER write to stdout. Log to stderr only.
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    _config = load_config()
    _engine = None
    sources = _get_engine().sources()
    logger.info("Resolved %d calendar source(s): %s", len(sources), [s.id for s in sources])
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
