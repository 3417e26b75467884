"""Canonical data shapes shared by every part of the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any, Mapping, Sequence
from zoneinfo import ZoneInfo

from .errors import Unauthenticated

PRIMARY_SENTINEL_ID = "primary"
OAUTH_MARKER = "oauth:"


class SourceKind(StrEnum):
    """Provider kinds a calendar source can be backed by."""

    PRIMARY = "primary"  # Google account the user signed in with
    EXCHANGE = "exchange"  # Exchange / Microsoft 365 mailbox calendar
    WEBHOOK = "webhook"  # JSON endpoint, e.g. a Power Automate flow
    ICAL = "ical"
    APPLE = "apple"
    OTHER = "other"


class ViewToken(StrEnum):
    TODAY = "today"
    TOMORROW = "tomorrow"
    WEEK = "week"
    MONTH = "month"
    CUSTOM = "custom"


@dataclass(frozen=True)
class CalendarSource:
    """A single configured calendar origin."""

    id: str
    kind: SourceKind
    connection: str = ""  # calendar id, URL or "oauth:<label>"
    enabled: bool = True
    tags: tuple[str, ...] = ()
    name: str = ""

    @property
    def is_oauth_account(self) -> bool:
        return self.connection.startswith(OAUTH_MARKER)

    @property
    def display_name(self) -> str:
        return self.name or _DEFAULT_NAMES[self.kind]


_DEFAULT_NAMES = {
    SourceKind.PRIMARY: "Google Calendar",
    SourceKind.EXCHANGE: "Work Calendar (O365)",
    SourceKind.WEBHOOK: "Work Calendar (O365)",
    SourceKind.ICAL: "iCal Feed",
    SourceKind.APPLE: "Apple Calendar",
    SourceKind.OTHER: "Other Calendar",
}


@dataclass
class CalendarEvent:
    """Normalized event.

    ``start`` is a ``date`` for all-day events and a timezone-aware
    ``datetime`` for timed ones. ``end``, when present, has the same shape.
    """

    id: str
    calendar_id: str
    title: str
    start: date | datetime
    end: date | datetime | None = None
    description: str = ""
    source: str = "personal"  # "work" | "personal"
    calendar_name: str = ""
    tags: list[str] = field(default_factory=list)
    kind: SourceKind = SourceKind.PRIMARY

    def __post_init__(self) -> None:
        if not isinstance(self.start, date):
            raise TypeError(f"Event '{self.id}': start must be a date or datetime")
        if isinstance(self.start, datetime) and self.start.tzinfo is None:
            raise ValueError(f"Event '{self.id}': timed start must be timezone-aware")
        if self.end is not None and isinstance(self.end, datetime) != isinstance(self.start, datetime):
            raise ValueError(f"Event '{self.id}': start and end must have the same shape")

    @property
    def all_day(self) -> bool:
        return not isinstance(self.start, datetime)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        return {
            "id": self.id,
            "calendar_id": self.calendar_id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat() if self.end is not None else None,
            "all_day": self.all_day,
            "description": self.description,
            "source": self.source,
            "calendar_name": self.calendar_name,
            "tags": list(self.tags),
            "kind": str(self.kind),
        }


@dataclass(frozen=True)
class ViewWindow:
    """Concrete instant range for one request. ``end`` is inclusive."""

    start: datetime
    end: datetime
    view: ViewToken
    timezone: ZoneInfo


# ---------------------------------------------------------------------------
# User settings: exactly one of two shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModernSettings:
    sources: tuple[CalendarSource, ...] = ()


@dataclass(frozen=True)
class LegacySettings:
    selected_calendar_ids: tuple[str, ...] = ()
    webhook_url: str | None = None


UserCalendarSettings = ModernSettings | LegacySettings


# source types as stored by the dashboard
DASHBOARD_KINDS = {
    "google": SourceKind.PRIMARY,
    "url": SourceKind.WEBHOOK,
}


def parse_kind(value: Any, connection: str = "") -> SourceKind:
    """Map a kind or dashboard type onto SourceKind.

    ``o365`` is a Power Automate webhook when its connection is an http(s)
    URL and a mailbox calendar otherwise. Raises ValueError for unknown kinds.
    """
    name = str(value or "").strip().lower()
    if name == "o365":
        if connection.startswith(("http://", "https://")):
            return SourceKind.WEBHOOK
        return SourceKind.EXCHANGE
    if name in DASHBOARD_KINDS:
        return DASHBOARD_KINDS[name]
    return SourceKind(name)


def source_from_mapping(entry: Mapping[str, Any]) -> CalendarSource:
    """Build a CalendarSource from a settings entry.

    Accepts both the snake_case keys used in YAML and the camelCase keys
    (``type``, ``sourceId``, ``connectionData``, ``isEnabled``) and type names
    (``google``, ``o365``, ``url``) stored by the dashboard.
    """
    connection = entry.get("connection", entry.get("connectionData"))
    if connection is None:
        connection = entry.get("sourceId", "")
    connection = str(connection).strip()
    kind = parse_kind(entry.get("kind", entry.get("type")), connection)
    return CalendarSource(
        id=str(entry.get("id", "")).strip(),
        kind=kind,
        connection=str(connection),
        enabled=bool(entry.get("enabled", entry.get("isEnabled", True))),
        tags=tuple(entry.get("tags") or ()),
        name=str(entry.get("name", "")),
    )


def settings_from_mapping(raw: Mapping[str, Any]) -> UserCalendarSettings:
    """Pick the settings shape. A non-empty ``sources`` list always wins."""
    sources = raw.get("sources") or raw.get("calendarSources") or []
    if sources:
        return ModernSettings(
            tuple(s if isinstance(s, CalendarSource) else source_from_mapping(s) for s in sources)
        )
    ids = raw.get("selected_calendar_ids", raw.get("selectedCals")) or ()
    if isinstance(ids, str):
        ids = (ids,)
    return LegacySettings(
        selected_calendar_ids=tuple(ids),
        webhook_url=raw.get("webhook_url", raw.get("powerAutomateUrl")),
    )


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Credentials:
    """Already-valid provider credentials handed in by the caller."""

    google: Any = None  # google.oauth2.credentials.Credentials
    exchange_token: str | None = None
    exchange_mailbox: str | None = None
    exchange_server: str = "outlook.office365.com"

    def has(self, kind: SourceKind) -> bool:
        if kind is SourceKind.PRIMARY:
            return self.google is not None and bool(self.google.valid)
        if kind is SourceKind.EXCHANGE:
            return bool(self.exchange_token and self.exchange_mailbox)
        return True

    def require(self, kind: SourceKind) -> None:
        if not self.has(kind):
            raise Unauthenticated(f"No valid credential for {kind} calendars")


def requires_session(sources: Sequence[CalendarSource]) -> bool:
    """True if any source reads from the signed-in primary account.

    Exchange credentials are optional: without them the Exchange fetch fails
    on its own and the rest of the aggregation goes ahead.
    """
    return any(s.kind is SourceKind.PRIMARY and not s.is_oauth_account for s in sources)
