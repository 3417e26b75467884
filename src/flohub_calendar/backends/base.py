"""Base types and protocol for provider fetchers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..errors import ProviderFetchFailed
from ..models import CalendarSource, Credentials, ViewWindow

RawEvent = dict[str, Any]


@dataclass
class FetchResult:
    """Raw events from one source, or the error that prevented fetching them."""

    events: list[RawEvent] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, source: CalendarSource, exc: BaseException | str) -> FetchResult:
        return cls(events=[], error=ProviderFetchFailed(source.id, str(exc) or type(exc).__name__))


@runtime_checkable
class EventFetcher(Protocol):
    """Protocol that all provider fetchers must satisfy.

    ``fetch`` never raises for provider problems: it returns a FetchResult
    whose ``error`` is set instead.
    """

    async def fetch(
        self,
        source: CalendarSource,
        window: ViewWindow,
        credentials: Credentials,
    ) -> FetchResult: ...
