"""Error taxonomy for the calendar engine.

Only ``InvalidRequest`` (and its ``InvalidWindow`` subclass) and
``Unauthenticated`` are ever raised to callers of the read path. Provider
failures are returned as values and logged; skipped events are dropped.
"""

from __future__ import annotations


class CalendarError(Exception):
    """Base class. ``status`` is the HTTP-style code the server reports."""

    status = 500


class InvalidRequest(CalendarError):
    status = 400


class InvalidWindow(InvalidRequest):
    """Missing or unparseable time window bounds."""


class Unauthenticated(CalendarError):
    status = 401


class UnsupportedWrite(CalendarError):
    """Write attempted against a provider kind that cannot accept it."""

    status = 501


class ProviderFetchFailed(CalendarError):
    status = 502

    def __init__(self, source_id: str, message: str):
        super().__init__(f"{source_id}: {message}")
        self.source_id = source_id


class ProviderWriteFailed(CalendarError):
    """The primary provider rejected an event creation."""

    def __init__(self, message: str, status: int = 502):
        super().__init__(message)
        self.status = status


class NormalizationSkipped(CalendarError):
    """A single raw event could not be mapped onto the canonical model."""
