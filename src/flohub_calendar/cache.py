"""Cache interface owned by callers of the engine.

The engine itself never caches; callers (the MCP server here) may keep
aggregation results in any object that satisfies ``EventCache``.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Hashable, Protocol, runtime_checkable


@runtime_checkable
class EventCache(Protocol):
    def get(self, key: Hashable) -> tuple[Any, bool]: ...

    def put(self, key: Hashable, value: Any, ttl: float) -> None: ...


class MemoryCache:
    """In-process TTL cache. Contents do not survive a restart."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    def get(self, key: Hashable) -> tuple[Any, bool]:
        entry = self._entries.get(key)
        if entry is None:
            return None, False
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None, False
        return value, True

    def put(self, key: Hashable, value: Any, ttl: float) -> None:
        if ttl <= 0:
            return
        now = self._clock()
        # drop entries that expired without ever being read again
        for stale in [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]:
            del self._entries[stale]
        self._entries[key] = (now + ttl, value)

    def clear(self) -> None:
        self._entries.clear()


class NullCache:
    """Cache that never hits."""

    def get(self, key: Hashable) -> tuple[Any, bool]:
        return None, False

    def put(self, key: Hashable, value: Any, ttl: float) -> None:
        return None
