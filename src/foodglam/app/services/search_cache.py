"""Short-lived result cache shared by the search surfaces."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import Any, Protocol

from cachetools import TLRUCache

logger = getLogger(__name__)

DEFAULT_TTL_SECONDS = 30
_DEFAULT_MAXSIZE = 1024


class SearchCache(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None: ...


@dataclass(slots=True, frozen=True)
class _Entry:
    value: Any
    ttl: float


def _entry_expiry(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class SearchResultCache:
    """Per-entry TTL cache backed by :class:`cachetools.TLRUCache`.

    Values must be immutable; the stored object is returned as-is on a hit.
    Writes to an existing key replace the previous value and its expiry.
    """

    __slots__ = ("_entries", "_default_ttl")

    def __init__(
        self,
        *,
        maxsize: int = _DEFAULT_MAXSIZE,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = float(default_ttl)
        self._entries: TLRUCache[str, _Entry] = TLRUCache(
            maxsize=max(1, maxsize), ttu=_entry_expiry, timer=timer
        )

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Search cache miss for %s", key)
            return None
        logger.debug("Search cache hit for %s", key)
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self._default_ttl if ttl_seconds is None else float(ttl_seconds)
        if ttl <= 0:
            self._entries.pop(key, None)
            return
        self._entries[key] = _Entry(value=value, ttl=ttl)

    def clear(self) -> None:
        self._entries.clear()


class NullSearchCache:
    """Cache that never stores anything."""

    __slots__ = ()

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        return None

    def clear(self) -> None:
        return None


__all__ = [
    "DEFAULT_TTL_SECONDS",
    "NullSearchCache",
    "SearchCache",
    "SearchResultCache",
]
