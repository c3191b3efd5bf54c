"""In-memory TTL cache with stale-while-revalidate freshness.

This module provides TtlCache, the store behind both the tile namespace
and the search-results namespace. Entries live for the process lifetime
only.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from shared.constants import CacheStatus
from shared.diagnostics import log_memory_usage

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class CacheEntry(Generic[T]):
    """Cached payload for one key."""

    key: str
    payload: T
    # Time of the last terminal fetch; never touched by cache hits
    timestamp: float
    loading: bool = False
    error: str | None = None


@dataclass(frozen=True)
class CacheLookup(Generic[T]):
    entry: CacheEntry[T]
    status: CacheStatus


@dataclass
class CacheStats:
    """Statistics about a cache namespace."""

    name: str
    entries: int
    loading: int
    errors: int
    sweeps: int
    evicted: int


class TtlCache(Generic[T]):
    """Key -> entry store with fresh/stale windows and sweep-on-growth.

    Features:
    - age < fresh_ttl: HIT, served as authoritative
    - fresh_ttl <= age < stale_ttl: STALE, served while a refresh runs
    - age >= stale_ttl: MISS
    - Entries older than stale_ttl are swept once the map grows past
      sweep_threshold

    Usage:
        cache = TtlCache(fresh_ttl=1800, stale_ttl=3600, sweep_threshold=500)
        cache.set('0,0::', items)
        entry = cache.get('0,0::')
        status = cache.status(entry)
    """

    def __init__(
        self,
        *,
        fresh_ttl: float,
        stale_ttl: float,
        sweep_threshold: int,
        clock: Callable[[], float] = time.time,
        name: str = 'cache',
    ) -> None:
        """Initialize cache.

        Args:
            fresh_ttl: Seconds an entry is served as fresh.
            stale_ttl: Seconds after which an entry is a miss. Must exceed fresh_ttl.
            sweep_threshold: Entry count above which writes trigger a sweep.
            clock: Time source in seconds.
            name: Namespace label for logs and stats.
        """
        if not 0 < fresh_ttl < stale_ttl:
            msg = (
                f'Invalid TTL windows for {name}: need 0 < fresh_ttl < stale_ttl, '
                f'got {fresh_ttl} / {stale_ttl}'
            )
            raise ValueError(msg)
        self.fresh_ttl = fresh_ttl
        self.stale_ttl = stale_ttl
        self.sweep_threshold = sweep_threshold
        self.name = name
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._sweeps = 0
        self._evicted = 0

    def get(self, key: str) -> CacheEntry[T] | None:
        return self._entries.get(key)

    def set(self, key: str, payload: T, *, error: str | None = None) -> CacheEntry[T]:
        """Store a terminal fetch result with ``timestamp = now``.

        Args:
            key: Cache key.
            payload: Fetched payload (or the empty payload on failure).
            error: Failure message, if the fetch failed.

        Returns:
            The stored entry.
        """
        entry = CacheEntry(key=key, payload=payload, timestamp=self._clock(), error=error)
        self._entries[key] = entry
        if len(self._entries) > self.sweep_threshold:
            self.sweep()
        return entry

    def mark_loading(self, key: str, placeholder: T) -> CacheEntry[T]:
        """Flag a key as being fetched.

        An existing entry keeps its payload and timestamp; a new one gets
        ``placeholder`` and timestamp 0.
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key, payload=placeholder, timestamp=0.0, loading=True)
            self._entries[key] = entry
        else:
            entry.loading = True
        return entry

    def age(self, entry: CacheEntry[T]) -> float:
        return self._clock() - entry.timestamp

    def status(self, entry: CacheEntry[T] | None) -> CacheStatus:
        if entry is None or entry.loading:
            return CacheStatus.MISS
        age = self.age(entry)
        if age < self.fresh_ttl:
            return CacheStatus.HIT
        if age < self.stale_ttl:
            return CacheStatus.STALE
        return CacheStatus.MISS

    def lookup(self, key: str) -> CacheLookup[T] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return CacheLookup(entry, self.status(entry))

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """Drop every entry of the namespace.

        Returns:
            Number of entries removed.
        """
        count = len(self._entries)
        self._entries.clear()
        if count:
            logger.info('Cache %s cleared: %d entries', self.name, count)
        return count

    def sweep(self) -> int:
        """Remove entries aged past stale_ttl. Loading entries are kept.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if not entry.loading and now - entry.timestamp >= self.stale_ttl
        ]
        for key in expired:
            del self._entries[key]
        self._sweeps += 1
        self._evicted += len(expired)
        if not expired:
            logger.debug(
                'Cache %s sweep: nothing expired, %d remaining',
                self.name,
                len(self._entries),
            )
            return 0
        logger.info(
            'Cache %s sweep: %d expired, %d remaining',
            self.name,
            len(expired),
            len(self._entries),
        )
        log_memory_usage(f'after {self.name} sweep')
        return len(expired)

    def stats(self) -> CacheStats:
        entries = list(self._entries.values())
        return CacheStats(
            name=self.name,
            entries=len(entries),
            loading=sum(1 for e in entries if e.loading),
            errors=sum(1 for e in entries if e.error is not None),
            sweeps=self._sweeps,
            evicted=self._evicted,
        )

    def keys(self) -> list[str]:
        return list(self._entries)

    def values(self) -> Iterator[CacheEntry[T]]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
