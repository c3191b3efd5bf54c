"""Request coordinator: dedupe, bounded concurrency and stale-while-revalidate.

One coordinator fronts one TtlCache namespace. All bookkeeping happens
synchronously between awaits on the single event loop, so no locks are
needed: the only suspension point is the provider call inside ``_run``.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from shared.constants import MAX_CONCURRENT_REQUESTS, CacheStatus
from tiles.cache import CacheEntry, CacheLookup

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tiles.cache import TtlCache

logger = logging.getLogger(__name__)

T = TypeVar('T')

INVALIDATED_ERROR = 'invalidated'


@dataclass
class _Job(Generic[T]):
    key: str
    fetch_fn: Callable[[], Awaitable[T]]
    default: T
    future: asyncio.Future[CacheEntry[T]]
    generation: int
    revalidation: bool = False


@dataclass
class CoordinatorStats:
    """Snapshot of coordinator bookkeeping."""

    name: str
    active: int
    queued: int
    in_flight: int
    peak_active: int
    fetches: int
    failures: int
    revalidations: int
    generation: int
    max_concurrent: int = field(default=MAX_CONCURRENT_REQUESTS)


class RequestCoordinator(Generic[T]):
    """Serialises fetches for one cache namespace.

    Guarantees:
    - at most one in-flight fetch per key (callers share one future)
    - at most ``max_concurrent`` fetches running, the rest wait in FIFO order
    - a stale entry is served immediately and refreshed exactly once
    - a failed fetch stores ``default`` with an error and never raises

    Usage:
        coordinator = RequestCoordinator(cache, max_concurrent=6)
        lookup = await coordinator.request(key, fetch, default=[])
        if lookup.entry.error:
            ...
    """

    def __init__(
        self,
        cache: TtlCache[T],
        *,
        max_concurrent: int = MAX_CONCURRENT_REQUESTS,
        name: str | None = None,
    ) -> None:
        if max_concurrent < 1:
            msg = f'max_concurrent must be >= 1, got {max_concurrent}'
            raise ValueError(msg)
        self.cache = cache
        self.max_concurrent = max_concurrent
        self.name = name or cache.name
        self._in_flight: dict[str, asyncio.Future[CacheEntry[T]]] = {}
        self._queue: deque[_Job[T]] = deque()
        self._active = 0
        self._generation = 0
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False
        self.peak_active = 0
        self._fetches = 0
        self._failures = 0
        self._revalidations = 0

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def generation(self) -> int:
        return self._generation

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def in_flight_keys(self) -> set[str]:
        return set(self._in_flight)

    async def request(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        *,
        default: T,
    ) -> CacheLookup[T]:
        """Return the cached entry for ``key``, fetching it if needed.

        Args:
            key: Cache key.
            fetch_fn: Zero-argument coroutine function producing the payload.
            default: Payload stored on failure and shown while loading.

        Returns:
            The entry and how it was obtained (HIT, STALE or MISS).
        """
        if self._closed:
            msg = f'Coordinator {self.name} is closed'
            raise RuntimeError(msg)

        entry = self.cache.get(key)
        if entry is not None and not entry.loading and entry.error is None:
            status = self.cache.status(entry)
            if status is CacheStatus.HIT:
                return CacheLookup(entry, status)
            if status is CacheStatus.STALE:
                if key not in self._in_flight:
                    self._revalidations += 1
                    logger.debug('%s: revalidating stale %s', self.name, key)
                    self._submit(key, fetch_fn, default, revalidation=True)
                return CacheLookup(entry, status)

        future = self._in_flight.get(key)
        if future is None:
            self.cache.mark_loading(key, default)
            future = self._submit(key, fetch_fn, default)
        result = await asyncio.shield(future)
        return CacheLookup(result, CacheStatus.MISS)

    def invalidate(self) -> int:
        """Start a new generation: clear the namespace and drop queued jobs.

        Running jobs of the old generation still resolve their callers, but
        their results are discarded.

        Returns:
            Number of queued jobs that were dropped.
        """
        self._generation += 1
        dropped = list(self._queue)
        self._queue.clear()
        self._in_flight.clear()
        self._active = 0
        self.peak_active = 0
        self.cache.clear()
        for job in dropped:
            if not job.future.done():
                job.future.set_result(
                    CacheEntry(
                        key=job.key,
                        payload=job.default,
                        timestamp=0.0,
                        error=INVALIDATED_ERROR,
                    )
                )
        logger.info(
            '%s: invalidated (generation %d), %d queued jobs dropped',
            self.name,
            self._generation,
            len(dropped),
        )
        return len(dropped)

    async def close(self) -> None:
        """Cancel running fetches and refuse new requests."""
        self._closed = True
        self.invalidate()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info('%s: closed, %d running fetches cancelled', self.name, len(tasks))

    def stats(self) -> CoordinatorStats:
        return CoordinatorStats(
            name=self.name,
            active=self._active,
            queued=len(self._queue),
            in_flight=len(self._in_flight),
            peak_active=self.peak_active,
            fetches=self._fetches,
            failures=self._failures,
            revalidations=self._revalidations,
            generation=self._generation,
            max_concurrent=self.max_concurrent,
        )

    def _submit(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        default: T,
        *,
        revalidation: bool = False,
    ) -> asyncio.Future[CacheEntry[T]]:
        loop = asyncio.get_running_loop()
        job = _Job(
            key=key,
            fetch_fn=fetch_fn,
            default=default,
            future=loop.create_future(),
            generation=self._generation,
            revalidation=revalidation,
        )
        self._in_flight[key] = job.future
        if self._active < self.max_concurrent:
            self._start(job)
        else:
            self._queue.append(job)
            logger.debug('%s: queued %s (%d waiting)', self.name, key, len(self._queue))
        return job.future

    def _start(self, job: _Job[T]) -> None:
        self._active += 1
        self.peak_active = max(self.peak_active, self._active)
        self._fetches += 1
        task = asyncio.ensure_future(self._run(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _drain(self) -> None:
        # One job per completed fetch keeps the ceiling exact
        if self._queue and self._active < self.max_concurrent:
            self._start(self._queue.popleft())

    async def _run(self, job: _Job[T]) -> None:
        error: str | None = None
        try:
            payload = await job.fetch_fn()
        except asyncio.CancelledError:
            if not job.future.done():
                job.future.cancel()
            raise
        except Exception as e:
            error = str(e) or type(e).__name__
            payload = job.default
            self._failures += 1
            logger.warning('%s: fetch failed for %s: %s', self.name, job.key, error)

        if job.generation != self._generation:
            logger.debug('%s: discarding result of old generation for %s', self.name, job.key)
            job.future.set_result(
                CacheEntry(key=job.key, payload=payload, timestamp=0.0, error=error)
            )
            return

        current = self.cache.get(job.key)
        if job.revalidation and error is not None and current is not None:
            # Failed refresh: keep serving the stale copy until it ages out
            entry = current
        else:
            entry = self.cache.set(job.key, payload, error=error)

        self._active -= 1
        if self._in_flight.get(job.key) is job.future:
            del self._in_flight[job.key]
        self._drain()
        job.future.set_result(entry)
