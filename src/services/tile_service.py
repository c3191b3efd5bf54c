"""Server-side tile service: cached, deduplicated provider tile fetches."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from canvas.seed import SessionSeed, tile_key
from domain.filters import fingerprint
from domain.models import ArchiveItem, TileResponse
from shared.constants import (
    ITEMS_PER_TILE,
    MAX_CONCURRENT_REQUESTS,
    TILE_CACHE_FRESH_TTL_S,
    TILE_CACHE_STALE_TTL_S,
    TILE_CACHE_SWEEP_THRESHOLD,
)
from tiles.cache import TtlCache
from tiles.coordinator import RequestCoordinator

if TYPE_CHECKING:
    from domain.models import SearchFilters
    from providers.base import ContentProvider
    from shared.constants import CacheStatus

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class CachedResult(Generic[T]):
    """Service answer plus how the cache produced it."""

    data: T
    status: CacheStatus
    error: str | None = None


class TileService:
    """Tile namespace of the API: one cache and one coordinator per process.

    Usage:
        service = TileService(provider)
        result = await service.get_tile(3, -2, query='kerala')
        result.status  # CacheStatus.MISS on first call, HIT afterwards
    """

    def __init__(
        self,
        provider: ContentProvider,
        *,
        seed: SessionSeed | None = None,
        fresh_ttl: float = TILE_CACHE_FRESH_TTL_S,
        stale_ttl: float = TILE_CACHE_STALE_TTL_S,
        sweep_threshold: int = TILE_CACHE_SWEEP_THRESHOLD,
        max_concurrent: int = MAX_CONCURRENT_REQUESTS,
    ) -> None:
        self.provider = provider
        self.seed = seed or SessionSeed()
        self.cache: TtlCache[list[ArchiveItem]] = TtlCache(
            fresh_ttl=fresh_ttl,
            stale_ttl=stale_ttl,
            sweep_threshold=sweep_threshold,
            name='tiles',
        )
        self.coordinator = RequestCoordinator(self.cache, max_concurrent=max_concurrent)
        logger.info('Tile service ready, session seed %d', self.seed.value)

    async def get_tile(
        self,
        tile_x: int,
        tile_y: int,
        *,
        query: str = '',
        filters: SearchFilters | None = None,
        limit: int = ITEMS_PER_TILE,
        seed: int | None = None,
    ) -> CachedResult[TileResponse]:
        seed_value = self.seed.value if seed is None else seed
        key = f'{tile_key(tile_x, tile_y, query, fingerprint(filters), seed_value)}:{limit}'

        async def fetch() -> list[ArchiveItem]:
            return await self.provider.fetch_tile(
                tile_x, tile_y, query, filters, limit, seed_value
            )

        lookup = await self.coordinator.request(key, fetch, default=[])
        entry = lookup.entry
        response = TileResponse(
            tile_x=tile_x, tile_y=tile_y, items=entry.payload, error=entry.error
        )
        return CachedResult(response, lookup.status, entry.error)

    async def close(self) -> None:
        await self.coordinator.close()
