"""Server-side search service with its own short-lived cache namespace."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from canvas.seed import search_key
from domain.models import SearchFilters, SearchResponse
from services.tile_service import CachedResult
from shared.constants import (
    MAX_CONCURRENT_REQUESTS,
    SEARCH_CACHE_FRESH_TTL_S,
    SEARCH_CACHE_STALE_TTL_S,
    SEARCH_CACHE_SWEEP_THRESHOLD,
    SEARCH_DEFAULT_PAGE_SIZE,
    CacheStatus,
)
from tiles.cache import TtlCache
from tiles.coordinator import RequestCoordinator

if TYPE_CHECKING:
    from providers.base import ContentProvider

logger = logging.getLogger(__name__)


class SearchService:
    """Search namespace of the API.

    Keys embed query, page, page size and filter fingerprint, so a filter
    change never needs to clear this namespace.
    """

    def __init__(
        self,
        provider: ContentProvider,
        *,
        fresh_ttl: float = SEARCH_CACHE_FRESH_TTL_S,
        stale_ttl: float = SEARCH_CACHE_STALE_TTL_S,
        sweep_threshold: int = SEARCH_CACHE_SWEEP_THRESHOLD,
        max_concurrent: int = MAX_CONCURRENT_REQUESTS,
    ) -> None:
        self.provider = provider
        self.cache: TtlCache[SearchResponse] = TtlCache(
            fresh_ttl=fresh_ttl,
            stale_ttl=stale_ttl,
            sweep_threshold=sweep_threshold,
            name='search',
        )
        self.coordinator = RequestCoordinator(self.cache, max_concurrent=max_concurrent)

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        page: int = 1,
        page_size: int = SEARCH_DEFAULT_PAGE_SIZE,
    ) -> CachedResult[SearchResponse]:
        """Cached provider search; empty without a query or an active filter."""
        query = query.strip()
        filters = filters or SearchFilters()
        if not query and not filters.is_active:
            return CachedResult(SearchResponse(), CacheStatus.MISS)

        key = search_key(query, page, page_size, filters.fingerprint())

        async def fetch() -> SearchResponse:
            return await self.provider.search(query, filters, page, page_size)

        lookup = await self.coordinator.request(key, fetch, default=SearchResponse())
        return CachedResult(lookup.entry.payload, lookup.status, lookup.entry.error)

    async def close(self) -> None:
        await self.coordinator.close()
