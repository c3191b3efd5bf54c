"""Tile loading state machine for one canvas session.

Camera, query and filter changes produce the set of tiles needed for the
viewport. That set is diffed against what is cached or in flight, and
only the difference is handed to the request coordinator, nearest the
centre first.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING

from canvas.geometry import (
    Camera,
    TileCoord,
    Viewport,
    cull,
    sort_by_distance_to_center,
    visible_tiles,
)
from canvas.placement import grid_columns, layout_search_results, place_items, repack_to_grid
from canvas.seed import SessionSeed, search_key, tile_key
from domain.filters import coerce_filters
from domain.models import CanvasItem, SearchFilters, SearchResponse, SearchState
from shared.constants import (
    CARD_GAP,
    CARD_HEIGHT,
    GRID_FALLBACK_VIEWPORT_WIDTH,
    ITEMS_PER_TILE,
    MAX_CONCURRENT_REQUESTS,
    SEARCH_CACHE_FRESH_TTL_S,
    SEARCH_CACHE_STALE_TTL_S,
    SEARCH_CACHE_SWEEP_THRESHOLD,
    SEARCH_DEBOUNCE_MS,
    SEARCH_GRID_TOP_PX,
    SEARCH_LOAD_MORE_THRESHOLD_PX,
    SEARCH_PAGE_SIZE,
    TILE_CACHE_FRESH_TTL_S,
    TILE_CACHE_STALE_TTL_S,
    TILE_CACHE_SWEEP_THRESHOLD,
    TILE_LOAD_DEBOUNCE_MS,
    UNKNOWN_TOTAL,
    CacheStatus,
)
from shared.debounce import Debouncer
from tiles.cache import TtlCache
from tiles.coordinator import RequestCoordinator

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

    from domain.settings import CanvasSettings
    from providers.base import ContentProvider
    from tiles.cache import CacheEntry, CacheLookup

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = Viewport(GRID_FALLBACK_VIEWPORT_WIDTH, 800)


def has_more_pages(loaded: int, total: int, last_page_size: int, page_size: int) -> bool:
    """Whether another search page may exist.

    With an unknown total a full last page is taken as "maybe more".
    """
    if total == UNKNOWN_TOTAL:
        return last_page_size >= page_size
    return loaded < total


class TileLoader:
    """Client-side session state: camera, query, filters and both caches.

    Usage:
        loader = TileLoader(MockProvider(), viewport=Viewport(1280, 720))
        await loader.load_visible_tiles()
        loader.pan(-2000, 0)
        await loader.load_visible_tiles()   # only the newly visible tiles
        items = loader.visible_items()
    """

    def __init__(
        self,
        provider: ContentProvider,
        *,
        viewport: Viewport = DEFAULT_VIEWPORT,
        seed: SessionSeed | None = None,
        tile_fresh_ttl: float = TILE_CACHE_FRESH_TTL_S,
        tile_stale_ttl: float = TILE_CACHE_STALE_TTL_S,
        tile_sweep_threshold: int = TILE_CACHE_SWEEP_THRESHOLD,
        search_fresh_ttl: float = SEARCH_CACHE_FRESH_TTL_S,
        search_stale_ttl: float = SEARCH_CACHE_STALE_TTL_S,
        search_sweep_threshold: int = SEARCH_CACHE_SWEEP_THRESHOLD,
        max_concurrent: int = MAX_CONCURRENT_REQUESTS,
        tile_debounce_ms: float = TILE_LOAD_DEBOUNCE_MS,
        search_debounce_ms: float = SEARCH_DEBOUNCE_MS,
        search_page_size: int = SEARCH_PAGE_SIZE,
    ) -> None:
        self.provider = provider
        self.viewport = viewport
        self.camera = Camera()
        self.seed = seed or SessionSeed()
        self.query = ''
        self.filters = SearchFilters()
        self.search_page_size = search_page_size

        self.tile_cache: TtlCache[list[CanvasItem]] = TtlCache(
            fresh_ttl=tile_fresh_ttl,
            stale_ttl=tile_stale_ttl,
            sweep_threshold=tile_sweep_threshold,
            name='tiles',
        )
        self.tiles = RequestCoordinator(self.tile_cache, max_concurrent=max_concurrent)
        self.search_cache: TtlCache[SearchResponse] = TtlCache(
            fresh_ttl=search_fresh_ttl,
            stale_ttl=search_stale_ttl,
            sweep_threshold=search_sweep_threshold,
            name='search',
        )
        self.searches = RequestCoordinator(
            self.search_cache, max_concurrent=max_concurrent
        )

        self.search = SearchState()
        self.is_search_mode = False
        self._search_generation = 0

        self._tile_debouncer = Debouncer(self.load_visible_tiles, delay_ms=tile_debounce_ms)
        self._search_debouncer = Debouncer(self.perform_search, delay_ms=search_debounce_ms)

    @classmethod
    def from_settings(
        cls,
        provider: ContentProvider,
        settings: CanvasSettings,
        *,
        viewport: Viewport = DEFAULT_VIEWPORT,
    ) -> TileLoader:
        return cls(
            provider,
            viewport=viewport,
            seed=SessionSeed(settings.session_seed),
            tile_fresh_ttl=settings.tile_fresh_ttl_s,
            tile_stale_ttl=settings.tile_stale_ttl_s,
            tile_sweep_threshold=settings.tile_sweep_threshold,
            search_fresh_ttl=settings.search_fresh_ttl_s,
            search_stale_ttl=settings.search_stale_ttl_s,
            search_sweep_threshold=settings.search_sweep_threshold,
            max_concurrent=settings.max_concurrent_requests,
            tile_debounce_ms=settings.tile_debounce_ms,
            search_debounce_ms=settings.search_debounce_ms,
            search_page_size=settings.search_page_size,
        )

    # Camera and viewport

    def set_viewport(self, width: float, height: float) -> None:
        self.viewport = Viewport(width, height)

    def pan(self, dx: float, dy: float) -> None:
        self.camera.pan(dx, dy)

    def move_to(self, x: float, y: float) -> None:
        self.camera.move_to(x, y)

    def reset_view(self) -> None:
        self.camera.reset()

    # Tiles

    @property
    def filters_fingerprint(self) -> str:
        return self.filters.fingerprint()

    def tile_key(self, tile_x: int, tile_y: int) -> str:
        return tile_key(tile_x, tile_y, self.query, self.filters_fingerprint, self.seed.value)

    def get_tile_data(self, tile_x: int, tile_y: int) -> CacheEntry[list[CanvasItem]] | None:
        """Entry for a tile under the current query, filters and seed."""
        return self.tile_cache.get(self.tile_key(tile_x, tile_y))

    async def load_tile(self, tile_x: int, tile_y: int) -> CacheLookup[list[CanvasItem]]:
        # Snapshot the inputs: a later filter change must not leak into this fetch.
        query = self.query
        filters = self.filters
        seed = self.seed.value

        async def fetch() -> list[CanvasItem]:
            items = await self.provider.fetch_tile(
                tile_x, tile_y, query, filters, ITEMS_PER_TILE, seed
            )
            return place_items(items, tile_x, tile_y)

        return await self.tiles.request(self.tile_key(tile_x, tile_y), fetch, default=[])

    def needed_tiles(self) -> list[TileCoord]:
        """Visible tiles (with padding), nearest the viewport centre first."""
        return sort_by_distance_to_center(
            visible_tiles(self.camera, self.viewport), self.camera, self.viewport
        )

    def plan_loads(self) -> list[TileCoord]:
        """Needed tiles that are neither usable from cache nor in flight."""
        plan = []
        for coord in self.needed_tiles():
            key = self.tile_key(*coord)
            if self.tiles.is_in_flight(key):
                continue
            entry = self.tile_cache.get(key)
            if (
                entry is not None
                and entry.error is None
                and self.tile_cache.status(entry) is CacheStatus.HIT
            ):
                continue
            plan.append(coord)
        return plan

    async def load_visible_tiles(self) -> int:
        """Request every planned tile; returns how many were requested."""
        if self.is_search_mode:
            return 0
        plan = self.plan_loads()
        if not plan:
            return 0
        logger.debug('Loading %d tiles around camera (%.0f, %.0f)', len(plan), self.camera.x, self.camera.y)
        await asyncio.gather(*(self.load_tile(tx, ty) for tx, ty in plan))
        return len(plan)

    def schedule_tile_load(self) -> None:
        """Debounced load_visible_tiles, for use on every camera move."""
        self._tile_debouncer()

    def is_any_tile_loading(self) -> bool:
        return any(entry.loading for entry in self.tile_cache.values())

    def all_items(self) -> list[CanvasItem]:
        items: list[CanvasItem] = []
        for entry in self.tile_cache.values():
            if not entry.loading:
                items.extend(entry.payload)
        return items

    def visible_items(self) -> list[CanvasItem]:
        """Items to draw for the current camera.

        Search mode shows the result grid. With active filters the thinned
        tiles are repacked into one dense grid.
        """
        if self.is_search_mode:
            items = self.search_results_as_canvas_items()
        else:
            items = self.all_items()
            if self.filters.is_active:
                items = repack_to_grid(items, self.viewport.width)
        return cull(items, self.camera, self.viewport)

    # Query and filters

    def set_query(self, query: str) -> None:
        query = query.strip()
        if query == self.query:
            return
        self.query = query
        self.camera.reset()
        self.tiles.invalidate()

    def set_filters(self, filters: SearchFilters | Mapping[str, Any] | None) -> None:
        """Replace the filters; a changed fingerprint starts a new tile generation.

        In search mode the current query is searched again (debounced).
        """
        new_filters = coerce_filters(filters)
        if new_filters.fingerprint() == self.filters_fingerprint:
            self.filters = new_filters
            return
        self.filters = new_filters
        self.camera.reset()
        dropped = self.tiles.invalidate()
        logger.info(
            'Filters changed to %s, dropped %d queued tile loads',
            self.filters_fingerprint or '{}',
            dropped,
        )
        if self.is_search_mode and self.query:
            self.schedule_search(self.query)

    # Search

    async def _fetch_search_page(self, query: str, page: int) -> CacheEntry[SearchResponse]:
        filters = self.filters
        page_size = self.search_page_size

        async def fetch() -> SearchResponse:
            return await self.provider.search(query, filters, page, page_size)

        key = search_key(query, page, page_size, filters.fingerprint())
        lookup = await self.searches.request(key, fetch, default=SearchResponse())
        return lookup.entry

    async def perform_search(self, query: str) -> None:
        """Enter search mode and load the first result page."""
        query = query.strip()
        if not query:
            self.clear_search()
            return
        if self.search.loading and self.query == query:
            return

        self.tiles.invalidate()
        self.query = query
        self.is_search_mode = True
        self.camera.reset()
        self.search = SearchState(loading=True)
        self._search_generation += 1
        generation = self._search_generation

        entry = await self._fetch_search_page(query, 1)
        if generation != self._search_generation:
            return
        if entry.error:
            logger.warning('Search for %r failed: %s', query, entry.error)
            self.search = SearchState(error=entry.error)
            return
        response = entry.payload
        self.search = SearchState(
            results=list(response.items),
            total=response.total,
            page=1,
            has_more=has_more_pages(
                len(response.items), response.total, len(response.items), self.search_page_size
            ),
        )
        logger.info('Search %r: %d results (total %d)', query, len(response.items), response.total)

    async def load_more_search_results(self) -> bool:
        """Append the next page; False when there was nothing to load."""
        if not self.is_search_mode or self.search.loading or not self.search.has_more:
            return False
        query = self.query
        generation = self._search_generation
        next_page = self.search.page + 1
        self.search = self.search.model_copy(update={'loading': True})

        entry = await self._fetch_search_page(query, next_page)
        if generation != self._search_generation:
            return False
        if entry.error:
            self.search = self.search.model_copy(update={'loading': False, 'error': entry.error})
            return False
        response = entry.payload
        results = self.search.results + list(response.items)
        total = response.total or self.search.total
        self.search = SearchState(
            results=results,
            total=total,
            page=next_page,
            has_more=has_more_pages(
                len(results), total, len(response.items), self.search_page_size
            ),
        )
        return True

    def search_content_height(self) -> float:
        rows = math.ceil(len(self.search.results) / grid_columns(self.viewport.width))
        return SEARCH_GRID_TOP_PX + rows * (CARD_HEIGHT + CARD_GAP)

    def should_load_more(self) -> bool:
        """Whether the viewport bottom is near the end of the result grid."""
        if not self.is_search_mode or self.search.loading or not self.search.has_more:
            return False
        viewport_bottom = -self.camera.y + self.viewport.height
        return self.search_content_height() - viewport_bottom < SEARCH_LOAD_MORE_THRESHOLD_PX

    def clear_search(self) -> None:
        self._search_debouncer.cancel()
        self._search_generation += 1
        self.query = ''
        self.is_search_mode = False
        self.search = SearchState()
        self.camera.reset()
        self.tiles.invalidate()

    def schedule_search(self, query: str) -> None:
        self._search_debouncer(query)

    def search_results_as_canvas_items(self) -> list[CanvasItem]:
        return layout_search_results(self.search.results, self.viewport.width)

    async def close(self) -> None:
        self._tile_debouncer.cancel()
        self._search_debouncer.cancel()
        await self.tiles.close()
        await self.searches.close()
