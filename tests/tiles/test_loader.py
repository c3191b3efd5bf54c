"""Tests for the TileLoader state machine."""

import asyncio

import pytest

from canvas.geometry import Viewport, visible_tiles
from canvas.seed import SessionSeed
from domain.models import SearchFilters, SearchResponse
from domain.settings import CanvasSettings
from providers.base import ProviderError
from providers.mock import MockProvider
from shared.constants import CARD_GAP, SEARCH_GRID_TOP_PX, UNKNOWN_TOTAL
from tiles.loader import TileLoader, has_more_pages


class FailingSearchProvider(MockProvider):
    async def search(self, query, filters=None, page=1, page_size=50):
        self.calls['search'] += 1
        raise ProviderError('search endpoint returned HTTP 503', status=503)


class UnknownTotalProvider(MockProvider):
    async def search(self, query, filters=None, page=1, page_size=50):
        response = await super().search(query, filters, page, page_size)
        return SearchResponse(items=response.items, total=UNKNOWN_TOTAL)


@pytest.fixture
def provider():
    return MockProvider()


@pytest.fixture
def loader(provider):
    return TileLoader(
        provider,
        viewport=Viewport(1000, 800),
        seed=SessionSeed(7),
        tile_debounce_ms=10,
        search_debounce_ms=10,
    )


class TestHasMorePages:
    def test_known_total(self):
        assert has_more_pages(50, 120, 50, 50)
        assert not has_more_pages(120, 120, 20, 50)

    def test_unknown_total_uses_page_fill(self):
        assert has_more_pages(100, UNKNOWN_TOTAL, 100, 100)
        assert not has_more_pages(130, UNKNOWN_TOTAL, 30, 100)


class TestTileLoading:
    """Camera-driven tile planning and loading."""

    @pytest.mark.asyncio
    async def test_initial_load_covers_padded_viewport(self, loader, provider):
        requested = await loader.load_visible_tiles()
        expected = visible_tiles(loader.camera, loader.viewport)
        assert requested == len(expected) == 12
        assert provider.calls['fetch_tile'] == 12
        for tx, ty in expected:
            entry = loader.get_tile_data(tx, ty)
            assert entry is not None
            assert not entry.loading
        await loader.close()

    @pytest.mark.asyncio
    async def test_pan_fetches_only_new_tiles(self, loader, provider):
        await loader.load_visible_tiles()
        before = visible_tiles(loader.camera, loader.viewport)

        loader.pan(-2000, 0)
        after = visible_tiles(loader.camera, loader.viewport)
        assert before != after
        planned = set(loader.plan_loads())
        assert planned == after - before

        requested = await loader.load_visible_tiles()
        assert requested == len(after - before) == 6
        assert provider.calls['fetch_tile'] == 18
        await loader.close()

    @pytest.mark.asyncio
    async def test_reload_without_movement_is_noop(self, loader, provider):
        await loader.load_visible_tiles()
        assert await loader.load_visible_tiles() == 0
        assert provider.calls['fetch_tile'] == 12
        await loader.close()

    @pytest.mark.asyncio
    async def test_plan_is_centre_first(self, loader):
        plan = loader.plan_loads()
        assert (plan[0].tile_x, plan[0].tile_y) == (0, 0)
        await loader.close()

    @pytest.mark.asyncio
    async def test_tiles_are_placed_in_their_cell(self, loader):
        lookup = await loader.load_tile(2, -1)
        items = lookup.entry.payload
        assert items
        assert all(item.tile_x == 2 and item.tile_y == -1 for item in items)
        assert all(item.thumbnail_url for item in items)
        await loader.close()

    @pytest.mark.asyncio
    async def test_same_seed_same_tile(self, provider):
        a = TileLoader(provider, seed=SessionSeed(3))
        b = TileLoader(provider, seed=SessionSeed(3))
        first = await a.load_tile(1, 1)
        second = await b.load_tile(1, 1)
        assert [i.id for i in first.entry.payload] == [i.id for i in second.entry.payload]
        await a.close()
        await b.close()

    @pytest.mark.asyncio
    async def test_visible_items_are_culled(self, loader):
        await loader.load_visible_tiles()
        visible = loader.visible_items()
        assert visible
        assert len(visible) < len(loader.all_items())
        for item in visible:
            assert item.x + loader.camera.x < loader.viewport.width + 300
            assert item.x + item.width + loader.camera.x > -300
        await loader.close()

    @pytest.mark.asyncio
    async def test_loading_flag(self):
        provider = MockProvider(latency=0.05)
        loader = TileLoader(provider)
        task = asyncio.ensure_future(loader.load_tile(0, 0))
        await asyncio.sleep(0.01)
        assert loader.is_any_tile_loading()
        await task
        assert not loader.is_any_tile_loading()
        await loader.close()

    @pytest.mark.asyncio
    async def test_debounced_tile_load(self, loader, provider):
        loader.schedule_tile_load()
        loader.pan(-10, 0)
        loader.schedule_tile_load()
        loader.pan(-10, 0)
        loader.schedule_tile_load()
        await asyncio.sleep(0.1)
        # Only the last scheduled call ran
        assert provider.calls['fetch_tile'] == 12
        await loader.close()


class TestFiltersAndQuery:
    """Filter and query changes start a new tile generation."""

    @pytest.mark.asyncio
    async def test_filter_change_makes_old_entries_unreachable(self, loader):
        await loader.load_tile(0, 0)
        await loader.load_tile(1, 0)
        old_keys = [loader.tile_key(0, 0), loader.tile_key(1, 0)]
        assert loader.get_tile_data(0, 0) is not None

        loader.set_filters({'languages': ['ml']})
        assert loader.get_tile_data(0, 0) is None
        assert loader.get_tile_data(1, 0) is None
        assert all(key not in loader.tile_cache for key in old_keys)
        assert loader.tile_key(0, 0) not in old_keys
        await loader.close()

    @pytest.mark.asyncio
    async def test_filter_change_during_fetch_does_not_crash(self):
        provider = MockProvider(latency=0.05)
        loader = TileLoader(provider, seed=SessionSeed(1))
        task = asyncio.ensure_future(loader.load_tile(0, 0))
        await asyncio.sleep(0.01)

        loader.set_filters(SearchFilters(languages=['ml']))
        result = await task
        assert result.entry.error is None
        # Result of the old generation is not cached under any key
        assert loader.get_tile_data(0, 0) is None
        assert len(loader.tile_cache) == 0

        fresh = await loader.load_tile(0, 0)
        assert all(item.language == 'ml' for item in fresh.entry.payload)
        await loader.close()

    @pytest.mark.asyncio
    async def test_same_filters_keep_cache(self, loader):
        loader.set_filters({'languages': ['ml', 'en']})
        await loader.load_tile(0, 0)
        loader.set_filters({'languages': ['en', 'ml']})
        assert loader.get_tile_data(0, 0) is not None
        await loader.close()

    @pytest.mark.asyncio
    async def test_filters_reset_camera_and_repack(self, loader):
        loader.pan(-500, -500)
        loader.set_filters({'types': ['book', 'periodical', 'manuscript']})
        assert (loader.camera.x, loader.camera.y) == (0, 0)
        await loader.load_visible_tiles()
        visible = loader.visible_items()
        assert visible
        assert min(item.y for item in visible) == CARD_GAP
        await loader.close()

    @pytest.mark.asyncio
    async def test_set_query_invalidates(self, loader):
        await loader.load_tile(0, 0)
        loader.pan(-100, 0)
        loader.set_query('  kerala ')
        assert loader.query == 'kerala'
        assert len(loader.tile_cache) == 0
        assert loader.camera.x == 0
        await loader.close()


class TestSearchMode:
    """perform_search / load_more_search_results / clear_search."""

    @pytest.mark.asyncio
    async def test_perform_search(self, loader, provider):
        await loader.load_visible_tiles()
        await loader.perform_search('kerala')
        assert loader.is_search_mode
        assert loader.query == 'kerala'
        assert loader.search.results
        assert loader.search.total == len(loader.search.results)
        assert not loader.search.has_more
        assert not loader.search.loading
        assert len(loader.tile_cache) == 0
        assert await loader.load_visible_tiles() == 0

        items = loader.visible_items()
        assert items[0].y == SEARCH_GRID_TOP_PX
        await loader.close()

    @pytest.mark.asyncio
    async def test_pagination(self, provider):
        loader = TileLoader(provider, search_page_size=5)
        await loader.perform_search('a')
        assert len(loader.search.results) == 5
        assert loader.search.total > 10
        assert loader.search.has_more
        assert loader.should_load_more()

        assert await loader.load_more_search_results()
        assert len(loader.search.results) == 10
        assert loader.search.page == 2
        ids = [item.id for item in loader.search.results]
        assert len(set(ids)) == 10
        await loader.close()

    @pytest.mark.asyncio
    async def test_load_more_requires_search_mode(self, loader):
        assert not await loader.load_more_search_results()
        await loader.close()

    @pytest.mark.asyncio
    async def test_unknown_total_full_page_means_more(self):
        loader = TileLoader(UnknownTotalProvider(), search_page_size=5)
        await loader.perform_search('a')
        assert loader.search.total == UNKNOWN_TOTAL
        assert loader.search.has_more
        await loader.close()

    @pytest.mark.asyncio
    async def test_search_failure_sets_error(self):
        provider = FailingSearchProvider()
        loader = TileLoader(provider)
        await loader.perform_search('kerala')
        assert loader.is_search_mode
        assert loader.search.error
        assert loader.search.results == []
        assert not loader.search.loading
        await loader.close()

    @pytest.mark.asyncio
    async def test_empty_query_clears(self, loader):
        await loader.perform_search('kerala')
        await loader.perform_search('   ')
        assert not loader.is_search_mode
        assert loader.query == ''
        assert loader.search.results == []
        await loader.close()

    @pytest.mark.asyncio
    async def test_search_results_are_cached(self, loader, provider):
        await loader.perform_search('kerala')
        loader.clear_search()
        await loader.perform_search('kerala')
        assert provider.calls['search'] == 1
        await loader.close()

    @pytest.mark.asyncio
    async def test_debounced_search(self, loader, provider):
        loader.schedule_search('ke')
        loader.schedule_search('ker')
        loader.schedule_search('kerala')
        await asyncio.sleep(0.1)
        assert provider.calls['search'] == 1
        assert loader.query == 'kerala'
        await loader.close()

    @pytest.mark.asyncio
    async def test_filter_change_reruns_search(self, loader, provider):
        await loader.perform_search('a')
        loader.set_filters({'languages': ['ml']})
        await asyncio.sleep(0.1)
        assert provider.calls['search'] == 2
        assert all(item.language == 'ml' for item in loader.search.results)
        await loader.close()


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_settings_applied(self, provider):
        settings = CanvasSettings(
            session_seed=11, max_concurrent_requests=2, search_page_size=20
        )
        loader = TileLoader.from_settings(provider, settings)
        assert loader.seed.value == 11
        assert loader.tiles.max_concurrent == 2
        assert loader.search_page_size == 20
        await loader.close()
