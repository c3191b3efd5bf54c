"""Tests for archive models and filter canonicalisation."""

import pytest
from pydantic import ValidationError

from domain.models import (
    ArchiveItem,
    CanvasItem,
    ItemDetail,
    SearchFilters,
    SearchResponse,
    SearchState,
    TileResponse,
)


class TestArchiveItem:
    def test_camel_case_wire_format(self, make_item):
        dumped = make_item(1).model_dump(by_alias=True)
        assert dumped['thumbnailUrl'] == 'https://example.org/thumb/1.jpg'
        assert dumped['sourceUrl'] == 'https://example.org/s/item/1'

    def test_accepts_both_names(self):
        a = ArchiveItem(id='1', title='t', sourceUrl='u', thumbnailUrl='x')
        b = ArchiveItem(id='1', title='t', source_url='u', thumbnail_url='x')
        assert a == b

    def test_extra_fields_ignored(self):
        item = ArchiveItem.model_validate({'id': '1', 'title': 't', 'sourceUrl': 'u', 'rating': 5})
        assert not hasattr(item, 'rating')

    def test_has_thumbnail(self, make_item):
        assert make_item(1).has_thumbnail
        assert not make_item(1, thumbnail_url=None).has_thumbnail
        assert not make_item(1, thumbnail_url='   ').has_thumbnail

    def test_subclasses(self, make_item):
        base = make_item(3).model_dump()
        placed = CanvasItem(**base, x=1, y=2, width=160, height=200, tile_x=0, tile_y=0)
        detail = ItemDetail(**base, description='About')
        assert placed.rotation == 0.0
        assert detail.media is None


class TestSearchFilters:
    """Tests for SearchFilters canonical form and fingerprint."""

    def test_empty_is_inactive(self):
        f = SearchFilters()
        assert not f.is_active
        assert f.fingerprint() == ''
        assert f.canonical() == {}

    def test_empty_lists_are_absent(self):
        f = SearchFilters(languages=[], types=[])
        assert not f.is_active
        assert f.fingerprint() == ''

    def test_order_independent(self):
        a = SearchFilters(languages=['ml', 'en'], types=['book'])
        b = SearchFilters(types=['book'], languages=['en', 'ml', 'en'])
        assert a.fingerprint() == b.fingerprint()

    def test_distinct_filters_distinct_fingerprints(self):
        a = SearchFilters(languages=['ml'])
        b = SearchFilters(types=['ml'])
        assert a.fingerprint() != b.fingerprint()

    def test_fingerprint_format(self):
        f = SearchFilters(languages=['ml'], year_min=1900)
        assert f.fingerprint() == '{"languages":["ml"],"yearMin":1900}'

    def test_single_string_becomes_list(self):
        assert SearchFilters(languages='ml').languages == ['ml']

    @pytest.mark.parametrize('value', [5, 1.5, {'ml': True}])
    def test_non_list_value_rejected(self, value):
        with pytest.raises(ValidationError):
            SearchFilters.model_validate({'languages': value})

    def test_camel_case_input(self):
        f = SearchFilters.model_validate({'yearMin': 1900, 'yearMax': 1950})
        assert (f.year_min, f.year_max) == (1900, 1950)

    def test_client_side_flags(self):
        assert not SearchFilters(languages=['ml'], types=['book']).has_client_side_filters
        assert SearchFilters(collections=['Periodicals']).has_client_side_filters
        assert SearchFilters(periods=['Before 1900']).has_client_side_filters
        assert SearchFilters(year_max=2000).has_client_side_filters


class TestResponses:
    def test_search_response_defaults(self):
        r = SearchResponse()
        assert r.items == []
        assert r.total == 0
        assert r.total_is_estimate is False

    def test_tile_response_wire_format(self, make_item):
        r = TileResponse(tile_x=1, tile_y=-2, items=[make_item(1)])
        dumped = r.model_dump(mode='json', by_alias=True, exclude_none=True)
        assert dumped['tileX'] == 1
        assert dumped['tileY'] == -2
        assert 'error' not in dumped

    def test_search_state_defaults(self):
        s = SearchState()
        assert s.page == 1
        assert not s.loading
        assert not s.has_more
