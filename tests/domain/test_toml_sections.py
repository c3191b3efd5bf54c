"""Tests for TOML sectioned settings mapping layer."""

import tomlkit

from domain.settings import CanvasSettings
from domain.toml_sections import (
    SECTION_MAP,
    flat_to_sectioned,
    sectioned_to_flat,
)


class TestFlatToSectioned:
    """Tests for flat_to_sectioned()."""

    def test_creates_expected_sections(self):
        result = flat_to_sectioned(CanvasSettings().model_dump(mode='json'))
        for section in ('common', 'upstream', 'http_cache', 'tiles', 'search', 'server'):
            assert section in result

    def test_tiles_fields_use_short_names(self):
        result = flat_to_sectioned(CanvasSettings().model_dump(mode='json'))
        tiles = result['tiles']
        assert tiles['fresh_ttl_s'] == 1800
        assert tiles['max_concurrent'] == 6
        # Flat name must NOT leak
        assert 'tile_fresh_ttl_s' not in tiles

    def test_common_section_has_no_sectioned_fields(self):
        result = flat_to_sectioned(CanvasSettings().model_dump(mode='json'))
        common = result['common']
        for section_fields in SECTION_MAP.values():
            for flat_name in section_fields:
                assert flat_name not in common
        assert common['provider'] == 'omeka'

    def test_none_values_skipped(self):
        result = flat_to_sectioned({'remote_api_url': None, 'session_seed': None})
        assert 'upstream' not in result
        assert result['common'] == {}

    def test_output_is_valid_toml(self):
        text = tomlkit.dumps(flat_to_sectioned(CanvasSettings().model_dump(mode='json')))
        parsed = tomlkit.parse(text).unwrap()
        assert parsed['server']['port'] == 8080


class TestSectionedToFlat:
    """Tests for sectioned_to_flat()."""

    def test_expands_short_names(self):
        flat = sectioned_to_flat({'search': {'fresh_ttl_s': 60, 'page_size': 20}})
        assert flat == {'search_fresh_ttl_s': 60, 'search_page_size': 20}

    def test_same_short_name_in_two_sections(self):
        flat = sectioned_to_flat({'tiles': {'fresh_ttl_s': 1}, 'search': {'fresh_ttl_s': 2}})
        assert flat['tile_fresh_ttl_s'] == 1
        assert flat['search_fresh_ttl_s'] == 2

    def test_common_and_unknown_sections_pass_through(self):
        flat = sectioned_to_flat({'common': {'provider': 'mock'}, 'extras': {'foo': 1}})
        assert flat == {'provider': 'mock', 'foo': 1}

    def test_flat_toml_accepted(self):
        assert sectioned_to_flat({'provider': 'mock', 'port': 9000}) == {
            'provider': 'mock',
            'port': 9000,
        }

    def test_round_trip_preserves_settings(self):
        original = CanvasSettings(provider='mock', port=9001, tile_fresh_ttl_s=10, tile_stale_ttl_s=20)
        flat = sectioned_to_flat(flat_to_sectioned(original.model_dump(mode='json')))
        assert CanvasSettings.model_validate(flat) == original
