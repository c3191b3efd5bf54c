"""Mapping layer between flat CanvasSettings fields and sectioned TOML format.

CanvasSettings remains a flat Pydantic model. This module provides two functions:
- flat_to_sectioned(): flat dict → sectioned dict (for TOML output)
- sectioned_to_flat(): sectioned dict → flat dict (for TOML load)
"""

from __future__ import annotations

# {section_name: {flat_field_name: short_name_in_toml}}
SECTION_MAP: dict[str, dict[str, str]] = {
    'upstream': {
        'omeka_base_url': 'base_url',
        'omeka_items_endpoint': 'items_endpoint',
        'remote_api_url': 'remote_api_url',
        'http_timeout_s': 'timeout_s',
        'http_retries': 'retries',
        'http_backoff': 'backoff',
        'max_thumbnail_fetches': 'max_thumbnail_fetches',
    },
    'http_cache': {
        'http_cache_enabled': 'enabled',
        'http_cache_dir': 'dir',
        'http_cache_expire_hours': 'expire_hours',
        'http_cache_stale_if_error_hours': 'stale_if_error_hours',
    },
    'tiles': {
        'tile_fresh_ttl_s': 'fresh_ttl_s',
        'tile_stale_ttl_s': 'stale_ttl_s',
        'tile_sweep_threshold': 'sweep_threshold',
        'max_concurrent_requests': 'max_concurrent',
        'tile_debounce_ms': 'debounce_ms',
    },
    'search': {
        'search_fresh_ttl_s': 'fresh_ttl_s',
        'search_stale_ttl_s': 'stale_ttl_s',
        'search_sweep_threshold': 'sweep_threshold',
        'search_page_size': 'page_size',
        'search_debounce_ms': 'debounce_ms',
    },
    'server': {
        'host': 'host',
        'port': 'port',
    },
}

# Reverse index: flat_field → (section, short_name)
_FLAT_TO_SECTION: dict[str, tuple[str, str]] = {}
for _section, _fields in SECTION_MAP.items():
    for _flat, _short in _fields.items():
        _FLAT_TO_SECTION[_flat] = (_section, _short)

# Reverse index: (section, short_name) → flat_field
_SECTION_TO_FLAT: dict[str, dict[str, str]] = {}
for _section, _fields in SECTION_MAP.items():
    _SECTION_TO_FLAT[_section] = {v: k for k, v in _fields.items()}


def flat_to_sectioned(flat: dict) -> dict:
    """Convert flat CanvasSettings dict to sectioned dict for TOML output."""
    result: dict = {'common': {}}
    for key, value in flat.items():
        if value is None:
            # TOML has no null
            continue
        if key in _FLAT_TO_SECTION:
            section, short_name = _FLAT_TO_SECTION[key]
            result.setdefault(section, {})[short_name] = value
        else:
            result['common'][key] = value
    return result


def sectioned_to_flat(data: dict) -> dict:
    """Convert sectioned TOML dict to flat dict for CanvasSettings validation."""
    flat: dict = {}
    for key, value in data.items():
        if isinstance(value, dict) and key in _SECTION_TO_FLAT:
            # Known section: expand short names to flat names
            mapping = _SECTION_TO_FLAT[key]
            for short_name, field_value in value.items():
                flat[mapping.get(short_name, short_name)] = field_value
        elif isinstance(value, dict):
            # 'common' and unknown sections pass through as-is
            flat.update(value)
        else:
            # Top-level key (flat TOML)
            flat[key] = value
    return flat
