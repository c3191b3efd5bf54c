"""Service settings: TOML file, .env and environment overrides."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import tomlkit
from dotenv import load_dotenv
from pydantic import BaseModel, field_validator, model_validator

from domain.toml_sections import flat_to_sectioned, sectioned_to_flat
from shared.constants import (
    API_DEFAULT_HOST,
    API_DEFAULT_PORT,
    CONFIG_DIR,
    DEFAULT_CONFIG_FILE,
    HTTP_BACKOFF_FACTOR,
    HTTP_CACHE_DIR,
    HTTP_CACHE_ENABLED,
    HTTP_CACHE_EXPIRE_HOURS,
    HTTP_CACHE_STALE_IF_ERROR_HOURS,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
    MAX_CONCURRENT_REQUESTS,
    MAX_THUMBNAIL_FETCHES,
    OMEKA_BASE_URL,
    OMEKA_ITEMS_ENDPOINT,
    SEARCH_CACHE_FRESH_TTL_S,
    SEARCH_CACHE_STALE_TTL_S,
    SEARCH_CACHE_SWEEP_THRESHOLD,
    SEARCH_DEBOUNCE_MS,
    SEARCH_PAGE_SIZE,
    TILE_CACHE_FRESH_TTL_S,
    TILE_CACHE_STALE_TTL_S,
    TILE_CACHE_SWEEP_THRESHOLD,
    TILE_LOAD_DEBOUNCE_MS,
    ProviderKind,
)

logger = logging.getLogger(__name__)

# Environment variable -> settings field
ENV_OVERRIDES: dict[str, str] = {
    'OMEKA_BASE_URL': 'omeka_base_url',
    'OMEKA_ITEMS_ENDPOINT': 'omeka_items_endpoint',
    'GPURA_CANVAS_PROVIDER': 'provider',
    'GPURA_CANVAS_REMOTE_URL': 'remote_api_url',
}


class CanvasSettings(BaseModel):
    """All tunables of the canvas service, flat.

    The TOML file groups them into sections (see domain.toml_sections).
    """

    model_config = {
        'extra': 'ignore',  # unknown keys from older config files
    }

    provider: ProviderKind = ProviderKind.OMEKA
    log_level: str = 'INFO'

    # Upstream
    omeka_base_url: str = OMEKA_BASE_URL
    omeka_items_endpoint: str = OMEKA_ITEMS_ENDPOINT
    remote_api_url: str | None = None
    http_timeout_s: float = HTTP_TIMEOUT_DEFAULT
    http_retries: int = HTTP_RETRIES_DEFAULT
    http_backoff: float = HTTP_BACKOFF_FACTOR
    max_thumbnail_fetches: int = MAX_THUMBNAIL_FETCHES

    # On-disk cache of upstream HTTP responses
    http_cache_enabled: bool = HTTP_CACHE_ENABLED
    http_cache_dir: str = HTTP_CACHE_DIR
    http_cache_expire_hours: int = HTTP_CACHE_EXPIRE_HOURS
    http_cache_stale_if_error_hours: int = HTTP_CACHE_STALE_IF_ERROR_HOURS

    # Tile cache and coordinator
    tile_fresh_ttl_s: float = TILE_CACHE_FRESH_TTL_S
    tile_stale_ttl_s: float = TILE_CACHE_STALE_TTL_S
    tile_sweep_threshold: int = TILE_CACHE_SWEEP_THRESHOLD
    max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS
    tile_debounce_ms: float = TILE_LOAD_DEBOUNCE_MS

    # Search cache
    search_fresh_ttl_s: float = SEARCH_CACHE_FRESH_TTL_S
    search_stale_ttl_s: float = SEARCH_CACHE_STALE_TTL_S
    search_sweep_threshold: int = SEARCH_CACHE_SWEEP_THRESHOLD
    search_page_size: int = SEARCH_PAGE_SIZE
    search_debounce_ms: float = SEARCH_DEBOUNCE_MS

    # API server
    host: str = API_DEFAULT_HOST
    port: int = API_DEFAULT_PORT

    # Fixed session seed; random per process when unset
    session_seed: int | None = None

    @field_validator('provider', mode='before')
    @classmethod
    def validate_provider(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            msg = f'Unknown log level: {v}'
            raise ValueError(msg)
        return level

    @field_validator('omeka_base_url', 'remote_api_url')
    @classmethod
    def validate_base_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().rstrip('/')
        if not v.startswith(('http://', 'https://')):
            msg = f'URL must start with http:// or https://, got {v!r}'
            raise ValueError(msg)
        return v

    @field_validator('omeka_items_endpoint')
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        v = v.strip()
        return v if v.startswith('/') else f'/{v}'

    @field_validator(
        'http_retries',
        'max_concurrent_requests',
        'tile_sweep_threshold',
        'search_sweep_threshold',
        'search_page_size',
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v < 1:
            msg = 'Value must be >= 1'
            raise ValueError(msg)
        return v

    @field_validator('max_thumbnail_fetches', 'session_seed')
    @classmethod
    def validate_non_negative_int(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            msg = 'Value must be >= 0'
            raise ValueError(msg)
        return v

    @field_validator('http_timeout_s', 'http_backoff')
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        if v <= 0:
            msg = 'Value must be > 0'
            raise ValueError(msg)
        return v

    @field_validator('port')
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            msg = f'Port out of range: {v}'
            raise ValueError(msg)
        return v

    @model_validator(mode='after')
    def validate_ttl_windows(self) -> CanvasSettings:
        for label, fresh, stale in (
            ('tile', self.tile_fresh_ttl_s, self.tile_stale_ttl_s),
            ('search', self.search_fresh_ttl_s, self.search_stale_ttl_s),
        ):
            if not 0 < fresh < stale:
                msg = f'{label} cache needs 0 < fresh_ttl_s < stale_ttl_s, got {fresh} / {stale}'
                raise ValueError(msg)
        if self.provider is ProviderKind.REMOTE and not self.remote_api_url:
            msg = 'provider "remote" requires upstream.remote_api_url'
            raise ValueError(msg)
        return self


def default_config_path() -> Path:
    """configs/default.toml next to the project root."""
    project_root = Path(__file__).resolve().parent.parent.parent
    return project_root / CONFIG_DIR / DEFAULT_CONFIG_FILE


def _env_overrides() -> dict[str, str]:
    overrides = {}
    for env_name, field_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name, '').strip()
        if value:
            overrides[field_name] = value
    return overrides


def load_settings(
    path: str | Path | None = None,
    *,
    env_file: str | Path | None = None,
    use_env: bool = True,
) -> CanvasSettings:
    """
    Load and validate settings.

    Precedence: environment > TOML file > built-in defaults. A missing
    default config file is not an error; a missing explicit one is.
    """
    config_path = Path(path) if path is not None else default_config_path()
    data: dict[str, Any] = {}
    if config_path.exists():
        text = config_path.read_text(encoding='utf-8')
        data = sectioned_to_flat(tomlkit.parse(text).unwrap())
        logger.info('Settings loaded from %s', config_path)
    elif path is not None:
        msg = f'Config file not found: {config_path}'
        raise FileNotFoundError(msg)
    else:
        logger.info('No config file at %s, using defaults', config_path)

    if use_env:
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()
        overrides = _env_overrides()
        if overrides:
            logger.info('Environment overrides: %s', ', '.join(sorted(overrides)))
        data.update(overrides)

    return CanvasSettings.model_validate(data)


def dump_settings(settings: CanvasSettings) -> str:
    """Sectioned TOML text for the given settings."""
    flat = settings.model_dump(mode='json')
    return tomlkit.dumps(flat_to_sectioned(flat))
