"""HTTP client infrastructure."""
from infrastructure.http.client import (
    cleanup_sqlite_cache,
    make_http_session,
    resolve_cache_dir,
    validate_upstream_api,
)

__all__ = [
    'cleanup_sqlite_cache',
    'make_http_session',
    'resolve_cache_dir',
    'validate_upstream_api',
]
