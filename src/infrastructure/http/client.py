from __future__ import annotations

import contextlib
import logging
import os
import sqlite3
import ssl
import time
from datetime import timedelta
from http import HTTPStatus
from pathlib import Path

import aiohttp
import certifi
from aiohttp_client_cache import CachedSession, SQLiteBackend

from shared.constants import (
    HTTP_CACHE_DIR,
    HTTP_CACHE_ENABLED,
    HTTP_CACHE_EXPIRE_HOURS,
    HTTP_CACHE_RESPECT_HEADERS,
    HTTP_CACHE_STALE_IF_ERROR_HOURS,
)

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = 'http_cache.sqlite'


def resolve_cache_dir(raw: str = HTTP_CACHE_DIR) -> Path | None:
    raw_dir = Path(raw)
    if raw_dir.is_absolute():
        return raw_dir

    xdg = os.getenv('XDG_CACHE_HOME')
    if xdg:
        return (Path(xdg) / 'gpura-canvas' / raw_dir).resolve()
    # Fallback: user's home directory
    return (Path.home() / '.cache' / 'gpura-canvas' / raw_dir).resolve()


def cleanup_sqlite_cache(cache_dir: Path) -> None:
    """Force cleanup of SQLite cache connections."""
    cache_file = cache_dir / CACHE_FILE_NAME
    if cache_file.exists():
        # Close any remaining SQLite connections
        conn = sqlite3.connect(cache_file)
        conn.execute('PRAGMA wal_checkpoint(TRUNCATE);')
        conn.close()

        time.sleep(0.1)


def make_http_session(
    cache_dir: Path | None,
    *,
    use_cache: bool = HTTP_CACHE_ENABLED,
    expire_hours: int = HTTP_CACHE_EXPIRE_HOURS,
    stale_if_error_hours: int = HTTP_CACHE_STALE_IF_ERROR_HOURS,
    respect_headers: bool = HTTP_CACHE_RESPECT_HEADERS,
) -> aiohttp.ClientSession:
    # SSL context with the certifi CA bundle
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)

    if use_cache and cache_dir is not None:
        cache_dir.mkdir(parents=True, exist_ok=True)
        cache_path = cache_dir / CACHE_FILE_NAME
        with contextlib.suppress(sqlite3.Error):
            if not cache_path.exists():
                with sqlite3.connect(cache_path) as _conn:
                    _conn.execute('PRAGMA journal_mode=WAL;')
        expire_td = timedelta(hours=max(0, int(expire_hours)))
        stale_hours = int(stale_if_error_hours)
        stale_param: bool | timedelta
        stale_param = timedelta(hours=stale_hours) if stale_hours > 0 else False
        backend = SQLiteBackend(str(cache_path), expire_after=expire_td)
        logger.info('HTTP cache enabled: %s (expire %sh)', cache_path, expire_hours)
        return CachedSession(
            cache=backend,
            connector=connector,
            expire_after=expire_td,
            cache_control=bool(respect_headers),
            stale_if_error=stale_param,
        )
    return aiohttp.ClientSession(connector=connector)


async def validate_upstream_api(base_url: str, items_endpoint: str) -> None:
    """Quick reachability check of the Omeka S items endpoint."""
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)

    test_url = f'{base_url}{items_endpoint}'
    timeout = aiohttp.ClientTimeout(total=10, connect=10, sock_connect=10, sock_read=10)
    try:
        async with (
            aiohttp.ClientSession(connector=connector) as client,
            client.get(test_url, params={'per_page': '1'}, timeout=timeout) as resp,
        ):
            sc = resp.status
            if sc == HTTPStatus.OK:
                with contextlib.suppress(aiohttp.ClientError):
                    await resp.read()
                return
            if sc == HTTPStatus.NOT_FOUND:
                msg = f'Items endpoint not found (HTTP 404): {test_url}'
                raise RuntimeError(msg)
            msg = f'Archive server error (HTTP {sc}) at {test_url}. Try again later.'
            raise RuntimeError(msg)
    except (TimeoutError, aiohttp.ClientConnectorError, aiohttp.ClientOSError):
        msg = f'Archive server unreachable: {base_url}. Check the network connection.'
        raise RuntimeError(msg) from None
