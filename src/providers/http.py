"""JSON GET with retries, shared by the HTTP-backed providers."""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

import aiohttp

from providers.base import ProviderError
from shared.constants import (
    HTTP_5XX_MAX,
    HTTP_5XX_MIN,
    HTTP_BACKOFF_FACTOR,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

_JSON_HEADERS = {'Accept': 'application/json'}


async def _release(resp: Any) -> None:
    # Both aiohttp and cached responses; release() may or may not be awaitable
    try:
        close = getattr(resp, 'close', None)
        if callable(close):
            close()
        release = getattr(resp, 'release', None)
        if callable(release):
            result = release()
            if asyncio.iscoroutine(result):
                await result
    except (aiohttp.ClientError, OSError) as e:
        logger.debug('Failed to cleanup HTTP response: %s', e, exc_info=True)


async def fetch_json(
    client: aiohttp.ClientSession,
    url: str,
    params: Mapping[str, str] | None = None,
    *,
    async_timeout: float = HTTP_TIMEOUT_DEFAULT,
    retries: int = HTTP_RETRIES_DEFAULT,
    backoff: float = HTTP_BACKOFF_FACTOR,
) -> tuple[Any, dict[str, str]]:
    """
    GET ``url`` and decode the JSON body.

    - 401/403/404 and other unexpected statuses fail immediately
    - 429/5xx, connection errors and undecodable bodies are retried with
      exponential backoff

    Returns:
        Decoded body and response headers

    Raises:
        ProviderError: carries the HTTP status when there was one

    """
    attempts = max(1, retries)
    last_exc: Exception | None = None
    for attempt in range(attempts):
        try:
            timeout = aiohttp.ClientTimeout(total=async_timeout)
            resp = await client.get(
                url, params=params, headers=_JSON_HEADERS, timeout=timeout
            )
            try:
                sc = resp.status
                if sc == HTTPStatus.OK:
                    data = await resp.json(content_type=None)
                    return data, dict(resp.headers)
                if sc in (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN):
                    msg = f'Access denied (HTTP {sc}) for {url}'
                    raise ProviderError(msg, status=sc)
                if sc == HTTPStatus.NOT_FOUND:
                    msg = f'Not found (404): {url}'
                    raise ProviderError(msg, status=sc)
                is_rate_or_5xx = (sc == HTTPStatus.TOO_MANY_REQUESTS) or (
                    HTTP_5XX_MIN <= sc < HTTP_5XX_MAX
                )
                if not is_rate_or_5xx:
                    msg = f'Unexpected HTTP {sc} from {url}'
                    raise ProviderError(msg, status=sc)
                last_exc = ProviderError(f'HTTP {sc} from {url}', status=sc)
            finally:
                await _release(resp)
        except ProviderError:
            raise
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            last_exc = e
        if attempt + 1 < attempts:
            logger.debug('Retrying %s (attempt %d): %s', url, attempt + 1, last_exc)
            await asyncio.sleep(backoff**attempt)
    status = last_exc.status if isinstance(last_exc, ProviderError) else None
    msg = f'Request failed after {attempts} attempts: {url}: {last_exc}'
    raise ProviderError(msg, status=status)
