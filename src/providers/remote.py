"""Provider that consumes this project's own HTTP API."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING
from urllib.parse import quote

from pydantic import ValidationError

from domain.models import ItemDetail, SearchResponse, TileResponse
from infrastructure.http.client import make_http_session
from providers.base import ContentProvider, ProviderError
from providers.http import fetch_json
from shared.constants import (
    HTTP_BACKOFF_FACTOR,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
    ITEMS_PER_TILE,
    SEARCH_DEFAULT_PAGE_SIZE,
)

if TYPE_CHECKING:
    import aiohttp

    from domain.models import ArchiveItem, SearchFilters

logger = logging.getLogger(__name__)


def _filters_param(filters: SearchFilters | None) -> dict[str, str]:
    fp = filters.fingerprint() if filters is not None else ''
    return {'filters': fp} if fp else {}


class GalleryApiProvider(ContentProvider):
    """
    Client of a running gallery server (``/api/tiles``, ``/api/search``,
    ``/api/item/{id}``).

    Lets a headless viewport run against a remote deployment, the same way
    the browser client does. A tile payload with an ``error`` field is
    reported as a ProviderError so the local cache does not keep it fresh.
    """

    name = 'remote'

    def __init__(
        self,
        base_url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
        retries: int = HTTP_RETRIES_DEFAULT,
        backoff: float = HTTP_BACKOFF_FACTOR,
    ) -> None:
        super().__init__()
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self._session = session
        self._owns_session = session is None

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = make_http_session(None)
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def _get(self, path: str, params: dict[str, str] | None = None) -> object:
        data, _ = await fetch_json(
            self._client(),
            f'{self.base_url}{path}',
            params,
            async_timeout=self.timeout,
            retries=self.retries,
            backoff=self.backoff,
        )
        return data

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        page: int = 1,
        page_size: int = SEARCH_DEFAULT_PAGE_SIZE,
    ) -> SearchResponse:
        params = {'q': query, 'page': str(page), 'pageSize': str(page_size)}
        params.update(_filters_param(filters))
        data = await self._get('/api/search', params)
        try:
            return SearchResponse.model_validate(data)
        except ValidationError as e:
            msg = f'Malformed search response from {self.base_url}: {e.error_count()} errors'
            raise ProviderError(msg) from e

    async def fetch_tile(
        self,
        tile_x: int,
        tile_y: int,
        query: str = '',
        filters: SearchFilters | None = None,
        limit: int = ITEMS_PER_TILE,
        seed: int = 0,
    ) -> list[ArchiveItem]:
        params = {
            'tx': str(tile_x),
            'ty': str(tile_y),
            'limit': str(limit),
            'seed': str(seed),
        }
        if query:
            params['q'] = query
        params.update(_filters_param(filters))
        data = await self._get('/api/tiles', params)
        try:
            tile = TileResponse.model_validate(data)
        except ValidationError as e:
            msg = f'Malformed tile response from {self.base_url}: {e.error_count()} errors'
            raise ProviderError(msg) from e
        if tile.error:
            raise ProviderError(f'Tile {tile_x},{tile_y}: {tile.error}')
        return tile.items

    async def get_item_detail(self, item_id: str) -> ItemDetail | None:
        try:
            data = await self._get(f'/api/item/{quote(item_id, safe="")}')
        except ProviderError as e:
            if e.status == HTTPStatus.NOT_FOUND:
                return None
            raise
        try:
            return ItemDetail.model_validate(data)
        except ValidationError as e:
            msg = f'Malformed item response from {self.base_url}: {e.error_count()} errors'
            raise ProviderError(msg) from e
