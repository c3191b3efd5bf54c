"""Omeka S REST provider (gpura.org)."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import aiohttp

from canvas.seed import seeded_shuffle, tile_page, tile_shuffle_seed, tile_sort_order
from domain.filters import apply_filters, compute_facets, estimate_total
from domain.models import SearchFilters, SearchResponse
from infrastructure.http.client import make_http_session
from providers.base import ContentProvider, ProviderError
from providers.http import fetch_json
from providers.omeka_mapping import (
    OmekaRecord,
    document_source,
    iiif_manifest_thumbnail,
    is_placeholder_thumbnail,
    pick_thumbnail,
    to_archive_item,
    to_item_detail,
)
from shared.constants import (
    HTTP_BACKOFF_FACTOR,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
    ITEMS_PER_TILE,
    MAX_THUMBNAIL_FETCHES,
    OMEKA_BASE_URL,
    OMEKA_ITEMS_ENDPOINT,
    PROPERTY_MAP,
    SEARCH_DEFAULT_PAGE_SIZE,
    TILE_UPSTREAM_PAGE_SIZE,
    SortOrder,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from domain.models import ArchiveItem, DocumentSource, ItemDetail

logger = logging.getLogger(__name__)

TOTAL_RESULTS_HEADER = 'Omeka-S-Total-Results'


def build_query_params(
    query: str,
    filters: SearchFilters | None,
    page: int,
    page_size: int,
    sort_order: SortOrder = SortOrder.DESC,
) -> dict[str, str]:
    """Omeka S items query.

    Languages and types map onto ``property[n]`` filters; everything else is
    applied client side after the page arrives.
    """
    params: dict[str, str] = {}
    if query:
        params['search'] = query
    params['page'] = str(page)
    params['per_page'] = str(page_size)
    params['sort_by'] = 'created'
    params['sort_order'] = sort_order.value

    if filters is not None:
        if filters.languages:
            params['property[0][property]'] = PROPERTY_MAP['language']
            params['property[0][type]'] = 'in'
            params['property[0][text]'] = ','.join(filters.languages)
        if filters.types:
            params['property[1][property]'] = PROPERTY_MAP['type']
            params['property[1][type]'] = 'in'
            params['property[1][text]'] = ','.join(filters.types)
    return params


class OmekaProvider(ContentProvider):
    """
    Content provider backed by an Omeka S installation.

    Network behaviour:
    - 429 and 5xx are retried with exponential backoff
    - 401/403/404 fail immediately
    - media-detail and IIIF lookups are best effort and never fail a tile
    """

    name = 'omeka'

    def __init__(
        self,
        base_url: str = OMEKA_BASE_URL,
        items_endpoint: str = OMEKA_ITEMS_ENDPOINT,
        *,
        session: aiohttp.ClientSession | None = None,
        session_factory: Callable[[], aiohttp.ClientSession] | None = None,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
        retries: int = HTTP_RETRIES_DEFAULT,
        backoff: float = HTTP_BACKOFF_FACTOR,
        max_thumbnail_fetches: int = MAX_THUMBNAIL_FETCHES,
    ) -> None:
        super().__init__()
        self.base_url = base_url.rstrip('/')
        self.items_endpoint = items_endpoint
        self.timeout = timeout
        self.retries = max(1, retries)
        self.backoff = backoff
        self.max_thumbnail_fetches = max_thumbnail_fetches
        self._session = session
        self._owns_session = session is None
        self._session_factory = session_factory or partial(make_http_session, None)

    @property
    def items_url(self) -> str:
        return f'{self.base_url}{self.items_endpoint}'

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = self._session_factory()
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def _get_json(
        self,
        url: str,
        params: Mapping[str, str] | None = None,
        *,
        retries: int | None = None,
    ) -> tuple[Any, Mapping[str, str]]:
        return await fetch_json(
            self._client(),
            url,
            params,
            async_timeout=self.timeout,
            retries=self.retries if retries is None else retries,
            backoff=self.backoff,
        )

    async def _get_json_optional(self, url: str) -> Any | None:
        """Best-effort single-attempt lookup; failures are logged and ignored."""
        try:
            data, _ = await self._get_json(url, retries=1)
        except ProviderError as e:
            logger.debug('Optional lookup failed: %s', e)
            return None
        return data

    async def _fetch_items(
        self, params: Mapping[str, str]
    ) -> tuple[list[OmekaRecord], int]:
        data, headers = await self._get_json(self.items_url, params)
        if not isinstance(data, list):
            msg = f'Unexpected items payload from {self.items_url}: {type(data).__name__}'
            raise ProviderError(msg)
        records = [r for r in data if isinstance(r, dict)]
        raw_total = headers.get(TOTAL_RESULTS_HEADER)
        try:
            total = int(raw_total) if raw_total is not None else len(records)
        except ValueError:
            total = len(records)
        return records, total

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        page: int = 1,
        page_size: int = SEARCH_DEFAULT_PAGE_SIZE,
    ) -> SearchResponse:
        params = build_query_params(query, filters, page, page_size)
        records, upstream_total = await self._fetch_items(params)
        items = [to_archive_item(r, self.base_url) for r in records]

        # Languages/types were applied upstream
        matched = apply_filters(items, filters, include_native=False)
        estimated = filters is not None and filters.has_client_side_filters and bool(items)
        total = (
            estimate_total(upstream_total, len(items), len(matched))
            if estimated
            else upstream_total
        )
        logger.debug(
            'Search %r page %d: %d upstream, %d matched, total %d%s',
            query,
            page,
            len(items),
            len(matched),
            total,
            ' (estimated)' if estimated else '',
        )
        return SearchResponse(
            items=matched,
            total=total,
            facets=compute_facets(items),
            total_is_estimate=estimated,
        )

    async def fetch_tile(
        self,
        tile_x: int,
        tile_y: int,
        query: str = '',
        filters: SearchFilters | None = None,
        limit: int = ITEMS_PER_TILE,
        seed: int = 0,
    ) -> list[ArchiveItem]:
        page = tile_page(tile_x, tile_y, seed)
        sort_order = tile_sort_order(tile_x, tile_y, seed)
        # Always the full upstream page: some items will lack thumbnails.
        # Filters are applied client side only, native ones included.
        params = build_query_params(
            query, None, page, TILE_UPSTREAM_PAGE_SIZE, sort_order
        )
        records, _ = await self._fetch_items(params)
        raw_by_id = {str(r.get('o:id')): r for r in records}
        items = apply_filters(
            [to_archive_item(r, self.base_url) for r in records], filters
        )

        needing = [
            (index, raw_by_id[item.id])
            for index, item in enumerate(items)
            if not item.has_thumbnail and raw_by_id.get(item.id, {}).get('o:media')
        ]
        if needing:
            resolved = await asyncio.gather(
                *(
                    self._resolve_media_thumbnail(raw)
                    for _, raw in needing[: self.max_thumbnail_fetches]
                )
            )
            for (index, _), url in zip(needing, resolved):
                if url:
                    items[index] = items[index].model_copy(update={'thumbnail_url': url})

        renderable = [item for item in items if item.has_thumbnail]
        shuffled = seeded_shuffle(renderable, tile_shuffle_seed(tile_x, tile_y, seed))
        logger.debug(
            'Tile %d,%d: page %d (%s), %d upstream, %d renderable',
            tile_x,
            tile_y,
            page,
            sort_order.value,
            len(records),
            len(renderable),
        )
        return shuffled[:limit]

    async def _resolve_media_thumbnail(self, record: OmekaRecord) -> str | None:
        """First real thumbnail among an item's media, IIIF manifests included."""
        for ref in record.get('o:media') or []:
            if not isinstance(ref, dict) or not ref.get('@id'):
                continue
            detail = await self._get_json_optional(ref['@id'])
            if not isinstance(detail, dict):
                continue
            thumb = pick_thumbnail(detail.get('o:thumbnail_urls'))
            if thumb and not is_placeholder_thumbnail(thumb):
                return thumb
            if detail.get('o:ingester') == 'iiif' and detail.get('o:source'):
                manifest = await self._get_json_optional(detail['o:source'])
                thumb = iiif_manifest_thumbnail(manifest)
                if thumb:
                    return thumb
        return None

    async def _resolve_document_source(
        self, record: OmekaRecord
    ) -> DocumentSource | None:
        for ref in record.get('o:media') or []:
            if not isinstance(ref, dict) or not ref.get('@id'):
                continue
            detail = await self._get_json_optional(ref['@id'])
            source = document_source(detail)
            if source is not None:
                return source
        return None

    async def get_item_detail(self, item_id: str) -> ItemDetail | None:
        url = f'{self.items_url}/{quote(item_id, safe="")}'
        try:
            record, _ = await self._get_json(url)
        except ProviderError as e:
            if e.status == HTTPStatus.NOT_FOUND:
                return None
            raise
        if not isinstance(record, dict):
            msg = f'Unexpected item payload from {url}'
            raise ProviderError(msg)
        return to_item_detail(
            record, self.base_url, await self._resolve_document_source(record)
        )
