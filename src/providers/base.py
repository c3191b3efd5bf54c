"""Base class for content providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from shared.constants import ITEMS_PER_TILE, SEARCH_DEFAULT_PAGE_SIZE

if TYPE_CHECKING:
    from domain.models import ArchiveItem, ItemDetail, SearchFilters, SearchResponse


class ProviderError(RuntimeError):
    """Upstream request failed.

    Messages carry the request path, never credentials or query strings
    with secrets.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ContentProvider(ABC):
    """
    Source of archive items for tiles, search and detail views.

    Implementations may raise ProviderError from any method; the caching
    layer turns failures into empty results.
    """

    name = 'provider'

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        page: int = 1,
        page_size: int = SEARCH_DEFAULT_PAGE_SIZE,
    ) -> SearchResponse:
        """
        Full-text search, one page at a time.

        Args:
            query: Search text, may be empty when filters are set
            filters: Optional filter set
            page: 1-based page number
            page_size: Items per page

        Returns:
            Items, total (possibly UNKNOWN_TOTAL) and facets

        """

    @abstractmethod
    async def fetch_tile(
        self,
        tile_x: int,
        tile_y: int,
        query: str = '',
        filters: SearchFilters | None = None,
        limit: int = ITEMS_PER_TILE,
        seed: int = 0,
    ) -> list[ArchiveItem]:
        """
        Items for one tile: at most ``limit``, all with a thumbnail.

        The same arguments must give the same content for the provider's
        lifetime.
        """

    @abstractmethod
    async def get_item_detail(self, item_id: str) -> ItemDetail | None:
        """Full record for one item, or None if it does not exist."""

    async def close(self) -> None:  # noqa: B027
        """Release network resources."""

    async def __aenter__(self) -> ContentProvider:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
