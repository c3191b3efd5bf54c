"""Services package - cached tile and search access for the HTTP API."""

from services.search_service import SearchService
from services.tile_service import CachedResult, TileService

__all__ = [
    'CachedResult',
    'SearchService',
    'TileService',
]
