"""Domain layer - archive models, filters and settings."""
from domain.filters import apply_filters, compute_facets, fingerprint, matches_filters
from domain.models import (
    ArchiveItem,
    CanvasItem,
    Facets,
    ItemDetail,
    SearchFilters,
    SearchResponse,
    SearchState,
    TileResponse,
)
from domain.settings import CanvasSettings, dump_settings, load_settings

__all__ = [
    'ArchiveItem',
    'CanvasItem',
    'CanvasSettings',
    'Facets',
    'ItemDetail',
    'SearchFilters',
    'SearchResponse',
    'SearchState',
    'TileResponse',
    'apply_filters',
    'compute_facets',
    'dump_settings',
    'fingerprint',
    'load_settings',
    'matches_filters',
]
