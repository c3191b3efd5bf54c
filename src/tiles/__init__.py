"""Tile caching and loading.

This module provides:
- TtlCache: in-memory entries with fresh / stale / expired windows
- RequestCoordinator: deduplicated, concurrency-bounded fetches with
  stale-while-revalidate and generation-based invalidation
- TileLoader: viewport-driven tile and search state for one session
"""

from tiles.cache import CacheEntry, CacheLookup, CacheStats, TtlCache
from tiles.coordinator import CoordinatorStats, RequestCoordinator
from tiles.loader import TileLoader

__all__ = [
    'CacheEntry',
    'CacheLookup',
    'CacheStats',
    'CoordinatorStats',
    'RequestCoordinator',
    'TileLoader',
    'TtlCache',
]
