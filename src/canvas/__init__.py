"""Canvas maths: geometry, deterministic placement and session seeding."""
from canvas.geometry import (
    Camera,
    TileCoord,
    Viewport,
    cull,
    sort_by_distance_to_center,
    visible_tiles,
)
from canvas.placement import Placement, place, place_items, repack_to_grid
from canvas.seed import SessionSeed, tile_key, tile_page

__all__ = [
    'Camera',
    'Placement',
    'SessionSeed',
    'TileCoord',
    'Viewport',
    'cull',
    'place',
    'place_items',
    'repack_to_grid',
    'sort_by_distance_to_center',
    'tile_key',
    'tile_page',
    'visible_tiles',
]
