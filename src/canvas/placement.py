"""Deterministic placement of archive items on the canvas."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, NamedTuple

from domain.models import ArchiveItem, CanvasItem
from shared.constants import (
    CARD_GAP,
    CARD_HEIGHT,
    CARD_WIDTH,
    COLS_PER_TILE,
    GRID_FALLBACK_VIEWPORT_WIDTH,
    GRID_MIN_COLUMNS,
    ROTATION_MAX_DEG,
    ROTATION_SEED_K1,
    ROTATION_SEED_K2,
    ROWS_PER_TILE,
    SEARCH_GRID_TOP_PX,
    SEARCH_ROTATION_MAX_DEG,
    SEARCH_ROWS_PER_PSEUDO_TILE,
    TILE_HEIGHT,
    TILE_WIDTH,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)

_ARCHIVE_FIELDS = frozenset(ArchiveItem.model_fields)


class Placement(NamedTuple):
    x: float
    y: float
    width: float
    height: float
    rotation: float


def seeded_random(seed: int) -> float:
    """Pseudo-random value in [0, 1) that depends only on ``seed``."""
    v = math.sin(seed * 12.9898 + seed * 78.233) * 43758.5453
    return v - math.floor(v)


def rotation_seed(tile_x: int, tile_y: int, index: int) -> int:
    return tile_x * ROTATION_SEED_K1 + tile_y * ROTATION_SEED_K2 + index


def place(tile_x: int, tile_y: int, index: int) -> Placement:
    """World-space position of the ``index``-th card of a tile.

    Pure function of its arguments: re-fetching a tile reproduces the same
    layout bit for bit.
    """
    col = index % COLS_PER_TILE
    row = index // COLS_PER_TILE
    x = tile_x * TILE_WIDTH + col * (CARD_WIDTH + CARD_GAP) + CARD_GAP / 2
    y = tile_y * TILE_HEIGHT + row * (CARD_HEIGHT + CARD_GAP) + CARD_GAP / 2
    rotation = (seeded_random(rotation_seed(tile_x, tile_y, index)) - 0.5) * (
        2 * ROTATION_MAX_DEG
    )
    return Placement(x, y, CARD_WIDTH, CARD_HEIGHT, rotation)


def place_items(
    items: Iterable[ArchiveItem], tile_x: int, tile_y: int
) -> list[CanvasItem]:
    """Drop items without a thumbnail and place the rest into the tile grid."""
    capacity = COLS_PER_TILE * ROWS_PER_TILE
    renderable = [item for item in items if item.has_thumbnail]
    if len(renderable) > capacity:
        logger.debug(
            'Tile %d,%d: %d items exceed grid capacity %d, truncating',
            tile_x,
            tile_y,
            len(renderable),
            capacity,
        )
        renderable = renderable[:capacity]

    placed = []
    for index, item in enumerate(renderable):
        pos = place(tile_x, tile_y, index)
        placed.append(
            CanvasItem(
                **item.model_dump(include=_ARCHIVE_FIELDS),
                x=pos.x,
                y=pos.y,
                width=pos.width,
                height=pos.height,
                rotation=pos.rotation,
                tile_x=tile_x,
                tile_y=tile_y,
            )
        )
    return placed


def grid_columns(viewport_width: float | None) -> int:
    width = viewport_width or GRID_FALLBACK_VIEWPORT_WIDTH
    cell = CARD_WIDTH + CARD_GAP
    return max(GRID_MIN_COLUMNS, math.floor((width - CARD_GAP) / cell))


def _grid_origin_x(cols: int, viewport_width: float | None) -> float:
    width = viewport_width or GRID_FALLBACK_VIEWPORT_WIDTH
    grid_width = cols * (CARD_WIDTH + CARD_GAP)
    return max(CARD_GAP, (width - grid_width) / 2)


def repack_to_grid(
    items: Sequence[CanvasItem], viewport_width: float | None
) -> list[CanvasItem]:
    """Lay tile items out in one dense grid, in arrival order.

    Used when filters thin tiles out so much that the scattered tile grid
    would show mostly empty space. Duplicate ids keep their first
    occurrence; rotations are preserved.
    """
    cols = grid_columns(viewport_width)
    start_x = _grid_origin_x(cols, viewport_width)
    seen: set[str] = set()
    out = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        index = len(out)
        col = index % cols
        row = index // cols
        out.append(
            item.model_copy(
                update={
                    'x': start_x + col * (CARD_WIDTH + CARD_GAP),
                    'y': CARD_GAP + row * (CARD_HEIGHT + CARD_GAP),
                }
            )
        )
    return out


def layout_search_results(
    results: Sequence[ArchiveItem], viewport_width: float | None
) -> list[CanvasItem]:
    """Dense grid for search mode, below the search header."""
    cols = grid_columns(viewport_width)
    start_x = _grid_origin_x(cols, viewport_width)
    out = []
    for index, item in enumerate(results):
        col = index % cols
        row = index // cols
        try:
            seed = int(item.id)
        except ValueError:
            seed = index
        rotation = (seeded_random(seed or index) - 0.5) * (2 * SEARCH_ROTATION_MAX_DEG)
        out.append(
            CanvasItem(
                **item.model_dump(include=_ARCHIVE_FIELDS),
                x=start_x + col * (CARD_WIDTH + CARD_GAP),
                y=SEARCH_GRID_TOP_PX + row * (CARD_HEIGHT + CARD_GAP),
                width=CARD_WIDTH,
                height=CARD_HEIGHT,
                rotation=rotation,
                tile_x=0,
                tile_y=index // (cols * SEARCH_ROWS_PER_PSEUDO_TILE),
            )
        )
    return out
