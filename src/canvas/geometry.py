"""Viewport geometry: visible tile ranges, scheduling order and culling.

All functions are pure. Malformed input (non-finite camera, empty or
non-finite viewport) means "nothing visible" and never raises.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple, Protocol, TypeVar

from shared.constants import CULL_MARGIN, TILE_HEIGHT, TILE_PADDING, TILE_WIDTH

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


class TileCoord(NamedTuple):
    tile_x: int
    tile_y: int


class Viewport(NamedTuple):
    width: float
    height: float


class Bounds(NamedTuple):
    left: float
    top: float
    right: float
    bottom: float


@dataclass
class Camera:
    """Offset of the world plane relative to the viewport origin."""

    x: float = 0.0
    y: float = 0.0

    def pan(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy

    def move_to(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def reset(self) -> None:
        self.x = 0.0
        self.y = 0.0


class Boxed(Protocol):
    x: float
    y: float
    width: float
    height: float


BoxedT = TypeVar('BoxedT', bound=Boxed)


def _is_valid(camera: Camera, viewport: Viewport) -> bool:
    return (
        math.isfinite(camera.x)
        and math.isfinite(camera.y)
        and math.isfinite(viewport.width)
        and math.isfinite(viewport.height)
        and viewport.width > 0
        and viewport.height > 0
    )


def viewport_bounds(camera: Camera, viewport: Viewport) -> Bounds:
    """Viewport rectangle in world space."""
    return Bounds(
        left=-camera.x,
        top=-camera.y,
        right=-camera.x + viewport.width,
        bottom=-camera.y + viewport.height,
    )


def visible_tiles(
    camera: Camera,
    viewport: Viewport,
    *,
    tile_width: float = TILE_WIDTH,
    tile_height: float = TILE_HEIGHT,
    padding: int = TILE_PADDING,
) -> set[TileCoord]:
    """Tiles covering the viewport, padded by ``padding`` tiles on every side."""
    if not _is_valid(camera, viewport):
        return set()
    b = viewport_bounds(camera, viewport)
    x_min = math.floor(b.left / tile_width) - padding
    x_max = math.floor(b.right / tile_width) + padding
    y_min = math.floor(b.top / tile_height) - padding
    y_max = math.floor(b.bottom / tile_height) + padding
    return {
        TileCoord(tx, ty)
        for tx in range(x_min, x_max + 1)
        for ty in range(y_min, y_max + 1)
    }


def center_tile(
    camera: Camera,
    viewport: Viewport,
    *,
    tile_width: float = TILE_WIDTH,
    tile_height: float = TILE_HEIGHT,
) -> TileCoord:
    cx = -camera.x + viewport.width / 2
    cy = -camera.y + viewport.height / 2
    return TileCoord(math.floor(cx / tile_width), math.floor(cy / tile_height))


def sort_by_distance_to_center(
    tiles: Iterable[TileCoord],
    camera: Camera,
    viewport: Viewport,
    *,
    tile_width: float = TILE_WIDTH,
    tile_height: float = TILE_HEIGHT,
) -> list[TileCoord]:
    """Order tiles centre-first (Manhattan distance in tiles).

    Scheduling hint for the coordinator's FIFO queue, not a correctness
    requirement.
    """
    tiles = list(tiles)
    if not _is_valid(camera, viewport):
        return sorted(tiles, key=lambda t: (t.tile_y, t.tile_x))
    c = center_tile(camera, viewport, tile_width=tile_width, tile_height=tile_height)
    return sorted(
        tiles,
        key=lambda t: (
            abs(t.tile_x - c.tile_x) + abs(t.tile_y - c.tile_y),
            t.tile_y,
            t.tile_x,
        ),
    )


def is_visible(
    item: Boxed,
    camera: Camera,
    viewport: Viewport,
    margin: float = CULL_MARGIN,
) -> bool:
    screen_x = item.x + camera.x
    screen_y = item.y + camera.y
    return (
        screen_x + item.width > -margin
        and screen_x < viewport.width + margin
        and screen_y + item.height > -margin
        and screen_y < viewport.height + margin
    )


def cull(
    items: Sequence[BoxedT],
    camera: Camera,
    viewport: Viewport,
    margin: float = CULL_MARGIN,
) -> list[BoxedT]:
    """Items whose screen-space box intersects the viewport plus ``margin``.

    Runs on every camera delta, so the bounds are hoisted out of the loop.
    """
    if not _is_valid(camera, viewport):
        return []
    cam_x = camera.x
    cam_y = camera.y
    left = -margin
    top = -margin
    right = viewport.width + margin
    bottom = viewport.height + margin
    out = []
    for item in items:
        sx = item.x + cam_x
        if sx >= right or sx + item.width <= left:
            continue
        sy = item.y + cam_y
        if sy >= bottom or sy + item.height <= top:
            continue
        out.append(item)
    return out
