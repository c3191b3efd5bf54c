"""Per-session variation seed and tile -> upstream page assignment."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, TypeVar

from shared.constants import (
    LCG_INCREMENT,
    LCG_MASK,
    LCG_MULTIPLIER,
    SESSION_SEED_MAX,
    TILE_MAX_PAGES,
    TILE_NEGATIVE_OFFSET,
    TILE_PRIME_X,
    TILE_PRIME_Y,
    TILE_SHUFFLE_X_FACTOR,
    SortOrder,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar('T')


class SessionSeed:
    """Integer chosen once per process.

    The same tile requested twice in a session maps to the same content,
    while a fresh session sees different content at the same coordinates.
    """

    def __init__(self, value: int | None = None) -> None:
        if value is None:
            value = random.randrange(SESSION_SEED_MAX)
        if value < 0:
            msg = f'Session seed must be non-negative, got {value}'
            raise ValueError(msg)
        self.value = value

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f'SessionSeed({self.value})'


def fold_coordinate(value: int) -> int:
    """Map a signed tile coordinate to a non-negative one."""
    return abs(value) + (TILE_NEGATIVE_OFFSET if value < 0 else 0)


def tile_page(tile_x: int, tile_y: int, seed: int = 0) -> int:
    """1-based upstream page for a tile.

    Distinct prime strides per axis keep neighbouring tiles on different
    pages. This is a heuristic, not a uniqueness guarantee.
    """
    ax = fold_coordinate(tile_x)
    ay = fold_coordinate(tile_y)
    return (ax * TILE_PRIME_X + ay * TILE_PRIME_Y + seed) % TILE_MAX_PAGES + 1


def tile_sort_order(tile_x: int, tile_y: int, seed: int = 0) -> SortOrder:
    ax = fold_coordinate(tile_x)
    ay = fold_coordinate(tile_y)
    return SortOrder.DESC if (ax + ay + seed) % 2 == 0 else SortOrder.ASC


def tile_shuffle_seed(tile_x: int, tile_y: int, seed: int = 0) -> int:
    return fold_coordinate(tile_x) * TILE_SHUFFLE_X_FACTOR + fold_coordinate(tile_y) + seed


def seeded_shuffle(items: Sequence[T], seed: int) -> list[T]:
    """Fisher-Yates shuffle driven by an LCG, stable for a given seed."""
    result = list(items)
    s = seed
    for i in range(len(result) - 1, 0, -1):
        s = (s * LCG_MULTIPLIER + LCG_INCREMENT) & LCG_MASK
        j = s % (i + 1)
        result[i], result[j] = result[j], result[i]
    return result


def tile_key(
    tile_x: int,
    tile_y: int,
    query: str = '',
    filters_fingerprint: str = '',
    seed: int | None = None,
) -> str:
    """Tile cache key: coordinates, query, filter fingerprint and session seed."""
    key = f'{tile_x},{tile_y}:{query}:{filters_fingerprint}'
    if seed is not None:
        key = f'{key}:{seed}'
    return key


def search_key(
    query: str, page: int, page_size: int, filters_fingerprint: str = ''
) -> str:
    return f'search:{query}:{page}:{page_size}:{filters_fingerprint}'
