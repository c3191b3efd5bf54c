"""Tests for viewport geometry: visible tiles, ordering and culling."""

import math
from types import SimpleNamespace

from canvas.geometry import (
    Camera,
    TileCoord,
    Viewport,
    center_tile,
    cull,
    is_visible,
    sort_by_distance_to_center,
    viewport_bounds,
    visible_tiles,
)
from shared.constants import TILE_HEIGHT, TILE_WIDTH


def _box(x, y, width=160, height=200):
    return SimpleNamespace(x=x, y=y, width=width, height=height)


class TestVisibleTiles:
    """Tests for visible_tiles()."""

    def test_origin_viewport_includes_padding(self):
        tiles = visible_tiles(Camera(0, 0), Viewport(1000, 800))
        xs = {t.tile_x for t in tiles}
        ys = {t.tile_y for t in tiles}
        assert xs == {-1, 0, 1, 2}
        assert ys == {-1, 0, 1}
        assert len(tiles) == 12

    def test_no_padding(self):
        tiles = visible_tiles(Camera(0, 0), Viewport(1000, 800), padding=0)
        assert tiles == {TileCoord(0, 0), TileCoord(1, 0)}

    def test_pan_changes_tile_set(self):
        """Panning by more than one tile width exposes new tile columns."""
        assert TILE_WIDTH < 2000
        before = visible_tiles(Camera(0, 0), Viewport(1000, 800))
        after = visible_tiles(Camera(-2000, 0), Viewport(1000, 800))
        assert before != after
        newly_visible = after - before
        assert {t.tile_x for t in newly_visible} == {3, 4}

    def test_negative_coordinates(self):
        tiles = visible_tiles(Camera(TILE_WIDTH * 3, TILE_HEIGHT * 2), Viewport(100, 100), padding=0)
        assert tiles == {TileCoord(-3, -2)}

    def test_invalid_camera_yields_nothing(self):
        assert visible_tiles(Camera(math.nan, 0), Viewport(1000, 800)) == set()
        assert visible_tiles(Camera(math.inf, 0), Viewport(1000, 800)) == set()

    def test_empty_viewport_yields_nothing(self):
        assert visible_tiles(Camera(0, 0), Viewport(0, 800)) == set()
        assert visible_tiles(Camera(0, 0), Viewport(1000, -5)) == set()


class TestBoundsAndCenter:
    """Tests for viewport_bounds() and center_tile()."""

    def test_bounds_are_negated_camera(self):
        b = viewport_bounds(Camera(-100, 50), Viewport(800, 600))
        assert (b.left, b.top, b.right, b.bottom) == (100, -50, 900, 550)

    def test_center_tile(self):
        assert center_tile(Camera(0, 0), Viewport(1000, 800)) == TileCoord(0, 0)
        assert center_tile(Camera(-TILE_WIDTH, 0), Viewport(10, 10)) == TileCoord(1, 0)


class TestSortByDistanceToCenter:
    """Tests for sort_by_distance_to_center()."""

    def test_center_tile_first(self):
        camera = Camera(0, 0)
        viewport = Viewport(1000, 800)
        ordered = sort_by_distance_to_center(visible_tiles(camera, viewport), camera, viewport)
        assert ordered[0] == TileCoord(0, 0)

    def test_distances_non_decreasing(self):
        camera = Camera(-5000, 3000)
        viewport = Viewport(1600, 900)
        ordered = sort_by_distance_to_center(visible_tiles(camera, viewport), camera, viewport)
        c = center_tile(camera, viewport)
        distances = [abs(t.tile_x - c.tile_x) + abs(t.tile_y - c.tile_y) for t in ordered]
        assert distances == sorted(distances)

    def test_keeps_all_tiles(self):
        tiles = [TileCoord(5, 5), TileCoord(0, 0), TileCoord(-1, 2)]
        ordered = sort_by_distance_to_center(tiles, Camera(0, 0), Viewport(100, 100))
        assert sorted(ordered) == sorted(tiles)

    def test_invalid_camera_still_sorts(self):
        tiles = [TileCoord(1, 1), TileCoord(0, 0)]
        ordered = sort_by_distance_to_center(tiles, Camera(math.nan, 0), Viewport(100, 100))
        assert ordered == [TileCoord(0, 0), TileCoord(1, 1)]


class TestCull:
    """Tests for cull() and is_visible()."""

    def test_keeps_items_inside_margin(self):
        camera = Camera(0, 0)
        viewport = Viewport(1000, 800)
        inside = _box(0, 0)
        near_right = _box(1299, 0)
        near_left = _box(-459, 0)
        result = cull([inside, near_right, near_left], camera, viewport)
        assert result == [inside, near_right, near_left]

    def test_drops_items_beyond_margin(self):
        camera = Camera(0, 0)
        viewport = Viewport(1000, 800)
        far_right = _box(1300, 0)
        far_left = _box(-460, 0)
        far_below = _box(0, 1100)
        assert cull([far_right, far_left, far_below], camera, viewport) == []

    def test_camera_offset_applies(self):
        item = _box(2500, 0)
        assert cull([item], Camera(0, 0), Viewport(1000, 800)) == []
        assert cull([item], Camera(-2000, 0), Viewport(1000, 800)) == [item]

    def test_panned_camera_keeps_only_visible_card(self):
        keep = _box(1000, 500)
        drop = _box(5000, 5000)
        assert cull([keep, drop], Camera(-1000, -500), Viewport(800, 600)) == [keep]

    def test_matches_is_visible(self):
        camera = Camera(-321, 77)
        viewport = Viewport(900, 700)
        items = [_box(x, y) for x in range(-1000, 2000, 137) for y in range(-900, 1500, 211)]
        expected = [i for i in items if is_visible(i, camera, viewport)]
        assert cull(items, camera, viewport) == expected

    def test_invalid_input_is_empty(self):
        assert cull([_box(0, 0)], Camera(math.nan, 0), Viewport(1000, 800)) == []
        assert cull([_box(0, 0)], Camera(0, 0), Viewport(0, 0)) == []
