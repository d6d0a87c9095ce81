"""
Tests for frame-rate and tiling rules.
"""

import pytest

from sitecast.gear.policy import ScreenshotPlan, decide_screencast_interval, decide_screenshot_plan
from sitecast.gear.visual.freezer import TILE_SIZE, plan_tiles


class TestScreencastInterval:
    """Sampling interval table."""

    @pytest.mark.parametrize(
        "duration, expected",
        [(1, 0.1), (5, 0.1), (5.5, 0.2), (10, 0.2), (11, 0.5), (120, 0.5)],
    )
    def test_persisted_animation_intervals(self, duration, expected):
        assert decide_screencast_interval(duration, True) == expected

    @pytest.mark.parametrize("duration", [1, 5, 10, 11, 300])
    def test_inline_interval_is_fixed(self, duration):
        assert decide_screencast_interval(duration, False) == 2


class TestScreenshotPlan:
    def test_tall_full_page_is_tiled(self):
        assert decide_screenshot_plan(True, 3000, 1072) is ScreenshotPlan.TILED

    def test_page_fitting_viewport_is_single(self):
        assert decide_screenshot_plan(True, 1072, 1072) is ScreenshotPlan.SINGLE

    def test_viewport_only_request_is_single(self):
        assert decide_screenshot_plan(False, 5000, 1072) is ScreenshotPlan.SINGLE


class TestTilePlan:
    """Tiles must cover the page exactly once."""

    @pytest.mark.parametrize(
        "width, height, tile",
        [(1072, 3000, TILE_SIZE), (800, 2145, TILE_SIZE), (2500, 2500, 1000), (1072, 1073, TILE_SIZE)],
    )
    def test_tiles_cover_page_without_overlap(self, width, height, tile):
        tiles = plan_tiles(width, height, tile)

        covered = set()
        area = 0
        for x, y, w, h in tiles:
            assert 0 < w <= tile and 0 < h <= tile
            assert x + w <= width and y + h <= height
            covered.add((x, y))
            area += w * h

        assert len(covered) == len(tiles)
        assert area == width * height

        # Only the last row/column may be short.
        for x, y, w, h in tiles:
            if x + tile < width:
                assert w == tile
            if y + tile < height:
                assert h == tile

    def test_row_major_order(self):
        tiles = plan_tiles(2000, 2000, 1000)
        assert [(x, y) for x, y, _, _ in tiles] == [(0, 0), (1000, 0), (0, 1000), (1000, 1000)]

    def test_plain_ints(self):
        x, y, w, h = plan_tiles(1072, 1500)[1]
        assert (x, y, w, h) == (0, 1072, 1072, 428)
        assert all(type(v) is int for v in (x, y, w, h))

    def test_empty_page_has_no_tiles(self):
        assert plan_tiles(0, 1000) == []
