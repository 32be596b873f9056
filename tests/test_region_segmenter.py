"""
Test suite for vision/region_segmenter.py
==========================================
Tests for connected components, tooltip bounds and highlight boxes.
"""

import numpy as np
import pytest
from vision.color_detector import ColorDetector
from vision.frame import FrameBuffer, Rect
from vision.region_segmenter import RegionSegmenter

DARK = (20, 22, 30)
CREAM = (230, 222, 200)


def dark_frame(width, height):
    return np.full((height, width, 3), DARK, dtype=np.uint8)


class TestComponents:
    """Tests for the generic component search"""

    def test_no_match_is_empty_list(self):
        segmenter = RegionSegmenter()
        assert segmenter.find_components(dark_frame(50, 50), ColorDetector.is_player_marker) == []

    def test_bounds_are_tight_around_every_pixel(self):
        pixels = dark_frame(60, 60)
        # L-shaped blob
        pixels[10:40, 10:15] = (240, 200, 40)
        pixels[35:40, 10:50] = (240, 200, 40)
        segments = RegionSegmenter().find_components(pixels, ColorDetector.is_player_marker)

        assert len(segments) == 1
        ys, xs = np.nonzero(ColorDetector.build_mask(pixels, ColorDetector.is_player_marker))
        assert segments[0].bounds == Rect.from_ltrb(xs.min(), ys.min(), xs.max() + 1, ys.max() + 1)
        assert segments[0].pixel_count == xs.size

    def test_diagonal_pixels_are_separate_components(self):
        pixels = dark_frame(10, 10)
        pixels[2, 2] = (240, 200, 40)
        pixels[3, 3] = (240, 200, 40)
        segments = RegionSegmenter().find_components(pixels, ColorDetector.is_player_marker)
        assert len(segments) == 2

    def test_components_sorted_largest_first(self):
        pixels = dark_frame(80, 40)
        pixels[5:10, 5:10] = (240, 200, 40)
        pixels[5:25, 40:60] = (240, 200, 40)
        segments = RegionSegmenter().find_components(pixels, ColorDetector.is_player_marker)

        assert [s.pixel_count for s in segments] == [400, 25]

    def test_min_pixels_drops_small_components(self):
        pixels = dark_frame(80, 40)
        pixels[5:10, 5:10] = (240, 200, 40)
        pixels[5:25, 40:60] = (240, 200, 40)
        segments = RegionSegmenter().find_components(
            pixels, ColorDetector.is_player_marker, min_pixels=100
        )
        assert len(segments) == 1

    def test_mask_bounds_ignores_connectivity(self):
        mask = np.zeros((20, 20), dtype=bool)
        mask[2, 3] = True
        mask[15, 17] = True
        found = RegionSegmenter.mask_bounds(mask)
        assert found.bounds == Rect(3, 2, 15, 14)
        assert found.pixel_count == 2

    def test_mask_bounds_of_empty_mask(self):
        assert RegionSegmenter.mask_bounds(np.zeros((5, 5), dtype=bool)) is None


class TestTooltipBounds:
    """Tests for tooltip detection"""

    def test_cream_rectangle_is_found_and_inflated(self):
        pixels = dark_frame(600, 400)
        pixels[100:250, 300:500] = CREAM
        found = RegionSegmenter().find_tooltip_bounds(FrameBuffer(pixels))

        assert found is not None
        bounds, kind = found
        assert kind == "warm"
        assert bounds == Rect(290, 86, 220, 178)

    def test_nothing_on_dark_frame(self):
        assert RegionSegmenter().find_tooltip_bounds(dark_frame(300, 300)) is None

    def test_too_small_component_rejected(self):
        pixels = dark_frame(600, 400)
        pixels[100:130, 400:440] = CREAM  # 1200 pixels, under tooltip_min_pixels
        assert RegionSegmenter().find_tooltip_bounds(pixels) is None

    def test_too_wide_tooltip_rejected_by_aspect(self):
        pixels = dark_frame(900, 300)
        pixels[100:150, 300:880] = CREAM  # 600 x 78 after inflation
        assert RegionSegmenter().find_tooltip_bounds(pixels) is None

    def test_near_white_fallback(self):
        pixels = dark_frame(600, 400)
        pixels[100:250, 300:500] = (250, 250, 248)
        found = RegionSegmenter().find_tooltip_bounds(pixels)

        assert found is not None
        assert found[1] == "light"

    def test_component_left_of_seed_area_is_ignored(self):
        pixels = dark_frame(600, 400)
        pixels[100:250, 20:220] = CREAM  # entirely left of the seed columns
        assert RegionSegmenter().find_tooltip_bounds(pixels) is None

    def test_right_edge_extended_across_text_gap(self):
        pixels = dark_frame(700, 400)
        pixels[100:300, 300:600] = CREAM
        # A dark text column splits the background near the right edge
        pixels[100:300, 520:523] = DARK
        found = RegionSegmenter().find_tooltip_bounds(pixels)

        assert found is not None
        bounds, _ = found
        assert bounds.left == 290
        # The left component alone ends at 520 (+10 inflation)
        assert bounds.right > 590


class TestHighlightBounds:
    """Tests for the cursor highlight box"""

    def _ringed(self, size=200):
        pixels = dark_frame(size, size)
        pixels[60:140, 60:140] = (255, 255, 255)
        pixels[64:136, 64:136] = (60, 60, 60)
        return pixels

    def test_highlight_ring_gives_deflated_crop(self):
        crop = RegionSegmenter().find_highlight_bounds(self._ringed(), (100, 100))
        assert crop == Rect(68, 68, 64, 64)

    def test_no_highlight(self):
        assert RegionSegmenter().find_highlight_bounds(dark_frame(200, 200), (100, 100)) is None

    def test_non_square_box_rejected(self):
        pixels = dark_frame(300, 200)
        pixels[80:120, 20:280] = (255, 255, 255)
        assert RegionSegmenter().find_highlight_bounds(pixels, (150, 100)) is None

    def test_box_far_from_cursor_rejected(self):
        pixels = dark_frame(400, 400)
        pixels[300:380, 300:380] = (255, 255, 255)
        assert RegionSegmenter().find_highlight_bounds(pixels, (10, 10)) is None
