"""
Region Segmenter - Raid Scanner
===============================
Connected-component search over color predicates.

Used for:
- Tooltip background detection (warm predicate, near-white fallback)
- Cursor highlight detection (bounding box of highlight-colored pixels)
- Player-marker pixel masks on the map view

Components are found with 4-connectivity. The label image returned by
OpenCV doubles as the visited bitmap: a seed that lands on an already
labelled pixel belongs to a component that was already considered.
"""

import logging

import cv2
import numpy as np

from config.defaults import DEFAULT_THRESHOLDS
from .color_detector import ColorDetector
from .frame import Rect, Segment

logger = logging.getLogger("RaidScanner")


def _pixels_of(image):
    """Accept a FrameBuffer or a raw HxWx3 array"""
    return image.pixels if hasattr(image, "pixels") else image


class RegionSegmenter:
    """
    Finds the best connected region that satisfies a pixel predicate.

    Never raises for "nothing found": every search returns None (or an empty
    list) and the caller falls back.
    """

    def __init__(self, settings=None, color_detector=None):
        """
        Initialize segmenter.

        Args:
            settings (dict): Threshold overrides (see DEFAULT_THRESHOLDS)
            color_detector (ColorDetector): Predicate provider
        """
        self.settings = dict(DEFAULT_THRESHOLDS)
        if settings:
            self.settings.update(settings)
        self.colors = color_detector or ColorDetector(self.settings)

    # ===== Generic component search =====

    @staticmethod
    def label_components(mask):
        """
        Label 4-connected components of a bool mask.

        Returns:
            tuple: (labels, stats, centroids) as returned by OpenCV
        """
        _, labels, stats, centroids = cv2.connectedComponentsWithStats(
            mask.astype(np.uint8), connectivity=4
        )
        return labels, stats, centroids

    @staticmethod
    def _segment_from_stats(stats, centroids, label, offset=(0, 0)):
        left = int(stats[label, cv2.CC_STAT_LEFT]) + offset[0]
        top = int(stats[label, cv2.CC_STAT_TOP]) + offset[1]
        width = int(stats[label, cv2.CC_STAT_WIDTH])
        height = int(stats[label, cv2.CC_STAT_HEIGHT])
        count = int(stats[label, cv2.CC_STAT_AREA])
        cx, cy = centroids[label]
        return Segment(
            Rect(left, top, width, height),
            count,
            (float(cx) + offset[0], float(cy) + offset[1]),
        )

    def find_components(self, image, predicate, min_pixels=1):
        """
        All connected components matching a predicate, largest first.

        Args:
            image: FrameBuffer or HxWx3 RGB array
            predicate: Callable (r, g, b) -> bool mask
            min_pixels (int): Smallest component kept

        Returns:
            list[Segment]: Components with tight bounds, sorted by pixel count
        """
        mask = self.colors.build_mask(_pixels_of(image), predicate)
        return self.components_from_mask(mask, min_pixels)

    def components_from_mask(self, mask, min_pixels=1):
        """Same as find_components for an already built bool mask"""
        if not mask.any():
            return []
        labels, stats, centroids = self.label_components(mask)
        segments = [
            self._segment_from_stats(stats, centroids, label)
            for label in range(1, stats.shape[0])
            if stats[label, cv2.CC_STAT_AREA] >= min_pixels
        ]
        # Stable sort keeps label order (top-left first) on equal sizes
        segments.sort(key=lambda s: s.pixel_count, reverse=True)
        return segments

    @staticmethod
    def mask_bounds(mask):
        """
        Bounding box of every set pixel of a mask, ignoring connectivity.

        Returns:
            Segment: Tight bounds, pixel count and centroid, or None if empty
        """
        ys, xs = np.nonzero(mask)
        if xs.size == 0:
            return None
        bounds = Rect.from_ltrb(xs.min(), ys.min(), xs.max() + 1, ys.max() + 1)
        return Segment(bounds, int(xs.size), (float(xs.mean()), float(ys.mean())))

    # ===== Tooltip detection =====

    def _seed_labels(self, labels, start_x):
        """
        Component labels in seed-scan order, each listed once.

        Seeds run top to bottom and right to left from the frame's right edge,
        since tooltips render to the right of the cursor.
        """
        height, width = labels.shape
        margin = self.settings["tooltip_seed_margin"]
        ys = np.arange(margin, height - margin, self.settings["tooltip_seed_step_y"])
        xs = np.arange(width - 2, start_x - 1, -self.settings["tooltip_seed_step_x"])
        if ys.size == 0 or xs.size == 0:
            return []
        grid_y, grid_x = np.meshgrid(ys, xs, indexing="ij")
        seeded = labels[grid_y.ravel(), grid_x.ravel()]
        seeded = seeded[seeded > 0]
        if seeded.size == 0:
            return []
        unique, first_seen = np.unique(seeded, return_index=True)
        return [int(label) for label in unique[np.argsort(first_seen, kind="stable")]]

    def _best_tooltip_component(self, mask, start_fraction):
        """Pick the largest, right-most component reachable from a seed"""
        height, width = mask.shape
        labels, stats, centroids = self.label_components(mask)
        start_x = max(0, int(width * start_fraction))
        min_pixels = self.settings["tooltip_min_pixels"]

        best = None
        best_score = float("-inf")
        for label in self._seed_labels(labels, start_x):
            count = int(stats[label, cv2.CC_STAT_AREA])
            if count < min_pixels:
                continue
            score = count * (0.6 + float(centroids[label][0]) / width)
            # Strict comparison: ties keep the first component found
            if score > best_score:
                best_score = score
                best = self._segment_from_stats(stats, centroids, label)
        return best

    def _extend_right(self, mask, bounds):
        """
        Push the right edge out while the background keeps going.

        Name text near the tooltip's edge splits the background, so the
        component alone can stop short of the real border.
        """
        height, width = mask.shape
        extend_right = bounds.right
        right_limit = min(width - 1, bounds.right + self.settings["tooltip_extend_limit"])
        band_top = min(bounds.bottom - 20, bounds.top + 60)
        band_bottom = min(bounds.bottom - 10, bounds.top + 260)
        if band_bottom <= band_top:
            band_top = bounds.top + 10
            band_bottom = bounds.bottom - 10
        band_top = max(0, band_top)
        band_bottom = min(height, band_bottom)
        if band_bottom <= band_top:
            return bounds

        density_needed = self.settings["tooltip_extend_density"]
        sample_rows = np.arange(band_top, band_bottom, 4)
        for x in range(bounds.right, right_limit + 1, 2):
            hits = int(mask[sample_rows, x].sum())
            if hits / sample_rows.size >= density_needed:
                extend_right = x
            elif extend_right > bounds.right + 6:
                break

        if extend_right > bounds.right:
            return Rect.from_ltrb(bounds.left, bounds.top, min(width, extend_right + 1), bounds.bottom)
        return bounds

    def _passes_envelope(self, bounds):
        s = self.settings
        if bounds.w < s["tooltip_min_width"] or bounds.h < s["tooltip_min_height"]:
            return False
        if bounds.w > s["tooltip_max_width"] or bounds.h > s["tooltip_max_height"]:
            return False
        return bounds.w / float(bounds.h) <= s["tooltip_max_aspect"]

    def find_tooltip_with(self, image, predicate, start_fraction):
        """
        Tooltip rectangle for one background predicate.

        Args:
            image: FrameBuffer or HxWx3 RGB array
            predicate: Background color predicate
            start_fraction (float): Left-most seed column as a fraction of width

        Returns:
            Rect: Inflated, right-extended tooltip bounds in frame coordinates,
                or None when no component fits the size envelope
        """
        pixels = _pixels_of(image)
        height, width = pixels.shape[:2]
        mask = self.colors.build_mask(pixels, predicate)
        if not mask.any():
            return None

        best = self._best_tooltip_component(mask, start_fraction)
        if best is None:
            return None

        frame_rect = Rect(0, 0, width, height)
        bounds = best.bounds.inflate(
            self.settings["tooltip_inflate_x"], self.settings["tooltip_inflate_y"]
        ).intersect(frame_rect)
        if bounds.is_empty or not bounds.contains(best.bounds.intersect(frame_rect)):
            return None

        bounds = self._extend_right(mask, bounds)
        if not self._passes_envelope(bounds):
            logger.debug(f"[Segmenter] Tooltip candidate {bounds} outside size envelope")
            return None
        return bounds

    def find_tooltip_bounds(self, image):
        """
        Locate a tooltip: warm background first, near-white fallback second.

        Returns:
            tuple: (Rect, "warm" | "light") or None when neither predicate fits
        """
        bounds = self.find_tooltip_with(
            image,
            self.colors.is_tooltip_background,
            self.settings["tooltip_seed_start_warm"],
        )
        if bounds is not None:
            return bounds, "warm"
        bounds = self.find_tooltip_with(
            image,
            self.colors.is_light_background,
            self.settings["tooltip_seed_start_light"],
        )
        if bounds is not None:
            return bounds, "light"
        return None

    # ===== Cursor highlight =====

    def find_highlight_bounds(self, image, cursor):
        """
        Box around the cursor-selected icon, from highlight-colored pixels.

        The looser bright predicate is only used when no pixel at all passes
        the highlight predicate. The box must be roughly square, at least min
        size on both sides and centred within half the capture width of the
        cursor.

        Args:
            image: FrameBuffer or HxWx3 RGB array
            cursor (tuple): Cursor (x, y) in frame coordinates

        Returns:
            Rect: Icon crop (box deflated by the highlight border), or None
        """
        pixels = _pixels_of(image)
        found = self.mask_bounds(self.colors.build_mask(pixels, self.colors.is_highlight))
        if found is None:
            found = self.mask_bounds(self.colors.build_mask(pixels, self.colors.is_bright))
        if found is None or not self._highlight_box_ok(found.bounds, cursor, pixels.shape[1]):
            return None
        deflate = self.settings["highlight_deflate"]
        crop = found.bounds.deflate(deflate, deflate).intersect(Rect(0, 0, pixels.shape[1], pixels.shape[0]))
        return None if crop.is_empty else crop

    def _highlight_box_ok(self, bounds, cursor, capture_width):
        s = self.settings
        if bounds.w < s["highlight_min_size"] or bounds.h < s["highlight_min_size"]:
            return False
        aspect = bounds.w / float(bounds.h)
        if aspect < s["highlight_min_aspect"] or aspect > s["highlight_max_aspect"]:
            return False
        cx, cy = bounds.center
        dx = cx - cursor[0]
        dy = cy - cursor[1]
        return dx * dx + dy * dy <= (capture_width * capture_width) / 4.0
