"""
Color Detector - Raid Scanner
=============================
Pixel color predicates for tooltip, highlight and map-marker detection.

Every predicate takes (r, g, b) and works both on scalars and on whole
numpy channel arrays, returning a bool or a bool mask of the same shape.
Masks are what the region segmenter consumes.
"""

import numpy as np

from config.defaults import DEFAULT_THRESHOLDS


def luminance(r, g, b):
    """Integer Rec.601 luma: (299 R + 587 G + 114 B) // 1000"""
    return (r * 299 + g * 587 + b * 114) // 1000


def channel_spread(r, g, b):
    """Difference between the largest and smallest channel"""
    return np.maximum(np.maximum(r, g), b) - np.minimum(np.minimum(r, g), b)


def split_channels(pixels):
    """Split an HxWx3 uint8 array into int32 R, G, B planes"""
    planes = pixels.astype(np.int32)
    return planes[:, :, 0], planes[:, :, 1], planes[:, :, 2]


class ColorDetector:
    """
    Color predicates and mask builders.

    Thresholds for the light fallback come from the settings dict so they can
    be tuned without code changes. All colors are in RGB format (not BGR).
    """

    def __init__(self, settings=None):
        """Initialize color detector.

        Args:
            settings: Optional threshold dict (see DEFAULT_THRESHOLDS)
        """
        settings = settings or {}
        self.light_min_luminance = settings.get(
            "light_min_luminance", DEFAULT_THRESHOLDS["light_min_luminance"]
        )
        self.light_max_spread = settings.get(
            "light_max_spread", DEFAULT_THRESHOLDS["light_max_spread"]
        )

    # ===== Predicates =====

    @staticmethod
    def is_tooltip_background(r, g, b):
        """
        Warm tooltip background: light gray or cream, never near-white.

        Near-white is excluded because cursor highlights and bright UI chrome
        are near-white and would otherwise merge into the tooltip.
        """
        lum = luminance(r, g, b)
        diff = channel_spread(r, g, b)
        near_white = (lum > 240) & (diff < 15)
        is_light = (lum >= 205) & (lum <= 235) & (diff < 50)
        is_cream = (r >= 210) & (g >= 200) & (b >= 175) & (b <= 230) & (diff < 55)
        return ~near_white & (is_light | is_cream)

    def is_light_background(self, r, g, b):
        """Near-white tooltip fallback, used only when the warm test finds nothing"""
        lum = luminance(r, g, b)
        diff = channel_spread(r, g, b)
        return (lum >= self.light_min_luminance) & (diff <= self.light_max_spread)

    @staticmethod
    def is_highlight(r, g, b):
        """UI highlight around a cursor-selected icon: very bright, or blue-leaning bright"""
        lum = luminance(r, g, b)
        diff = channel_spread(r, g, b)
        very_bright = lum > 220
        saturated_bright = (lum > 170) & (diff > 35)
        blue_leaning = (b > 160) & (r > 100) & (g > 80) & (b - g > 20)
        return very_bright | saturated_bright | blue_leaning

    @staticmethod
    def is_bright(r, g, b):
        """Looser highlight test used when is_highlight finds no usable box"""
        lum = luminance(r, g, b)
        diff = channel_spread(r, g, b)
        return ((lum > 170) & (diff > 25)) | (lum > 220)

    @staticmethod
    def is_player_marker(r, g, b):
        """Yellow player arrow on the map view"""
        return (r >= 200) & (g >= 160) & (b <= 90) & (r - b >= 120)

    # ===== Masks =====

    @staticmethod
    def build_mask(pixels, predicate):
        """
        Evaluate a predicate over every pixel.

        Args:
            pixels: HxWx3 uint8 RGB array
            predicate: Callable (r, g, b) -> bool mask

        Returns:
            numpy.ndarray: HxW bool mask
        """
        r, g, b = split_channels(pixels)
        return np.asarray(predicate(r, g, b), dtype=bool)
