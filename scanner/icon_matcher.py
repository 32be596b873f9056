"""
Icon Matcher - Raid Scanner
===========================
The three icon-hash acceptance policies, one per call site:

- selected icon (cursor highlight crop, as is): distance <= 14
- selected icon at 0/90/180/270 degrees: distance <= 12 and score >= 0.80
- window search inside a tooltip: distance <= 20, confidence max(0.3, score)

The thresholds differ because the crops differ (a tight highlight box vs. a
sliding window over a tooltip), not because one is derived from another.
They are kept separate and tunable.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from config.defaults import DEFAULT_THRESHOLDS
from vision.frame import Rect
from vision.icon_hasher import (
    compute_icon_hash,
    hash_score,
    looks_like_icon_box,
    rotation_hashes,
)

logger = logging.getLogger("RaidScanner")


@dataclass(frozen=True)
class IconMatch:
    """Accepted icon hash match"""

    icon_id: str
    distance: int
    confidence: float
    rotation: int = 0
    rect: Optional[Rect] = None

    @property
    def score(self):
        return hash_score(self.distance)


class IconMatcher:
    """Applies the per-call-site acceptance policies against one icon store"""

    def __init__(self, icon_store, settings=None):
        """
        Args:
            icon_store (IconHashStore): Lazily built icon index
            settings (dict): Threshold overrides
        """
        self.store = icon_store
        self.settings = dict(DEFAULT_THRESHOLDS)
        if settings:
            self.settings.update(settings)

    def _log_top(self, tag, index, query_hash):
        if logger.isEnabledFor(logging.DEBUG):
            top = ", ".join(f"{icon_id}={distance}" for icon_id, distance in index.top_matches(query_hash))
            logger.debug(f"[{tag}] Closest icons: {top}")

    def match_selected(self, crop):
        """
        Plain match of a cursor-highlight crop.

        Returns:
            IconMatch or None
        """
        index = self.store.get_index()
        if crop is None or len(index) == 0:
            return None
        query = compute_icon_hash(crop)
        icon_id, distance = index.best_match(query)
        self._log_top("SelectedIcon", index, query)
        if icon_id is None or distance > self.settings["selected_icon_max_distance"]:
            return None
        return IconMatch(icon_id, distance, hash_score(distance))

    def match_rotations(self, crop):
        """
        Rotation-tolerant match of a cursor-highlight crop.

        The best (lowest distance) over all icons and rotations wins. Icons
        are visited in index order, each against every rotation, so ties
        keep the icon indexed first and then the earlier rotation.

        Returns:
            IconMatch or None
        """
        index = self.store.get_index()
        if crop is None or len(index) == 0:
            return None
        rotations = rotation_hashes(crop)
        # rows: icons in index order, columns: rotations
        table = np.stack([index.distances(query) for _, query in rotations], axis=1)
        icon_row, rotation_col = np.unravel_index(int(np.argmin(table)), table.shape)
        icon_id = index.ids[icon_row]
        distance = int(table[icon_row, rotation_col])
        degrees = rotations[rotation_col][0]
        score = hash_score(distance)
        logger.debug(f"[RotatedIcon] Best '{icon_id}' distance={distance} rotation={degrees}")
        if distance > self.settings["highlight_icon_max_distance"]:
            return None
        if score < self.settings["highlight_icon_min_score"]:
            return None
        return IconMatch(icon_id, distance, score, degrees)

    # ===== Tooltip window search =====

    @staticmethod
    def window_sizes(scale):
        """Three square window sizes for a resolution scale: min, mid, max"""
        min_size = max(48, int(56 * scale))
        max_size = max(min_size + 12, int(100 * scale))
        return sorted({min_size, (min_size + max_size) // 2, max_size})

    @staticmethod
    def search_area(tooltip_bounds, frame_rect):
        """Area below the tooltip header where the item icon sits"""
        area = Rect(
            tooltip_bounds.x + 10,
            tooltip_bounds.y + 60,
            min(190, tooltip_bounds.w - 20),
            min(140, tooltip_bounds.h - 70),
        )
        if area.w <= 0 or area.h <= 0:
            return Rect(0, 0, 0, 0)
        return area.intersect(frame_rect)

    def search_tooltip(self, pixels, tooltip_bounds, scale=1.0):
        """
        Slide square windows over the tooltip's icon area and hash each one
        that passes the icon-box prefilter.

        Args:
            pixels: HxWx3 RGB array of the capture
            tooltip_bounds (Rect): Tooltip rectangle in capture coordinates
            scale (float): Resolution scale

        Returns:
            IconMatch or None
        """
        index = self.store.get_index()
        if len(index) == 0:
            return None
        height, width = pixels.shape[:2]
        area = self.search_area(tooltip_bounds, Rect(0, 0, width, height))
        sizes = self.window_sizes(scale)
        if area.is_empty or area.w < sizes[0] or area.h < sizes[0]:
            logger.debug(f"[TooltipIcon] Search area {area} too small")
            return None

        step = max(3, int(3 * scale))
        min_contrast = self.settings["icon_box_min_contrast"]
        best = None
        tested = 0
        for size in sizes:
            if size > area.w or size > area.h:
                continue
            for y in range(area.top, area.bottom - size + 1, step):
                for x in range(area.left, area.right - size + 1, step):
                    window = Rect(x, y, size, size)
                    if not looks_like_icon_box(pixels, window, min_contrast):
                        continue
                    inner = window.deflate(2, 2)
                    crop = pixels[inner.top:inner.bottom, inner.left:inner.right]
                    icon_id, distance = index.best_match(compute_icon_hash(crop))
                    tested += 1
                    if icon_id is not None and (best is None or distance < best.distance):
                        best = IconMatch(icon_id, distance, hash_score(distance), 0, window)

        logger.debug(f"[TooltipIcon] Hashed {tested} windows, best={best}")
        if best is None or best.distance > self.settings["tooltip_icon_max_distance"]:
            return None
        confidence = max(self.settings["min_hash_confidence"], best.score)
        return IconMatch(best.icon_id, best.distance, confidence, 0, best.rect)
