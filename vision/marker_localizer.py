"""
Marker Localizer - Raid Scanner
===============================
Finds the player's position on the map view.

Two independent methods, tried in this order:

1. Location names: OCR the map under several page segmentation modes and
   score the map's known locations by word overlap. Stable text labels are
   more reliable than a small animated marker.
2. Player marker: mask the marker color, then refine the position with one
   of three escalating strategies (dense cluster centroid, multi-scale
   arrow template, raw centroid).

Positions are reported as percentages (0-100) of the map region.
"""

import logging
from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image as PILImage

from config.defaults import DEFAULT_THRESHOLDS
from .color_detector import ColorDetector
from .ocr_service import (
    BODY_WHITELIST,
    PSM_AUTO,
    PSM_SINGLE_BLOCK,
    PSM_SPARSE_TEXT,
    preprocess_for_ocr,
)
from .text_matcher import normalize_text

logger = logging.getLogger("RaidScanner")

LOCATION_PSM_MODES = (PSM_SPARSE_TEXT, PSM_SINGLE_BLOCK, PSM_AUTO)


@dataclass(frozen=True)
class PlayerMarkerDetection:
    """Player position on the current map, as percentages of the map region"""

    x_pct: float
    y_pct: float
    confidence: float
    method: str = "marker"
    location_name: str = ""


@dataclass(frozen=True)
class LocalizedPoint:
    """Refined marker position in mask coordinates"""

    x: float
    y: float
    confidence: float
    strategy: str


def default_arrow_template(size=15):
    """
    Upward arrow as a bool mask: triangular head over a narrow stem.

    Args:
        size (int): Width and height of the template

    Returns:
        numpy.ndarray: size x size bool array
    """
    template = np.zeros((size, size), dtype=bool)
    head_rows = max(2, int(size * 0.6))
    center = size // 2
    for row in range(head_rows):
        half = int(round(row * center / float(max(1, head_rows - 1))))
        template[row, center - half:center + half + 1] = True
    stem_half = max(1, size // 6)
    template[head_rows:, center - stem_half:center + stem_half + 1] = True
    return template


def load_template(path):
    """
    Load a marker template image as a bool mask.

    Opaque pixels count when the image has alpha, bright pixels otherwise.

    Returns:
        numpy.ndarray: bool mask, or None when the file cannot be read
    """
    if not path:
        return None
    try:
        with PILImage.open(path) as img:
            if "A" in img.getbands():
                mask = np.asarray(img.convert("RGBA"))[:, :, 3] > 127
            else:
                mask = np.asarray(img.convert("L")) > 127
    except Exception as e:
        logger.warning(f"[Marker] Could not load marker template '{path}': {e}")
        return None
    if not mask.any():
        logger.warning(f"[Marker] Marker template '{path}' is empty")
        return None
    return mask


class TemplateLocalizer:
    """
    Refines a marker position from a bool pixel mask.

    Strategies, in order:
    (a) one dense cluster holds most of the pixels -> its centroid
    (b) multi-scale template match around the rough centroid
    (c) raw centroid of the whole mask
    Masks with too few pixels are "not found".
    """

    def __init__(self, settings=None, template=None):
        """
        Args:
            settings (dict): Threshold overrides (see DEFAULT_THRESHOLDS)
            template (numpy.ndarray): bool arrow template (default built in)
        """
        self.settings = dict(DEFAULT_THRESHOLDS)
        if settings:
            self.settings.update(settings)
        self.template = template if template is not None else default_arrow_template()

    def localize(self, mask, rough_centroid=None):
        """
        Args:
            mask (numpy.ndarray): HxW bool mask of marker-colored pixels
            rough_centroid (tuple): Approximate (x, y); mask centroid if None

        Returns:
            LocalizedPoint or None when the mask is too sparse
        """
        ys, xs = np.nonzero(mask)
        count = xs.size
        if count < self.settings["marker_min_pixels"]:
            logger.debug(f"[Marker] Only {count} marker pixels, ignoring")
            return None

        cluster = self.find_dense_cluster(xs, ys)
        if cluster is not None:
            return cluster

        if rough_centroid is None:
            rough_centroid = (float(xs.mean()), float(ys.mean()))
        matched = self.match_template(mask, rough_centroid)
        if matched is not None:
            return matched

        return LocalizedPoint(float(xs.mean()), float(ys.mean()), 0.4, "centroid")

    def find_dense_cluster(self, xs, ys):
        """
        Centroid of the densest cluster when it dominates the mask.

        The densest pixel is the one with the most neighbours inside the
        cluster radius. Its neighbourhood is accepted when it has enough
        pixels and holds at least the dominance share of all pixels.
        """
        radius = self.settings["marker_cluster_radius"]
        points = np.stack([xs, ys], axis=1).astype(np.float64)
        if points.shape[0] > 4000:
            # Dense masks: estimate density on a subsample of seed pixels
            step = points.shape[0] // 4000 + 1
            seeds = points[::step]
        else:
            seeds = points

        radius_sq = float(radius * radius)
        best_seed = None
        best_count = -1
        for seed in seeds:
            delta = points - seed
            neighbours = int(np.count_nonzero((delta * delta).sum(axis=1) <= radius_sq))
            if neighbours > best_count:
                best_count = neighbours
                best_seed = seed

        if best_seed is None or best_count < self.settings["marker_cluster_min_pixels"]:
            return None
        if best_count / float(points.shape[0]) < self.settings["marker_cluster_dominance"]:
            return None

        delta = points - best_seed
        members = points[(delta * delta).sum(axis=1) <= radius_sq]
        cx, cy = members.mean(axis=0)
        return LocalizedPoint(float(cx), float(cy), 0.9, "cluster")

    def _scaled_templates(self):
        base = self.template.astype(np.uint8)
        height, width = base.shape
        for scale in self.settings["marker_template_scales"]:
            size = (max(3, int(round(width * scale))), max(3, int(round(height * scale))))
            scaled = cv2.resize(base, size, interpolation=cv2.INTER_NEAREST).astype(np.float32)
            if scaled.sum() > 0:
                yield scale, scaled

    def match_template(self, mask, rough_centroid):
        """
        Slide the arrow template over a window around the rough centroid.

        score = matched template pixels / template pixels; the best placement
        over all scales is accepted at marker_template_min_score.

        Returns:
            LocalizedPoint or None
        """
        height, width = mask.shape
        radius = self.settings["marker_search_radius"]
        stride = max(1, self.settings["marker_template_stride"])
        min_score = self.settings["marker_template_min_score"]
        rx, ry = rough_centroid
        image = mask.astype(np.float32)

        best = None
        for scale, template in self._scaled_templates():
            th, tw = template.shape
            x0 = max(0, int(rx - radius - tw // 2))
            y0 = max(0, int(ry - radius - th // 2))
            x1 = min(width, int(rx + radius + tw - tw // 2) + 1)
            y1 = min(height, int(ry + radius + th - th // 2) + 1)
            if x1 - x0 < tw or y1 - y0 < th:
                continue
            window = np.ascontiguousarray(image[y0:y1, x0:x1])
            matched = cv2.matchTemplate(window, template, cv2.TM_CCORR)
            scores = matched[::stride, ::stride] / float(template.sum())
            j, i = np.unravel_index(int(np.argmax(scores)), scores.shape)
            score = float(scores[j, i])
            if best is None or score > best[0]:
                cx = x0 + i * stride + tw / 2.0
                cy = y0 + j * stride + th / 2.0
                best = (score, cx, cy, scale)

        if best is None or best[0] < min_score:
            return None
        score, cx, cy, scale = best
        logger.debug(f"[Marker] Template hit at ({cx:.1f}, {cy:.1f}) scale={scale} score={score:.2f}")
        return LocalizedPoint(cx, cy, min(1.0, score), "template")


def score_location(normalized_text, location_name):
    """
    Word-overlap score of one known location against OCR text.

    +10 when the whole name appears, +len(token) for every name token found
    as a word, +len(prefix)/2 for the longest (3+ char) prefix of a token
    found inside the text otherwise.
    """
    name = normalize_text(location_name)
    if not name or not normalized_text:
        return 0.0
    score = 0.0
    if name in normalized_text:
        score += 10
    words = set(normalized_text.split(" "))
    for token in name.split(" "):
        if len(token) < 2:
            continue
        if token in words:
            score += len(token)
            continue
        for length in range(len(token), 2, -1):
            if token[:length] in normalized_text:
                score += length / 2.0
                break
    return score


class MapLocalizer:
    """
    Player position on the map view: location names first, marker second.
    """

    def __init__(self, ocr_service, settings=None, template=None, color_detector=None, debug_writer=None):
        """
        Args:
            ocr_service: Anything with read_text(image, psm, whitelist)
            settings (dict): Threshold overrides
            template (numpy.ndarray): Marker template mask
            color_detector (ColorDetector): Predicate provider
            debug_writer: Optional DebugImageWriter
        """
        self.settings = dict(DEFAULT_THRESHOLDS)
        if settings:
            self.settings.update(settings)
        self.ocr = ocr_service
        self.colors = color_detector or ColorDetector(self.settings)
        self.localizer = TemplateLocalizer(self.settings, template)
        self.debug_writer = debug_writer

    def locate_by_names(self, map_frame, locations):
        """
        Best known location whose name shows up on the map.

        Args:
            map_frame: FrameBuffer of the map region
            locations: Iterable of objects with name, x_pct, y_pct

        Returns:
            PlayerMarkerDetection or None
        """
        locations = list(locations or [])
        if not locations or map_frame is None:
            return None
        processed = preprocess_for_ocr(map_frame, scale=2)
        texts = []
        for psm in LOCATION_PSM_MODES:
            text = self.ocr.read_text(processed, psm=psm, whitelist=BODY_WHITELIST)
            if text:
                texts.append(normalize_text(text))
        if not texts:
            return None
        combined = " ".join(texts)

        best = None
        best_score = 0.0
        for location in locations:
            score = score_location(combined, location.name)
            if score > best_score:
                best_score = score
                best = location

        if best is None or best_score < self.settings["location_min_score"]:
            return None
        logger.debug(f"[Map] Location '{best.name}' matched with score {best_score:.1f}")
        return PlayerMarkerDetection(
            float(best.x_pct),
            float(best.y_pct),
            min(1.0, best_score / 10.0),
            "location",
            best.name,
        )

    def locate_marker(self, map_frame):
        """
        Player marker position from marker-colored pixels.

        Returns:
            PlayerMarkerDetection or None
        """
        if map_frame is None:
            return None
        mask = self.colors.build_mask(map_frame.pixels, self.colors.is_player_marker)
        point = self.localizer.localize(mask)
        if point is None:
            return None
        if self.debug_writer is not None:
            self.debug_writer.save("map_marker_mask", (mask * 255).astype(np.uint8))
        return PlayerMarkerDetection(
            100.0 * point.x / map_frame.width,
            100.0 * point.y / map_frame.height,
            point.confidence,
            point.strategy,
        )

    def locate(self, map_frame, locations=None):
        """Location names first, then the pixel marker"""
        detection = self.locate_by_names(map_frame, locations)
        if detection is not None:
            return detection
        return self.locate_marker(map_frame)
