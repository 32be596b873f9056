"""
Vision Module - Raid Scanner
============================
Pixel-level recognition: capture, color predicates, segmentation, icon
hashing, OCR and text matching, and map-marker localization.

Nothing in this package knows about scan kinds, locks or UI state; it turns
pixels into values and returns None when there is nothing to find.

Modules:
    - frame: FrameBuffer, Rect, Segment value types
    - screen_capture: mss capture source returning FrameBuffers
    - color_detector: Luminance and the tooltip/highlight/marker predicates
    - region_segmenter: Connected-component tooltip and highlight detection
    - icon_hasher: Edge-map difference hash and the lazily built icon index
    - ocr_service: Tesseract wrapper with preprocessing and cleanup
    - text_matcher: OCR normalization, title heuristics, layered matching
    - marker_localizer: Location-name and player-marker localization

Usage:
    from vision import ScreenCapture, RegionSegmenter, compute_icon_hash

    capture = ScreenCapture()
    frame = capture.capture(Rect(x, y, 500, 600))
    found = RegionSegmenter().find_tooltip_bounds(frame)
"""

from .frame import FrameBuffer, Rect, Segment
from .screen_capture import ScreenCapture
from .color_detector import ColorDetector, luminance
from .region_segmenter import RegionSegmenter
from .icon_hasher import (
    IconHashIndex,
    IconHashStore,
    compute_icon_hash,
    hamming_distance,
    hash_score,
    looks_like_icon_box,
    rotation_hashes,
)
from .ocr_service import OCRService, preprocess_for_ocr, parse_number
from .text_matcher import (
    FuzzyMatcher,
    MatchCandidate,
    MatchMethod,
    extract_likely_title,
    match_text,
    normalize_text,
)
from .marker_localizer import MapLocalizer, PlayerMarkerDetection, TemplateLocalizer

__all__ = [
    'FrameBuffer',
    'Rect',
    'Segment',
    'ScreenCapture',
    'ColorDetector',
    'luminance',
    'RegionSegmenter',
    'IconHashIndex',
    'IconHashStore',
    'compute_icon_hash',
    'hamming_distance',
    'hash_score',
    'looks_like_icon_box',
    'rotation_hashes',
    'OCRService',
    'preprocess_for_ocr',
    'parse_number',
    'FuzzyMatcher',
    'MatchCandidate',
    'MatchMethod',
    'extract_likely_title',
    'match_text',
    'normalize_text',
    'MapLocalizer',
    'PlayerMarkerDetection',
    'TemplateLocalizer',
]
