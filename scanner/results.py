"""
Scan Results - Raid Scanner
===========================
Typed values the scanner hands to its sink: item scan results, UI state
transitions, and (re-exported) match candidates and marker detections.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from core.state import UiState
from services.catalog import CatalogItem
from vision.marker_localizer import PlayerMarkerDetection
from vision.text_matcher import MatchCandidate, MatchMethod

__all__ = [
    "ScanKind",
    "ScanResult",
    "StateTransition",
    "MatchCandidate",
    "MatchMethod",
    "PlayerMarkerDetection",
]


class ScanKind(Enum):
    """Which user-triggered scan produced a result"""

    NAME = "name"
    ICON = "icon"
    TOOLTIP = "tooltip"

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class ScanResult:
    """
    One identified (or failed) item scan, as shown on the overlay.

    Attributes:
        item: Catalog item (a placeholder item for failed scans)
        confidence: 0..1
        kind: ScanKind that produced it
        anchor: Screen (x, y) where the overlay should appear
        method: MatchMethod, None for failed scans
        icon_path: Matched icon file, if an icon hash produced the result
        raw_text: OCR line the match was made on
        created_at / expires_at: Wall-clock seconds
    """

    item: Any
    confidence: float
    kind: ScanKind
    anchor: Tuple[int, int]
    method: Optional[MatchMethod] = None
    icon_path: str = ""
    raw_text: str = ""
    created_at: float = 0.0
    expires_at: float = 0.0

    @property
    def is_fuzzy(self):
        return self.method is MatchMethod.FUZZY

    @property
    def failed(self):
        return self.method is None

    def is_expired(self, now=None):
        now = time.time() if now is None else now
        return now >= self.expires_at

    @classmethod
    def from_candidate(cls, candidate, kind, anchor, duration_ms, icon_path="", raw_text=None, now=None):
        """Wrap a MatchCandidate into a result that expires after duration_ms"""
        now = time.time() if now is None else now
        return cls(
            candidate.item,
            float(candidate.confidence),
            kind,
            (int(anchor[0]), int(anchor[1])),
            candidate.method,
            icon_path,
            candidate.matched_text if raw_text is None else raw_text,
            now,
            now + duration_ms / 1000.0,
        )

    @classmethod
    def scan_failed(cls, reason, kind, anchor, duration_ms, now=None):
        """Zero-confidence placeholder so an explicit scan always shows something"""
        now = time.time() if now is None else now
        return cls(
            CatalogItem.scan_failed(reason),
            0.0,
            kind,
            (int(anchor[0]), int(anchor[1])),
            None,
            "",
            "",
            now,
            now + duration_ms / 1000.0,
        )


@dataclass(frozen=True)
class StateTransition:
    """Committed UI state change"""

    previous: UiState
    current: UiState
    at: float

    @property
    def is_raid_scoped(self):
        """True when the new state counts as being in a raid (or its map)"""
        return self.current.is_raid_scoped

    @property
    def left_raid(self):
        return self.previous.is_raid_scoped and not self.current.is_raid_scoped
