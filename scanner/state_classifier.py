"""
State Classifier - Raid Scanner
===============================
Tells which game screen is showing from one full-frame capture.

Each rule OCRs one fractional sub-region of the frame (top strip for menu
banners, bottom-right strip for the HUD ammo counter, bottom strip for
level badges, ...) with its own whitelist and page segmentation mode, then
checks keywords or a pattern. Rules run highest priority first; the first
match wins and no match means Unknown.

OCR is done at most once per (region, psm, whitelist) per frame, and the
same RegionTextReader is handed to the extractors so they reuse it.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from config.defaults import DEFAULT_THRESHOLDS, STATE_REGIONS
from core.state import UiState
from vision.ocr_service import (
    BODY_WHITELIST,
    LEVEL_WHITELIST,
    PSM_SINGLE_BLOCK,
    PSM_SPARSE_TEXT,
    preprocess_for_ocr,
)
from .debounce import StateDebouncer

logger = logging.getLogger("RaidScanner")

HUD_WHITELIST = BODY_WHITELIST + "/"


@dataclass(frozen=True)
class StateRule:
    """
    One classification check.

    Attributes:
        state: UiState reported when the rule matches
        region: Key of STATE_REGIONS to OCR
        require_any: At least one of these words/phrases must appear
        require_all: Every one of these must appear
        require_none: None of these may appear
        pattern: Regex that must match (searched in lowercased text)
        whitelist / psm: OCR settings for the region
        priority: Higher runs first
    """

    state: UiState
    region: str
    require_any: Tuple[str, ...] = ()
    require_all: Tuple[str, ...] = ()
    require_none: Tuple[str, ...] = ()
    pattern: str = ""
    whitelist: str = BODY_WHITELIST
    psm: int = PSM_SINGLE_BLOCK
    priority: int = 0

    def matches(self, text):
        """
        Args:
            text (str): Lowercased, whitespace-collapsed OCR text

        Returns:
            bool
        """
        if not text:
            return False
        if self.require_any and not any(contains_phrase(text, p) for p in self.require_any):
            return False
        if not all(contains_phrase(text, p) for p in self.require_all):
            return False
        if any(contains_phrase(text, p) for p in self.require_none):
            return False
        if self.pattern and not re.search(self.pattern, text):
            return False
        return bool(self.require_any or self.require_all or self.pattern)


def contains_phrase(text, phrase):
    """Whole-word (or whole-phrase) containment"""
    return re.search(r"\b" + re.escape(phrase) + r"\b", text) is not None


def normalize_region_text(text):
    return re.sub(r"\s+", " ", (text or "").lower()).strip()


DEFAULT_STATE_RULES = (
    StateRule(
        UiState.MATCHMAKING_QUEUE,
        "center_strip",
        require_any=("matchmaking", "searching for", "finding match", "in queue",
                     "deploying", "waiting for players"),
        priority=90,
    ),
    StateRule(
        UiState.IN_RAID,
        "bottom_right_strip",
        pattern=r"\d+\s*/\s*\d+",
        whitelist=HUD_WHITELIST,
        psm=PSM_SPARSE_TEXT,
        priority=80,
    ),
    StateRule(
        UiState.MAP_VIEW,
        "top_strip",
        require_any=("map", "legend"),
        require_none=("skill tree", "workshop", "select map"),
        priority=70,
    ),
    StateRule(UiState.SKILL_TREE_MENU, "top_strip", require_any=("skill tree", "skills"), priority=60),
    StateRule(UiState.WORKSHOP_MENU, "top_strip", require_any=("workshop", "workbench", "crafting"), priority=55),
    StateRule(UiState.BLUEPRINT_MENU, "top_strip", require_any=("blueprint", "blueprints"), priority=50),
    StateRule(
        UiState.TRACKED_RESOURCES_MENU,
        "top_strip",
        require_all=("tracked",),
        require_any=("resources", "materials", "items"),
        priority=45,
    ),
    StateRule(UiState.QUEST_MENU, "top_strip", require_any=("quests", "quest", "missions"), priority=40),
    # Roman-numeral level badges along the bottom of the workshop screen
    StateRule(
        UiState.WORKSHOP_MENU,
        "bottom_strip",
        pattern=r"\b(level|lvl)\s*([ivx]+|\d+)\b",
        whitelist=LEVEL_WHITELIST,
        priority=20,
    ),
    StateRule(
        UiState.MAIN_MENU,
        "top_strip",
        require_any=("play", "inventory", "store", "traders", "character"),
        priority=10,
    ),
)


class RegionTextReader:
    """
    Per-frame cache of region crops and their OCR text.

    Light-on-dark text (HUD, menu banners) is inverted after binarization
    so the engine always sees dark text on white.
    """

    def __init__(self, frame, ocr_service, regions=None, debug_writer=None):
        self.frame = frame
        self.ocr = ocr_service
        self.regions = dict(STATE_REGIONS)
        if regions:
            self.regions.update(regions)
        self.debug_writer = debug_writer
        self._crops = {}
        self._texts = {}

    def region(self, name):
        """FrameBuffer of a named region (None if the name is unknown)"""
        if name not in self._crops:
            fraction = self.regions.get(name)
            self._crops[name] = self.frame.crop_fraction(fraction) if fraction else None
        return self._crops[name]

    def text(self, name, psm=PSM_SINGLE_BLOCK, whitelist=BODY_WHITELIST, scale=2):
        """Raw OCR text of a named region, cached for this frame"""
        key = (name, psm, whitelist, scale)
        if key in self._texts:
            return self._texts[key]
        crop = self.region(name)
        text = ""
        if crop is not None:
            processed = preprocess_for_ocr(crop, scale=scale)
            if float(np.mean(processed)) < 127:
                processed = 255 - processed
            if self.debug_writer is not None:
                self.debug_writer.save(f"state_{name}", processed)
            text = self.ocr.read_text(processed, psm=psm, whitelist=whitelist)
        self._texts[key] = text
        return text

    def normalized(self, name, psm=PSM_SINGLE_BLOCK, whitelist=BODY_WHITELIST):
        return normalize_region_text(self.text(name, psm, whitelist))


@dataclass(frozen=True)
class Classification:
    """Outcome of one classifier update"""

    raw: UiState
    committed: UiState
    transition: Optional[object]
    reader: RegionTextReader


class StateClassifier:
    """
    Priority-ordered UI state rules plus the committed-state tracker.
    """

    def __init__(self, ocr_service, settings=None, rules=None, regions=None, debug_writer=None):
        """
        Args:
            ocr_service: Anything with read_text(image, psm, whitelist)
            settings (dict): Threshold overrides (state_confirm_ticks)
            rules (iterable): StateRule list (default DEFAULT_STATE_RULES)
            regions (dict): STATE_REGIONS overrides
            debug_writer: Optional DebugImageWriter
        """
        self.settings = dict(DEFAULT_THRESHOLDS)
        if settings:
            self.settings.update(settings)
        self.ocr = ocr_service
        self.regions = regions
        self.debug_writer = debug_writer
        # Stable sort keeps declaration order among equal priorities
        self.rules = tuple(sorted(rules or DEFAULT_STATE_RULES, key=lambda r: -r.priority))
        self.debouncer = StateDebouncer(self.settings["state_confirm_ticks"])

    @property
    def committed_state(self):
        return self.debouncer.committed

    def reader(self, frame):
        return RegionTextReader(frame, self.ocr, self.regions, self.debug_writer)

    def classify(self, frame, reader=None):
        """
        Raw classification of one frame, no debouncing.

        Returns:
            tuple: (UiState, RegionTextReader)
        """
        reader = reader or self.reader(frame)
        for rule in self.rules:
            text = reader.normalized(rule.region, rule.psm, rule.whitelist)
            if rule.matches(text):
                logger.debug(f"[StateClassifier] {rule.state} matched on {rule.region}: '{text[:60]}'")
                return rule.state, reader
        return UiState.UNKNOWN, reader

    def update(self, frame):
        """
        Classify a frame and feed the result to the state debouncer.

        Returns:
            Classification
        """
        raw, reader = self.classify(frame)
        transition = self.debouncer.observe(raw)
        if transition is not None:
            logger.info(f"[StateClassifier] State {transition.previous} -> {transition.current}")
        return Classification(raw, self.debouncer.committed, transition, reader)
