"""
State Extractors - Raid Scanner
===============================
Per-screen extraction routines run by the detection tick once a UI state is
committed:

    QUEST_MENU              -> active quest ids
    WORKSHOP_MENU           -> workstation levels
    BLUEPRINT_MENU          -> learned blueprint ids
    TRACKED_RESOURCES_MENU  -> tracked item ids
    SKILL_TREE_MENU         -> points per branch + available points
    MATCHMAKING_QUEUE       -> queued map
    IN_RAID                 -> weapon label and ammo counts
    MAP_VIEW                -> player position on the map

Every routine has its own cooldown. Structured values only reach the sink
after the signature debouncer has seen them twice in a row.
"""

import logging
import re

from config.defaults import DEFAULT_EXTRACTION_COOLDOWNS, DEFAULT_THRESHOLDS
from core.state import UiState
from vision.ocr_service import (
    BODY_WHITELIST,
    LEVEL_WHITELIST,
    PSM_AUTO,
    PSM_SPARSE_TEXT,
    parse_number,
)
from vision.text_matcher import ROMAN_NUMERALS, candidate_lines, clean_line
from .debounce import CooldownGate, SignatureDebouncer
from .state_classifier import HUD_WHITELIST

logger = logging.getLogger("RaidScanner")

_LEVEL_RE = re.compile(r"\b(?:level|lvl|lv)\.?\s*(\d{1,2}|[ivx]{1,4})\b", re.IGNORECASE)
_TRAILING_ROMAN_RE = re.compile(r"\s+([ivx]{1,4})\s*$", re.IGNORECASE)
_AMMO_RE = re.compile(r"(\d{1,3})\s*/\s*(\d{1,4})")
# Point counts, with the usual O/l/I misreads of 0 and 1
_POINTS_TOKEN = r"([0-9OolI]{1,3})(?![A-Za-z])"
_AVAILABLE_POINTS_RE = re.compile(
    r"(?:available\s+points|points\s+available|skill\s+points)\W{0,3}" + _POINTS_TOKEN, re.IGNORECASE
)
_LEARNED_RE = re.compile(r"\b(learned|unlocked|known|owned)\b", re.IGNORECASE)
_NOT_LEARNED_RE = re.compile(r"\b(locked|not learned|unlearned|unknown)\b", re.IGNORECASE)


def roman_to_int(token):
    """'iv' -> 4 for i..x, None otherwise"""
    token = (token or "").lower()
    if token in ROMAN_NUMERALS:
        return ROMAN_NUMERALS.index(token) + 1
    return None


def parse_level(text):
    """
    Level from a station line: "LEVEL 3", "Lvl. II", or a trailing roman badge.

    Returns:
        tuple: (level or None, text with the level part removed)
    """
    match = _LEVEL_RE.search(text)
    if match is None:
        match = _TRAILING_ROMAN_RE.search(text)
    if match is None:
        return None, text
    token = match.group(1)
    level = int(token) if token.isdigit() else roman_to_int(token)
    remainder = (text[:match.start()] + " " + text[match.end():]).strip()
    return level, remainder


def parse_ammo(text):
    """
    Ammo counter "<in magazine> / <reserve>".

    Returns:
        tuple: (in_mag, reserve) ints, or (None, None)
    """
    match = _AMMO_RE.search(text or "")
    if match is None:
        return None, None
    return int(match.group(1)), int(match.group(2))


class StateExtractors:
    """
    Runs the extraction routine that belongs to a committed UI state.
    """

    def __init__(self, catalog, map_localizer, settings=None, cooldowns=None, callbacks=None, clock=None):
        """
        Args:
            catalog (Catalog): Read-only catalog with lazy matchers
            map_localizer (MapLocalizer): Player position on the map view
            settings (dict): Threshold overrides
            cooldowns (dict): Extraction name -> seconds
            callbacks (dict): Sink callbacks (see ScanOrchestrator)
            clock (callable): Monotonic time source for the cooldowns
        """
        self.catalog = catalog
        self.map_localizer = map_localizer
        self.settings = dict(DEFAULT_THRESHOLDS)
        if settings:
            self.settings.update(settings)
        merged = dict(DEFAULT_EXTRACTION_COOLDOWNS)
        if cooldowns:
            merged.update(cooldowns)
        self.gate = CooldownGate(merged, clock)
        self._callbacks = callbacks or {}

        repeats = self.settings["extraction_confirm_repeats"]
        self.debouncers = {
            name: SignatureDebouncer(name, repeats)
            for name in ("quests", "workshop", "blueprints", "tracked_resources", "skill_tree")
        }
        self.queued_map_id = ""
        self.queued_map_name = ""

        self._routines = {
            UiState.QUEST_MENU: ("quests", self.extract_quests),
            UiState.WORKSHOP_MENU: ("workshop", self.extract_workshop),
            UiState.BLUEPRINT_MENU: ("blueprints", self.extract_blueprints),
            UiState.TRACKED_RESOURCES_MENU: ("tracked_resources", self.extract_tracked_resources),
            UiState.SKILL_TREE_MENU: ("skill_tree", self.extract_skill_tree),
            UiState.MATCHMAKING_QUEUE: ("matchmaking", self.extract_matchmaking),
            UiState.IN_RAID: ("in_raid_hud", self.extract_in_raid_hud),
            UiState.MAP_VIEW: ("map", self.extract_map),
        }

    def _emit(self, name, *args):
        callback = self._callbacks.get(name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"[Extract] Callback {name} failed: {e}", exc_info=True)

    def run(self, state, reader):
        """
        Run the routine for `state` if its cooldown allows.

        Returns:
            bool: True if a routine ran
        """
        entry = self._routines.get(state)
        if entry is None:
            return False
        key, routine = entry
        if not self.gate.try_acquire(key):
            return False
        logger.debug(f"[Extract] Running {key}")
        routine(reader)
        return True

    def on_left_raid(self):
        """Raid-scoped extraction state starts fresh next raid"""
        self.gate.reset("in_raid_hud")
        self.gate.reset("map")

    def _matched_ids(self, matcher, text):
        min_confidence = self.settings["extraction_min_confidence"]
        ids = []
        for line in candidate_lines(text):
            candidate = matcher.match(line)
            if candidate is None or candidate.confidence < min_confidence:
                continue
            if candidate.item.id not in ids:
                ids.append(candidate.item.id)
        return ids

    def _commit(self, name, values):
        return self.debouncers[name].observe(values)

    # ===== Menus =====

    def extract_quests(self, reader):
        text = reader.text("list_region", PSM_AUTO, BODY_WHITELIST)
        ids = self._matched_ids(self.catalog.quest_matcher(), text)
        if self._commit("quests", ids):
            logger.info(f"[Extract] Active quests: {len(ids)}")
            self._emit("on_quests", sorted(ids))
        return ids

    def extract_workshop(self, reader):
        """Station name plus its level (digits or roman badge) per line"""
        text = reader.text("workshop_region", PSM_SPARSE_TEXT, LEVEL_WHITELIST)
        matcher = self.catalog.workstation_matcher()
        min_confidence = self.settings["extraction_min_confidence"]
        levels = {}
        for line in candidate_lines(text):
            level, name_part = parse_level(line)
            if level is None or len(name_part) < 3:
                continue
            candidate = matcher.match(name_part)
            if candidate is None or candidate.confidence < min_confidence:
                continue
            station = candidate.item
            if station.max_level and level > station.max_level:
                logger.debug(f"[Extract] Ignoring level {level} for {station.id} (max {station.max_level})")
                continue
            levels.setdefault(station.id, level)
        if self._commit("workshop", levels):
            logger.info(f"[Extract] Workbench levels: {levels}")
            self._emit("on_workbench_levels", dict(levels))
        return levels

    def extract_blueprints(self, reader):
        """Blueprint lines carrying a learned marker"""
        text = reader.text("list_region", PSM_AUTO, BODY_WHITELIST)
        matcher = self.catalog.blueprint_matcher()
        min_confidence = self.settings["extraction_min_confidence"]
        learned = []
        for line in candidate_lines(text):
            if _NOT_LEARNED_RE.search(line) or not _LEARNED_RE.search(line):
                continue
            name_part = clean_line(_LEARNED_RE.sub(" ", line))
            candidate = matcher.match(name_part)
            if candidate is None or candidate.confidence < min_confidence:
                continue
            if candidate.item.id not in learned:
                learned.append(candidate.item.id)
        if self._commit("blueprints", learned):
            logger.info(f"[Extract] Learned blueprints: {len(learned)}")
            self._emit("on_blueprints", sorted(learned))
        return learned

    def extract_tracked_resources(self, reader):
        text = reader.text("list_region", PSM_AUTO, BODY_WHITELIST)
        ids = self._matched_ids(self.catalog.item_matcher(), text)
        if self._commit("tracked_resources", ids):
            logger.info(f"[Extract] Tracked resources: {len(ids)}")
            self._emit("on_tracked_resources", sorted(ids))
        return ids

    def extract_skill_tree(self, reader):
        """Points per branch ("CONDITIONING 5/15") and available points"""
        text = reader.text("workshop_region", PSM_SPARSE_TEXT, BODY_WHITELIST + "/:")
        flat = re.sub(r"\s+", " ", text or "")
        branches = {}
        for branch in self.catalog.skill_branches:
            match = re.search(re.escape(branch) + r"\W{0,3}" + _POINTS_TOKEN, flat, re.IGNORECASE)
            points = parse_number(match.group(1), 0, 999) if match else None
            if points is not None:
                branches[branch] = points
        available_match = _AVAILABLE_POINTS_RE.search(flat)
        available = parse_number(available_match.group(1), 0, 999) if available_match else None

        observed = dict(branches)
        if available is not None:
            observed["available"] = available
        if self._commit("skill_tree", observed):
            logger.info(f"[Extract] Skill tree: {branches} (available: {available})")
            self._emit("on_skill_tree", dict(branches), available)
        return branches, available

    def extract_matchmaking(self, reader):
        """Map name shown while queueing"""
        text = reader.text("center_strip", PSM_AUTO, BODY_WHITELIST)
        candidate = self.catalog.map_matcher().match_lines(text)
        if candidate is None or candidate.confidence < self.settings["extraction_min_confidence"]:
            return None
        info = candidate.item
        if info.id != self.queued_map_id:
            self.queued_map_id = info.id
            self.queued_map_name = info.name
            logger.info(f"[Extract] Queued map: {info.name}")
            self._emit("on_queued_map", info.id, info.name)
        return info

    # ===== Raid =====

    def extract_in_raid_hud(self, reader):
        """Weapon label and "<mag> / <reserve>" from the HUD corner"""
        text = reader.text("bottom_right_strip", PSM_SPARSE_TEXT, HUD_WHITELIST)
        ammo_in_mag, ammo_reserve = parse_ammo(text)
        weapon = ""
        for raw in (text or "").split("\n"):
            line = clean_line(_AMMO_RE.sub(" ", raw))
            if sum(1 for c in line if c.isalpha()) >= 3:
                weapon = line
                break
        if ammo_in_mag is None and not weapon:
            return None
        self._emit("on_in_raid_hud", weapon, ammo_in_mag, ammo_reserve)
        return weapon, ammo_in_mag, ammo_reserve

    def extract_map(self, reader):
        """Player position on the map view, location names first"""
        map_frame = reader.region("map_region")
        if map_frame is None:
            return None
        locations = self.catalog.locations_for(self.queued_map_id)
        detection = self.map_localizer.locate(map_frame, locations)
        if detection is None:
            logger.debug("[Extract] No player position on map")
            return None
        logger.debug(
            f"[Extract] Player at ({detection.x_pct:.1f}%, {detection.y_pct:.1f}%) "
            f"via {detection.method} conf={detection.confidence:.2f}"
        )
        self._emit("on_marker_detected", detection)
        return detection
