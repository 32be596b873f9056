# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Services Module - Read-only game catalog
# Items, maps with their known locations, quests, workstations, blueprints

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Tuple

from vision.text_matcher import FuzzyMatcher

logger = logging.getLogger("RaidScanner")

DEFAULT_SKILL_BRANCHES = ("Conditioning", "Mobility", "Survival")


@dataclass(frozen=True)
class CatalogItem:
    """One item the scanner can identify"""

    id: str
    name: str
    short_name: str = ""
    category: str = "General"

    @classmethod
    def scan_failed(cls, reason):
        """Placeholder shown when an explicit scan found nothing"""
        return cls("", f"Scan failed: {reason}", "Unknown", "")


@dataclass(frozen=True)
class MapLocation:
    """Known static waypoint on a map, as percentages of the map image"""

    name: str
    x_pct: float
    y_pct: float


@dataclass(frozen=True)
class MapInfo:
    id: str
    name: str
    locations: Tuple[MapLocation, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NamedEntry:
    """Quest, workstation or blueprint: an id and a display name"""

    id: str
    name: str
    max_level: int = 0


class Catalog:
    """
    Read-only catalog.

    Matchers are built lazily, once per kind, under one lock and are
    immutable afterwards.
    """

    def __init__(
        self,
        items=(),
        maps=(),
        quests=(),
        workstations=(),
        blueprints=(),
        skill_branches=DEFAULT_SKILL_BRANCHES,
        match_settings=None,
    ):
        self.items = tuple(items)
        self.maps = tuple(maps)
        self.quests = tuple(quests)
        self.workstations = tuple(workstations)
        self.blueprints = tuple(blueprints)
        self.skill_branches = tuple(skill_branches)
        self._match_settings = match_settings or {}
        self._items_by_id = {item.id.lower(): item for item in self.items}
        self._maps_by_id = {m.id.lower(): m for m in self.maps}
        self._matchers = {}
        self._lock = threading.Lock()

    # ===== Loading =====

    @classmethod
    def from_dict(cls, data, match_settings=None):
        """
        Build a catalog from its JSON structure.

        Args:
            data (dict): {"items": [...], "maps": [...], "quests": [...],
                "workstations": [...], "blueprints": [...], "skill_branches": [...]}
            match_settings (dict): Fuzzy matcher threshold overrides
        """
        items = [
            CatalogItem(
                str(entry["id"]),
                entry["name"],
                entry.get("short_name", entry.get("shortName", "")),
                entry.get("category", "General"),
            )
            for entry in data.get("items", [])
            if entry.get("id") and entry.get("name")
        ]
        maps = [
            MapInfo(
                str(entry["id"]),
                entry.get("name", entry["id"]),
                tuple(
                    MapLocation(loc["name"], float(loc["x_pct"]), float(loc["y_pct"]))
                    for loc in entry.get("locations", [])
                ),
            )
            for entry in data.get("maps", [])
            if entry.get("id")
        ]

        def named(key):
            return [
                NamedEntry(str(entry["id"]), entry.get("name", entry["id"]), int(entry.get("max_level", 0)))
                for entry in data.get(key, [])
                if entry.get("id")
            ]

        return cls(
            items,
            maps,
            named("quests"),
            named("workstations"),
            named("blueprints"),
            data.get("skill_branches") or DEFAULT_SKILL_BRANCHES,
            match_settings,
        )

    @classmethod
    def from_json_file(cls, path, match_settings=None):
        """Load a catalog JSON file. Missing or broken files give an empty catalog."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning(f"[Catalog] Catalog file not found: {path}")
            return cls(match_settings=match_settings)
        except json.JSONDecodeError as e:
            logger.error(f"[Catalog] Failed to parse catalog file: {e}")
            return cls(match_settings=match_settings)
        catalog = cls.from_dict(data, match_settings)
        logger.info(
            f"[Catalog] Loaded {len(catalog.items)} items, {len(catalog.maps)} maps, "
            f"{len(catalog.quests)} quests"
        )
        return catalog

    # ===== Lookups =====

    def get_item(self, item_id):
        if not item_id:
            return None
        return self._items_by_id.get(str(item_id).lower())

    def get_map(self, map_id):
        if not map_id:
            return None
        return self._maps_by_id.get(str(map_id).lower())

    def locations_for(self, map_id):
        """Known locations of a map (empty tuple for unknown maps)"""
        info = self.get_map(map_id)
        return info.locations if info else ()

    def _matcher(self, kind, entries):
        matcher = self._matchers.get(kind)
        if matcher is not None:
            return matcher
        with self._lock:
            if kind not in self._matchers:
                self._matchers[kind] = FuzzyMatcher(entries, self._match_settings)
            return self._matchers[kind]

    def item_matcher(self):
        return self._matcher("items", self.items)

    def map_matcher(self):
        return self._matcher("maps", self.maps)

    def quest_matcher(self):
        return self._matcher("quests", self.quests)

    def workstation_matcher(self):
        return self._matcher("workstations", self.workstations)

    def blueprint_matcher(self):
        return self._matcher("blueprints", self.blueprints)
