# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Services Module - Player State Store
# In-memory sink for everything the detection tick extracts

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.state import UiState

logger = logging.getLogger("RaidScanner")


@dataclass
class PlayerState:
    """Snapshot of what the scanner currently knows about the player"""

    last_detected_state: UiState = UiState.UNKNOWN
    is_in_raid: bool = False
    active_quests: List[str] = field(default_factory=list)
    completed_quests: List[str] = field(default_factory=list)
    tracked_resources: List[str] = field(default_factory=list)
    workbench_levels: Dict[str, int] = field(default_factory=dict)
    learned_blueprints: List[str] = field(default_factory=list)
    skill_tree_branches: Dict[str, int] = field(default_factory=dict)
    available_skill_points: int = 0
    queued_map_id: str = ""
    queued_map_name: str = ""
    in_raid_weapon: str = ""
    in_raid_ammo_in_mag: Optional[int] = None
    in_raid_ammo_reserve: Optional[int] = None
    in_raid_hud_updated: Optional[float] = None
    player_marker: Optional[object] = None
    updated_at: float = 0.0


class PlayerStateStore:
    """
    Thread-safe player state.

    Every setter replaces a whole field under one lock; snapshot() hands out
    a deep copy so readers never see a half-applied update.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = PlayerState()

    def _touch(self):
        self._state.updated_at = time.time()

    # ===== UI state =====

    def set_ui_state(self, ui_state, in_raid=None):
        """
        Record the committed UI state.

        Leaving a raid-scoped state (in raid / map view) clears the marker
        and the in-raid HUD values.

        Args:
            ui_state (UiState): Newly committed state
            in_raid (bool): Override for the in-raid flag (default: derived)
        """
        if in_raid is None:
            in_raid = ui_state.is_raid_scoped
        with self._lock:
            was_in_raid = self._state.is_in_raid
            self._state.last_detected_state = ui_state
            self._state.is_in_raid = bool(in_raid)
            if was_in_raid and not in_raid:
                self._clear_raid_data()
            self._touch()

    def on_state_changed(self, transition):
        """Sink callback for StateTransition events"""
        self.set_ui_state(transition.current, transition.is_raid_scoped)

    def _clear_raid_data(self):
        self._state.player_marker = None
        self._state.in_raid_weapon = ""
        self._state.in_raid_ammo_in_mag = None
        self._state.in_raid_ammo_reserve = None
        self._state.in_raid_hud_updated = None
        logger.debug("[PlayerState] Left raid, cleared marker and HUD")

    # ===== Extractions =====

    def set_active_quests(self, quest_ids):
        with self._lock:
            active = sorted(set(quest_ids))
            # Quests that drop off the active list count as completed
            finished = [q for q in self._state.active_quests if q not in active]
            self._state.active_quests = active
            for quest_id in finished:
                if quest_id not in self._state.completed_quests:
                    self._state.completed_quests.append(quest_id)
            self._touch()

    def set_tracked_resources(self, item_ids):
        with self._lock:
            self._state.tracked_resources = sorted(set(item_ids))
            self._touch()

    def set_workbench_levels(self, levels):
        """Merge station -> level; stations not in `levels` keep their value"""
        with self._lock:
            self._state.workbench_levels.update({k: int(v) for k, v in levels.items()})
            self._touch()

    def add_learned_blueprints(self, blueprint_ids):
        """Blueprints are only ever learned, never forgotten"""
        with self._lock:
            known = set(self._state.learned_blueprints)
            known.update(blueprint_ids)
            self._state.learned_blueprints = sorted(known)
            self._touch()

    def set_skill_tree(self, branches, available_points=None):
        with self._lock:
            self._state.skill_tree_branches.update({k: int(v) for k, v in branches.items()})
            if available_points is not None:
                self._state.available_skill_points = int(available_points)
            self._touch()

    def set_queued_map(self, map_id, map_name=""):
        with self._lock:
            self._state.queued_map_id = map_id or ""
            self._state.queued_map_name = map_name or ""
            self._touch()

    def set_in_raid_hud(self, weapon="", ammo_in_mag=None, ammo_reserve=None):
        with self._lock:
            if weapon:
                self._state.in_raid_weapon = weapon
            self._state.in_raid_ammo_in_mag = ammo_in_mag
            self._state.in_raid_ammo_reserve = ammo_reserve
            self._state.in_raid_hud_updated = time.time()
            self._touch()

    def set_player_marker(self, detection):
        """Keep only the latest marker detection"""
        with self._lock:
            self._state.player_marker = detection
            self._touch()

    # ===== Reading =====

    @property
    def queued_map_id(self):
        with self._lock:
            return self._state.queued_map_id

    def snapshot(self):
        """Deep copy of the current state"""
        with self._lock:
            return copy.deepcopy(self._state)

    def callbacks(self):
        """
        Orchestrator callbacks that write into this store.

        Returns:
            dict: callback name -> callable, see ScanOrchestrator
        """
        return {
            "on_state_changed": self.on_state_changed,
            "on_marker_detected": self.set_player_marker,
            "on_quests": self.set_active_quests,
            "on_workbench_levels": self.set_workbench_levels,
            "on_blueprints": self.add_learned_blueprints,
            "on_tracked_resources": self.set_tracked_resources,
            "on_skill_tree": self.set_skill_tree,
            "on_queued_map": self.set_queued_map,
            "on_in_raid_hud": self.set_in_raid_hud,
        }
