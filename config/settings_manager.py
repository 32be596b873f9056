# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Centralized settings manager
# One JSON file, one section per concern, defaults merged on every load

import os
import json
import logging
import threading
from .defaults import (
    DEFAULT_THRESHOLDS,
    DEFAULT_SCAN_SETTINGS,
    DEFAULT_EXTRACTION_COOLDOWNS,
)
from utils.validators import validate_threshold_value

logger = logging.getLogger("RaidScanner")


class SettingsManager:
    """Centralized settings management for Raid Scanner

    Every section is returned merged over its defaults, so a settings file
    written by an older version never lacks a key the scanner reads.
    """

    def __init__(self, settings_file: str):
        """Initialize settings manager

        Args:
            settings_file: Absolute path to settings JSON file
        """
        self.settings_file = settings_file
        self._data = {}  # In-memory cache
        self._lock = threading.Lock()  # Thread-safe access
        self._ensure_settings_file_exists()
        self._load_all()

    def _ensure_settings_file_exists(self):
        """Create default settings file if it doesn't exist"""
        if not os.path.exists(self.settings_file):
            logger.info("Creating default settings file...")
            default_settings = {
                "thresholds": dict(DEFAULT_THRESHOLDS),
                "scan_settings": dict(DEFAULT_SCAN_SETTINGS),
                "state_detection": {
                    "enabled": True,
                    "cooldowns": dict(DEFAULT_EXTRACTION_COOLDOWNS),
                },
                "paths": {
                    "catalog_file": "",
                    "icon_directory": "",
                    "marker_template": "",
                    "tesseract_path": "",
                },
                "debug_settings": {
                    "save_debug_images": False,
                    "debug_directory": "debug",
                    "log_level": "INFO",
                },
            }
            try:
                with open(self.settings_file, "w", encoding="utf-8") as f:
                    json.dump(default_settings, f, indent=4, ensure_ascii=False)
                logger.info(f"Default settings created at: {self.settings_file}")
            except Exception as e:
                logger.error(f"Failed to create default settings: {e}")

    def _load_all(self):
        """Load all settings from file (called at init, no lock needed)"""
        try:
            if os.path.exists(self.settings_file):
                with open(self.settings_file, "r", encoding="utf-8") as f:
                    self._data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse settings file: {e}")
            self._data = {}
        except Exception as e:
            logger.error(f"Error loading settings: {e}")
            self._data = {}

    def _save_all(self):
        """Save all settings to file (assumes caller holds lock)"""
        try:
            with open(self.settings_file, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=4, ensure_ascii=False)
        except Exception as e:
            logger.error(f"Error saving settings: {e}")

    def _merged_section(self, key, defaults):
        """Return a copy of a section merged over its defaults (caller holds lock)"""
        merged = dict(defaults)
        stored = self._data.get(key)
        if isinstance(stored, dict):
            merged.update(stored)
        return merged

    # ========================================================================
    # SETTING LOADERS
    # ========================================================================

    def load_thresholds(self):
        """Load recognition thresholds merged over DEFAULT_THRESHOLDS"""
        with self._lock:
            stored = self._data.get("thresholds")
            stored = dict(stored) if isinstance(stored, dict) else {}
        thresholds = dict(DEFAULT_THRESHOLDS)
        for key, value in stored.items():
            if key not in DEFAULT_THRESHOLDS:
                logger.warning(f"[Settings] Ignoring unknown threshold '{key}'")
            elif validate_threshold_value(key, value, DEFAULT_THRESHOLDS[key]):
                thresholds[key] = value
        # JSON stores tuples as lists
        thresholds["marker_template_scales"] = tuple(
            thresholds["marker_template_scales"]
        )
        return thresholds

    def load_scan_settings(self):
        """Load scan loop settings (tick interval, result duration, workers)"""
        with self._lock:
            return self._merged_section("scan_settings", DEFAULT_SCAN_SETTINGS)

    def load_state_detection_settings(self):
        """Load state detection settings with per-extraction cooldowns"""
        with self._lock:
            settings = self._merged_section("state_detection", {"enabled": True})
            settings["cooldowns"] = dict(DEFAULT_EXTRACTION_COOLDOWNS)
            stored = self._data.get("state_detection", {})
            if isinstance(stored, dict) and isinstance(stored.get("cooldowns"), dict):
                settings["cooldowns"].update(stored["cooldowns"])
            return settings

    def load_paths(self):
        """Load data file paths (catalog, icon directory, marker template)"""
        default_paths = {
            "catalog_file": "",
            "icon_directory": "",
            "marker_template": "",
            "tesseract_path": "",
        }
        with self._lock:
            return self._merged_section("paths", default_paths)

    def load_debug_settings(self):
        """Load debug settings from settings file"""
        default_debug = {
            "save_debug_images": False,
            "debug_directory": "debug",
            "log_level": "INFO",
        }
        with self._lock:
            return self._merged_section("debug_settings", default_debug)

    # ========================================================================
    # SETTING SAVERS
    # ========================================================================

    def save_thresholds(self, thresholds):
        """Save threshold overrides to settings file

        Args:
            thresholds: Dictionary of threshold keys to values. Unknown keys
                and invalid values are dropped with a warning.

        Returns:
            Sorted list of the keys that were stored
        """
        accepted = {}
        for key, value in thresholds.items():
            if key not in DEFAULT_THRESHOLDS:
                logger.warning(f"[Settings] Ignoring unknown threshold '{key}'")
                continue
            if not validate_threshold_value(key, value, DEFAULT_THRESHOLDS[key]):
                continue
            accepted[key] = list(value) if isinstance(value, tuple) else value
        with self._lock:
            current = self._data.get("thresholds", {})
            if not isinstance(current, dict):
                current = {}
            current.update(accepted)
            self._data["thresholds"] = current
            self._save_all()
        return sorted(accepted)
