"""
Test suite for config/settings_manager.py
==========================================
Tests for settings loading, saving, and merging over defaults.
"""

import pytest
import json
import os
import tempfile
from config.defaults import (
    DEFAULT_EXTRACTION_COOLDOWNS,
    DEFAULT_SCAN_SETTINGS,
    DEFAULT_THRESHOLDS,
)
from config.settings_manager import SettingsManager


@pytest.fixture
def settings_path():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield os.path.join(temp_dir, "test_settings.json")


def write_section(path, key, value):
    """Replace one section of a settings file on disk"""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    data[key] = value
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)


class TestSettingsManagerInitialization:
    """Tests for SettingsManager initialization"""

    def test_initialization_creates_default_file(self, settings_path):
        """Test that initialization creates settings file if it doesn't exist"""
        SettingsManager(settings_path)

        assert os.path.exists(settings_path)
        with open(settings_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        assert set(data) >= {"thresholds", "scan_settings", "state_detection", "paths", "debug_settings"}

    def test_corrupt_file_falls_back_to_defaults(self, settings_path):
        with open(settings_path, "w", encoding="utf-8") as f:
            f.write("{not json")

        manager = SettingsManager(settings_path)

        assert manager.load_thresholds() == dict(DEFAULT_THRESHOLDS)


class TestThresholds:
    """Tests for threshold overrides"""

    def test_defaults_when_nothing_stored(self, settings_path):
        manager = SettingsManager(settings_path)
        thresholds = manager.load_thresholds()

        assert thresholds["tooltip_min_width"] == 120
        assert thresholds["selected_icon_max_distance"] == 14
        assert thresholds["tooltip_icon_max_distance"] == 20
        assert isinstance(thresholds["marker_template_scales"], tuple)

    def test_save_and_load_override(self, settings_path):
        manager = SettingsManager(settings_path)
        stored = manager.save_thresholds({"tooltip_min_width": 150, "fuzzy_min_confidence": 0.6})

        reloaded = SettingsManager(settings_path).load_thresholds()

        assert stored == ["fuzzy_min_confidence", "tooltip_min_width"]
        assert reloaded["tooltip_min_width"] == 150
        assert reloaded["fuzzy_min_confidence"] == 0.6
        # Untouched keys keep their defaults
        assert reloaded["tooltip_max_width"] == DEFAULT_THRESHOLDS["tooltip_max_width"]

    def test_unknown_and_invalid_overrides_are_dropped(self, settings_path):
        manager = SettingsManager(settings_path)
        stored = manager.save_thresholds({
            "not_a_threshold": 1,
            "tooltip_min_width": -5,
            "tooltip_min_pixels": 12.5,
        })

        assert stored == []
        assert manager.load_thresholds() == dict(DEFAULT_THRESHOLDS)

    def test_template_scales_survive_json(self, settings_path):
        manager = SettingsManager(settings_path)
        manager.save_thresholds({"marker_template_scales": (0.5, 1.0)})

        reloaded = SettingsManager(settings_path).load_thresholds()

        assert reloaded["marker_template_scales"] == (0.5, 1.0)


class TestScanSettings:
    """Tests for scan loop settings"""

    def test_partial_section_is_merged_over_defaults(self, settings_path):
        SettingsManager(settings_path)
        write_section(settings_path, "scan_settings", {"tick_interval": 0.5})

        settings = SettingsManager(settings_path).load_scan_settings()

        assert settings["tick_interval"] == 0.5
        assert settings["result_duration_ms"] == DEFAULT_SCAN_SETTINGS["result_duration_ms"]


class TestStateDetectionSettings:
    """Tests for state detection and cooldown settings"""

    def test_default_cooldowns(self, settings_path):
        manager = SettingsManager(settings_path)
        settings = manager.load_state_detection_settings()

        assert settings["enabled"] is True
        assert settings["cooldowns"] == DEFAULT_EXTRACTION_COOLDOWNS

    def test_cooldown_override_keeps_other_defaults(self, settings_path):
        SettingsManager(settings_path)
        write_section(settings_path, "state_detection", {"enabled": False, "cooldowns": {"quests": 10.0}})

        settings = SettingsManager(settings_path).load_state_detection_settings()

        assert settings["enabled"] is False
        assert settings["cooldowns"]["quests"] == 10.0
        assert settings["cooldowns"]["map"] == DEFAULT_EXTRACTION_COOLDOWNS["map"]


class TestPathsAndDebug:
    """Tests for data paths and debug settings"""

    def test_load_paths(self, settings_path):
        SettingsManager(settings_path)
        write_section(settings_path, "paths", {"catalog_file": "data/catalog.json"})

        paths = SettingsManager(settings_path).load_paths()

        assert paths["catalog_file"] == "data/catalog.json"
        assert paths["icon_directory"] == ""

    def test_load_debug_settings(self, settings_path):
        SettingsManager(settings_path)
        write_section(settings_path, "debug_settings", {
            "save_debug_images": True,
            "debug_directory": "dumps",
            "log_level": "DEBUG",
        })

        debug = SettingsManager(settings_path).load_debug_settings()

        assert debug == {"save_debug_images": True, "debug_directory": "dumps", "log_level": "DEBUG"}
