# Config module for Raid Scanner
# Defaults, thresholds and the JSON-backed settings manager

from .settings_manager import SettingsManager
from .defaults import (
    DEFAULT_THRESHOLDS,
    DEFAULT_SCAN_SETTINGS,
    DEFAULT_EXTRACTION_COOLDOWNS,
    STATE_REGIONS,
    get_scan_geometry,
    resolution_scale,
)

__all__ = [
    'SettingsManager',
    'DEFAULT_THRESHOLDS',
    'DEFAULT_SCAN_SETTINGS',
    'DEFAULT_EXTRACTION_COOLDOWNS',
    'STATE_REGIONS',
    'get_scan_geometry',
    'resolution_scale',
]
