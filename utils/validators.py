# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Validation utilities for screen areas, classifier regions and thresholds.

import logging

logger = logging.getLogger('RaidScanner')


def validate_area_coords(coords, screen_width=None, screen_height=None):
    """Validate area coordinates dict with x, y, width, height

    Negative origins are allowed when no screen size is given, since the
    virtual screen of a multi-monitor setup can start left of or above 0.
    """
    if coords is None:
        return False
    if not isinstance(coords, dict):
        return False

    required_keys = ['x', 'y', 'width', 'height']
    if not all(key in coords for key in required_keys):
        return False

    try:
        x, y = int(coords['x']), int(coords['y'])
        w, h = int(coords['width']), int(coords['height'])
        if w <= 0 or h <= 0:
            return False
        if screen_width is not None and screen_height is not None:
            if x < 0 or y < 0 or (x + w) > screen_width or (y + h) > screen_height:
                return False
        return True
    except (ValueError, TypeError):
        return False


def validate_region_fraction(region, region_name="region"):
    """Validate an (x, y, width, height) tuple of screen fractions in [0, 1]"""
    if not isinstance(region, (tuple, list)) or len(region) != 4:
        logger.warning(f"Invalid {region_name}: expected 4 fractions")
        return False
    try:
        x, y, w, h = (float(v) for v in region)
    except (ValueError, TypeError):
        logger.warning(f"Invalid {region_name}: fractions not numeric")
        return False
    if w <= 0 or h <= 0:
        logger.warning(f"Invalid {region_name}: empty region")
        return False
    if x < 0 or y < 0 or x + w > 1.0 + 1e-9 or y + h > 1.0 + 1e-9:
        logger.warning(f"Invalid {region_name}: extends past the frame")
        return False
    return True


def validate_threshold_value(key, value, default):
    """Validate a threshold override against the type of its default

    Args:
        key: Threshold name (for log messages)
        value: Proposed value
        default: Default value the override replaces

    Returns:
        True if the override can be used
    """
    if isinstance(default, bool):
        if not isinstance(value, bool):
            logger.warning(f"Invalid threshold {key}: expected true/false")
            return False
        return True
    if isinstance(default, (tuple, list)):
        if not isinstance(value, (tuple, list)) or not value:
            logger.warning(f"Invalid threshold {key}: expected a non-empty list")
            return False
        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) and v > 0 for v in value):
            logger.warning(f"Invalid threshold {key}: list must hold positive numbers")
            return False
        return True
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.warning(f"Invalid threshold {key}: not numeric")
        return False
    if value < 0:
        logger.warning(f"Invalid threshold {key}: negative value {value}")
        return False
    if isinstance(default, int) and not isinstance(value, int):
        logger.warning(f"Invalid threshold {key}: expected an integer")
        return False
    return True
