# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Default configuration values, scan geometry and recognition thresholds.
# Every heuristic constant lives here so it can be overridden from settings.

REF_WIDTH = 1920  # Reference resolution width
REF_HEIGHT = 1080  # Reference resolution height

# Background used when normalizing icons before hashing (RGB)
ICON_HASH_BACKGROUND = (24, 28, 40)

# Capture sizes at the reference resolution (scaled with resolution_scale)
SCAN_GEOMETRY_1920x1080 = {
    "tooltip_scan_width": 500,
    "tooltip_scan_height": 600,
    "icon_scan_size": 896,
    "selection_scan_size": 700,
    "selection_scan_cap": 260,
}

# Screen sub-regions used by the state classifier, as fractions of the frame
# (x, y, width, height). Each classifier rule names one of these.
STATE_REGIONS = {
    "top_strip": (0.0, 0.0, 1.0, 0.12),
    "bottom_strip": (0.0, 0.85, 1.0, 0.15),
    "bottom_right_strip": (0.72, 0.84, 0.28, 0.16),
    "center_strip": (0.25, 0.35, 0.5, 0.3),
    "list_region": (0.04, 0.12, 0.5, 0.76),
    "workshop_region": (0.0, 0.12, 1.0, 0.73),
    "map_region": (0.1, 0.1, 0.8, 0.8),
}

# Heuristic thresholds. These are tuned against captures, not derived:
# changing one is a policy change and needs its own fixture.
DEFAULT_THRESHOLDS = {
    # Tooltip segmentation
    "tooltip_min_pixels": 1500,
    "tooltip_min_width": 120,
    "tooltip_max_width": 1400,
    "tooltip_min_height": 70,
    "tooltip_max_height": 1200,
    "tooltip_max_aspect": 3.2,
    "tooltip_inflate_x": 10,
    "tooltip_inflate_y": 14,
    "tooltip_extend_limit": 260,
    "tooltip_extend_density": 0.55,
    "tooltip_seed_margin": 20,
    "tooltip_seed_step_x": 3,
    "tooltip_seed_step_y": 4,
    "tooltip_seed_start_warm": 0.5,
    "tooltip_seed_start_light": 0.4,
    "light_min_luminance": 210,
    "light_max_spread": 22,
    # Icon hashing (three call sites, three policies)
    "tooltip_icon_max_distance": 20,
    "highlight_icon_max_distance": 12,
    "highlight_icon_min_score": 0.80,
    "selected_icon_max_distance": 14,
    "icon_box_min_contrast": 20,
    "highlight_min_size": 40,
    "highlight_deflate": 8,
    "highlight_min_aspect": 0.7,
    "highlight_max_aspect": 1.3,
    "min_hash_confidence": 0.3,
    # Fuzzy text matching
    "fuzzy_min_confidence": 0.5,
    "fuzzy_min_allowed_distance": 4,
    "fuzzy_distance_ratio": 0.4,
    # Player marker localization
    "marker_min_pixels": 15,
    "marker_cluster_radius": 25,
    "marker_cluster_min_pixels": 10,
    "marker_cluster_dominance": 0.5,
    "marker_template_min_score": 0.35,
    "marker_template_scales": (0.7, 0.85, 1.0, 1.15, 1.3),
    "marker_template_stride": 2,
    "marker_search_radius": 40,
    "location_min_score": 2,
    # State detection and per-state extraction
    "state_confirm_ticks": 1,
    "extraction_confirm_repeats": 2,
    "extraction_min_confidence": 0.8,
}

# Per-extraction cooldowns in seconds
DEFAULT_EXTRACTION_COOLDOWNS = {
    "quests": 5.0,
    "workshop": 3.0,
    "blueprints": 5.0,
    "tracked_resources": 5.0,
    "skill_tree": 3.0,
    "matchmaking": 3.0,
    "in_raid_hud": 1.0,
    "map": 2.0,
}

# Default scan behaviour
DEFAULT_SCAN_SETTINGS = {
    "tick_interval": 2.0,
    "result_duration_ms": 1500,
    "tooltip_settle_delay": 0.1,
    "scan_rotated_icons": True,
    "max_queued_results": 32,
    "worker_threads": 2,
}


def resolution_scale(width, height):
    """Scale factor of a screen relative to the 1920x1080 reference.

    The game UI is letterboxed to 16:9, so the tighter axis wins and
    ultrawide screens keep the factor of their 16:9 counterparts.
    """
    if not width or not height:
        return 1.0
    return min(width / REF_WIDTH, height / REF_HEIGHT)


def get_scan_geometry(width=REF_WIDTH, height=REF_HEIGHT):
    """Get capture sizes scaled to the given resolution"""
    scale = resolution_scale(width, height)
    return {key: max(1, int(value * scale)) for key, value in SCAN_GEOMETRY_1920x1080.items()}
