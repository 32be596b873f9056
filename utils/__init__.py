# Utils module for Raid Scanner
# Paths, timing, validation and debug image helpers

from .path_helpers import get_app_dir, get_resource_path, resolve_data_path
from .timing import interruptible_sleep, monotonic_now
from .validators import (
    validate_area_coords,
    validate_region_fraction,
    validate_threshold_value,
)
from .debug_images import DebugImageWriter

__all__ = [
    'get_app_dir',
    'get_resource_path',
    'resolve_data_path',
    'interruptible_sleep',
    'monotonic_now',
    'validate_area_coords',
    'validate_region_fraction',
    'validate_threshold_value',
    'DebugImageWriter',
]
