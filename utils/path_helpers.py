# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Path and resource utilities for PyInstaller/Nuitka compatibility

import os
import sys


def get_app_dir():
    """Get the directory where the executable/script is located (for settings/logs)

    For non-frozen runs this is the project root (parent of utils/).
    """
    if getattr(sys, 'frozen', False):
        # Running as compiled executable
        return os.path.dirname(sys.executable)
    return os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))


def get_resource_path(relative_path):
    """Get absolute path to resource, works for dev and for PyInstaller/Nuitka/Onefile"""
    try:
        # PyInstaller creates a temp folder and stores path in _MEIPASS
        base_path = sys._MEIPASS
    except AttributeError:
        base_path = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))

    return os.path.join(base_path, relative_path)


def resolve_data_path(path, base_dir=None):
    """Resolve a configured data path (catalog, icon folder, template)

    Empty paths stay empty so callers can tell "not configured" apart from
    "configured but missing". Relative paths are taken from base_dir, or the
    app directory when none is given.

    Args:
        path: Path string from settings
        base_dir: Directory relative paths are resolved against

    Returns:
        Absolute path, or "" if path is empty
    """
    if not path:
        return ""
    path = os.path.expanduser(path)
    if os.path.isabs(path):
        return path
    return os.path.abspath(os.path.join(base_dir or get_app_dir(), path))
