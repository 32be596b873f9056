# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Services Module - Public Interface

from .logging_service import LoggingService
from .catalog import Catalog, CatalogItem, MapInfo, MapLocation, NamedEntry
from .player_state import PlayerState, PlayerStateStore
from .scan_queue import ScanResultQueue

__all__ = [
    "LoggingService",
    "Catalog",
    "CatalogItem",
    "MapInfo",
    "MapLocation",
    "NamedEntry",
    "PlayerState",
    "PlayerStateStore",
    "ScanResultQueue",
]
