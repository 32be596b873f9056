"""
State Definitions

Defines the detection engine lifecycle states and the game UI states the
classifier can recognize.
"""

from enum import Enum, auto


class EngineState(Enum):
    """Detection engine lifecycle states"""

    STOPPED = auto()    # Engine is stopped, no timer thread running
    STARTING = auto()   # Engine is initializing (transitional)
    RUNNING = auto()    # Timer thread is driving ticks
    STOPPING = auto()   # Engine is shutting down (transitional)
    ERROR = auto()      # Engine encountered fatal error

    def __str__(self):
        return self.name.title()

    @property
    def can_start(self):
        """Returns True if engine can be started from this state"""
        return self in (EngineState.STOPPED, EngineState.ERROR)

    @property
    def can_stop(self):
        """Returns True if engine can be stopped from this state"""
        return self in (EngineState.STARTING, EngineState.RUNNING)


class UiState(Enum):
    """Game screens the state classifier can tell apart"""

    MAIN_MENU = auto()
    WORKSHOP_MENU = auto()
    SKILL_TREE_MENU = auto()
    MATCHMAKING_QUEUE = auto()
    MAP_VIEW = auto()
    IN_RAID = auto()
    BLUEPRINT_MENU = auto()
    TRACKED_RESOURCES_MENU = auto()
    QUEST_MENU = auto()
    UNKNOWN = auto()

    def __str__(self):
        return self.name.replace("_", " ").title()

    @property
    def is_raid_scoped(self):
        """Returns True for states that count as being in a raid or on its map"""
        return self in (UiState.IN_RAID, UiState.MAP_VIEW)

    @property
    def is_actionable(self):
        """Returns True if the state can be committed and extracted from"""
        return self is not UiState.UNKNOWN
