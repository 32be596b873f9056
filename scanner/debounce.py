"""
Debounce - Raid Scanner
=======================
Commit-on-repeat helpers for the detection tick.

- StateDebouncer: a raw UI state is committed only once it has been
  classified on N consecutive ticks (default 1, i.e. on first sight);
  Unknown is never committed.
- SignatureDebouncer: a structured extraction (workbench levels, learned
  blueprints, ...) is committed only when its signature repeats on
  consecutive extraction attempts and differs from what was last committed.
  One-off OCR misreads never reach the sink.
- CooldownGate: per-extraction minimum interval between runs.
"""

import logging
import threading

from core.state import UiState
from utils.timing import monotonic_now
from .results import StateTransition

logger = logging.getLogger("RaidScanner")


def extraction_signature(values):
    """
    Order-independent signature of an extraction.

    Args:
        values: Mapping (-> "key:value" parts) or iterable (-> its items)

    Returns:
        str: Sorted parts joined with "|", e.g. "a:2|b:3"
    """
    if hasattr(values, "items"):
        parts = [f"{key}:{value}" for key, value in values.items()]
    else:
        parts = [str(value) for value in values]
    return "|".join(sorted(parts))


class SignatureDebouncer:
    """Commits a structured value after it repeats on consecutive attempts"""

    def __init__(self, name, required_repeats=2):
        """
        Args:
            name (str): Extraction name, for logging
            required_repeats (int): Consecutive identical attempts needed
        """
        self.name = name
        self.required_repeats = max(1, int(required_repeats))
        self._pending = None
        self._streak = 0
        self._committed = None

    @property
    def committed_signature(self):
        return self._committed

    def observe(self, values):
        """
        Feed one extraction attempt.

        Empty extractions never commit and break the streak.

        Returns:
            bool: True exactly when `values` should be committed now
        """
        if not values:
            self._pending = None
            self._streak = 0
            return False

        signature = extraction_signature(values)
        if signature == self._pending:
            self._streak += 1
        else:
            self._pending = signature
            self._streak = 1

        if self._streak < self.required_repeats or signature == self._committed:
            return False
        self._committed = signature
        logger.debug(f"[Debounce] {self.name} committed '{signature}'")
        return True

    def reset(self):
        self._pending = None
        self._streak = 0
        self._committed = None


class StateDebouncer:
    """
    Commits raw UI state classifications.

    A new (non-Unknown) state commits as soon as it has been seen
    confirm_ticks times in a row; the default of 1 commits on first sight.
    """

    def __init__(self, confirm_ticks=1, clock=None):
        self.confirm_ticks = max(1, int(confirm_ticks))
        self._clock = clock or monotonic_now
        self._previous_raw = None
        self._streak = 0
        self._committed = UiState.UNKNOWN

    @property
    def committed(self):
        return self._committed

    def observe(self, raw_state):
        """
        Feed one raw classification.

        Returns:
            StateTransition: When raw_state gets committed, else None
        """
        if raw_state == self._previous_raw:
            self._streak += 1
        else:
            self._previous_raw = raw_state
            self._streak = 1

        if raw_state is UiState.UNKNOWN or raw_state == self._committed:
            return None
        if self._streak < self.confirm_ticks:
            return None

        transition = StateTransition(self._committed, raw_state, self._clock())
        self._committed = raw_state
        return transition

    def reset(self):
        self._previous_raw = None
        self._streak = 0
        self._committed = UiState.UNKNOWN


class CooldownGate:
    """
    Per-key minimum interval between runs.

    Thread-safe; try_acquire() both checks and starts the cooldown.
    """

    def __init__(self, cooldowns, clock=None):
        """
        Args:
            cooldowns (dict): key -> seconds
            clock (callable): Monotonic time source
        """
        self._cooldowns = dict(cooldowns)
        self._clock = clock or monotonic_now
        self._last_run = {}
        self._lock = threading.Lock()

    def ready(self, key):
        with self._lock:
            return self._is_ready(key, self._clock())

    def _is_ready(self, key, now):
        last = self._last_run.get(key)
        return last is None or now - last >= self._cooldowns.get(key, 0.0)

    def try_acquire(self, key):
        """
        Returns:
            bool: True (and restarts the cooldown) if `key` may run now
        """
        with self._lock:
            now = self._clock()
            if not self._is_ready(key, now):
                return False
            self._last_run[key] = now
            return True

    def reset(self, key=None):
        with self._lock:
            if key is None:
                self._last_run.clear()
            else:
                self._last_run.pop(key, None)
