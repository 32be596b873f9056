# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Services Module - Scan Result Queue
# Bounded, thread-safe queue of recent scan results for the overlay

import threading
import time
from collections import deque


class ScanResultQueue:
    """
    Keeps the most recent scan results.

    Oldest results drop off when the queue is full; expired results are
    pruned on every read.
    """

    def __init__(self, max_results: int = 32):
        self._results = deque(maxlen=max(1, int(max_results)))
        self._lock = threading.Lock()

    def put(self, result):
        with self._lock:
            self._results.append(result)

    def _prune(self, now):
        while self._results and self._results[0].is_expired(now):
            self._results.popleft()

    def active(self, now=None):
        """Results that have not expired yet, oldest first"""
        now = time.time() if now is None else now
        with self._lock:
            self._prune(now)
            return [r for r in self._results if not r.is_expired(now)]

    def latest(self, now=None):
        """Newest unexpired result, or None"""
        results = self.active(now)
        return results[-1] if results else None

    def clear(self):
        with self._lock:
            self._results.clear()

    def __len__(self):
        with self._lock:
            return len(self._results)
