"""
Scan Locks - Raid Scanner
=========================
One lock per scan kind, with the global acquisition order enforced at
runtime.

Order: name (0) < icon (1) < tooltip (2). A thread may only acquire a lock
whose rank is higher than every lock it already holds, or re-enter a lock
it already holds. Anything else raises LockOrderError instead of risking a
deadlock.

Fall-through between scan kinds (tooltip scan giving up and running the icon
scan) is a direct call on the same thread. The tooltip scan takes the icon
lock before its own, so the nested icon scan only re-enters a lock the
thread already owns. Moving that call to another thread would need the order
re-derived.
"""

import logging
import threading

from core.exceptions import LockOrderError

logger = logging.getLogger("RaidScanner")

_held = threading.local()


def _held_stack():
    stack = getattr(_held, "stack", None)
    if stack is None:
        stack = []
        _held.stack = stack
    return stack


def held_lock_names():
    """Names of the ordered locks the current thread holds, in acquisition order"""
    return [lock.name for lock in _held_stack()]


class OrderedLock:
    """
    Re-entrant lock with a rank in the global scan-lock order.

    Usable as a context manager.
    """

    def __init__(self, name, rank):
        self.name = name
        self.rank = rank
        self._lock = threading.RLock()

    def __repr__(self):
        return f"OrderedLock({self.name!r}, rank={self.rank})"

    def held_by_current_thread(self):
        return self in _held_stack()

    def acquire(self, blocking=True, timeout=-1):
        """
        Acquire the lock, checking the order first.

        Raises:
            LockOrderError: A lock of equal or higher rank is already held
                by this thread (and this lock is not one of them)
        """
        stack = _held_stack()
        if self not in stack:
            higher = [lock for lock in stack if lock.rank >= self.rank]
            if higher:
                raise LockOrderError(
                    f"Acquiring '{self.name}' while holding "
                    f"{', '.join(repr(lock.name) for lock in higher)}"
                )
        acquired = self._lock.acquire(blocking, timeout)
        if acquired:
            stack.append(self)
        return acquired

    def release(self):
        stack = _held_stack()
        # Remove the most recent entry for this lock
        for i in range(len(stack) - 1, -1, -1):
            if stack[i] is self:
                del stack[i]
                break
        self._lock.release()

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


class ScanLocks:
    """The three scan-kind locks in their global order"""

    def __init__(self):
        self.name = OrderedLock("name_scan", 0)
        self.icon = OrderedLock("icon_scan", 1)
        self.tooltip = OrderedLock("tooltip_scan", 2)

    def ordered(self):
        return (self.name, self.icon, self.tooltip)
