# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Timing and sleep utilities

import time


def monotonic_now():
    """Seconds from a monotonic clock, used for cooldowns and result expiry"""
    return time.monotonic()


def interruptible_sleep(duration, running_flag_fn, poll_interval=0.1):
    """Sleep that can be interrupted by checking a running flag

    Args:
        duration: Sleep duration in seconds
        running_flag_fn: Callable that returns True if should continue, False to interrupt
        poll_interval: How often the flag is checked, in seconds

    Returns:
        True if completed full duration, False if interrupted
    """
    start = time.monotonic()
    while True:
        if not running_flag_fn():
            return False
        remaining = duration - (time.monotonic() - start)
        if remaining <= 0:
            return True
        time.sleep(min(poll_interval, remaining))
