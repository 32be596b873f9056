"""
Screen Capture - Raid Scanner
=============================
Capture source for the recognition pipeline, built on mss.

This module handles all screenshot operations:
- One mss instance per capturing thread (mss handles are not thread-safe)
- Short per-rectangle cache so back-to-back scans share one grab
- Virtual-screen clamping for multi-monitor setups
- Frames are returned as immutable RGB FrameBuffers
"""

import time
import threading
import logging
import mss
import numpy as np

from .frame import FrameBuffer, Rect

logger = logging.getLogger("RaidScanner")


class ScreenCapture:
    """
    Centralized screen capture.

    All coordinates are absolute screen coordinates. Failures are logged and
    returned as None so callers treat them like "nothing found". Scan workers
    and the detection timer capture concurrently, so every thread grabs with
    its own mss instance.
    """

    def __init__(self, cache_duration=0.016):
        """
        Initialize screen capture.

        Args:
            cache_duration (float): Seconds a grab of the same rectangle is reused
        """
        # Per-thread mss instances, tracked so cleanup() can close them all
        self._local = threading.local()
        self._mss_lock = threading.Lock()
        self._mss_instances = {}
        self._generation = 0

        # Screenshot caching (16ms = ~60 FPS max), keyed by rectangle
        self._cache_lock = threading.Lock()
        self._screenshot_cache = None
        self._screenshot_cache_rect = None
        self._screenshot_cache_time = 0
        self._screenshot_cache_duration = cache_duration

    def _get_mss_instance(self):
        """Get or create the calling thread's mss instance."""
        instance = getattr(self._local, "mss", None)
        if instance is not None and self._local.generation == self._generation:
            return instance
        instance = mss.mss()
        with self._mss_lock:
            self._local.mss = instance
            self._local.generation = self._generation
            # A finished thread's ident can be reused by a new thread
            stale = self._mss_instances.get(threading.get_ident())
            self._mss_instances[threading.get_ident()] = instance
        if stale is not None:
            self._close(stale)
        return instance

    def _reset_mss_instance(self):
        """Close and forget the calling thread's mss instance."""
        instance = getattr(self._local, "mss", None)
        self._local.mss = None
        if instance is None:
            return
        with self._mss_lock:
            if self._mss_instances.get(threading.get_ident()) is instance:
                del self._mss_instances[threading.get_ident()]
        self._close(instance)

    @staticmethod
    def _close(instance):
        try:
            instance.close()
        except Exception as e:
            logger.debug(f"[ScreenCapture] mss close failed: {e}")

    def virtual_screen(self):
        """
        Bounding rectangle of all monitors.

        Returns:
            Rect: Virtual screen in absolute coordinates (1920x1080 if unknown)
        """
        try:
            monitor = self._get_mss_instance().monitors[0]
            return Rect(monitor["left"], monitor["top"], monitor["width"], monitor["height"])
        except Exception as e:
            logger.warning(f"[ScreenCapture] Could not read monitor layout: {e}")
            self._reset_mss_instance()
            return Rect(0, 0, 1920, 1080)

    def primary_screen(self):
        """Rectangle of the primary monitor"""
        try:
            monitors = self._get_mss_instance().monitors
            monitor = monitors[1] if len(monitors) > 1 else monitors[0]
            return Rect(monitor["left"], monitor["top"], monitor["width"], monitor["height"])
        except Exception as e:
            logger.warning(f"[ScreenCapture] Could not read monitor layout: {e}")
            self._reset_mss_instance()
            return Rect(0, 0, 1920, 1080)

    def capture(self, rect, use_cache=True):
        """
        Capture a screen rectangle.

        Args:
            rect (Rect): Absolute screen rectangle
            use_cache (bool): Reuse a grab of the same rectangle if recent enough

        Returns:
            FrameBuffer: RGB frame whose origin is rect's top-left, or None on failure
        """
        if rect is None or rect.is_empty:
            return None

        if use_cache:
            with self._cache_lock:
                if (
                    self._screenshot_cache is not None
                    and self._screenshot_cache_rect == rect
                    and time.time() - self._screenshot_cache_time
                    < self._screenshot_cache_duration
                ):
                    return self._screenshot_cache

        # Retry logic for thread-local DC errors
        max_retries = 2
        for attempt in range(max_retries):
            try:
                mss_instance = self._get_mss_instance()
                monitor = {"left": rect.x, "top": rect.y, "width": rect.w, "height": rect.h}
                screenshot = mss_instance.grab(monitor)
                # mss returns BGRA
                bgra = np.array(screenshot, dtype=np.uint8)
                frame = FrameBuffer(bgra[:, :, 2::-1], (rect.x, rect.y), time.time())

                if use_cache:
                    with self._cache_lock:
                        self._screenshot_cache = frame
                        self._screenshot_cache_rect = rect
                        self._screenshot_cache_time = frame.captured_at

                return frame
            except AttributeError as e:
                # '_thread._local' object has no attribute 'srcdc' - reset and retry
                if "srcdc" in str(e) or "_local" in str(e):
                    logger.debug(
                        f"[ScreenCapture] Thread-local DC error (attempt {attempt+1}/{max_retries}), resetting mss..."
                    )
                    self._reset_mss_instance()
                    if attempt == max_retries - 1:
                        logger.warning(f"[ScreenCapture] capture failed at {rect}: {e}")
                        return None
                    continue
                raise
            except Exception as e:
                logger.warning(f"[ScreenCapture] capture failed at {rect}: {e}")
                self._reset_mss_instance()
                return None

        return None

    def capture_full_screen(self):
        """Capture the primary monitor"""
        return self.capture(self.primary_screen(), use_cache=False)

    def cleanup(self):
        """Close every thread's mss instance."""
        with self._mss_lock:
            instances = list(self._mss_instances.values())
            self._mss_instances.clear()
            # Threads holding an older instance create a fresh one next time
            self._generation += 1
        self._local.mss = None
        for instance in instances:
            self._close(instance)
