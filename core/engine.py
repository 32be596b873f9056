"""
DetectionEngine - Core Lifecycle Orchestrator

The DetectionEngine is the "ignition key" of the scanner.
It owns the fixed-interval timer thread that drives the detection tick.

Responsibilities:
    - Control scanner lifecycle (start/stop)
    - Own the running flag
    - Manage the timer thread safely
    - Hand each tick to the orchestrator's worker pool
    - Ensure clean shutdown

What it does NOT do:
    - Vision/detection (delegates to ScanOrchestrator)
    - Pixel or OCR work on the timer thread
    - Settings I/O (receives the interval via DI)

Design:
    - Pure dependency injection
    - Thread-safe state management
    - No zombie threads guaranteed
    - A tick still running when the timer fires again is skipped by the
      orchestrator, never queued

Usage:
    engine = DetectionEngine(orchestrator, tick_interval=2.0)
    engine.start()  # Starts the timer thread
    # ... ticks run ...
    engine.stop()   # Clean shutdown, waits for thread
"""

import logging
import threading
import time
from typing import Optional

from core.state import EngineState
from core.exceptions import EngineStateError
from utils.timing import interruptible_sleep


class DetectionEngine:
    """
    Core scanner lifecycle orchestrator.

    The engine owns:
        - Engine state (STOPPED/RUNNING/etc)
        - Running flag (thread-safe)
        - Timer thread
        - Lifecycle callbacks

    The engine delegates all detection work to the orchestrator.
    """

    def __init__(
        self,
        orchestrator,
        tick_interval: float = 2.0,
        logger: Optional[logging.Logger] = None,
        callbacks: Optional[dict] = None,
    ):
        """
        Initialize DetectionEngine with dependencies.

        Args:
            orchestrator: ScanOrchestrator (anything with request_tick())
            tick_interval: Seconds between ticks
            logger: Optional logger for engine events
            callbacks: Optional dict of callbacks:
                - on_state_change: (old_state, new_state) -> None
                - on_start: () -> None
                - on_stop: () -> None
                - on_error: (exception) -> None

        Raises:
            EngineStateError: If tick_interval is not positive
        """
        if tick_interval is None or tick_interval <= 0:
            raise EngineStateError(f"tick_interval must be positive, got {tick_interval}")

        # Dependencies (injected, not created)
        self._orchestrator = orchestrator
        self._tick_interval = float(tick_interval)
        self._logger = logger or logging.getLogger("RaidScanner")

        # Callbacks
        self._callbacks = callbacks or {}

        # State management (thread-safe)
        self._state = EngineState.STOPPED
        self._state_lock = threading.Lock()

        # Thread control
        self._worker_thread: Optional[threading.Thread] = None
        self._running = False
        self._running_lock = threading.Lock()

        # Lifecycle tracking
        self._start_time: Optional[float] = None
        self._ticks_requested = 0
        self._ticks_skipped = 0

        self._logger.info("DetectionEngine initialized")

    # ========== PUBLIC API ==========

    def start(self) -> bool:
        """
        Start the detection timer.

        Non-blocking - returns immediately after the thread is started.

        Returns:
            True if started successfully, False if already running or error
        """
        with self._state_lock:
            if not self._state.can_start:
                self._logger.warning(f"Cannot start: engine is {self._state}")
                return False

            # Transition to STARTING
            self._set_state(EngineState.STARTING)

        try:
            with self._running_lock:
                self._running = True

            self._worker_thread = threading.Thread(
                target=self._worker_loop,
                name="DetectionEngine-Timer",
                daemon=True,  # Daemon to prevent hanging on exit
            )

            self._start_time = time.time()
            self._worker_thread.start()

            with self._state_lock:
                self._set_state(EngineState.RUNNING)

            if "on_start" in self._callbacks:
                self._callbacks["on_start"]()

            self._logger.info(f"DetectionEngine started (tick every {self._tick_interval:.1f}s)")
            return True

        except Exception as e:
            self._logger.error(f"Failed to start engine: {e}", exc_info=True)

            with self._running_lock:
                self._running = False

            with self._state_lock:
                self._set_state(EngineState.ERROR)

            if "on_error" in self._callbacks:
                self._callbacks["on_error"](e)

            return False

    def stop(self, timeout: float = 5.0) -> bool:
        """
        Stop the detection timer.

        Signals the timer thread to stop and waits for clean shutdown.
        A tick already running on the worker pool completes on its own.

        Args:
            timeout: Maximum seconds to wait for thread shutdown (default 5.0)

        Returns:
            True if stopped cleanly, False if timeout or error
        """
        with self._state_lock:
            if not self._state.can_stop:
                self._logger.warning(f"Cannot stop: engine is {self._state}")
                return True  # Already stopped

            self._set_state(EngineState.STOPPING)

        try:
            with self._running_lock:
                self._running = False

            self._logger.info("Stop signal sent, waiting for timer thread...")

            timed_out = False
            if self._worker_thread and self._worker_thread.is_alive():
                self._worker_thread.join(timeout=timeout)

                if self._worker_thread.is_alive():
                    self._logger.warning(
                        f"Timer thread did not stop within {timeout}s (daemon, will die on exit)"
                    )
                    timed_out = True

            # Always end in STOPPED so the engine can start again
            self._worker_thread = None
            self._start_time = None

            with self._state_lock:
                self._set_state(EngineState.STOPPED)

            if "on_stop" in self._callbacks:
                self._callbacks["on_stop"]()

            if timed_out:
                self._logger.warning("DetectionEngine force-stopped (thread may still be running)")
            else:
                self._logger.info(
                    f"DetectionEngine stopped cleanly ({self._ticks_requested} ticks, "
                    f"{self._ticks_skipped} skipped)"
                )
            return not timed_out

        except Exception as e:
            self._logger.error(f"Error during stop: {e}", exc_info=True)

            with self._state_lock:
                self._set_state(EngineState.ERROR)

            if "on_error" in self._callbacks:
                self._callbacks["on_error"](e)

            return False

    def is_running(self) -> bool:
        """
        Check if the engine is currently running.

        Thread-safe, fast check suitable for tight loops.
        """
        with self._running_lock:
            return self._running

    def get_state(self) -> EngineState:
        with self._state_lock:
            return self._state

    def get_uptime(self) -> Optional[float]:
        """
        Get engine uptime in seconds.

        Returns:
            Uptime in seconds if running, None if stopped
        """
        if self._start_time and self.is_running():
            return time.time() - self._start_time
        return None

    def get_tick_counts(self):
        """(ticks requested, ticks skipped because one was in progress)"""
        return self._ticks_requested, self._ticks_skipped

    # ========== INTERNAL ==========

    def _worker_loop(self):
        """
        Timer thread main loop.

        Only schedules ticks; the pixel and OCR work runs on the
        orchestrator's worker pool.
        """
        self._logger.info("Timer thread started")

        try:
            while self.is_running():
                future = self._orchestrator.request_tick()
                self._ticks_requested += 1
                if future is None:
                    self._ticks_skipped += 1
                if not interruptible_sleep(self._tick_interval, self.is_running):
                    break

        except Exception as e:
            self._logger.error(f"Timer thread exception: {e}", exc_info=True)

            with self._state_lock:
                self._set_state(EngineState.ERROR)

            if "on_error" in self._callbacks:
                self._callbacks["on_error"](e)

        finally:
            with self._running_lock:
                self._running = False

            self._logger.info("Timer thread exited")

    def _set_state(self, new_state: EngineState):
        """
        Internal state transition with callback.

        Must be called while holding _state_lock.
        """
        old_state = self._state
        self._state = new_state

        self._logger.debug(f"Engine state: {old_state} -> {new_state}")

        if "on_state_change" in self._callbacks:
            try:
                self._callbacks["on_state_change"](old_state, new_state)
            except Exception as e:
                self._logger.error(f"State change callback error: {e}")
