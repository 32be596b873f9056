"""
Test suite for vision/screen_capture.py
========================================
Tests for capture, caching and per-thread mss handles against a stubbed
mss factory. No display is needed.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
import vision.screen_capture as screen_capture
from vision.frame import Rect
from vision.screen_capture import ScreenCapture


class FakeMss:
    """Stand-in for an mss handle that must stay on the thread that made it"""

    def __init__(self, registry, fail_grabs=False):
        self.owner = threading.get_ident()
        self.closed = False
        self.fail_grabs = fail_grabs
        self.foreign_grabs = 0
        self.grabs = 0
        self.monitors = [
            {"left": 0, "top": 0, "width": 3840, "height": 1080},
            {"left": 0, "top": 0, "width": 1920, "height": 1080},
        ]
        registry.append(self)

    def grab(self, monitor):
        if self.closed:
            raise RuntimeError("grab on closed handle")
        if threading.get_ident() != self.owner:
            self.foreign_grabs += 1
        if self.fail_grabs:
            raise RuntimeError("display lost")
        self.grabs += 1
        bgra = np.zeros((monitor["height"], monitor["width"], 4), dtype=np.uint8)
        bgra[:, :, 0] = 10  # blue
        bgra[:, :, 2] = 200  # red
        return bgra

    def close(self):
        self.closed = True


@pytest.fixture
def handles(monkeypatch):
    created = []
    monkeypatch.setattr(screen_capture.mss, "mss", lambda: FakeMss(created))
    return created


class TestCapture:
    """Tests for single-thread capture behaviour"""

    def test_capture_returns_rgb_frame(self, handles):
        capture = ScreenCapture()

        frame = capture.capture(Rect(100, 50, 8, 4))

        assert frame.origin == (100, 50)
        assert (frame.width, frame.height) == (8, 4)
        assert tuple(frame.pixels[0, 0]) == (200, 0, 10)

    def test_empty_rect(self, handles):
        assert ScreenCapture().capture(Rect(0, 0, 0, 10)) is None
        assert handles == []

    def test_same_rect_served_from_cache(self, handles):
        capture = ScreenCapture(cache_duration=60)

        first = capture.capture(Rect(0, 0, 4, 4))
        second = capture.capture(Rect(0, 0, 4, 4))

        assert first is second
        assert handles[0].grabs == 1

    def test_monitor_layout(self, handles):
        capture = ScreenCapture()
        assert capture.virtual_screen() == Rect(0, 0, 3840, 1080)
        assert capture.primary_screen() == Rect(0, 0, 1920, 1080)

    def test_failed_grab_resets_handle(self, monkeypatch):
        created = []
        monkeypatch.setattr(screen_capture.mss, "mss", lambda: FakeMss(created, fail_grabs=not created))
        capture = ScreenCapture()

        assert capture.capture(Rect(0, 0, 4, 4), use_cache=False) is None
        assert created[0].closed
        assert capture.capture(Rect(0, 0, 4, 4), use_cache=False) is not None
        assert len(created) == 2


class TestConcurrentCapture:
    """Tests for captures running on several threads at once"""

    def test_each_thread_grabs_with_its_own_handle(self, handles):
        capture = ScreenCapture()
        barrier = threading.Barrier(4)

        def worker(index):
            barrier.wait()
            return [capture.capture(Rect(index, 0, 6, 6), use_cache=False) for _ in range(25)]

        with ThreadPoolExecutor(max_workers=4) as pool:
            frames = [frame for batch in pool.map(worker, range(4)) for frame in batch]

        assert all(frame is not None for frame in frames)
        assert len(handles) == 4
        assert len({handle.owner for handle in handles}) == 4
        assert all(handle.foreign_grabs == 0 for handle in handles)

    def test_failure_on_one_thread_leaves_others_open(self, monkeypatch):
        created = []
        failing_thread = {}

        def factory():
            return FakeMss(created, fail_grabs=threading.get_ident() == failing_thread.get("id"))

        monkeypatch.setattr(screen_capture.mss, "mss", factory)
        capture = ScreenCapture()
        assert capture.capture(Rect(0, 0, 4, 4), use_cache=False) is not None

        def failing():
            failing_thread["id"] = threading.get_ident()
            return capture.capture(Rect(0, 0, 4, 4), use_cache=False)

        thread_result = []
        thread = threading.Thread(target=lambda: thread_result.append(failing()))
        thread.start()
        thread.join()

        assert thread_result == [None]
        assert created[1].closed
        assert not created[0].closed
        assert capture.capture(Rect(0, 0, 4, 4), use_cache=False) is not None

    def test_cleanup_closes_every_handle(self, handles):
        capture = ScreenCapture()
        thread = threading.Thread(target=lambda: capture.capture(Rect(0, 0, 4, 4), use_cache=False))
        thread.start()
        thread.join()
        capture.capture(Rect(0, 0, 4, 4), use_cache=False)

        capture.cleanup()

        assert len(handles) == 2
        assert all(handle.closed for handle in handles)
        # The next capture opens a fresh handle
        assert capture.capture(Rect(0, 0, 4, 4), use_cache=False) is not None
        assert len(handles) == 3
