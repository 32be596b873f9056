"""
Shared fixtures
===============
Synthetic screens, a scripted OCR engine and a small catalog, so scanner
tests run without a display or a Tesseract install.
"""

import threading

import numpy as np
import pytest

from services.catalog import Catalog
from vision.frame import FrameBuffer, Rect

DARK = (20, 22, 30)
TOOLTIP_CREAM = (215, 210, 195)


def make_screen(width, height, color=DARK):
    """HxWx3 uint8 array filled with one RGB color"""
    return np.full((height, width, 3), color, dtype=np.uint8)


class FakeCapture:
    """
    Capture source backed by one numpy "screen".

    Records every requested rectangle. capture_gate, when set, blocks
    capture_full_screen() until the event is set (used to hold a tick open).
    """

    def __init__(self, screen, origin=(0, 0)):
        self.screen = screen
        self.origin = origin
        self.requests = []
        self.full_screen_calls = 0
        self.fail = False
        self.capture_entered = threading.Event()
        self.capture_gate = None
        self._lock = threading.Lock()

    def _rect(self):
        height, width = self.screen.shape[:2]
        return Rect(self.origin[0], self.origin[1], width, height)

    def virtual_screen(self):
        return self._rect()

    def primary_screen(self):
        return self._rect()

    def capture(self, rect, use_cache=True):
        with self._lock:
            self.requests.append(rect)
        if self.fail:
            return None
        local = rect.offset(-self.origin[0], -self.origin[1]).intersect(
            Rect(0, 0, self.screen.shape[1], self.screen.shape[0])
        )
        if local.is_empty:
            return None
        pixels = self.screen[local.top:local.bottom, local.left:local.right]
        return FrameBuffer(pixels, (local.x + self.origin[0], local.y + self.origin[1]))

    def capture_full_screen(self):
        with self._lock:
            self.full_screen_calls += 1
        self.capture_entered.set()
        if self.capture_gate is not None:
            self.capture_gate.wait(timeout=10)
        if self.fail:
            return None
        return FrameBuffer(self.screen, self.origin)


class FakeOCR:
    """
    Scripted OCR engine.

    Text is looked up by (psm, whitelist), then by whitelist alone, then
    `default`. Every call is recorded as (shape, psm, whitelist).
    """

    def __init__(self, responses=None, default=""):
        self.responses = dict(responses or {})
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def read_text(self, image, psm=3, whitelist=None, timeout_ms=None):
        with self._lock:
            self.calls.append((np.asarray(image).shape, psm, whitelist))
        if (psm, whitelist) in self.responses:
            return self.responses[(psm, whitelist)]
        if whitelist in self.responses:
            return self.responses[whitelist]
        return self.default


class FakeReader:
    """Stands in for RegionTextReader: fixed text (and frames) per region name"""

    def __init__(self, texts=None, regions=None):
        self.texts = dict(texts or {})
        self.regions = dict(regions or {})
        self.calls = []

    def region(self, name):
        return self.regions.get(name)

    def text(self, name, psm=6, whitelist=None, scale=2):
        self.calls.append((name, psm, whitelist))
        return self.texts.get(name, "")

    def normalized(self, name, psm=6, whitelist=None):
        return " ".join(self.text(name, psm, whitelist).lower().split())


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


CATALOG_DATA = {
    "items": [
        {"id": "rusted_component", "name": "Rusted Component", "category": "Material"},
        {"id": "weapon_i", "name": "Weapon I", "category": "Weapon"},
        {"id": "weapon_iii", "name": "Weapon III", "category": "Weapon"},
        {"id": "battery_cell", "name": "Battery Cell", "category": "Material"},
        {"id": "metal_parts", "name": "Metal Parts", "category": "Material"},
    ],
    "maps": [
        {
            "id": "dam",
            "name": "Dam Battlegrounds",
            "locations": [
                {"name": "Water Treatment", "x_pct": 30.0, "y_pct": 40.0},
                {"name": "Control Tower", "x_pct": 70.0, "y_pct": 20.0},
            ],
        },
        {"id": "spaceport", "name": "Spaceport", "locations": []},
    ],
    "quests": [
        {"id": "q_first_steps", "name": "First Steps"},
        {"id": "q_power_outage", "name": "Power Outage"},
        {"id": "q_clean_water", "name": "Clean Water"},
    ],
    "workstations": [
        {"id": "gunsmith", "name": "Gunsmith", "max_level": 3},
        {"id": "medical_lab", "name": "Medical Lab", "max_level": 3},
    ],
    "blueprints": [
        {"id": "bp_heavy_rifle", "name": "Heavy Rifle"},
        {"id": "bp_shield_booster", "name": "Shield Booster"},
    ],
    "skill_branches": ["Conditioning", "Mobility", "Survival"],
}


@pytest.fixture
def catalog():
    return Catalog.from_dict(CATALOG_DATA)


@pytest.fixture
def capture_factory():
    return FakeCapture


@pytest.fixture
def ocr_factory():
    return FakeOCR


@pytest.fixture
def reader_factory():
    return FakeReader


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def screen_factory():
    return make_screen
