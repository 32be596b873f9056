"""
Frame Types
===========

Value types shared by every vision component:

- FrameBuffer: an immutable captured RGB region with its screen origin
- Rect: a rectangle in frame-local (or screen) coordinates
- Segment: result of a connected-component pass over a color predicate
"""

import time
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle, half-open on the right and bottom edges"""

    x: int
    y: int
    w: int
    h: int

    @classmethod
    def from_ltrb(cls, left, top, right, bottom):
        return cls(int(left), int(top), int(right - left), int(bottom - top))

    @property
    def left(self):
        return self.x

    @property
    def top(self):
        return self.y

    @property
    def right(self):
        return self.x + self.w

    @property
    def bottom(self):
        return self.y + self.h

    @property
    def area(self):
        return max(0, self.w) * max(0, self.h)

    @property
    def is_empty(self):
        return self.w <= 0 or self.h <= 0

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.w / 2.0, self.y + self.h / 2.0)

    def inflate(self, dx, dy):
        """Grow by dx on the left and right and by dy on the top and bottom"""
        return Rect(self.x - dx, self.y - dy, self.w + 2 * dx, self.h + 2 * dy)

    def deflate(self, dx, dy):
        return self.inflate(-dx, -dy)

    def intersect(self, other):
        """Intersection with another Rect (empty Rect when disjoint)"""
        left = max(self.left, other.left)
        top = max(self.top, other.top)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            return Rect(left, top, 0, 0)
        return Rect.from_ltrb(left, top, right, bottom)

    def contains(self, other):
        return (
            other.left >= self.left
            and other.top >= self.top
            and other.right <= self.right
            and other.bottom <= self.bottom
        )

    def offset(self, dx, dy):
        return Rect(self.x + dx, self.y + dy, self.w, self.h)


@dataclass(frozen=True)
class Segment:
    """Connected region matched by a color predicate

    bounds is the tight bounding box of every matched pixel of the component.
    """

    bounds: Rect
    pixel_count: int
    centroid: Tuple[float, float]


@dataclass(frozen=True)
class FrameBuffer:
    """Immutable RGB capture of a screen region

    Attributes:
        pixels: HxWx3 uint8 array in RGB order (read-only view)
        origin: Screen coordinates of the top-left pixel
        captured_at: time.time() at capture
    """

    pixels: np.ndarray
    origin: Tuple[int, int] = (0, 0)
    captured_at: float = field(default_factory=time.time)

    def __post_init__(self):
        pixels = np.asarray(self.pixels)
        if pixels.ndim != 3 or pixels.shape[2] < 3:
            raise ValueError(f"FrameBuffer expects HxWx3 pixels, got shape {pixels.shape}")
        # Own a private copy so the caller cannot mutate the frame afterwards
        pixels = np.array(pixels[:, :, :3], dtype=np.uint8, copy=True)
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @property
    def width(self):
        return int(self.pixels.shape[1])

    @property
    def height(self):
        return int(self.pixels.shape[0])

    @property
    def stride(self):
        """Bytes per row of the underlying buffer"""
        return int(self.pixels.strides[0])

    @property
    def rect(self):
        return Rect(0, 0, self.width, self.height)

    def crop(self, rect):
        """Copy a frame-local rectangle into a new FrameBuffer

        The rectangle is clipped to the frame. Returns None if nothing is left.
        """
        clipped = rect.intersect(self.rect)
        if clipped.is_empty:
            return None
        sub = self.pixels[clipped.top:clipped.bottom, clipped.left:clipped.right]
        return FrameBuffer(
            sub,
            (self.origin[0] + clipped.x, self.origin[1] + clipped.y),
            self.captured_at,
        )

    def crop_fraction(self, region):
        """Crop an (x, y, w, h) region given as fractions of the frame size"""
        fx, fy, fw, fh = region
        rect = Rect(
            int(fx * self.width),
            int(fy * self.height),
            max(1, int(fw * self.width)),
            max(1, int(fh * self.height)),
        )
        return self.crop(rect)
