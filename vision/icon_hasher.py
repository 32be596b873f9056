"""
Icon Hasher - Raid Scanner
==========================
64-bit perceptual fingerprints for item icons.

Pipeline: normalize to 64x64 over a fixed background, Sobel-style gradient
magnitude on luminance, then a 9x8 difference hash of the edge map. Edges
make the hash insensitive to the slot's background tint and to uniform
brightness changes, which is what separates a tooltip icon from the same
icon in the inventory grid.

The icon index is an immutable snapshot. IconHashStore builds it lazily
under one lock and swaps in a whole new snapshot on rebuild, so readers
never see a half-built index.
"""

import glob
import logging
import os
import threading
from types import MappingProxyType

import cv2
import numpy as np
from PIL import Image as PILImage

from config.defaults import ICON_HASH_BACKGROUND
from .color_detector import luminance

logger = logging.getLogger("RaidScanner")

HASH_SIZE = 64
HASH_BITS = 64


def _to_array(image):
    """FrameBuffer, PIL image or numpy array -> HxWx3/4 uint8 array"""
    if hasattr(image, "pixels"):
        return image.pixels
    if isinstance(image, PILImage.Image):
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
        return np.asarray(image, dtype=np.uint8)
    array = np.asarray(image, dtype=np.uint8)
    if array.ndim == 2:
        array = np.repeat(array[:, :, None], 3, axis=2)
    return array


def normalize_icon(image, background=ICON_HASH_BACKGROUND):
    """
    Resize an icon crop to 64x64 RGB, flattening transparency onto background.

    Args:
        image: FrameBuffer, PIL image or HxWx3/HxWx4 uint8 array
        background (tuple): RGB fill behind transparent pixels

    Returns:
        numpy.ndarray: 64x64x3 uint8 array
    """
    array = _to_array(image)
    if array.shape[2] == 4:
        alpha = array[:, :, 3:4].astype(np.float32) / 255.0
        fill = np.array(background, dtype=np.float32).reshape(1, 1, 3)
        rgb = array[:, :, :3].astype(np.float32) * alpha + fill * (1.0 - alpha)
        array = np.clip(rgb + 0.5, 0, 255).astype(np.uint8)
    else:
        array = np.ascontiguousarray(array[:, :, :3])
    height, width = array.shape[:2]
    if (width, height) == (HASH_SIZE, HASH_SIZE):
        return array.copy()
    interpolation = cv2.INTER_AREA if width > HASH_SIZE or height > HASH_SIZE else cv2.INTER_LINEAR
    return cv2.resize(array, (HASH_SIZE, HASH_SIZE), interpolation=interpolation)


def edge_map(normalized):
    """
    Gradient magnitude of a 64x64 RGB icon.

    mag = min(255, (|gx| + |gy|) // 4) with 3x3 Sobel kernels on integer
    luminance. The one-pixel border stays 0.

    Returns:
        numpy.ndarray: 64x64 uint8 edge map
    """
    planes = normalized.astype(np.int32)
    lum = luminance(planes[:, :, 0], planes[:, :, 1], planes[:, :, 2]).astype(np.float32)

    gx = cv2.Sobel(lum, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(lum, cv2.CV_32F, 0, 1, ksize=3)
    # Integer-valued floats, so the magnitude below is exact
    magnitude = (np.abs(gx) + np.abs(gy)).astype(np.int32) // 4

    edges = np.zeros(lum.shape, dtype=np.uint8)
    edges[1:-1, 1:-1] = np.minimum(255, magnitude[1:-1, 1:-1])
    return edges


def difference_hash(gray):
    """
    Classic 9x8 dHash: bit (y * 8 + x) is set when pixel (x, y) < (x + 1, y).

    Args:
        gray: 2-D uint8 array

    Returns:
        int: 64-bit hash
    """
    small = cv2.resize(gray, (9, 8), interpolation=cv2.INTER_AREA).astype(np.int32)
    bits = (small[:, :-1] < small[:, 1:]).ravel()
    value = 0
    for index in np.flatnonzero(bits):
        value |= 1 << int(index)
    return value


def compute_icon_hash(image, background=ICON_HASH_BACKGROUND):
    """Perceptual hash of an icon crop of any size"""
    return difference_hash(edge_map(normalize_icon(image, background)))


def hamming_distance(a, b):
    """Number of differing bits between two 64-bit hashes (0-64)"""
    return bin((a ^ b) & 0xFFFFFFFFFFFFFFFF).count("1")


def hash_score(distance):
    """Similarity in [0, 1]: 1 - distance / 64"""
    return 1.0 - distance / float(HASH_BITS)


def rotation_hashes(image, background=ICON_HASH_BACKGROUND):
    """
    Hashes of a crop rotated clockwise by 0, 90, 180 and 270 degrees.

    Returns:
        list[tuple]: [(degrees, hash), ...] in that order
    """
    array = _to_array(image)
    return [
        (degrees, compute_icon_hash(np.rot90(array, k=-(degrees // 90)), background))
        for degrees in (0, 90, 180, 270)
    ]


def looks_like_icon_box(pixels, rect, min_contrast=20):
    """
    Cheap prefilter: is the window a lighter sprite on a darker slot?

    Samples five points along each edge and five interior points (centre and
    a quarter of the size out in each direction). Accepts when the interior
    average luminance beats the border average by more than min_contrast.

    Args:
        pixels: HxWx3 RGB array
        rect (Rect): Candidate window in array coordinates
        min_contrast (int): Required interior - border luminance gap

    Returns:
        bool: True if the window is worth hashing
    """
    height, width = pixels.shape[:2]
    left, top = rect.left, rect.top
    right, bottom = rect.right - 1, rect.bottom - 1
    if left < 0 or top < 0 or right >= width or bottom >= height or rect.is_empty:
        return False

    border = []
    for i in range(5):
        fx = left + (i * (rect.w - 1) // 4)
        fy = top + (i * (rect.h - 1) // 4)
        border.extend([(fx, top), (fx, bottom), (left, fy), (right, fy)])

    cx = left + rect.w // 2
    cy = top + rect.h // 2
    inner = [
        (cx, cy),
        (cx - rect.w // 4, cy),
        (cx + rect.w // 4, cy),
        (cx, cy - rect.h // 4),
        (cx, cy + rect.h // 4),
    ]

    def average(points):
        total = 0
        for x, y in points:
            r, g, b = (int(c) for c in pixels[y, x, :3])
            total += luminance(r, g, b)
        return total // len(points)

    return average(inner) - average(border) > min_contrast


class IconHashIndex:
    """
    Read-only snapshot of icon id -> hash.

    Hashes are also kept in a numpy array so one query is compared against
    the whole catalog in a single vectorized pass.
    """

    def __init__(self, hashes):
        """
        Args:
            hashes (dict): icon id -> 64-bit hash
        """
        self._hashes = MappingProxyType(dict(hashes))
        self._ids = tuple(self._hashes.keys())
        self._values = np.array([self._hashes[i] for i in self._ids], dtype=np.uint64)

    def __len__(self):
        return len(self._ids)

    def __contains__(self, icon_id):
        return icon_id in self._hashes

    @property
    def ids(self):
        """Icon ids in index order"""
        return self._ids

    @property
    def hashes(self):
        return self._hashes

    def get(self, icon_id):
        return self._hashes.get(icon_id)

    def distances(self, query_hash):
        """Hamming distance from query_hash to every indexed icon, in index order"""
        if not self._ids:
            return np.zeros(0, dtype=np.int32)
        xored = np.bitwise_xor(self._values, np.uint64(query_hash))
        bits = np.unpackbits(xored.view(np.uint8).reshape(-1, 8), axis=1)
        return bits.sum(axis=1).astype(np.int32)

    def best_match(self, query_hash):
        """
        Closest icon to a hash.

        Returns:
            tuple: (icon_id, distance), or (None, None) for an empty index.
                Ties keep the icon indexed first.
        """
        distances = self.distances(query_hash)
        if distances.size == 0:
            return None, None
        index = int(np.argmin(distances))
        return self._ids[index], int(distances[index])

    def top_matches(self, query_hash, limit=5):
        """The `limit` closest icons as [(icon_id, distance), ...]"""
        distances = self.distances(query_hash)
        order = np.argsort(distances, kind="stable")[:limit]
        return [(self._ids[i], int(distances[i])) for i in order]


class IconHashStore:
    """
    Process-wide, lazily built icon index.

    The first caller builds the index under the lock; everyone after that
    reads the published snapshot without locking. rebuild() replaces the
    whole snapshot.
    """

    def __init__(self, icon_directory="", loader=None, background=ICON_HASH_BACKGROUND):
        """
        Args:
            icon_directory (str): Folder of <item id>.png icons
            loader (callable): Optional () -> dict[id, image] used instead of
                the folder (tests, preloaded catalogs)
            background (tuple): Fill color for transparent icon pixels
        """
        self.icon_directory = icon_directory
        self._loader = loader
        self._background = background
        self._lock = threading.Lock()
        self._index = None

    def icon_path(self, icon_id):
        """Path of an icon file in the icon directory ("" if not configured)"""
        if not self.icon_directory:
            return ""
        return os.path.join(self.icon_directory, f"{icon_id}.png")

    def _load_images(self):
        if self._loader is not None:
            return self._loader()
        images = {}
        if not self.icon_directory or not os.path.isdir(self.icon_directory):
            logger.warning(f"[IconHash] Icon directory not found: '{self.icon_directory}'")
            return images
        for path in sorted(glob.glob(os.path.join(self.icon_directory, "*.png"))):
            icon_id = os.path.splitext(os.path.basename(path))[0]
            try:
                with PILImage.open(path) as img:
                    images[icon_id] = img.convert("RGBA")
            except Exception as e:
                logger.debug(f"[IconHash] Could not read icon '{icon_id}': {e}")
        return images

    def _build(self):
        hashes = {}
        for icon_id, image in self._load_images().items():
            try:
                hashes[icon_id] = compute_icon_hash(image, self._background)
            except Exception as e:
                logger.debug(f"[IconHash] Icon hash failed for '{icon_id}': {e}")
        logger.info(f"[IconHash] Indexed {len(hashes)} icons")
        return IconHashIndex(hashes)

    def get_index(self):
        """Return the current snapshot, building it on first use"""
        index = self._index
        if index is not None:
            return index
        with self._lock:
            if self._index is None:
                self._index = self._build()
            return self._index

    def rebuild(self):
        """Build a fresh snapshot and publish it in one assignment"""
        with self._lock:
            fresh = self._build()
            self._index = fresh
            return fresh
