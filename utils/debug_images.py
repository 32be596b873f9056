# Copyright (C) 2026 BPS
# This file is part of Raid Scanner.
#
# Optional PNG dumps of intermediate scan images (captures, crops, OCR input)

import logging
import os
import threading
import time

import numpy as np
from PIL import Image as PILImage

logger = logging.getLogger("RaidScanner")


class DebugImageWriter:
    """Writes intermediate images to a debug folder when enabled

    Disabled writers are no-ops, so scan code calls save() unconditionally.
    """

    def __init__(self, directory="debug", enabled=False):
        self.directory = directory
        self.enabled = enabled
        self._counter = 0
        self._lock = threading.Lock()

    def _next_index(self):
        with self._lock:
            self._counter += 1
            return self._counter

    def save(self, name, image):
        """Save an RGB or grayscale image as PNG

        Args:
            name: Short label used in the file name (e.g. "tooltip_title")
            image: numpy array (HxW or HxWx3 uint8), FrameBuffer or PIL image

        Returns:
            Path written, or None if disabled or the write failed
        """
        if not self.enabled or image is None:
            return None
        try:
            if hasattr(image, "pixels"):
                image = image.pixels
            if isinstance(image, np.ndarray):
                image = PILImage.fromarray(np.ascontiguousarray(image, dtype=np.uint8))
            os.makedirs(self.directory, exist_ok=True)
            filename = f"{int(time.time() * 1000)}_{self._next_index():04d}_{name}.png"
            path = os.path.join(self.directory, filename)
            image.save(path)
            return path
        except Exception as e:
            logger.debug(f"[Debug] Failed to save debug image '{name}': {e}")
            return None
