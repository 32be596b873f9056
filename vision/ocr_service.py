"""
OCR Service - Raid Scanner
==========================
Tesseract OCR wrapper plus the image preprocessing and text cleanup around it.

The engine is treated as a text-from-pixels oracle: it receives a binarized
image, a character whitelist and a page segmentation mode, and returns raw
text. Every failure (missing binary, timeout, non-zero exit) is logged and
returned as an empty string so callers fall back instead of crashing.
"""

import logging
import os
import re
import shutil
import subprocess
import tempfile

import cv2
import numpy as np

logger = logging.getLogger("RaidScanner")

# Tesseract paths to check (in priority order, after the configured path and PATH)
TESSERACT_PATHS = [
    r"C:\Program Files\Tesseract-OCR\tesseract.exe",
    r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
    # Relative to app location (for portable mode)
    os.path.join(
        os.path.dirname(os.path.abspath(__file__)), "..", "tesseract", "tesseract.exe"
    ),
    "/usr/bin/tesseract",
    "/usr/local/bin/tesseract",
]

# Page segmentation modes used by the scanner
PSM_AUTO = 3
PSM_SINGLE_BLOCK = 6
PSM_SPARSE_TEXT = 11

TITLE_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789 -'"
BODY_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789 -'"
LEVEL_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789 /"


def clean_ocr_text(text):
    """
    Normalize raw engine output while keeping line structure.

    CRLF/CR become LF, tabs and form feeds become spaces, runs of spaces
    collapse and at most one blank line survives between paragraphs.
    """
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[\t\f\v]+", " ", text)
    text = re.sub(r"[ ]{2,}", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def to_rgb_array(image):
    """FrameBuffer or array -> HxWx3 uint8 array"""
    if hasattr(image, "pixels"):
        return image.pixels
    return np.asarray(image, dtype=np.uint8)


def upscale(image, scale):
    """Bicubic upscale by an integer factor"""
    array = to_rgb_array(image)
    height, width = array.shape[:2]
    return cv2.resize(
        array, (max(1, width * scale), max(1, height * scale)), interpolation=cv2.INTER_CUBIC
    )


def preprocess_for_ocr(image, scale=3, threshold_offset=20, min_threshold=80):
    """
    Binarize a crop for Tesseract: dark game text -> black on white.

    Applies:
    - Bicubic upscale (Tesseract works better on larger text)
    - Grayscale conversion
    - Otsu threshold lowered by threshold_offset (floor min_threshold), since
      item names are dark text on a light background

    Args:
        image: FrameBuffer or HxWx3 RGB array
        scale (int): Upscale factor
        threshold_offset (int): Amount subtracted from the Otsu threshold
        min_threshold (int): Lowest threshold allowed

    Returns:
        numpy.ndarray: Binary uint8 image (0 or 255)
    """
    array = to_rgb_array(image)
    if array.ndim == 3:
        enlarged = upscale(array, scale) if scale > 1 else array
        gray = cv2.cvtColor(np.ascontiguousarray(enlarged), cv2.COLOR_RGB2GRAY)
    else:
        gray = array
        if scale > 1:
            height, width = gray.shape
            gray = cv2.resize(gray, (width * scale, height * scale), interpolation=cv2.INTER_CUBIC)
    otsu, _ = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    threshold = max(min_threshold, int(otsu) - threshold_offset)
    logger.debug(f"[OCR] Preprocess threshold {threshold} (otsu {int(otsu)})")
    return np.where(gray < threshold, 0, 255).astype(np.uint8)


def parse_number(ocr_text, min_value=0, max_value=9999):
    """
    Parse OCR text to extract a number (ammo counts, levels, points).

    Handles common OCR misreads (O->0, l->1, I->1).

    Args:
        ocr_text (str): Raw text from OCR
        min_value (int): Minimum valid value (default: 0)
        max_value (int): Maximum valid value (default: 9999)

    Returns:
        int: Parsed number, or None if unparseable or out of range
    """
    if not ocr_text or ocr_text.strip() == "":
        return None

    cleaned = ocr_text.strip()
    cleaned = cleaned.replace("O", "0").replace("o", "0")
    cleaned = cleaned.replace("l", "1").replace("I", "1")
    cleaned = cleaned.replace(",", "").replace(".", "").replace(" ", "")

    digits_only = "".join(c for c in cleaned if c.isdigit())
    if digits_only == "":
        return None

    number = int(digits_only)
    if number < min_value or number > max_value:
        return None
    return number


class OCRService:
    """
    Fail-safe OCR service using external Tesseract.

    read_text() returns "" on any failure, so "engine unavailable" looks the
    same to callers as "no text".
    """

    def __init__(self, tesseract_path=None, default_timeout_ms=3000):
        """
        Initialize OCR service.

        Args:
            tesseract_path (str): Explicit tesseract executable (optional)
            default_timeout_ms (int): Default OCR timeout in milliseconds
        """
        self.default_timeout_ms = default_timeout_ms
        self.tesseract_path = self._find_tesseract(tesseract_path)
        self.available = self.tesseract_path is not None

        if self.available:
            logger.info(f"[OCR] Tesseract found: {self.tesseract_path}")
        else:
            logger.warning("[OCR] Tesseract not found, text recognition disabled")

    def _find_tesseract(self, configured=None):
        """Find Tesseract executable."""
        if configured and os.path.exists(configured):
            return configured
        on_path = shutil.which("tesseract")
        if on_path:
            return on_path
        for path in TESSERACT_PATHS:
            if os.path.exists(path):
                return path
        return None

    def is_available(self):
        """
        Check if OCR is available.

        Returns:
            bool: True if Tesseract is installed, False otherwise
        """
        return self.available

    def read_text(self, image, psm=PSM_AUTO, whitelist=None, timeout_ms=None):
        """
        Run Tesseract on a preprocessed image.

        Args:
            image (numpy.ndarray): Binarized single-channel (or RGB) image
            psm (int): Tesseract page segmentation mode
            whitelist (str): Allowed characters (defaults to BODY_WHITELIST)
            timeout_ms (int): Timeout in milliseconds

        Returns:
            str: Cleaned text with newlines preserved, or "" on failure
        """
        if image is None:
            logger.debug("[OCR] read_text called with None image")
            return ""

        if not self.available:
            logger.debug("[OCR] Tesseract not available")
            return ""

        tmp_path = None
        timeout_sec = (timeout_ms or self.default_timeout_ms) / 1000.0
        try:
            array = np.asarray(image, dtype=np.uint8)
            if array.ndim == 3:
                array = cv2.cvtColor(array, cv2.COLOR_RGB2BGR)

            with tempfile.NamedTemporaryFile(suffix=".png", delete=False) as tmp:
                tmp_path = tmp.name
            cv2.imwrite(tmp_path, array)

            # Hide console window on Windows
            startupinfo = None
            creationflags = 0
            if os.name == "nt":
                startupinfo = subprocess.STARTUPINFO()
                startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW
                startupinfo.wShowWindow = subprocess.SW_HIDE
                creationflags = subprocess.CREATE_NO_WINDOW

            cmd = [
                self.tesseract_path,
                tmp_path,
                "stdout",
                "--psm",
                str(psm),
                "-c",
                f"tessedit_char_whitelist={whitelist or BODY_WHITELIST}",
                "-c",
                "preserve_interword_spaces=1",
            ]

            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout_sec,
                encoding="utf-8",
                startupinfo=startupinfo,
                creationflags=creationflags,
            )

            if result.returncode != 0:
                logger.warning(f"[OCR] Tesseract error: {result.stderr.strip()}")
                return ""

            text = clean_ocr_text(result.stdout)
            logger.debug(f"[OCR] psm={psm} result: {text!r}")
            return text

        except subprocess.TimeoutExpired:
            logger.warning(f"[OCR] Timeout exceeded ({timeout_sec}s)")
            return ""
        except Exception as e:
            logger.warning(f"[OCR] Execution error: {e}")
            return ""
        finally:
            if tmp_path:
                try:
                    os.unlink(tmp_path)
                except OSError as e:
                    logger.debug(f"[OCR] Could not remove temp file: {e}")
