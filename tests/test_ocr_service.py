"""
Test suite for vision/ocr_service.py
=====================================
Tests for OCR preprocessing, text cleanup and the fail-safe engine wrapper.
No Tesseract install is needed.
"""

import numpy as np
import pytest
from vision.ocr_service import (
    OCRService,
    clean_ocr_text,
    parse_number,
    preprocess_for_ocr,
    upscale,
)


class TestCleanOcrText:
    """Tests for engine output normalization"""

    def test_line_endings_and_spaces(self):
        assert clean_ocr_text("RUSTED  COMPONENT\r\nCommon\tScrap") == "RUSTED COMPONENT\nCommon Scrap"

    def test_blank_lines_limited(self):
        assert clean_ocr_text("A\n\n\n\nB") == "A\n\nB"

    def test_empty(self):
        assert clean_ocr_text(None) == ""


class TestParseNumber:
    """Tests for number parsing with OCR misreads"""

    @pytest.mark.parametrize("text, expected", [
        ("42", 42),
        ("1O", 10),
        ("l2", 12),
        ("1,250", 1250),
        ("", None),
        ("abc", None),
    ])
    def test_values(self, text, expected):
        assert parse_number(text) == expected

    def test_range(self):
        assert parse_number("120", max_value=99) is None
        assert parse_number("5", min_value=10) is None


class TestPreprocess:
    """Tests for binarization before OCR"""

    def test_upscale(self):
        image = np.zeros((10, 20, 3), dtype=np.uint8)
        assert upscale(image, 3).shape == (30, 60, 3)

    def test_dark_text_becomes_black_on_white(self):
        image = np.full((20, 40, 3), (215, 210, 195), dtype=np.uint8)
        image[8:12, 5:35] = (30, 30, 30)

        binary = preprocess_for_ocr(image)

        assert binary.shape == (60, 120)
        assert set(np.unique(binary)) <= {0, 255}
        assert binary[30, 60] == 0
        assert binary[3, 3] == 255

    def test_grayscale_input(self):
        gray = np.full((10, 10), 200, dtype=np.uint8)
        gray[4:6, 2:8] = 20

        binary = preprocess_for_ocr(gray, scale=1)

        assert binary.shape == (10, 10)
        assert binary[5, 5] == 0


class TestOCRService:
    """Tests for the engine wrapper without Tesseract"""

    def test_missing_engine_reads_nothing(self, monkeypatch):
        monkeypatch.setattr(OCRService, "_find_tesseract", lambda self, configured=None: None)
        service = OCRService()

        assert service.is_available() is False
        assert service.read_text(np.zeros((10, 10), dtype=np.uint8)) == ""

    def test_none_image(self, monkeypatch):
        monkeypatch.setattr(OCRService, "_find_tesseract", lambda self, configured=None: "/bin/tesseract")
        assert OCRService().read_text(None) == ""
