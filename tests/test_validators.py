"""
Test suite for utils/validators.py
===================================
Tests for area, classifier region and threshold validation.
"""

import pytest
from utils.validators import (
    validate_area_coords,
    validate_region_fraction,
    validate_threshold_value,
)


class TestAreaCoordsValidation:
    """Tests for area coordinates validation"""

    def test_valid_area(self):
        coords = {"x": 100, "y": 200, "width": 500, "height": 300}
        assert validate_area_coords(coords) == True

    def test_negative_origin_allowed_on_virtual_screen(self):
        coords = {"x": -1920, "y": 0, "width": 500, "height": 300}
        assert validate_area_coords(coords) == True

    def test_area_outside_screen(self):
        coords = {"x": 1800, "y": 0, "width": 500, "height": 300}
        assert validate_area_coords(coords, 1920, 1080) == False

    def test_missing_keys(self):
        assert validate_area_coords({"x": 100, "y": 200}) == False

    def test_zero_size(self):
        coords = {"x": 0, "y": 0, "width": 0, "height": 10}
        assert validate_area_coords(coords) == False

    def test_none_and_wrong_type(self):
        assert validate_area_coords(None) == False
        assert validate_area_coords([0, 0, 10, 10]) == False


class TestRegionFractionValidation:
    """Tests for classifier region fractions"""

    def test_valid_region(self):
        assert validate_region_fraction((0.72, 0.84, 0.28, 0.16)) == True

    def test_full_frame(self):
        assert validate_region_fraction([0.0, 0.0, 1.0, 1.0]) == True

    def test_region_past_frame_edge(self):
        assert validate_region_fraction((0.8, 0.0, 0.3, 0.1)) == False

    def test_empty_region(self):
        assert validate_region_fraction((0.1, 0.1, 0.0, 0.2)) == False

    def test_wrong_shape(self):
        assert validate_region_fraction((0.1, 0.1, 0.2)) == False
        assert validate_region_fraction("top") == False


class TestThresholdValidation:
    """Tests for threshold overrides checked against their defaults"""

    def test_int_threshold(self):
        assert validate_threshold_value("tooltip_min_width", 150, 120) == True

    def test_int_threshold_rejects_float(self):
        assert validate_threshold_value("tooltip_min_width", 150.5, 120) == False

    def test_float_threshold_accepts_int(self):
        assert validate_threshold_value("fuzzy_min_confidence", 1, 0.5) == True

    def test_negative_rejected(self):
        assert validate_threshold_value("tooltip_min_width", -1, 120) == False

    @pytest.mark.parametrize("value", ["12", None, True])
    def test_non_numeric_rejected(self, value):
        assert validate_threshold_value("tooltip_min_width", value, 120) == False

    def test_scale_list(self):
        assert validate_threshold_value("marker_template_scales", [0.8, 1.0], (1.0,)) == True
        assert validate_threshold_value("marker_template_scales", [], (1.0,)) == False
        assert validate_threshold_value("marker_template_scales", [0.8, -1], (1.0,)) == False
