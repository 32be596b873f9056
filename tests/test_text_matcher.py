"""
Test suite for vision/text_matcher.py
======================================
Tests for OCR text normalization, title heuristics and the layered
catalog matcher.
"""

import pytest
from services.catalog import NamedEntry
from vision.text_matcher import (
    FuzzyMatcher,
    MatchMethod,
    candidate_lines,
    clean_line,
    extract_likely_title,
    extract_title_from_title_region,
    is_category_banner,
    levenshtein_distance,
    match_text,
    normalize_text,
    roman_suffix,
)


class TestNormalization:
    """Tests for line cleanup and normalization"""

    def test_clean_line_keeps_case_and_allowed_punctuation(self):
        assert clean_line("  Rusted_Component!!  x-ray 's ") == "Rusted Component x-ray 's"

    def test_normalize_maps_ocr_confusions(self):
        assert normalize_text("R|FLE 10") == "rifle io"

    def test_normalize_empty(self):
        assert normalize_text("   ") == ""
        assert normalize_text(None) == ""

    def test_roman_suffix(self):
        assert roman_suffix("weapon iii") == "iii"
        assert roman_suffix("weapon") is None
        assert roman_suffix("vivid colors") is None

    def test_levenshtein(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0


class TestBanners:
    """Tests for rarity/category banner detection"""

    @pytest.mark.parametrize("line", ["COMMON SCRAP", "EPIC", "Rare Rifle Attachment Kit"])
    def test_banners(self, line):
        assert is_category_banner(line)

    @pytest.mark.parametrize("line", ["Rusted Component", "Weapon III", ""])
    def test_not_banners(self, line):
        assert not is_category_banner(line)


class TestTitleHeuristics:
    """Tests for picking the title line out of OCR output"""

    def test_uppercase_line_wins(self):
        text = "Used to craft basic parts.\nRUSTED COMPONENT\nDurability 40/40"
        assert extract_likely_title(text) == "RUSTED COMPONENT"

    def test_title_trimmed_from_merged_description(self):
        assert extract_likely_title("WEAPON III fires faster rounds") == "WEAPON III"

    def test_empty_text(self):
        assert extract_likely_title("") == ""

    def test_title_region_skips_banner(self):
        assert extract_title_from_title_region("COMMON SCRAP\nRUSTED COMPONENT") == "RUSTED COMPONENT"

    def test_title_region_needs_uppercase(self):
        assert extract_title_from_title_region("just some words") == ""

    def test_candidate_lines_deduplicate(self):
        lines = list(candidate_lines("Metal Parts\nMETAL PARTS\nab", "Battery Cell"))
        assert lines == ["Metal Parts", "Battery Cell"]


class TestFuzzyMatcher:
    """Tests for the exact / substring / word-set / edit-distance ladder"""

    def test_exact_match(self, catalog):
        candidate = catalog.item_matcher().match("Rusted Component")

        assert candidate.item.id == "rusted_component"
        assert candidate.confidence == 1.0
        assert candidate.method is MatchMethod.EXACT

    def test_substring_match_on_multiline_ocr(self, catalog):
        candidate = match_text("RUSTED\nCOMPONENT\nCOMMON  SCRAP", catalog.item_matcher())

        assert candidate.item.id == "rusted_component"
        assert candidate.confidence == 0.9
        assert candidate.method is MatchMethod.SUBSTRING

    def test_word_set_match(self, catalog):
        candidate = catalog.item_matcher().match("Parts of Metal")

        assert candidate.item.id == "metal_parts"
        assert candidate.method is MatchMethod.WORD_SET
        assert candidate.confidence == 0.85

    def test_one_character_misread(self, catalog):
        candidate = catalog.item_matcher().match("Rusted Cxmponent")

        assert candidate.item.id == "rusted_component"
        assert candidate.method is MatchMethod.FUZZY
        assert candidate.is_fuzzy
        assert candidate.confidence == pytest.approx(1 - 1 / 16)

    def test_garbage_does_not_match(self, catalog):
        assert catalog.item_matcher().match("qzxv wkjp") is None

    def test_banner_rejected(self, catalog):
        assert catalog.item_matcher().match("COMMON SCRAP") is None

    def test_roman_numeral_guard(self):
        only_three = FuzzyMatcher([NamedEntry("w3", "Weapon III")])
        only_one = FuzzyMatcher([NamedEntry("w1", "Weapon I")])

        assert only_three.match("Weapon I") is None
        assert only_one.match("Weapon III") is None

    def test_roman_numeral_picks_matching_tier(self, catalog):
        assert catalog.item_matcher().match("WEAPON I").item.id == "weapon_i"
        assert catalog.item_matcher().match("WEAPON III").item.id == "weapon_iii"

    def test_match_lines_keeps_highest_confidence(self, catalog):
        candidate = catalog.item_matcher().match_lines("Rusted Cxmponent\nBattery Cell")
        assert candidate.item.id == "battery_cell"
        assert candidate.confidence == 1.0

    def test_min_confidence_setting(self):
        strict = FuzzyMatcher([NamedEntry("a", "Rusted Component")], {"fuzzy_min_confidence": 0.99})
        assert strict.match("Rusted Cxmponent") is None

    def test_match_text_accepts_plain_items(self):
        candidate = match_text("BATTERY CELL", [NamedEntry("battery_cell", "Battery Cell")])
        assert candidate.item.id == "battery_cell"
