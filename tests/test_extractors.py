"""
Test suite for scanner/extractors.py
=====================================
Tests for the per-screen extraction routines, their cooldowns and the
commit-on-repeat of structured values.
"""

import numpy as np
import pytest
from core.state import UiState
from scanner.extractors import StateExtractors, parse_ammo, parse_level, roman_to_int
from vision.frame import FrameBuffer
from vision.marker_localizer import MapLocalizer


class Recorder:
    """Collects callback invocations by name"""

    def __init__(self):
        self.calls = {}

    def callbacks(self):
        names = (
            "on_quests", "on_workbench_levels", "on_blueprints", "on_tracked_resources",
            "on_skill_tree", "on_queued_map", "on_in_raid_hud", "on_marker_detected",
        )
        return {name: self._recorder(name) for name in names}

    def _recorder(self, name):
        def record(*args):
            self.calls.setdefault(name, []).append(args)
        return record


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def extractors(catalog, ocr_factory, clock, recorder):
    localizer = MapLocalizer(ocr_factory())
    return StateExtractors(catalog, localizer, callbacks=recorder.callbacks(), clock=clock)


class TestParsers:
    """Tests for level, roman numeral and ammo parsing"""

    def test_roman_to_int(self):
        assert roman_to_int("iv") == 4
        assert roman_to_int("X") == 10
        assert roman_to_int("xi") is None

    def test_parse_level_digits(self):
        assert parse_level("GUNSMITH LEVEL 2") == (2, "GUNSMITH")

    def test_parse_level_prefix_roman(self):
        assert parse_level("Lvl. II Gunsmith") == (2, "Gunsmith")

    def test_parse_level_trailing_badge(self):
        assert parse_level("MEDICAL LAB III") == (3, "MEDICAL LAB")

    def test_parse_level_missing(self):
        assert parse_level("Gunsmith") == (None, "Gunsmith")

    def test_parse_ammo(self):
        assert parse_ammo("AK RIFLE 12/ 240") == (12, 240)
        assert parse_ammo("") == (None, None)


class TestMenuExtraction:
    """Tests for the menu screens"""

    def test_quests_commit_on_second_read(self, extractors, reader_factory, recorder):
        reader = reader_factory({"list_region": "FIRST STEPS\nPower Outage\nsome noise"})

        extractors.extract_quests(reader)
        assert "on_quests" not in recorder.calls
        extractors.extract_quests(reader)

        assert recorder.calls["on_quests"] == [(["q_first_steps", "q_power_outage"],)]

    def test_quest_misread_never_reaches_sink(self, extractors, reader_factory, recorder):
        extractors.extract_quests(reader_factory({"list_region": "FIRST STEPS"}))
        extractors.extract_quests(reader_factory({"list_region": "CLEAN WATER"}))
        assert "on_quests" not in recorder.calls

    def test_workshop_levels(self, extractors, reader_factory, recorder):
        reader = reader_factory({
            "workshop_region": "GUNSMITH LEVEL 2\nMEDICAL LAB III\nSTORAGE"
        })

        first = extractors.extract_workshop(reader)
        extractors.extract_workshop(reader)

        assert first == {"gunsmith": 2, "medical_lab": 3}
        assert recorder.calls["on_workbench_levels"] == [({"gunsmith": 2, "medical_lab": 3},)]

    def test_workshop_level_above_max_ignored(self, extractors, reader_factory):
        levels = extractors.extract_workshop(reader_factory({"workshop_region": "GUNSMITH LEVEL 7"}))
        assert levels == {}

    def test_blueprints_need_learned_marker(self, extractors, reader_factory, recorder):
        reader = reader_factory({"list_region": "HEAVY RIFLE LEARNED\nSHIELD BOOSTER LOCKED"})

        extractors.extract_blueprints(reader)
        extractors.extract_blueprints(reader)

        assert recorder.calls["on_blueprints"] == [(["bp_heavy_rifle"],)]

    def test_tracked_resources(self, extractors, reader_factory, recorder):
        reader = reader_factory({"list_region": "Metal Parts\nBattery Cell"})

        extractors.extract_tracked_resources(reader)
        extractors.extract_tracked_resources(reader)

        assert recorder.calls["on_tracked_resources"] == [(["battery_cell", "metal_parts"],)]

    def test_low_confidence_matches_skipped(self, catalog, ocr_factory, reader_factory):
        strict = StateExtractors(
            catalog, MapLocalizer(ocr_factory()), {"extraction_min_confidence": 0.95}
        )
        loose = StateExtractors(catalog, MapLocalizer(ocr_factory()))
        reader = reader_factory({"list_region": "Rusted Cxmponent"})

        assert strict.extract_tracked_resources(reader) == []
        assert loose.extract_tracked_resources(reader) == ["rusted_component"]

    def test_skill_tree(self, extractors, reader_factory, recorder):
        reader = reader_factory({
            "workshop_region": "CONDITIONING 5/15\nMOBILITY 3/15\nAVAILABLE POINTS: 4"
        })

        extractors.extract_skill_tree(reader)
        extractors.extract_skill_tree(reader)

        assert recorder.calls["on_skill_tree"] == [({"Conditioning": 5, "Mobility": 3}, 4)]

    def test_skill_points_with_digit_misreads(self, extractors, reader_factory):
        reader = reader_factory({"workshop_region": "CONDITIONING 1O/15\nMOBILITY l/15\nSURVIVAL OVERVIEW"})

        branches, available = extractors.extract_skill_tree(reader)

        assert branches == {"Conditioning": 10, "Mobility": 1}
        assert available is None

    def test_matchmaking_map_emitted_once(self, extractors, reader_factory, recorder):
        reader = reader_factory({"center_strip": "SEARCHING FOR MATCH\nDAM BATTLEGROUNDS"})

        extractors.extract_matchmaking(reader)
        extractors.extract_matchmaking(reader)

        assert recorder.calls["on_queued_map"] == [("dam", "Dam Battlegrounds")]
        assert extractors.queued_map_id == "dam"


class TestRaidExtraction:
    """Tests for the in-raid HUD and map view"""

    def test_hud_weapon_and_ammo(self, extractors, reader_factory, recorder):
        extractors.extract_in_raid_hud(reader_factory({"bottom_right_strip": "AK RIFLE\n30 / 120"}))
        assert recorder.calls["on_in_raid_hud"] == [("AK RIFLE", 30, 120)]

    def test_hud_without_text(self, extractors, reader_factory, recorder):
        assert extractors.extract_in_raid_hud(reader_factory({})) is None
        assert "on_in_raid_hud" not in recorder.calls

    def test_map_marker(self, extractors, reader_factory, recorder):
        pixels = np.full((100, 200, 3), (40, 60, 50), dtype=np.uint8)
        pixels[45:55, 45:55] = (240, 200, 40)
        reader = reader_factory(regions={"map_region": FrameBuffer(pixels)})

        detection = extractors.extract_map(reader)

        assert detection.x_pct == pytest.approx(24.75, abs=1)
        assert detection.y_pct == pytest.approx(49.5, abs=1)
        assert recorder.calls["on_marker_detected"] == [(detection,)]

    def test_map_uses_queued_map_locations(self, catalog, ocr_factory, reader_factory, recorder):
        localizer = MapLocalizer(ocr_factory(default="WATER TREATMENT"))
        extractors = StateExtractors(catalog, localizer, callbacks=recorder.callbacks())
        extractors.queued_map_id = "dam"
        pixels = np.full((100, 200, 3), (40, 60, 50), dtype=np.uint8)

        detection = extractors.extract_map(reader_factory(regions={"map_region": FrameBuffer(pixels)}))

        assert detection.method == "location"
        assert (detection.x_pct, detection.y_pct) == (30.0, 40.0)

    def test_map_without_region(self, extractors, reader_factory):
        assert extractors.extract_map(reader_factory()) is None


class TestRunAndCooldowns:
    """Tests for state dispatch and cooldown gating"""

    def test_run_dispatches_by_state(self, extractors, reader_factory, recorder):
        reader = reader_factory({"bottom_right_strip": "AK RIFLE\n30 / 120"})
        assert extractors.run(UiState.IN_RAID, reader) is True
        assert recorder.calls["on_in_raid_hud"] == [("AK RIFLE", 30, 120)]

    def test_no_routine_for_main_menu(self, extractors, reader_factory):
        assert extractors.run(UiState.MAIN_MENU, reader_factory()) is False

    def test_cooldown_blocks_rerun(self, extractors, reader_factory, clock):
        reader = reader_factory({"list_region": "FIRST STEPS"})

        assert extractors.run(UiState.QUEST_MENU, reader) is True
        assert extractors.run(UiState.QUEST_MENU, reader) is False
        clock.advance(5.5)
        assert extractors.run(UiState.QUEST_MENU, reader) is True

    def test_leaving_raid_resets_raid_cooldowns(self, extractors, reader_factory):
        reader = reader_factory({"bottom_right_strip": "30 / 120"})
        extractors.run(UiState.IN_RAID, reader)
        extractors.run(UiState.QUEST_MENU, reader)

        extractors.on_left_raid()

        assert extractors.gate.ready("in_raid_hud")
        assert extractors.gate.ready("map")
        assert not extractors.gate.ready("quests")

    def test_callback_errors_are_contained(self, catalog, ocr_factory, reader_factory):
        def broken(*args):
            raise RuntimeError("sink down")

        extractors = StateExtractors(
            catalog, MapLocalizer(ocr_factory()), callbacks={"on_in_raid_hud": broken}
        )
        result = extractors.extract_in_raid_hud(reader_factory({"bottom_right_strip": "30 / 120"}))
        assert result == ("", 30, 120)
