"""
Test suite for services/catalog.py
===================================
Tests for catalog loading, lookups and matcher reuse.
"""

import json
import threading

from services.catalog import DEFAULT_SKILL_BRANCHES, Catalog


class TestCatalogLoading:
    """Tests for building a catalog from JSON data"""

    def test_from_dict(self, catalog):
        assert len(catalog.items) == 5
        assert catalog.get_item("RUSTED_COMPONENT").name == "Rusted Component"
        assert catalog.get_map("dam").name == "Dam Battlegrounds"
        assert catalog.workstations[0].max_level == 3

    def test_entries_without_id_skipped(self):
        catalog = Catalog.from_dict({
            "items": [{"id": "a", "name": "Alpha"}, {"name": "No Id"}, {"id": "b"}],
            "quests": [{"name": "Nameless"}],
        })
        assert [item.id for item in catalog.items] == ["a"]
        assert catalog.quests == ()

    def test_short_name_alias(self):
        catalog = Catalog.from_dict({"items": [{"id": "a", "name": "Alpha", "shortName": "A"}]})
        assert catalog.get_item("a").short_name == "A"

    def test_default_skill_branches(self):
        assert Catalog.from_dict({}).skill_branches == DEFAULT_SKILL_BRANCHES

    def test_json_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"items": [{"id": "a", "name": "Alpha"}]}), encoding="utf-8")

        assert Catalog.from_json_file(str(path)).get_item("a").name == "Alpha"

    def test_missing_file_gives_empty_catalog(self, tmp_path):
        catalog = Catalog.from_json_file(str(tmp_path / "missing.json"))
        assert catalog.items == ()

    def test_broken_file_gives_empty_catalog(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("{not json", encoding="utf-8")
        assert Catalog.from_json_file(str(path)).items == ()


class TestCatalogLookups:
    """Tests for map locations and matcher caching"""

    def test_locations_for(self, catalog):
        names = [loc.name for loc in catalog.locations_for("dam")]
        assert names == ["Water Treatment", "Control Tower"]
        assert catalog.locations_for("nowhere") == ()
        assert catalog.locations_for("") == ()

    def test_unknown_item(self, catalog):
        assert catalog.get_item("ghost") is None
        assert catalog.get_item(None) is None

    def test_matcher_built_once_across_threads(self, catalog):
        seen = []
        barrier = threading.Barrier(4)

        def grab():
            barrier.wait(timeout=10)
            seen.append(catalog.item_matcher())

        threads = [threading.Thread(target=grab) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert len(seen) == 4
        assert all(matcher is seen[0] for matcher in seen)
        assert len(seen[0]) == 5

    def test_matchers_per_kind(self, catalog):
        assert catalog.quest_matcher() is not catalog.blueprint_matcher()
        assert catalog.map_matcher().match("SPACEPORT").item.id == "spaceport"
