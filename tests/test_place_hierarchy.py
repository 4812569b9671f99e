"""Tests for the place taxonomy and the location hierarchy manager."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.database import HarvesterDatabase
from core.place_hierarchy import PlaceTaxonomy

pytestmark = pytest.mark.integration


def test_resolve_creates_chain_once(hierarchy, taxonomy):
    first = hierarchy.resolve_place_node("United States", "Texas", "Dallas", "Downtown Dallas")
    second = hierarchy.resolve_place_node("United States", "Texas", "Dallas", "Downtown Dallas")
    assert first == second
    assert hierarchy.chain_names(first) == ["United States", "Texas", "Dallas", "Downtown Dallas"]
    assert len(taxonomy.children(None)) == 1


def test_same_name_under_different_parents(hierarchy):
    portland_or = hierarchy.resolve_place_node("United States", "Oregon", "Portland")
    portland_me = hierarchy.resolve_place_node("United States", "Maine", "Portland")
    assert portland_or != portland_me


def test_empty_levels_are_skipped(hierarchy):
    node = hierarchy.resolve_place_node("", "Texas", "", "Big Bend")
    assert hierarchy.chain_names(node) == ["Texas", "Big Bend"]
    assert hierarchy.resolve_place_node() is None


def test_root_nodes_report_no_parent(taxonomy):
    node_id = taxonomy.find_or_create_child(None, "Canada")
    assert taxonomy.get_node(node_id)["parent_id"] is None
    assert taxonomy.find_child(None, "Canada")["id"] == node_id
    assert taxonomy.find_child(None, "Mexico") is None


def test_assign_replaces_previous_assignment(hierarchy, taxonomy):
    hierarchy.assign_item(1, country="United States", state="Texas")
    node = hierarchy.assign_item(1, country="United States", state="Texas", city="Austin")
    assigned = taxonomy.assigned_nodes(1)
    assert [n["id"] for n in assigned] == [node]
    assert taxonomy.clear_assignment(1) is True
    assert taxonomy.assigned_nodes(1) == []


def test_assign_without_fields(hierarchy, taxonomy):
    assert hierarchy.assign_item(2) is None
    assert taxonomy.assigned_nodes(2) == []


def test_assign_from_metadata(hierarchy, store):
    store.set(3, "country", "United States")
    store.set(3, "state", "Washington")
    store.set(3, "city", "Seattle")
    node = hierarchy.assign_from_metadata(3)
    assert hierarchy.flatten(node) == {
        "country": "United States",
        "state": "Washington",
        "city": "Seattle",
        "location": "",
    }


def test_sync_flat_fields_backfills_without_overwriting(hierarchy, store):
    hierarchy.assign_item(4, "United States", "Texas", "Dallas", "Downtown Dallas")
    store.set(4, "city", "Big D")

    written = hierarchy.sync_flat_fields(4)

    assert sorted(written) == ["country", "location", "state"]
    assert store.get(4, "city") == "Big D"
    assert store.get(4, "location") == "Downtown Dallas"


def test_sync_without_assignment(hierarchy):
    assert hierarchy.sync_flat_fields(99) == []


def test_taxonomy_survives_reopen(db):
    PlaceTaxonomy(db).find_or_create_child(None, "Japan")
    assert PlaceTaxonomy(db).find_child(None, "Japan") is not None


def test_partial_chain_does_not_shift_levels(hierarchy, store):
    store.set(5, "country", "Iceland")
    store.set(5, "city", "Reykjavik")

    node = hierarchy.assign_from_metadata(5)

    assert hierarchy.chain_names(node) == ["Iceland", "Reykjavik"]
    assert hierarchy.sync_flat_fields(5) == []
    assert store.get(5, "state") is None
    assert store.get(5, "city") == "Reykjavik"


def test_partial_chain_backfills_empty_item(hierarchy, store):
    hierarchy.assign_item(6, country="United States", state="Texas")
    assert sorted(hierarchy.sync_flat_fields(6)) == ["country", "state"]
    assert store.get(6, "state") == "Texas"


def test_concurrent_find_or_create_yields_one_node(tmp_path):
    database = HarvesterDatabase(str(tmp_path / "places.db"))
    taxonomy = PlaceTaxonomy(database)
    barrier = threading.Barrier(8)

    def create():
        barrier.wait()
        return taxonomy.find_or_create_child(None, "Texas")

    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = list(pool.map(lambda _: create(), range(8)))
        assert len(set(ids)) == 1
        assert [n["name"] for n in taxonomy.children(None)] == ["Texas"]
    finally:
        database.close()
