"""Tests for the JSON metadata store and its set-if-absent primitive."""

import json

import pytest

from core.metadata_store import MetadataStore

pytestmark = pytest.mark.unit


def test_set_if_absent_writes_once(store):
    assert store.set_if_absent(42, "camera", "Sony a7RII") is True
    assert store.set_if_absent(42, "camera", "Other") is False
    assert store.get(42, "camera") == "Sony a7RII"


def test_set_if_absent_fills_empty_values(store):
    store.set(1, "city", "")
    assert store.exists(1, "city") is False
    assert store.set_if_absent(1, "city", "Dallas") is True
    assert store.set_if_absent(1, "state", "") is False


def test_zero_is_a_value(store):
    store.set_if_absent(1, "gmtOffset", 0.0)
    assert store.exists(1, "gmtOffset")


def test_delete_and_delete_keys(store):
    store.set(7, "a", 1)
    store.set(7, "b", 2)
    store.set(7, "c", 3)
    assert store.delete(7, "a") is True
    assert store.delete(7, "a") is False
    assert store.delete_keys(7, ["b", "c", "missing"]) == 2
    assert store.entry(7) == {}


def test_ids_are_stringified(store):
    store.set(5, "k", "v")
    assert store.get("5", "k") == "v"
    assert store.list_items() == ["5"]


def test_persists_atomically(tmp_path):
    path = tmp_path / "nested" / "metadata.json"
    store = MetadataStore(str(path))
    store.set("9", "camera", "Fujifilm X-T5")

    assert path.exists()
    assert not path.with_suffix(".tmp").exists()
    assert json.loads(path.read_text(encoding="utf-8")) == {"9": {"camera": "Fujifilm X-T5"}}
    assert MetadataStore(str(path)).get("9", "camera") == "Fujifilm X-T5"


def test_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "metadata.json"
    path.write_text("{not json", encoding="utf-8")
    assert MetadataStore(str(path)).list_items() == []
