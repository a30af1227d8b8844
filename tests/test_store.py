from __future__ import annotations

import json
from pathlib import Path

import pytest

from sheetscope.models import MISSING, Record
from sheetscope.store import JsonRecordStore, MemoryRecordStore

RECORDS: list[Record] = [
    {"sku": "S1", "qty": 12, "price": 2.5, "note": MISSING},
    {"sku": "S2", "qty": "n/a", "price": 3, "note": "rush"},
]


def test_json_store_round_trip_keeps_field_order(tmp_path: Path) -> None:
    store = JsonRecordStore(tmp_path / "inventory.json")

    store.save(RECORDS)
    loaded = store.load()

    assert loaded == RECORDS
    assert loaded is not None
    assert list(loaded[0]) == ["sku", "qty", "price", "note"]
    assert json.loads((tmp_path / "inventory.json").read_text(encoding="utf-8")) == {
        "records": [
            {"sku": "S1", "qty": 12, "price": 2.5, "note": ""},
            {"sku": "S2", "qty": "n/a", "price": 3, "note": "rush"},
        ]
    }


def test_json_store_without_file_loads_none_and_clear_is_safe(tmp_path: Path) -> None:
    store = JsonRecordStore(tmp_path / "nothing.json")

    assert store.load() is None
    store.clear()


def test_json_store_clear_removes_file(tmp_path: Path) -> None:
    path = tmp_path / "inventory.json"
    store = JsonRecordStore(path)
    store.save(RECORDS)

    store.clear()

    assert not path.exists()
    assert store.load() is None


def test_json_store_rejects_unexpected_layout(tmp_path: Path) -> None:
    path = tmp_path / "inventory.json"
    path.write_text('["not", "records"]', encoding="utf-8")

    with pytest.raises(ValueError, match="Unexpected store layout"):
        JsonRecordStore(path).load()

    path.write_text('{"records": [1]}', encoding="utf-8")
    with pytest.raises(ValueError, match="Unexpected record"):
        JsonRecordStore(path).load()


def test_memory_store_hands_out_copies() -> None:
    store = MemoryRecordStore()
    assert store.load() is None

    store.save(RECORDS)
    loaded = store.load()
    assert loaded == RECORDS
    assert loaded is not None
    loaded[0]["sku"] = "changed"

    assert store.load() == RECORDS
    store.clear()
    assert store.load() is None
