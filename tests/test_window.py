"""Windowed rendering: range maths, clamping, dynamic heights, empty state."""

from __future__ import annotations

import pytest

from sheetscope.engine import DatasetEngine
from sheetscope.models import Record
from sheetscope.window import RenderRange, RowWindow, VirtualTable


def _records(n: int) -> list[Record]:
    return [{"sku": f"S{i}", "qty": i} for i in range(n)]


def test_initial_range_covers_viewport_plus_overscan() -> None:
    window = RowWindow(350, estimate_size=35, overscan=20, count=1000)

    rng = window.range()

    assert (rng.start, rng.end) == (0, 30)
    assert rng.offset == 0
    assert rng.total_size == 35_000


def test_scrolling_moves_range_with_overscan_on_both_sides() -> None:
    window = RowWindow(350, estimate_size=35, overscan=5, count=1000)

    rng = window.scroll_to(35 * 100)

    assert (rng.start, rng.end) == (95, 115)
    assert rng.offset == 95 * 35


def test_scroll_is_clamped_to_content() -> None:
    window = RowWindow(100, estimate_size=10, overscan=0, count=20)

    assert window.scroll_to(-50).start == 0
    rng = window.scroll_to(10_000)

    assert window.scroll_offset == 100
    assert (rng.start, rng.end) == (10, 20)


def test_shrinking_count_reclamps_range() -> None:
    window = RowWindow(100, estimate_size=10, overscan=2, count=500)
    window.scroll_to(4000)

    window.set_count(15)
    rng = window.range()

    assert window.scroll_offset == 50
    assert rng.end == 15
    assert 0 <= rng.start < rng.end


def test_zero_rows_is_an_empty_range() -> None:
    window = RowWindow(300, count=10)
    window.scroll_to(200)

    window.set_count(0)

    assert window.range() == RenderRange()
    assert window.range().is_empty
    assert window.scroll_offset == 0


def test_measure_changes_offsets_and_total() -> None:
    window = RowWindow(50, estimate_size=10, overscan=0, count=10)

    window.measure(0, 50)
    window.measure(1, 50)

    assert window.offset_of(2) == 100
    assert window.total_size == 180
    rng = window.scroll_to(100)
    assert rng.start == 2
    assert rng.offset == 100


def test_measure_ignores_out_of_range_rows() -> None:
    window = RowWindow(100, estimate_size=10, count=3)

    window.measure(5, 99)
    window.measure(-1, 99)

    assert window.total_size == 30


def test_resize_recomputes_only_range() -> None:
    window = RowWindow(100, estimate_size=10, overscan=0, count=100)

    assert len(window.range()) == 10
    assert len(window.resize(300)) == 30


def test_invalid_geometry_is_rejected() -> None:
    with pytest.raises(ValueError, match="estimate_size"):
        RowWindow(100, estimate_size=0)
    with pytest.raises(ValueError, match="overscan"):
        RowWindow(100, overscan=-1)


def test_virtual_table_materialises_only_the_window() -> None:
    engine = DatasetEngine(_records(5000))
    table = VirtualTable(engine, RowWindow(350, estimate_size=35, overscan=10))

    table.scroll_to(35 * 2000)
    rows = table.rows()

    assert len(rows) == 30
    assert rows[0][0] == 1990
    assert rows[0][1]["sku"] == "S1990"


def test_virtual_table_scrolling_does_not_recompute_engine(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    engine = DatasetEngine(_records(200))
    table = VirtualTable(engine, RowWindow(100, estimate_size=10))
    calls = {"n": 0}

    def _recompute() -> None:
        calls["n"] += 1

    monkeypatch.setattr(engine, "_recompute", _recompute)
    for offset in range(0, 2000, 7):
        table.scroll_to(offset)
        table.rows()

    assert calls["n"] == 0


def test_virtual_table_sync_follows_filter_changes() -> None:
    engine = DatasetEngine(_records(300))
    table = VirtualTable(engine, RowWindow(100, estimate_size=10, overscan=0))
    table.scroll_to(2500)

    engine.set_filters({"sku": "S29"})
    table.sync()

    assert table.row_count == 11
    assert [r["sku"] for _i, r in table.rows()] == [f"S29{i}" for i in range(10)]
    assert table.window.scroll_offset == 10


def test_virtual_table_empty_state() -> None:
    engine = DatasetEngine(_records(3))
    table = VirtualTable(engine)

    engine.set_search_term("nothing matches this")
    table.sync()

    assert table.is_empty
    assert table.rows() == []
    assert table.display_rows() == []


def test_display_rows_use_visible_columns() -> None:
    engine = DatasetEngine([{"sku": "S1", "qty": 2.0, "note": "x"}])
    engine.set_visible_columns(["qty", "sku"])
    table = VirtualTable(engine)

    assert table.display_rows() == [["S1", "2"]]


def test_scroll_to_index_puts_row_at_top() -> None:
    engine = DatasetEngine(_records(100))
    table = VirtualTable(engine, RowWindow(50, estimate_size=10, overscan=0))
    table.measure(0, 30)

    rng = table.scroll_to_index(3)

    assert table.window.scroll_offset == 50
    assert (rng.start, rng.end) == (3, 8)
    assert [i for i, _r in table.rows()] == [3, 4, 5, 6, 7]
