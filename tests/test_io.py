from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from conftest import xlsx_bytes
from sheetscope.io import (
    DecodeError,
    matrix_from_frame,
    pad_row,
    read_file_bytes,
    read_matrix,
    write_json,
)
from sheetscope.models import MISSING


def test_read_matrix_keeps_row_order_blank_rows_and_raggedness() -> None:
    matrix = read_matrix(
        xlsx_bytes([
            ["ACME CORP"],
            [],
            ["codigo", "nombre", "precio", "stock"],
            ["A1", "Widget", 1000, None],
        ])
    )

    assert matrix == [
        ["ACME CORP"],
        [],
        ["codigo", "nombre", "precio", "stock"],
        ["A1", "Widget", 1000],
    ]


def test_read_matrix_marks_interior_blanks_as_missing() -> None:
    matrix = read_matrix(xlsx_bytes([["a", None, "c"]]))

    assert matrix[0][1] is MISSING
    assert matrix[0] == ["a", "", "c"]


def test_read_matrix_keeps_na_like_text() -> None:
    matrix = read_matrix(xlsx_bytes([["NA", "N/A", "null"]]))

    assert matrix == [["NA", "N/A", "null"]]


def test_read_matrix_converts_dates_to_iso_text() -> None:
    matrix = read_matrix(xlsx_bytes([["fecha", datetime(2024, 1, 31, 8, 30)]]))

    assert matrix == [["fecha", "2024-01-31T08:30:00"]]


def test_read_matrix_rejects_empty_and_unknown_bytes() -> None:
    with pytest.raises(DecodeError, match="empty"):
        read_matrix(b"")
    with pytest.raises(DecodeError, match="not an .xlsx or .xls"):
        read_matrix(b"col1,col2\n1,2\n")


def test_xls_without_xlrd_raises_friendly_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_read_excel(source: object, **kwargs: object) -> pd.DataFrame:
        del source
        assert kwargs["engine"] == "xlrd"
        raise ImportError("No module named xlrd")

    monkeypatch.setattr(pd, "read_excel", _fake_read_excel)

    with pytest.raises(DecodeError, match="pip install xlrd"):
        read_matrix(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64)


def test_xlsx_is_read_header_less_with_object_dtype(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, object]] = []

    def _fake_read_excel(source: object, **kwargs: object) -> pd.DataFrame:
        del source
        calls.append(kwargs)
        return pd.DataFrame([["a", "b"]])

    monkeypatch.setattr(pd, "read_excel", _fake_read_excel)

    assert read_matrix(b"PK\x03\x04rest") == [["a", "b"]]
    assert calls[0]["engine"] == "openpyxl"
    assert calls[0]["header"] is None
    assert calls[0]["dtype"] is object
    assert calls[0]["keep_default_na"] is False
    assert calls[0]["na_values"] == [""]


def test_matrix_from_frame_trims_trailing_missing() -> None:
    df = pd.DataFrame([["x", float("nan"), float("nan")], [float("nan")] * 3, [1, 2, "z"]])

    assert matrix_from_frame(df) == [["x"], [], [1, 2, "z"]]
    assert matrix_from_frame(pd.DataFrame()) == []


def test_pad_row() -> None:
    assert pad_row(["a"], 3) == ["a", MISSING, MISSING]
    assert pad_row(["a", "b", "c"], 2) == ["a", "b"]


def test_read_file_bytes_validates_path_and_suffix(
    tmp_path: Path, make_xlsx: Callable[..., Path]
) -> None:
    with pytest.raises(FileNotFoundError, match="Input file not found"):
        read_file_bytes(tmp_path / "nope.xlsx")

    csv_path = tmp_path / "data.csv"
    csv_path.write_text("a,b\n", encoding="utf-8")
    with pytest.raises(DecodeError, match="Unsupported file type"):
        read_file_bytes(csv_path)

    path = make_xlsx([["a"]], name="Upper.XLSX")
    assert read_file_bytes(path).startswith(b"PK")


def test_write_json_is_deterministic_and_atomic(tmp_path: Path) -> None:
    out = tmp_path / "nested" / "out.json"

    write_json(out, {"b": 1, "a": MISSING, "when": datetime(2024, 1, 1)})

    text = out.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert json.loads(text) == {"a": "", "b": 1, "when": "2024-01-01T00:00:00"}
    assert text.index('"a"') < text.index('"b"')
    assert not (tmp_path / "nested" / "out.json.tmp").exists()


def test_write_json_can_keep_key_order(tmp_path: Path) -> None:
    out = write_json(tmp_path / "r.json", {"z": 1, "a": 2}, sort_keys=False)

    text = out.read_text(encoding="utf-8")
    assert text.index('"z"') < text.index('"a"')


def test_write_json_rejects_unknown_objects(tmp_path: Path) -> None:
    with pytest.raises(TypeError, match="not JSON serializable"):
        write_json(tmp_path / "bad.json", {"x": object()})
