"""I/O helpers — decode spreadsheet bytes into a cell matrix, write JSON artifacts."""

from __future__ import annotations

import json
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, cast

import pandas as pd

from sheetscope.models import MISSING, CellMatrix, Row, is_missing, normalize_cell

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm", ".xls")

_ZIP_SIGNATURE = b"PK\x03\x04"
_OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


class DecodeError(ValueError):
    """Raised when a byte buffer is not a readable spreadsheet."""


# ── Loading ──────────────────────────────────────────────────────


def read_file_bytes(path: Path) -> bytes:
    """Return the raw bytes of a spreadsheet file.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    DecodeError
        If the extension is not a supported spreadsheet container.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise DecodeError(f"Unsupported file type: {suffix!r}. Use .xlsx or .xls")
    return path.read_bytes()


def _engine_for(data: bytes) -> str:
    if data.startswith(_ZIP_SIGNATURE):
        return "openpyxl"
    if data.startswith(_OLE2_SIGNATURE):
        return "xlrd"
    raise DecodeError("File is not an .xlsx or .xls spreadsheet")


def _read_first_sheet(data: bytes) -> pd.DataFrame:
    engine = _engine_for(data)
    read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
    try:
        return read_excel(
            BytesIO(data),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=engine,
            keep_default_na=False,
            na_values=[""],
        )
    except ImportError as exc:
        raise DecodeError(
            "Unsupported .xls input unless 'xlrd' is installed. "
            "Either convert to .xlsx or add dependency: pip install xlrd"
        ) from exc
    except Exception as exc:
        raise DecodeError(f"Could not read spreadsheet ({type(exc).__name__}: {exc})") from exc


def _trim_row(values: list[Any]) -> Row:
    row: Row = [normalize_cell(v) for v in values]
    while row and is_missing(row[-1]):
        row.pop()
    return row


def matrix_from_frame(df: pd.DataFrame) -> CellMatrix:
    """Turn a header-less DataFrame into ragged rows with MISSING for blanks."""
    if df.empty:
        return []
    return [_trim_row(list(values)) for values in df.itertuples(index=False, name=None)]


def read_matrix(data: bytes) -> CellMatrix:
    """Decode the first worksheet of *data* into a cell matrix.

    Row order is preserved and blank rows are kept as empty lists.
    """
    if not data:
        raise DecodeError("File is empty")
    return matrix_from_frame(_read_first_sheet(bytes(data)))


def pad_row(row: Row, width: int) -> Row:
    """Return *row* padded with MISSING (or cut) to exactly *width* cells."""
    if len(row) >= width:
        return list(row[:width])
    return list(row) + [MISSING] * (width - len(row))


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(str(v) for v in obj)
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any, *, sort_keys: bool = True) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic).

    Pass ``sort_keys=False`` when key order carries meaning, as it does for
    records whose field order is the column order.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=sort_keys,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
