"""Data models used across the package: cells, records, query state, reports."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from numbers import Integral
from typing import Any, Literal, Union

import pandas as pd


class MissingCell(str):
    """Marker for a cell that has no value in the source sheet.

    Equal to ``""`` so text handling needs no special case, but distinct by
    identity: ``cell is MISSING`` tells an absent cell from an empty string.
    """

    __slots__ = ()

    def __new__(cls) -> MissingCell:
        return super().__new__(cls, "")

    def __repr__(self) -> str:
        return "MISSING"

    def __reduce__(self) -> str:
        return "MISSING"


MISSING = MissingCell()

Cell = Union[str, int, float]
Row = list[Cell]
CellMatrix = list[Row]
Record = dict[str, Cell]
SortDirection = Literal["asc", "desc"]


def is_missing(value: object) -> bool:
    return value is MISSING or isinstance(value, MissingCell)


def normalize_cell(value: Any) -> Cell:
    """Coerce a raw reader value into the closed ``text | number | MISSING`` set."""
    if value is None or is_missing(value):
        return MISSING
    item = getattr(value, "item", None)
    if callable(item) and not isinstance(value, (str, bytes)):
        try:
            value = item()
        except (TypeError, ValueError):
            pass
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, Integral):
        return int(value)
    if isinstance(value, float):
        return MISSING if math.isnan(value) else value
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    try:
        if pd.isna(value):
            return MISSING
    except (TypeError, ValueError):
        pass
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def cell_text(value: object) -> str:
    """Stringify a cell the way it is displayed and searched."""
    if value is None or is_missing(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


def _to_optional_float(value: Any, field_name: str) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise TypeError(f"{field_name} must be a number or None")
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise TypeError(f"{field_name} must be a number or None") from exc
    if math.isnan(result):
        return None
    return result


# ── Query state ─────────────────────────────────────────────────


@dataclass(frozen=True)
class RangeFilter:
    """Inclusive numeric range; ``None`` leaves that side open."""

    min: float | None = None
    max: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "min", _to_optional_float(self.min, "min"))
        object.__setattr__(self, "max", _to_optional_float(self.max, "max"))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RangeFilter:
        return cls(min=raw.get("min"), max=raw.get("max"))

    @property
    def is_open(self) -> bool:
        return self.min is None and self.max is None

    def to_dict(self) -> dict[str, float | None]:
        return {"min": self.min, "max": self.max}


ColumnFilter = Union[RangeFilter, frozenset, str]


@dataclass(frozen=True)
class SortState:
    key: str
    direction: SortDirection = "asc"

    def __post_init__(self) -> None:
        if self.direction not in ("asc", "desc"):
            raise ValueError(f"Invalid sort direction: {self.direction!r}. Use asc/desc.")


@dataclass
class QueryState:
    """Everything the dataset engine needs to derive the visible records."""

    search_term: str = ""
    filters: dict[str, ColumnFilter] = field(default_factory=dict)
    sort: SortState | None = None
    visible_columns: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        filters: dict[str, Any] = {}
        for column, value in self.filters.items():
            if isinstance(value, RangeFilter):
                filters[column] = value.to_dict()
            elif isinstance(value, frozenset):
                filters[column] = sorted(value)
            else:
                filters[column] = value
        return {
            "search_term": self.search_term,
            "filters": filters,
            "sort": None if self.sort is None else {
                "key": self.sort.key,
                "direction": self.sort.direction,
            },
            "visible_columns": list(self.visible_columns),
        }


# ── Detection / load reports ────────────────────────────────────


@dataclass(frozen=True)
class HeaderDetection:
    """Outcome of scoring header-row candidates."""

    row_index: int = 0
    score: int = 0
    keyword_hits: int = 0
    filled_cells: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "row_index": self.row_index,
            "score": self.score,
            "keyword_hits": self.keyword_hits,
            "filled_cells": self.filled_cells,
        }


@dataclass
class LoadReport:
    """Quality report for one spreadsheet load.

    Contract invariant: ``records_out`` counts every row below the header.
    """

    rows_in: int = 0
    header_row_index: int = 0
    header_score: int = 0
    records_out: int = 0
    field_names: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.header_row_index = _to_non_negative_int(self.header_row_index, "header_row_index")
        self.header_score = _to_non_negative_int(self.header_score, "header_score")
        self.records_out = _to_non_negative_int(self.records_out, "records_out")
        self.field_names = _to_string_list(self.field_names, "field_names")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.records_out > self.rows_in:
            raise ValueError("records_out must be <= rows_in")
        if self.rows_in and self.records_out != max(self.rows_in - self.header_row_index - 1, 0):
            raise ValueError("records_out must equal the number of rows below the header")

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_in": self.rows_in,
            "header_row_index": self.header_row_index,
            "header_score": self.header_score,
            "records_out": self.records_out,
            "field_names": list(self.field_names),
            "warnings": list(self.warnings),
        }
