"""Tabularizer — turn the rows under the header into keyed records."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Sequence

from sheetscope.config import DetectorSettings
from sheetscope.detect import detect_header_row
from sheetscope.io import pad_row
from sheetscope.models import CellMatrix, LoadReport, Record, cell_text, normalize_cell

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "__EMPTY"


def placeholder_name(position: int) -> str:
    """Name used for the *position*-th unnamed header cell (0-based count)."""
    return PLACEHOLDER_PREFIX if position == 0 else f"{PLACEHOLDER_PREFIX}_{position}"


def is_placeholder(name: str) -> bool:
    return name == PLACEHOLDER_PREFIX or name.startswith(PLACEHOLDER_PREFIX + "_")


def field_names(header_row: Sequence[object]) -> list[str]:
    """Stringified, trimmed header cells, left to right.

    Blank header cells get ``__EMPTY``, ``__EMPTY_1``, … so no column is lost.
    Duplicates are returned as-is.
    """
    names: list[str] = []
    unnamed = 0
    for cell in header_row:
        name = cell_text(cell).strip()
        if not name:
            name = placeholder_name(unnamed)
            unnamed += 1
        names.append(name)
    return names


def duplicate_field_names(names: Sequence[str]) -> list[str]:
    counts = Counter(names)
    return sorted(name for name, count in counts.items() if count > 1)


def tabulate(matrix: CellMatrix, header_row_index: int) -> list[Record]:
    """Build one record per row strictly below *header_row_index*.

    Short rows are completed with MISSING, cells past the header width are
    ignored, and blank rows still produce (all-MISSING) records. Duplicate
    field names keep the right-most value.
    """
    if header_row_index < 0 or header_row_index >= len(matrix):
        return []
    names = field_names(matrix[header_row_index])
    width = len(names)
    records: list[Record] = []
    for row in matrix[header_row_index + 1:]:
        cells = [normalize_cell(value) for value in pad_row(list(row), width)]
        records.append(dict(zip(names, cells)))
    return records


def build_dataset(
    matrix: CellMatrix,
    settings: DetectorSettings | None = None,
    *,
    on_log: Callable[[str], None] | None = None,
) -> tuple[list[Record], LoadReport]:
    """Detect the header and tabularize *matrix*.

    Returns ``(records, report)``. Never raises on odd layouts; the report
    carries warnings instead.
    """
    detection = detect_header_row(matrix, settings, on_log=on_log)
    if not matrix:
        report = LoadReport(warnings=["Spreadsheet has no rows"])
        logger.warning(report.warnings[0])
        return [], report

    records = tabulate(matrix, detection.row_index)
    names = field_names(matrix[detection.row_index])
    report = LoadReport(
        rows_in=len(matrix),
        header_row_index=detection.row_index,
        header_score=detection.score,
        records_out=len(records),
        field_names=names,
    )

    if detection.score == 0:
        report.warnings.append("No header row recognised; using the first row")
    elif detection.keyword_hits == 0:
        report.warnings.append(
            f"Header row {detection.row_index} has no known column names; chosen by density"
        )
    placeholders = [name for name in names if is_placeholder(name)]
    if placeholders:
        suffix = "" if len(placeholders) == 1 else "s"
        report.warnings.append(
            f"Header has {len(placeholders)} blank cell{suffix}: named {', '.join(placeholders)}"
        )
    duplicates = duplicate_field_names(names)
    if duplicates:
        report.warnings.append(
            f"Duplicate column names (last value wins): {', '.join(duplicates)}"
        )
    if not records:
        report.warnings.append("No data rows below the header")

    for warning in report.warnings:
        logger.warning(warning)
    return records, report
