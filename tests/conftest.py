from __future__ import annotations

from collections.abc import Callable, Sequence
from io import BytesIO
from pathlib import Path

import pytest
from openpyxl import Workbook

ACME_ROWS: list[list[object]] = [
    ["ACME CORP"],
    ["", "", ""],
    ["codigo", "nombre", "precio", "stock"],
    ["A1", "Widget", "1000", "3"],
    ["A2", "Gadget", "2000", "10"],
]


def xlsx_bytes(rows: Sequence[Sequence[object]]) -> bytes:
    """Build an in-memory workbook whose first sheet holds *rows*."""
    wb = Workbook()
    ws = wb.active
    for r, row in enumerate(rows, start=1):
        for c, value in enumerate(row, start=1):
            if value is not None and value != "":
                ws.cell(row=r, column=c, value=value)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def acme_matrix() -> list[list[object]]:
    return [list(row) for row in ACME_ROWS]


@pytest.fixture
def make_xlsx(tmp_path: Path) -> Callable[..., Path]:
    def _make(rows: Sequence[Sequence[object]], name: str = "book.xlsx") -> Path:
        path = tmp_path / name
        path.write_bytes(xlsx_bytes(rows))
        return path

    return _make
