"""Record persistence — keep the last loaded collection between sessions."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from sheetscope.io import write_json
from sheetscope.models import Record, normalize_cell

STORE_FILENAME = "inventory.json"


class RecordStore(Protocol):
    """The three calls the session makes; storage mechanics are up to the store."""

    def save(self, records: Sequence[Record]) -> None: ...

    def load(self) -> list[Record] | None: ...

    def clear(self) -> None: ...


class JsonRecordStore:
    """Stores the collection as ``{"records": [...]}`` in one JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def save(self, records: Sequence[Record]) -> None:
        write_json(self.path, {"records": [dict(r) for r in records]}, sort_keys=False)

    def load(self) -> list[Record] | None:
        """Return the stored records, or ``None`` when nothing was saved."""
        if not self.path.exists():
            return None
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict) or not isinstance(payload.get("records"), list):
            raise ValueError(f"Unexpected store layout in {self.path}")
        records: list[Record] = []
        for raw in payload["records"]:
            if not isinstance(raw, dict):
                raise ValueError(f"Unexpected record in {self.path}: {raw!r}")
            records.append({str(k): normalize_cell(v) for k, v in raw.items()})
        return records

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class MemoryRecordStore:
    """In-process store; handy when persistence is not wanted."""

    def __init__(self) -> None:
        self._records: list[Record] | None = None

    def save(self, records: Sequence[Record]) -> None:
        self._records = [dict(r) for r in records]

    def load(self) -> list[Record] | None:
        return None if self._records is None else [dict(r) for r in self._records]

    def clear(self) -> None:
        self._records = None
