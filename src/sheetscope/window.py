"""Windowed rendering — only the rows near the viewport are materialised."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass

from sheetscope.engine import DatasetEngine
from sheetscope.models import Record, cell_text

ESTIMATED_ROW_HEIGHT = 35.0
OVERSCAN = 20


@dataclass(frozen=True)
class RenderRange:
    """Half-open index range ``[start, end)`` to materialise, plus geometry."""

    start: int = 0
    end: int = 0
    offset: float = 0.0
    total_size: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def __len__(self) -> int:
        return max(self.end - self.start, 0)

    def indexes(self) -> range:
        return range(self.start, self.end)


class RowWindow:
    """Maps a scroll offset onto the rows that intersect the viewport.

    Heights default to *estimate_size* until :meth:`measure` reports the
    real one. Row offsets come from a prefix-sum table that is rebuilt only
    when a height or the row count changes, so scroll and resize stay cheap.
    """

    def __init__(self, viewport_height: float = 600.0, *,
                 estimate_size: float = ESTIMATED_ROW_HEIGHT,
                 overscan: int = OVERSCAN, count: int = 0) -> None:
        if estimate_size <= 0:
            raise ValueError("estimate_size must be > 0")
        if overscan < 0:
            raise ValueError("overscan must be >= 0")
        self.estimate_size = float(estimate_size)
        self.overscan = int(overscan)
        self.viewport_height = max(float(viewport_height), 0.0)
        self.scroll_offset = 0.0
        self._count = 0
        self._sizes: dict[int, float] = {}
        self._starts: list[float] | None = None
        self.set_count(count)

    # ── Geometry ────────────────────────────────────────────────

    @property
    def count(self) -> int:
        return self._count

    def _offsets(self) -> list[float]:
        if self._starts is None:
            starts = [0.0] * (self._count + 1)
            running = 0.0
            for index in range(self._count):
                running += self._sizes.get(index, self.estimate_size)
                starts[index + 1] = running
            self._starts = starts
        return self._starts

    @property
    def total_size(self) -> float:
        return self._offsets()[-1]

    def offset_of(self, index: int) -> float:
        index = min(max(index, 0), self._count)
        return self._offsets()[index]

    def _max_scroll(self) -> float:
        return max(self.total_size - self.viewport_height, 0.0)

    def _clamp_scroll(self) -> None:
        self.scroll_offset = min(max(self.scroll_offset, 0.0), self._max_scroll())

    # ── Inputs ──────────────────────────────────────────────────

    def set_count(self, count: int) -> None:
        """Adopt a new row count; measurements past the end are dropped."""
        count = max(int(count), 0)
        if count != self._count:
            self._sizes = {i: h for i, h in self._sizes.items() if i < count}
            self._count = count
            self._starts = None
        self._clamp_scroll()

    def reset_measurements(self) -> None:
        if self._sizes:
            self._sizes = {}
            self._starts = None
            self._clamp_scroll()

    def measure(self, index: int, height: float) -> None:
        """Record the rendered height of row *index*."""
        if not 0 <= index < self._count or height < 0:
            return
        if self._sizes.get(index) == height:
            return
        self._sizes[index] = float(height)
        self._starts = None

    def scroll_to(self, offset: float) -> RenderRange:
        self.scroll_offset = float(offset)
        self._clamp_scroll()
        return self.range()

    def scroll_to_index(self, index: int) -> RenderRange:
        """Scroll so row *index* sits at the top of the viewport."""
        return self.scroll_to(self.offset_of(index))

    def resize(self, viewport_height: float) -> RenderRange:
        self.viewport_height = max(float(viewport_height), 0.0)
        self._clamp_scroll()
        return self.range()

    # ── Output ──────────────────────────────────────────────────

    def range(self) -> RenderRange:
        """Rows intersecting the viewport, widened by ``overscan`` on both sides."""
        if self._count == 0:
            return RenderRange()
        starts = self._offsets()
        top = self.scroll_offset
        bottom = top + self.viewport_height
        first = min(max(bisect_right(starts, top) - 1, 0), self._count - 1)
        last = first
        while last + 1 < self._count and starts[last + 1] < bottom:
            last += 1
        start = max(first - self.overscan, 0)
        end = min(last + 1 + self.overscan, self._count)
        return RenderRange(start=start, end=end, offset=starts[start], total_size=starts[-1])


class VirtualTable:
    """A dataset engine viewed through a row window.

    Call :meth:`sync` after changing the engine's query; scrolling only
    slices the already-derived visible records.
    """

    def __init__(self, engine: DatasetEngine, window: RowWindow | None = None) -> None:
        self.engine = engine
        self.window = window or RowWindow()
        self._records: list[Record] = []
        self.sync()

    def sync(self) -> RenderRange:
        self._records = self.engine.visible_records()
        self.window.reset_measurements()
        self.window.set_count(len(self._records))
        return self.window.range()

    @property
    def is_empty(self) -> bool:
        return not self._records

    @property
    def row_count(self) -> int:
        return len(self._records)

    def scroll_to(self, offset: float) -> RenderRange:
        return self.window.scroll_to(offset)

    def scroll_to_index(self, index: int) -> RenderRange:
        return self.window.scroll_to_index(index)

    def resize(self, viewport_height: float) -> RenderRange:
        return self.window.resize(viewport_height)

    def measure(self, index: int, height: float) -> None:
        self.window.measure(index, height)

    def rows(self) -> list[tuple[int, Record]]:
        """``(index, record)`` for each row in the current render range."""
        window = self.window.range()
        return [(i, self._records[i]) for i in window.indexes() if i < len(self._records)]

    def display_rows(self, columns: list[str] | None = None) -> list[list[str]]:
        """Text cells of the rendered rows, for the visible columns."""
        columns = self.engine.state.visible_columns if columns is None else columns
        return [[cell_text(record.get(c, "")) for c in columns] for _i, record in self.rows()]
