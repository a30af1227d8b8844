"""Dataset engine — filter, search and sort an immutable record collection."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sheetscope.models import (
    ColumnFilter,
    QueryState,
    RangeFilter,
    Record,
    SortDirection,
    SortState,
    cell_text,
    is_missing,
)
from sheetscope.numbers import NumberLocale, coerce_number

logger = logging.getLogger(__name__)

SortKey = tuple[Any, ...]


# ── Filter normalisation ────────────────────────────────────────


def normalize_filter(value: Any) -> ColumnFilter | None:
    """Classify a raw filter value; ``None`` means "no restriction".

    * ``RangeFilter`` or a mapping with ``min``/``max`` keys -> numeric range
    * ``set``/``frozenset``/``list``/``tuple`` -> multi-select
    * anything else -> case-insensitive substring
    """
    if value is None:
        return None
    if isinstance(value, RangeFilter):
        return None if value.is_open else value
    if isinstance(value, Mapping) and ("min" in value or "max" in value):
        range_filter = RangeFilter.from_mapping(value)
        return None if range_filter.is_open else range_filter
    if isinstance(value, (set, frozenset, list, tuple)):
        accepted = frozenset(cell_text(v) for v in value)
        return accepted or None
    text = cell_text(value)
    return text or None


def _passes_range(value: object, bounds: RangeFilter, locale: NumberLocale) -> bool:
    number = coerce_number(value, locale=locale)
    if number is None:
        # A numeric filter has nothing to say about text or blank cells.
        return True
    if bounds.min is not None and number < bounds.min:
        return False
    if bounds.max is not None and number > bounds.max:
        return False
    return True


def matches_filter(value: object, column_filter: ColumnFilter, *,
                   locale: NumberLocale = "auto") -> bool:
    if isinstance(column_filter, RangeFilter):
        return _passes_range(value, column_filter, locale)
    if isinstance(column_filter, frozenset):
        return cell_text(value) in column_filter
    return column_filter.lower() in cell_text(value).lower()


# ── Sorting ─────────────────────────────────────────────────────


def sort_key(value: object, *, locale: NumberLocale = "auto") -> SortKey:
    """Total ordering key over mixed cells: numbers, then text, blanks last."""
    text = cell_text(value)
    if is_missing(value) or not text.strip():
        return (2,)
    number = coerce_number(value, locale=locale)
    if number is not None:
        return (0, number, text)
    return (1, text.casefold(), text)


def sort_records(records: Sequence[Record], key: str, direction: SortDirection = "asc", *,
                 locale: NumberLocale = "auto") -> list[Record]:
    """Sort by one field. Blank cells stay at the end in both directions."""
    keyed = [(sort_key(record.get(key, ""), locale=locale), record) for record in records]
    filled = [pair for pair in keyed if pair[0][0] != 2]
    blanks = [record for k, record in keyed if k[0] == 2]
    filled.sort(key=lambda pair: pair[0], reverse=direction == "desc")
    return [record for _k, record in filled] + blanks


def next_sort(current: SortState | None, key: str) -> SortState:
    """Header-click cycle: new key -> asc, asc -> desc, desc -> asc."""
    if current is not None and current.key == key and current.direction == "asc":
        return SortState(key, "desc")
    return SortState(key, "asc")


# ── Engine ──────────────────────────────────────────────────────


class DatasetEngine:
    """Owns one record collection and the query state applied to it.

    Every mutation recomputes the visible records from the full collection,
    synchronously. Records are never modified.
    """

    def __init__(self, records: Iterable[Record] = (), *,
                 number_locale: NumberLocale = "auto") -> None:
        self.number_locale: NumberLocale = number_locale
        self._records: tuple[Record, ...] = ()
        self._headers: list[str] = []
        self._state = QueryState()
        self._visible: list[Record] = []
        self.replace(records)

    # ── Collection ──────────────────────────────────────────────

    def replace(self, records: Iterable[Record]) -> None:
        """Swap in a new collection and reset the query state."""
        self._records = tuple(records)
        self._headers = list(self._records[0].keys()) if self._records else []
        self._state = QueryState(visible_columns=list(self._headers))
        self._recompute()

    def reset(self) -> None:
        self.replace(())

    @property
    def records(self) -> tuple[Record, ...]:
        return self._records

    @property
    def state(self) -> QueryState:
        return self._state

    def __len__(self) -> int:
        return len(self._visible)

    def headers(self) -> list[str]:
        """Field names of the first record."""
        return list(self._headers)

    def visible_records(self) -> list[Record]:
        return list(self._visible)

    # ── Query mutations ─────────────────────────────────────────

    def set_search_term(self, term: str | None) -> None:
        self._state.search_term = term or ""
        self._recompute()

    def set_filters(self, filters: Mapping[str, Any]) -> None:
        """Replace the whole column-filter mapping."""
        normalized: dict[str, ColumnFilter] = {}
        for column, raw in filters.items():
            value = normalize_filter(raw)
            if value is not None:
                normalized[str(column)] = value
        self._state.filters = normalized
        self._recompute()

    def set_filter(self, column: str, value: Any) -> None:
        filters: dict[str, Any] = dict(self._state.filters)
        filters[column] = value
        self.set_filters(filters)

    def clear_filter(self, column: str) -> None:
        filters = {k: v for k, v in self._state.filters.items() if k != column}
        self.set_filters(filters)

    def clear_filters(self) -> None:
        self.set_filters({})

    def set_sort(self, key: str, direction: SortDirection | None = None) -> SortState:
        """Sort by *key*; without *direction* this cycles asc/desc like a header click."""
        if direction is None:
            sort = next_sort(self._state.sort, key)
        else:
            sort = SortState(key, direction)
        self._state.sort = sort
        self._recompute()
        return sort

    def clear_sort(self) -> None:
        self._state.sort = None
        self._recompute()

    def set_visible_columns(self, columns: Iterable[str]) -> None:
        """Show only *columns*, kept in header order; unknown names are ignored."""
        wanted = set(columns)
        unknown = wanted.difference(self._headers)
        if unknown:
            logger.debug("Ignoring unknown columns: %s", ", ".join(sorted(unknown)))
        self._state.visible_columns = [h for h in self._headers if h in wanted]
        self._recompute()

    def toggle_column(self, column: str) -> None:
        visible = set(self._state.visible_columns)
        visible.symmetric_difference_update({column})
        self.set_visible_columns(visible)

    # ── Filter-building helpers ─────────────────────────────────

    def unique_values(self, column: str) -> list[str]:
        """Distinct non-empty display values of *column*, for multi-select options."""
        values = {cell_text(record.get(column, "")) for record in self._records}
        values.discard("")
        return sorted(values, key=lambda v: sort_key(v, locale=self.number_locale))

    def numeric_bounds(self, column: str) -> tuple[float, float] | None:
        """``(min, max)`` over the numeric values of *column*, or ``None``."""
        numbers = [
            n for n in (coerce_number(record.get(column), locale=self.number_locale)
                        for record in self._records)
            if n is not None
        ]
        if not numbers:
            return None
        return min(numbers), max(numbers)

    # ── Derivation ──────────────────────────────────────────────

    def _matches(self, record: Record) -> bool:
        for column, column_filter in self._state.filters.items():
            if not matches_filter(record.get(column, ""), column_filter,
                                  locale=self.number_locale):
                return False
        term = self._state.search_term.lower()
        if term:
            return any(
                term in cell_text(record.get(column, "")).lower()
                for column in self._state.visible_columns
            )
        return True

    def _recompute(self) -> None:
        visible = [record for record in self._records if self._matches(record)]
        sort = self._state.sort
        if sort is not None:
            visible = sort_records(visible, sort.key, sort.direction, locale=self.number_locale)
        self._visible = visible
