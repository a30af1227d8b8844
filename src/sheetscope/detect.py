"""Header-row detection — score the top rows of a sheet and pick the header."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from sheetscope.config import DetectorSettings
from sheetscope.models import CellMatrix, HeaderDetection, cell_text

logger = logging.getLogger(__name__)

_DEFAULT_SETTINGS = DetectorSettings()


def filled_cells(row: Sequence[object]) -> list[str]:
    """Lower-cased, trimmed text of every non-empty cell in *row*."""
    cleaned = (cell_text(cell).strip().lower() for cell in row)
    return [text for text in cleaned if text]


def is_keyword(text: str, settings: DetectorSettings = _DEFAULT_SETTINGS) -> bool:
    """True when *text* names a known column, exactly or by prefix.

    ``"precio unitario"`` starts with ``"precio"``; ``"cant"`` is a prefix of
    ``"cantidad"``. Unlike a plain ``keyword.startswith(cell)`` test, cells
    shorter than ``min_prefix_length`` never match as prefixes, so codes
    like ``"A"`` or ``"co"`` in data rows do not count as header words.
    """
    if text in settings.keywords:
        return True
    short_enough = len(text) < settings.min_prefix_length
    for keyword in settings.keywords:
        if text.startswith(keyword):
            return True
        if not short_enough and keyword.startswith(text):
            return True
    return False


def score_row(
    row: Sequence[object], settings: DetectorSettings = _DEFAULT_SETTINGS
) -> tuple[int, int, int]:
    """Return ``(score, keyword_hits, filled)`` for one candidate row.

    Rows below the density gate score 0.
    """
    filled = filled_cells(row)
    if len(filled) < settings.min_filled_cells:
        return 0, 0, len(filled)
    hits = sum(1 for text in filled if is_keyword(text, settings))
    score = hits * settings.keyword_weight + len(filled) * settings.density_weight
    return score, hits, len(filled)


def detect_header_row(
    matrix: CellMatrix,
    settings: DetectorSettings | None = None,
    *,
    on_log: Callable[[str], None] | None = None,
) -> HeaderDetection:
    """Pick the row most likely to hold column names.

    Keyword evidence dominates column count; on equal scores the deeper row
    wins since headers sit below titles and banners. Never raises: when no
    row scores above zero the result is row 0 with score 0.
    """
    settings = settings or _DEFAULT_SETTINGS
    emit = on_log or logger.debug

    best = HeaderDetection()
    depth = min(len(matrix), settings.search_depth)
    for index in range(depth):
        row = matrix[index]
        if not isinstance(row, (list, tuple)):
            continue
        score, hits, filled = score_row(row, settings)
        if hits > 0 or filled > 5:
            sample = ", ".join(filled_cells(row)[:4])
            emit(f"Row {index} analysis: hits={hits}, cols={filled}, score={score} | Sample: [{sample}]")
        if score > 0 and score >= best.score:
            best = HeaderDetection(
                row_index=index, score=score, keyword_hits=hits, filled_cells=filled
            )

    emit(f"Header decision: row {best.row_index} (score {best.score})")
    return best
