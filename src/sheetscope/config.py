"""Detector settings and keyword profile files."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from pathlib import Path

from sheetscope import HEADER_KEYWORDS

SEARCH_DEPTH = 100
KEYWORD_WEIGHT = 2000
DENSITY_WEIGHT = 50
MIN_FILLED_CELLS = 3
MIN_PREFIX_LENGTH = 3


def _normalize_keyword(token: object) -> str:
    return str(token).strip().lower()


@dataclass(frozen=True)
class DetectorSettings:
    """Tuning knobs for header-row detection.

    ``keyword_weight`` must dominate ``density_weight`` so a wide title banner
    never beats a narrower row of recognised column names.
    """

    search_depth: int = SEARCH_DEPTH
    keyword_weight: int = KEYWORD_WEIGHT
    density_weight: int = DENSITY_WEIGHT
    min_filled_cells: int = MIN_FILLED_CELLS
    min_prefix_length: int = MIN_PREFIX_LENGTH
    keywords: frozenset[str] = field(
        default_factory=lambda: frozenset(_normalize_keyword(k) for k in HEADER_KEYWORDS)
    )

    def __post_init__(self) -> None:
        for name in ("search_depth", "keyword_weight", "density_weight",
                     "min_filled_cells", "min_prefix_length"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an integer")
            if value < 0:
                raise ValueError(f"{name} must be >= 0")
        if isinstance(self.keywords, str):
            raise TypeError("keywords must be a collection of strings")
        keywords = frozenset(_normalize_keyword(k) for k in self.keywords)
        object.__setattr__(self, "keywords", frozenset(k for k in keywords if k))

    def with_keywords(self, extra: Iterable[str]) -> DetectorSettings:
        """Return a copy whose vocabulary also contains *extra*."""
        return replace(self, keywords=self.keywords | frozenset(extra))


def load_keyword_profile(profile: Path | None) -> list[str]:
    """Return the header keywords listed in a profile file, one per line."""
    if not profile:
        return []
    if not profile.exists():
        raise ValueError(f"Keyword profile not found: {profile} (expected one keyword per line)")
    if profile.is_dir():
        raise ValueError(f"Keyword profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read keyword profile {profile}: {exc}") from exc

    keywords: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        keywords.append(_normalize_keyword(stripped))
    return keywords
