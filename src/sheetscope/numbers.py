"""Locale-aware number parsing for cells that hold numbers as text."""

from __future__ import annotations

import math
import re
from typing import Literal

from sheetscope.models import is_missing

NumberLocale = Literal["auto", "us", "eu"]
NUMBER_LOCALES: tuple[str, ...] = ("auto", "us", "eu")

_THOUSANDS_COMMA_RE = re.compile(r"^[+-]?\d{1,3}(,\d{3})+$")
_THOUSANDS_DOT_RE = re.compile(r"^[+-]?\d{1,3}(\.\d{3})+$")
_PLAIN_NUMBER_RE = re.compile(r"^-?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def _check_locale(locale: str) -> None:
    if locale not in NUMBER_LOCALES:
        raise ValueError(f"Invalid number locale: {locale!r}. Use auto/us/eu.")


def normalize_numeric_token(token: str, *, locale: NumberLocale = "auto") -> str:
    """Strip currency/grouping noise from *token* and return a ``float()``-ready string.

    The result is not guaranteed to parse; callers decide what to do with
    leftovers such as ``"1,2,3"``.
    """
    _check_locale(locale)
    token = token.strip()
    token = re.sub(r"^\((.*)\)$", r"-\1", token)
    token = token.replace("—", "")
    token = token.replace("–", "")
    token = token.replace("%", "")
    token = re.sub(r"[\$€£]", "", token)
    token = re.sub(r"(?<=\d)[\s\u00a0]+(?=\d)", "", token)
    token = token.replace("'", "")
    token = token.replace("_", "")
    token = token.strip()

    if token in {"", "-", "+"}:
        return ""
    if token.startswith("+"):
        token = token[1:]

    has_comma = "," in token
    has_dot = "." in token

    if locale == "us":
        if has_comma and has_dot:
            return token.replace(",", "")
        if has_comma and _THOUSANDS_COMMA_RE.fullmatch(token):
            return token.replace(",", "")
        return token

    if locale == "eu":
        if has_comma and has_dot:
            return token.replace(".", "").replace(",", ".")
        if has_comma:
            if token.count(",") == 1:
                whole, frac = token.split(",", 1)
                if len(frac) in (1, 2, 3):
                    return f"{whole}.{frac}"
            return token
        if has_dot and _THOUSANDS_DOT_RE.fullmatch(token):
            return token.replace(".", "")
        return token

    # auto: the right-most separator is the decimal mark when both appear.
    if has_comma and has_dot:
        if token.rfind(",") > token.rfind("."):
            return token.replace(".", "").replace(",", ".")
        return token.replace(",", "")

    if has_comma:
        if _THOUSANDS_COMMA_RE.fullmatch(token):
            return token.replace(",", "")
        if token.count(",") == 1:
            whole, frac = token.split(",", 1)
            if len(frac) in (1, 2):
                return f"{whole}.{frac}"
            if len(frac) == 3:
                return f"{whole}{frac}"
        parts = token.split(",")
        if len(parts) > 1 and len(parts[-1]) in (1, 2) and all(len(p) == 3 for p in parts[1:-1]):
            return f"{''.join(parts[:-1])}.{parts[-1]}"
        return token

    if has_dot and _THOUSANDS_DOT_RE.fullmatch(token):
        return token.replace(".", "")

    return token


def coerce_number(value: object, *, locale: NumberLocale = "auto") -> float | None:
    """Return *value* as a finite float, or ``None`` when it is not numeric.

    Booleans, empty and missing cells are never numeric.
    """
    if value is None or is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
        return result if math.isfinite(result) else None
    if not isinstance(value, str):
        return None
    token = normalize_numeric_token(value, locale=locale)
    if not _PLAIN_NUMBER_RE.fullmatch(token):
        return None
    result = float(token)
    return result if math.isfinite(result) else None
