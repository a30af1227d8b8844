from __future__ import annotations

import pytest

from sheetscope.models import MISSING
from sheetscope.numbers import coerce_number, normalize_numeric_token


def test_normalize_numeric_token_exercises_locale_specific_branches() -> None:
    assert normalize_numeric_token("+1,234", locale="us") == "1234"
    assert normalize_numeric_token("1,234.5", locale="us") == "1234.5"
    assert normalize_numeric_token("1,234,56", locale="eu") == "1,234,56"
    assert normalize_numeric_token("1.234", locale="eu") == "1234"
    assert normalize_numeric_token("1.234,5", locale="eu") == "1234.5"


def test_normalize_numeric_token_exercises_auto_comma_and_dot_branches() -> None:
    assert normalize_numeric_token("1,234") == "1234"
    assert normalize_numeric_token("1234,567") == "1234567"
    assert normalize_numeric_token("1,234,56") == "1234.56"
    assert normalize_numeric_token("1.234") == "1234"
    assert normalize_numeric_token("1,2,3") == "1,2,3"
    assert normalize_numeric_token("2,5") == "2.5"


def test_normalize_numeric_token_strips_currency_and_noise() -> None:
    assert normalize_numeric_token("(1,234.50)") == "-1234.50"
    assert normalize_numeric_token("$ 1 234,5") == "1234.5"
    assert normalize_numeric_token("12%") == "12"
    assert normalize_numeric_token("1 000") == "1000"
    assert normalize_numeric_token(" - ") == ""


def test_coerce_number_accepts_numbers_and_numeric_text() -> None:
    assert coerce_number(7) == 7.0
    assert coerce_number(2.5) == 2.5
    assert coerce_number(" 1000 ") == 1000.0
    assert coerce_number("1e3") == 1000.0
    assert coerce_number("€ 12,50") == 12.5


def test_coerce_number_rejects_non_numeric_values() -> None:
    assert coerce_number("abc") is None
    assert coerce_number("1,2,3") is None
    assert coerce_number("") is None
    assert coerce_number(MISSING) is None
    assert coerce_number(None) is None
    assert coerce_number(True) is None
    assert coerce_number(float("inf")) is None
    assert coerce_number(float("nan")) is None
    assert coerce_number(object()) is None


def test_explicit_number_locale_modes_parse_differently() -> None:
    assert coerce_number("1.234,56", locale="us") == 1.23456
    assert coerce_number("1.234,56", locale="eu") == 1234.56
    assert coerce_number("1,234.56", locale="us") == 1234.56
    assert coerce_number("1.5", locale="eu") == 1.5


def test_invalid_number_locale_raises_value_error() -> None:
    with pytest.raises(ValueError, match="Invalid number locale"):
        normalize_numeric_token("1", locale="fr")  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="Invalid number locale"):
        coerce_number("1", locale="fr")  # type: ignore[arg-type]
