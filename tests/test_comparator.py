"""
Tests for answer equivalence.
"""

import pytest

from mathgrade.grading.comparator import (
    answers_equivalent,
    compare,
    format_answer,
    normalize_answer,
    parse_fraction,
    parse_numeric,
    parse_percentage,
)


def test_fraction_matches_decimal():
    result = compare("1/2", "0.5")
    assert result.matched
    assert result.method == "fraction"


def test_percentage_matches_decimal():
    result = compare("50%", "0.5")
    assert result.matched
    assert result.method == "percentage"


def test_identical_fractions_match_exactly():
    result = compare("3/4", "3/4")
    assert result.matched
    assert result.method == "exact"


def test_different_integers_do_not_match():
    result = compare("100", "99")
    assert not result.matched
    assert result.method == "none"
    assert result.a_normalized == "100"
    assert result.b_normalized == "99"


def test_equivalent_fractions_cross_multiply():
    assert compare("2/4", "1/2").method == "fraction"


def test_mixed_number_matches_improper_fraction():
    assert compare("1 1/2", "3/2").matched
    assert compare("1 1/2", "1.5").matched


def test_numeric_tolerance():
    assert compare("3.14159", "3.1416", tolerance=1e-3).method == "numeric"
    assert not compare("3.14", "3.15").matched


def test_relative_tolerance_for_large_numbers():
    assert compare("1000000", "1000000.5").matched


def test_units_and_currency_are_ignored():
    assert compare("$12", "12 dollars").matched
    assert compare("5.0 kg", "5").matched
    assert compare("1,000", "1000").matched


def test_leading_equals_sign_is_ignored():
    assert compare("= 42", "42").method == "exact"


@pytest.mark.parametrize("a, b", [("", "1"), ("1", ""), (None, "1"), ("  ", "  ")])
def test_empty_input_never_matches(a, b):
    assert not compare(a, b).matched


def test_normalize_answer():
    assert normalize_answer("  = 7.0 ") == "7"
    assert normalize_answer("$1,250") == "1250"
    assert normalize_answer("X") == "x"


def test_parse_fraction():
    assert parse_fraction("3/4") == (3, 4)
    assert parse_fraction("-3 / 4") == (-3, 4)
    assert parse_fraction("2 1/4") == (9, 4)
    assert parse_fraction("-2 1/4") == (-9, 4)
    assert parse_fraction("1/0") is None
    assert parse_fraction("0.75") is None


def test_parse_percentage():
    assert parse_percentage("50%") == 50.0
    assert parse_percentage("12.5 percent") == 12.5
    assert parse_percentage("50") is None


def test_parse_numeric():
    assert parse_numeric("0.25") == 0.25
    assert parse_numeric("1/4") == 0.25
    assert parse_numeric("25%") == 0.25
    assert parse_numeric("abc") is None
    assert parse_numeric("") is None


def test_answers_equivalent():
    assert answers_equivalent("0.75", "3/4")
    assert not answers_equivalent("x = 3", "4")


def test_format_answer():
    assert format_answer("0.5") == "0.5 (1/2)"
    assert format_answer("42.0") == "42"
    assert format_answer("x+1") == "x+1"
