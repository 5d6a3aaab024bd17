"""
Answer equivalence across representations.

Compares answers from different sources (vision model, solver, student,
answer key) and treats equivalent forms as equal: fractions, decimals,
percentages, mixed numbers, answers with units or currency.
"""

import re
from typing import Optional, Tuple

from mathgrade.config.constants import DEFAULT_TOLERANCE, RELATIVE_TOLERANCE
from mathgrade.core.models import ComparisonResult

_LEADING_MARKER_RE = re.compile(r"^[=:]\s*")
_TRAILING_ZEROS_RE = re.compile(r"\.0+$")
_WHITESPACE_RE = re.compile(r"\s+")
_UNITS_RE = re.compile(
    r"(?<=\d)\s*(dollars?|cents?|meters?|feet|inches|cm|mm|kg|g|lbs?|oz)\s*$",
    re.IGNORECASE,
)
_CURRENCY_RE = re.compile(r"^\$\s*")

_DECIMAL_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)$")
_MIXED_NUMBER_RE = re.compile(r"^(-?\d+)\s+(\d+)\s*/\s*(\d+)$")
_FRACTION_RE = re.compile(r"^(-?\d+)\s*/\s*(\d+)$")
_PERCENTAGE_RE = re.compile(r"^(-?\d+\.?\d*)\s*(%|percent)$")

# Display hints for decimals that are common fractions
COMMON_FRACTIONS = (
    (0.5, "1/2"),
    (0.25, "1/4"),
    (0.75, "3/4"),
    (0.333, "1/3"),
    (0.667, "2/3"),
    (0.2, "1/5"),
    (0.4, "2/5"),
    (0.6, "3/5"),
    (0.8, "4/5"),
)


def normalize_answer(answer: str) -> str:
    """
    Normalize an answer string for comparison.

    Lower-cases and trims, drops a leading '=' or ':', thousands
    separators, a trailing '.0', trailing units and a leading '$'.
    """
    normalized = answer.strip().lower()
    normalized = _LEADING_MARKER_RE.sub("", normalized)
    normalized = normalized.replace(",", "")
    normalized = _TRAILING_ZEROS_RE.sub("", normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    normalized = _UNITS_RE.sub("", normalized)
    normalized = _CURRENCY_RE.sub("", normalized)
    # Units may have hidden a trailing .0 ("5.0 kg")
    normalized = _TRAILING_ZEROS_RE.sub("", normalized)
    return normalized.strip()


def _parse_decimal(text: str) -> Optional[float]:
    """Plain integer or decimal only. '1/2' and '50%' are not decimals."""
    if not _DECIMAL_RE.match(text):
        return None
    return float(text)


def parse_fraction(text: str) -> Optional[Tuple[int, int]]:
    """
    Parse a fraction or mixed number into (numerator, denominator).

    Supports "3/4", "3 / 4", "-3/4" and "1 1/2". A zero denominator is
    not a fraction.
    """
    normalized = text.strip()

    mixed = _MIXED_NUMBER_RE.match(normalized)
    if mixed:
        whole, num, den = (int(g) for g in mixed.groups())
        if den == 0:
            return None
        sign = -1 if mixed.group(1).startswith("-") else 1
        return sign * (abs(whole) * den + num), den

    simple = _FRACTION_RE.match(normalized)
    if simple:
        num, den = int(simple.group(1)), int(simple.group(2))
        if den == 0:
            return None
        return num, den

    return None


def parse_percentage(text: str) -> Optional[float]:
    """Parse "50%", "50 %" or "50 percent" into 50.0."""
    match = _PERCENTAGE_RE.match(text.strip().lower())
    if match:
        return float(match.group(1))
    return None


def parse_numeric(text: str) -> Optional[float]:
    """
    Parse any supported representation into a float.

    Tries a plain decimal, then a fraction, then a percentage (50% -> 0.5).
    """
    if not text:
        return None
    normalized = normalize_answer(text)

    value = _parse_decimal(normalized)
    if value is not None:
        return value

    fraction = parse_fraction(normalized)
    if fraction:
        return fraction[0] / fraction[1]

    pct = parse_percentage(normalized)
    if pct is not None:
        return pct / 100

    return None


def compare(a: Optional[str], b: Optional[str], tolerance: float = DEFAULT_TOLERANCE) -> ComparisonResult:
    """
    Compare two answers, handling equivalent forms.

    Order: exact, numeric (absolute then relative tolerance), fraction
    cross-multiplication, fraction vs decimal, percentage.

    Args:
        a: First answer (e.g. the model's answer)
        b: Second answer (e.g. the solver's answer)
        tolerance: Absolute tolerance for numeric comparison

    Returns:
        ComparisonResult; on mismatch both normalized forms are included
    """
    if not a or not b or not a.strip() or not b.strip():
        return ComparisonResult(matched=False)

    norm_a = normalize_answer(a)
    norm_b = normalize_answer(b)

    if norm_a == norm_b:
        return ComparisonResult(matched=True, method="exact")

    num_a = _parse_decimal(norm_a)
    num_b = _parse_decimal(norm_b)

    if num_a is not None and num_b is not None:
        diff = abs(num_a - num_b)
        if diff < tolerance:
            return ComparisonResult(matched=True, method="numeric")
        # Relative tolerance for large numbers
        if diff < max(abs(num_a), abs(num_b)) * RELATIVE_TOLERANCE:
            return ComparisonResult(matched=True, method="numeric")

    frac_a = parse_fraction(norm_a)
    frac_b = parse_fraction(norm_b)

    if frac_a and frac_b:
        if frac_a[0] * frac_b[1] == frac_b[0] * frac_a[1]:
            return ComparisonResult(matched=True, method="fraction")

    if frac_a and num_b is not None and abs(frac_a[0] / frac_a[1] - num_b) < tolerance:
        return ComparisonResult(matched=True, method="fraction")
    if frac_b and num_a is not None and abs(frac_b[0] / frac_b[1] - num_a) < tolerance:
        return ComparisonResult(matched=True, method="fraction")

    pct_a = parse_percentage(norm_a)
    pct_b = parse_percentage(norm_b)

    if pct_a is not None and pct_b is not None and abs(pct_a - pct_b) < tolerance:
        return ComparisonResult(matched=True, method="percentage")
    if pct_a is not None and num_b is not None and abs(pct_a / 100 - num_b) < tolerance:
        return ComparisonResult(matched=True, method="percentage")
    if pct_b is not None and num_a is not None and abs(pct_b / 100 - num_a) < tolerance:
        return ComparisonResult(matched=True, method="percentage")

    return ComparisonResult(matched=False, a_normalized=norm_a, b_normalized=norm_b)


def answers_equivalent(a: Optional[str], b: Optional[str], tolerance: float = DEFAULT_TOLERANCE) -> bool:
    """Convenience wrapper around compare()."""
    return compare(a, b, tolerance).matched


def format_answer(answer: str) -> str:
    """Normalize an answer for display, hinting common fractions ("0.5 (1/2)")."""
    normalized = normalize_answer(answer)

    if re.match(r"^-?\d+$", normalized):
        return normalized

    value = _parse_decimal(normalized)
    if value is not None:
        for decimal, fraction in COMMON_FRACTIONS:
            if abs(value - decimal) < 0.01:
                return f"{normalized} ({fraction})"

    return normalized
