"""
Math difficulty classifier.

Tags a problem as simple, moderate or complex. The tier picks the
verification strategy:
- simple: integer arithmetic, no verification
- moderate: fractions, decimals, percentages, chains; self-check
- complex: algebra, equations, roots, trig/log; symbolic solver

Rules are data: an ordered tuple of (tier, reason, patterns), evaluated
first match wins. Complex rules come first because they are the most
restrictive.
"""

import re
from typing import Iterable, List, NamedTuple, Optional, Pattern, Tuple

from mathgrade.core.models import Difficulty

_I = re.IGNORECASE

COMPLEX_PATTERNS: Tuple[Pattern, ...] = (
    # Variables in equations
    re.compile(r"[a-z]\s*[=+\-*/]", _I),
    re.compile(r"[+\-*/=]\s*[a-z]", _I),
    # Keywords
    re.compile(r"solve\s+(for|the)", _I),
    re.compile(r"find\s+(the|x|y)", _I),
    re.compile(r"equation", _I),
    re.compile(r"simplify", _I),
    re.compile(r"factor", _I),
    re.compile(r"expand", _I),
    # Exponents greater than 1
    re.compile(r"\^[2-9]"),
    re.compile(r"\^\{[2-9]"),
    re.compile(r"squared", _I),
    re.compile(r"cubed", _I),
    # Roots
    re.compile(r"sqrt|√", _I),
    re.compile(r"\\sqrt"),
    re.compile(r"square\s*root", _I),
    # Parenthesised expression followed by another operation
    re.compile(r"\([^)]+[+\-*/][^)]+\)\s*[*/+\-]"),
    # Systems of equations
    re.compile(r"and\s+[a-z]\s*[=+\-]", _I),
    # Inequalities
    re.compile(r"[<>≤≥]"),
    re.compile(r"less\s+than", _I),
    re.compile(r"greater\s+than", _I),
    # Absolute value
    re.compile(r"\|[^|]+\|"),
    re.compile(r"absolute", _I),
    # Logarithms
    re.compile(r"log|ln", _I),
    # Trigonometry
    re.compile(r"sin|cos|tan|cot|sec|csc", _I),
)

MODERATE_PATTERNS: Tuple[Pattern, ...] = (
    # Fractions
    re.compile(r"\\frac"),
    re.compile(r"\d+\s*/\s*\d+"),
    re.compile(r"fraction", _I),
    # Decimals in calculations
    re.compile(r"\d+\.\d+\s*[+\-*/]"),
    re.compile(r"[+\-*/]\s*\d+\.\d+"),
    # Percentages
    re.compile(r"%"),
    re.compile(r"percent", _I),
    # Mixed numbers (2 1/2)
    re.compile(r"\d+\s+\d+\s*/\s*\d+"),
    # Power of one
    re.compile(r"\^1\b"),
    re.compile(r"\^\{1\}"),
    # Order of operations
    re.compile(r"[+\-]\s*\d+\s*[*/]\s*\d+"),
    re.compile(r"\d+\s*[*/]\s*\d+\s*[+\-]"),
    # Negative numbers in operations
    re.compile(r"-\d+\s*[+\-*/]"),
    re.compile(r"[+\-*/]\s*-\d+"),
    # Ratio / proportion
    re.compile(r"ratio", _I),
    re.compile(r"proportion", _I),
    re.compile(r":\s*\d+"),
    # Three or more numbers chained with operators
    re.compile(r"\d+\s*[+\-*/]\s*\d+\s*[+\-*/]\s*\d+"),
)

CLASSIFICATION_RULES: Tuple[Tuple[Difficulty, str, Tuple[Pattern, ...]], ...] = (
    (
        Difficulty.COMPLEX,
        "Contains algebraic variables, equations, or advanced operations",
        COMPLEX_PATTERNS,
    ),
    (
        Difficulty.MODERATE,
        "Contains fractions, decimals, percentages, or multi-step operations",
        MODERATE_PATTERNS,
    ),
)

SIMPLE_REASON = "Basic arithmetic with integers"
EMPTY_REASON = "Empty or missing problem text"


class Classification(NamedTuple):
    difficulty: Difficulty
    reason: str
    matched_pattern: Optional[str] = None


def classify_with_reason(problem_text: Optional[str]) -> Classification:
    """
    Classify a problem and explain which rule decided it.

    Args:
        problem_text: Problem text, plain or LaTeX

    Returns:
        Classification with the tier, a readable reason and the matched pattern
    """
    if not problem_text or not problem_text.strip():
        return Classification(Difficulty.SIMPLE, EMPTY_REASON)

    normalized = problem_text.strip()

    for difficulty, reason, patterns in CLASSIFICATION_RULES:
        for pattern in patterns:
            if pattern.search(normalized):
                return Classification(difficulty, reason, pattern.pattern)

    return Classification(Difficulty.SIMPLE, SIMPLE_REASON)


def classify(problem_text: Optional[str]) -> Difficulty:
    """Classify a problem as simple, moderate or complex."""
    return classify_with_reason(problem_text).difficulty


def classify_batch(problems: Iterable[Optional[str]]) -> List[Difficulty]:
    return [classify(p) for p in problems]


def max_difficulty(problems: Iterable[Optional[str]]) -> Difficulty:
    """Highest tier in a set of problems; simple for an empty set."""
    return max(classify_batch(problems), key=lambda d: d.rank, default=Difficulty.SIMPLE)


def requires_verification(problem_text: Optional[str]) -> bool:
    return classify(problem_text) != Difficulty.SIMPLE


def requires_solver(problem_text: Optional[str]) -> bool:
    return classify(problem_text) == Difficulty.COMPLEX
