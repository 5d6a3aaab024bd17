"""
Shared response parser for model output.

Parses the blind grading response and the self-check verdict in a
provider-independent way. Keys are accepted in snake_case or camelCase
since models drift between the two.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from mathgrade.config.constants import CONFIDENCE_VERDICT_DEFAULT
from mathgrade.core.exceptions import ParseError, VerificationError
from mathgrade.utils.json_extractor import lenient_decode


@dataclass
class ParsedQuestion:
    question_number: int
    problem_text: str = ""
    ai_calculation: str = ""
    ai_answer: str = ""
    student_answer: Optional[str] = None
    is_correct: bool = False
    confidence: float = 0.5
    readability_confidence: float = 1.0
    readability_issue: Optional[str] = None
    points_awarded: float = 0.0
    points_possible: float = 1.0


@dataclass
class ParsedGrading:
    questions: List[ParsedQuestion]
    student_name: Optional[str] = None
    name_confidence: float = 0.0
    total_score: float = 0.0
    total_possible: float = 0.0
    needs_review: bool = False
    review_reason: Optional[str] = None


@dataclass
class ParsedVerdict:
    your_answer: str
    provided_answer: str = ""
    match: bool = False
    confidence: float = CONFIDENCE_VERDICT_DEFAULT
    steps: List[str] = field(default_factory=list)
    discrepancy: Optional[str] = None
    calculation: Optional[str] = None


def _get(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present, non-null value among keys."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none"):
        return None
    return text


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "correct")
    return bool(value)


def _parse_question(raw: Dict[str, Any], index: int) -> ParsedQuestion:
    number = _get(raw, "question_number", "questionNumber")
    try:
        question_number = int(number)
    except (TypeError, ValueError):
        question_number = index + 1

    return ParsedQuestion(
        question_number=question_number,
        problem_text=_as_text(_get(raw, "problem_text", "problemText")) or "",
        ai_calculation=_as_text(_get(raw, "ai_calculation", "aiCalculation")) or "",
        ai_answer=_as_text(_get(raw, "ai_answer", "aiAnswer")) or "",
        student_answer=_as_text(_get(raw, "student_answer", "studentAnswer")),
        is_correct=_as_bool(_get(raw, "is_correct", "isCorrect", default=False)),
        confidence=_as_float(_get(raw, "confidence"), 0.5),
        readability_confidence=_as_float(
            _get(raw, "readability_confidence", "readabilityConfidence"), 1.0
        ),
        readability_issue=_as_text(_get(raw, "readability_issue", "readabilityIssue")),
        points_awarded=_as_float(_get(raw, "points_awarded", "pointsAwarded"), 0.0),
        points_possible=_as_float(_get(raw, "points_possible", "pointsPossible"), 1.0),
    )


def parse_grading_response(content: str) -> ParsedGrading:
    """
    Parse the blind grading JSON.

    Raises:
        ParseError: No JSON object, or no questions list
    """
    decoded = lenient_decode(content)
    if not decoded.success:
        raise ParseError(f"Failed to parse grading response: {decoded.error}", {"rules": decoded.attempted})

    data = decoded.data
    questions = data.get("questions")
    if not isinstance(questions, list):
        raise ParseError("Grading response has no questions list", {"keys": sorted(data.keys())})

    return ParsedGrading(
        questions=[
            _parse_question(q, i) for i, q in enumerate(questions) if isinstance(q, dict)
        ],
        student_name=_as_text(_get(data, "student_name", "studentName")),
        name_confidence=_as_float(_get(data, "name_confidence", "nameConfidence"), 0.0),
        total_score=_as_float(_get(data, "total_score", "totalScore"), 0.0),
        total_possible=_as_float(_get(data, "total_possible", "totalPossible"), 0.0),
        needs_review=_as_bool(_get(data, "needs_review", "needsReview", default=False)),
        review_reason=_as_text(_get(data, "review_reason", "reviewReason")),
    )


def parse_verification_response(content: str) -> ParsedVerdict:
    """
    Parse a self-check verdict.

    Raises:
        VerificationError: No JSON object could be recovered
    """
    decoded = lenient_decode(content)
    if not decoded.success:
        raise VerificationError(f"Unparseable self-check verdict: {decoded.error}", {"rules": decoded.attempted})

    data = decoded.data
    confidence = data.get("confidence")
    steps = _get(data, "steps", "algebraic_steps", "algebraicSteps", default=[])

    return ParsedVerdict(
        your_answer=_as_text(
            _get(data, "your_answer", "yourAnswer", "calculated_answer", "calculatedAnswer")
        ) or "",
        provided_answer=_as_text(
            _get(data, "provided_answer", "providedAnswer", "given_answer", "givenAnswer")
        ) or "",
        match=_as_bool(data.get("match", False)),
        confidence=_as_float(confidence, CONFIDENCE_VERDICT_DEFAULT),
        steps=[str(s) for s in steps] if isinstance(steps, list) else [],
        discrepancy=_as_text(data.get("discrepancy")),
        calculation=_as_text(data.get("calculation")),
    )
