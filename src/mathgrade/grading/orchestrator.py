"""
Grading orchestrator (blind grading).

Pipeline per submission:
1. Optional OCR transcription, used as a reading hint
2. Vision grading with the answer key withheld; the model solves each
   problem itself and grades the student against its own answer
3. Per question, concurrently: verification and reading conflict check
4. Answer key comparison, for the discrepancy note only
5. Totals and review flag

The model's own calculation is the authority for is_correct and
points_awarded. A wrong answer key cannot mark a right student wrong; it
only shows up as a discrepancy for the teacher to look at.
"""

import asyncio
import math
import time
from typing import Dict, List, Optional

from loguru import logger

from mathgrade.ai.mathpix_provider import MathpixProvider
from mathgrade.ai.provider_manager import ProviderManager
from mathgrade.ai.response_parser import ParsedGrading, ParsedQuestion, parse_grading_response
from mathgrade.config.constants import (
    CALL_COSTS,
    DEFAULT_TOLERANCE,
    MIN_POINTS_POSSIBLE,
    READABILITY_REVIEW_THRESHOLD,
)
from mathgrade.core.exceptions import ParseError
from mathgrade.core.models import (
    Difficulty,
    GradingRequest,
    GradingResult,
    OCRResult,
    QuestionResult,
    ReadingConflict,
    VerificationMethod,
    VerificationResult,
)
from mathgrade.grading.classifier import classify, max_difficulty
from mathgrade.grading.comparator import answers_equivalent
from mathgrade.grading.conflict_detector import ConflictDetector, find_ocr_reading, split_ocr_lines
from mathgrade.grading.verification import VerificationOptions, VerificationRouter
from mathgrade.prompts.grading import GRADING_SYSTEM_PROMPT, build_blind_grading_prompt
from mathgrade.utils.metrics import MetricsCollector


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class GradingOrchestrator:
    """
    Grades one submission end to end.

    Args:
        manager: Vision provider manager
        router: Verification router
        detector: OCR vs vision reading conflict detector
        ocr: Optional OCR provider
        metrics: Optional metrics collector
        enable_verification: Global switch, combined with the per-request option
        readability_threshold: Below this a question needs review
    """

    def __init__(
        self,
        manager: ProviderManager,
        router: VerificationRouter,
        detector: Optional[ConflictDetector] = None,
        ocr: Optional[MathpixProvider] = None,
        metrics: Optional[MetricsCollector] = None,
        enable_verification: bool = True,
        readability_threshold: float = READABILITY_REVIEW_THRESHOLD,
    ):
        self.manager = manager
        self.router = router
        self.detector = detector or ConflictDetector(router.solver)
        self.ocr = ocr
        self.metrics = metrics
        self.enable_verification = enable_verification
        self.readability_threshold = readability_threshold

    async def _run_ocr(self, request: GradingRequest) -> Optional[OCRResult]:
        if not request.options.use_ocr or self.ocr is None or not self.ocr.is_available:
            return None
        result = await self.ocr.extract(request.image)
        if not result.success:
            logger.warning(f"OCR unavailable for {request.submission_id}: {result.error}")
            return None
        return result

    async def grade(self, request: GradingRequest) -> GradingResult:
        """
        Grade a submission.

        Returns:
            GradingResult; success is False only when every provider failed
            or the grading response could not be parsed
        """
        start = time.perf_counter()
        submission_id = request.submission_id

        ocr = await self._run_ocr(request)

        response = await self.manager.analyze(
            build_blind_grading_prompt(ocr),
            image=request.image,
            system_prompt=GRADING_SYSTEM_PROMPT,
            preferred_provider=request.options.preferred_provider,
        )

        def elapsed() -> float:
            return (time.perf_counter() - start) * 1000

        if not response.success:
            logger.error(f"Grading failed for {submission_id}: {response.error}")
            return self._record(GradingResult.failure(
                submission_id,
                response.error or "Grading failed",
                processing_time_ms=elapsed(),
                ocr_provider="mathpix" if ocr else "vision",
            ))

        try:
            parsed = parse_grading_response(response.content)
        except ParseError as e:
            logger.error(f"Unparseable grading response for {submission_id}: {e}")
            return self._record(GradingResult.failure(
                submission_id,
                e.message,
                provider=response.provider,
                processing_time_ms=elapsed(),
                ocr_provider="mathpix" if ocr else "vision",
            ))

        ocr_lines = split_ocr_lines(ocr.text) if ocr else {}
        ocr_confidence = ocr.confidence if ocr else 0.0

        questions = await asyncio.gather(*(
            self._process_question(q, request, ocr_lines, ocr_confidence, response.provider)
            for q in parsed.questions
        ))
        questions = sorted(questions, key=lambda q: q.question_number)

        result = self._assemble(
            request, parsed, questions,
            provider=response.provider,
            tokens_used=response.tokens_used,
            ocr=ocr,
            processing_time_ms=elapsed(),
        )
        self._log_costs(submission_id, ocr, questions)
        return self._record(result)

    async def _process_question(
        self,
        q: ParsedQuestion,
        request: GradingRequest,
        ocr_lines: Dict[int, str],
        ocr_confidence: float,
        provider: Optional[str],
    ) -> QuestionResult:
        problem_text = q.problem_text
        ai_answer = q.ai_answer

        async def self_check(prompt: str, system_prompt: str):
            return await self.manager.analyze(prompt, system_prompt=system_prompt, preferred_provider=provider)

        async def verify() -> Optional[VerificationResult]:
            if not (self.enable_verification and request.options.enable_verification and ai_answer):
                return None
            options = VerificationOptions(tolerance=request.options.tolerance, self_check_fn=self_check)
            return await self.router.verify(problem_text, ai_answer, options)

        async def check_reading() -> Optional[ReadingConflict]:
            if not ocr_lines or not problem_text:
                return None
            ocr_reading = find_ocr_reading(q.question_number, problem_text, ocr_lines)
            return await self.detector.detect(
                problem_text,
                ocr_reading,
                vision_answer=ai_answer or None,
                vision_confidence=q.readability_confidence,
                ocr_confidence=ocr_confidence,
            )

        verification, reading = await asyncio.gather(verify(), check_reading())

        discrepancy = None
        key = request.key_for(q.question_number)
        if key and ai_answer:
            tolerance = request.options.tolerance or DEFAULT_TOLERANCE
            matches_key = any(
                answers_equivalent(ai_answer, accepted, tolerance) for accepted in key.accepted_answers
            )
            if not matches_key:
                discrepancy = f'AI calculated "{ai_answer}" but answer key says "{key.correct_answer}"'

        points_possible = max(q.points_possible or MIN_POINTS_POSSIBLE, MIN_POINTS_POSSIBLE)
        points_awarded = min(max(q.points_awarded or 0.0, 0.0), points_possible)

        confidence = q.confidence
        if verification and verification.method != VerificationMethod.NONE:
            confidence = min(confidence, verification.confidence)

        return QuestionResult(
            question_number=q.question_number,
            problem_text=problem_text,
            ai_calculation=q.ai_calculation,
            ai_answer=ai_answer,
            correct_answer=ai_answer,
            student_answer=q.student_answer or "",
            answer_key_value=key.correct_answer if key else None,
            discrepancy=discrepancy,
            is_correct=q.is_correct,
            points_awarded=points_awarded,
            points_possible=points_possible,
            confidence=confidence,
            readability_confidence=q.readability_confidence,
            readability_issue=q.readability_issue,
            difficulty_level=verification.difficulty if verification else classify(problem_text),
            verification_method=verification.method if verification else VerificationMethod.NONE,
            verification_answer=verification.verification_answer if verification else None,
            verification_conflict=verification.conflict if verification else False,
            verification_details=verification.details if verification else None,
            has_reading_conflict=bool(reading and reading.has_conflict),
            interpretation_options=reading.options if reading and reading.has_conflict else [],
        )

    def _review_reason(self, parsed: ParsedGrading, questions: List[QuestionResult]) -> Optional[str]:
        """Most important reason first: reading, verification, readability, model."""
        reading = sum(1 for q in questions if q.has_reading_conflict)
        if reading:
            return f"{reading} question(s) have reading conflicts between OCR and vision"

        conflicts = sum(1 for q in questions if q.verification_conflict)
        if conflicts:
            return f"{conflicts} question(s) have verification conflicts"

        unreadable = [q for q in questions if q.readability_confidence < self.readability_threshold]
        if unreadable:
            issues = "; ".join(
                f"Q{q.question_number}: {q.readability_issue}" for q in unreadable if q.readability_issue
            )
            reason = f"{len(unreadable)} question(s) are hard to read"
            return f"{reason} ({issues})" if issues else reason

        return parsed.review_reason

    def _assemble(
        self,
        request: GradingRequest,
        parsed: ParsedGrading,
        questions: List[QuestionResult],
        provider: Optional[str],
        tokens_used: Optional[int],
        ocr: Optional[OCRResult],
        processing_time_ms: float,
    ) -> GradingResult:
        total_score = sum(q.points_awarded for q in questions)
        total_possible = sum(q.points_possible for q in questions)
        percentage = _round_half_up(total_score / total_possible * 100) if total_possible > 0 else 0

        needs_review = (
            parsed.needs_review
            or any(q.verification_conflict for q in questions)
            or any(q.has_reading_conflict for q in questions)
            or any(q.readability_confidence < self.readability_threshold for q in questions)
        )
        review_reason = self._review_reason(parsed, questions) if needs_review else None

        difficulty = max_difficulty(q.problem_text for q in questions) if questions else Difficulty.SIMPLE

        return GradingResult(
            submission_id=request.submission_id,
            success=True,
            total_score=total_score,
            total_possible=total_possible,
            percentage=percentage,
            questions=questions,
            needs_review=needs_review,
            review_reason=review_reason,
            provider=provider,
            processing_time_ms=processing_time_ms,
            detected_student_name=parsed.student_name,
            name_confidence=parsed.name_confidence,
            ocr_provider="mathpix" if ocr else "vision",
            ocr_confidence=ocr.confidence if ocr else None,
            math_difficulty=difficulty,
            tokens_used=tokens_used,
        )

    def _log_costs(self, submission_id: str, ocr: Optional[OCRResult], questions: List[QuestionResult]) -> None:
        solver_calls = sum(1 for q in questions if q.verification_method == VerificationMethod.SOLVER)
        ocr_cost = CALL_COSTS["mathpix"] if ocr else 0.0
        vision_cost = CALL_COSTS["vision"]
        solver_cost = solver_calls * CALL_COSTS["wolfram"]
        total = ocr_cost + vision_cost + solver_cost

        logger.info(
            f"[COST] Grading {submission_id}: OCR=${ocr_cost:.4f}, vision=${vision_cost:.4f}, "
            f"solver=${solver_cost:.4f}, total=${total:.4f}"
        )
        if self.metrics:
            self.metrics.record_cost(total)

    def _record(self, result: GradingResult) -> GradingResult:
        if self.metrics:
            self.metrics.record_grading(result)
        return result
