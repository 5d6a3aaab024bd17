"""
Verification router.

Classifies each problem and picks a verification strategy:
- simple: trusted as-is, no external call
- moderate: self-check, a fresh reasoning call recalculates the problem
- complex: symbolic solver when available, else self-check

Verification never fails a grading. When a strategy cannot produce a
verdict the claimed answer is kept (matched=True) with lowered confidence.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from loguru import logger

from mathgrade.config.constants import (
    CONFIDENCE_SIMPLE,
    CONFIDENCE_SKIPPED,
    CONFIDENCE_SOLVER_CONFLICT,
    CONFIDENCE_SOLVER_MATCH,
    CONFIDENCE_UNPARSEABLE_VERDICT,
    CONFIDENCE_UNVERIFIED,
    DEFAULT_TOLERANCE,
)
from mathgrade.ai.response_parser import parse_verification_response
from mathgrade.core.exceptions import VerificationError
from mathgrade.core.models import (
    Difficulty,
    ProviderResponse,
    SolverResult,
    VerificationMethod,
    VerificationResult,
)
from mathgrade.grading.classifier import classify
from mathgrade.grading.comparator import compare
from mathgrade.prompts.verification import VERIFICATION_SYSTEM_PROMPT, select_verification_prompt

SelfCheckFn = Callable[[str, str], Awaitable[ProviderResponse]]


class Solver(Protocol):
    """Anything that can evaluate a math expression (e.g. WolframProvider)."""

    @property
    def is_available(self) -> bool: ...

    async def solve(self, expression: str) -> SolverResult: ...


@dataclass
class VerificationOptions:
    """Per-call switches for VerificationRouter.verify()."""
    force_method: Optional[VerificationMethod] = None
    skip: bool = False
    tolerance: Optional[float] = None
    self_check_fn: Optional[SelfCheckFn] = None


class VerificationRouter:
    """
    Chooses and runs a verification strategy per problem.

    Args:
        solver: Symbolic solver, or None
        self_check_fn: Default reasoning call for self-check; options may override it
        tolerance: Default numeric tolerance for answer comparison
    """

    def __init__(
        self,
        solver: Optional[Solver] = None,
        self_check_fn: Optional[SelfCheckFn] = None,
        tolerance: float = DEFAULT_TOLERANCE,
    ):
        self.solver = solver
        self.self_check_fn = self_check_fn
        self.tolerance = tolerance

    @property
    def solver_available(self) -> bool:
        return self.solver is not None and self.solver.is_available

    def select_method(self, difficulty: Difficulty) -> VerificationMethod:
        if difficulty == Difficulty.COMPLEX:
            return VerificationMethod.SOLVER if self.solver_available else VerificationMethod.SELF_CHECK
        if difficulty == Difficulty.MODERATE:
            return VerificationMethod.SELF_CHECK
        return VerificationMethod.NONE

    async def verify(
        self,
        problem_text: str,
        claimed_answer: str,
        options: Optional[VerificationOptions] = None,
    ) -> VerificationResult:
        """
        Independently check a claimed answer.

        Args:
            problem_text: Problem as read from the homework
            claimed_answer: Answer computed by the grading model
            options: Optional per-call overrides

        Returns:
            VerificationResult; conflict is True only when both sides disagree
        """
        options = options or VerificationOptions()

        if options.skip:
            return VerificationResult(
                method=VerificationMethod.NONE,
                original_answer=claimed_answer,
                matched=True,
                confidence=CONFIDENCE_SKIPPED,
                difficulty=Difficulty.SIMPLE,
                details="Verification skipped by request",
            )

        difficulty = classify(problem_text)
        method = options.force_method or self.select_method(difficulty)

        if method == VerificationMethod.SOLVER:
            return await self._verify_with_solver(problem_text, claimed_answer, difficulty, options)
        if method == VerificationMethod.SELF_CHECK:
            return await self._verify_with_self_check(problem_text, claimed_answer, difficulty, options)

        return VerificationResult(
            method=VerificationMethod.NONE,
            original_answer=claimed_answer,
            matched=True,
            confidence=CONFIDENCE_SIMPLE,
            difficulty=difficulty,
            details="Simple arithmetic",
        )

    async def _verify_with_solver(
        self,
        problem_text: str,
        claimed_answer: str,
        difficulty: Difficulty,
        options: VerificationOptions,
    ) -> VerificationResult:
        tolerance = options.tolerance or self.tolerance

        if self.solver_available:
            result = await self.solver.solve(problem_text)
        else:
            result = SolverResult(success=False, query=problem_text, error="Solver not configured")

        if result.success and result.answer:
            comparison = compare(claimed_answer, result.answer, tolerance)
            details = (
                f"Solver verified: {result.answer}"
                if comparison.matched
                else f"CONFLICT: AI={claimed_answer}, solver={result.answer}"
            )
            return VerificationResult(
                method=VerificationMethod.SOLVER,
                original_answer=claimed_answer,
                verification_answer=result.answer,
                matched=comparison.matched,
                conflict=not comparison.matched,
                confidence=CONFIDENCE_SOLVER_MATCH if comparison.matched else CONFIDENCE_SOLVER_CONFLICT,
                difficulty=difficulty,
                details=details,
            )

        logger.warning(f"Solver verification failed for {problem_text!r}: {result.error}")

        if options.self_check_fn or self.self_check_fn:
            fallback = await self._verify_with_self_check(problem_text, claimed_answer, difficulty, options)
            return fallback.model_copy(update={
                "details": f"Solver failed ({result.error}), used self-check fallback. {fallback.details}",
            })

        return VerificationResult(
            method=VerificationMethod.SOLVER,
            original_answer=claimed_answer,
            matched=True,
            confidence=CONFIDENCE_UNVERIFIED,
            difficulty=difficulty,
            details=f"Solver verification failed: {result.error}",
        )

    async def _verify_with_self_check(
        self,
        problem_text: str,
        claimed_answer: str,
        difficulty: Difficulty,
        options: VerificationOptions,
    ) -> VerificationResult:
        tolerance = options.tolerance or self.tolerance
        check = options.self_check_fn or self.self_check_fn

        def unverified(confidence: float, details: str) -> VerificationResult:
            return VerificationResult(
                method=VerificationMethod.SELF_CHECK,
                original_answer=claimed_answer,
                matched=True,
                confidence=confidence,
                difficulty=difficulty,
                details=details,
            )

        if check is None:
            return unverified(
                CONFIDENCE_UNPARSEABLE_VERDICT,
                "Self-check skipped (no reasoning provider available)",
            )

        prompt = select_verification_prompt(problem_text, claimed_answer, difficulty)
        try:
            response = await check(prompt, VERIFICATION_SYSTEM_PROMPT)
        except Exception as e:
            logger.warning(f"Self-check call raised for {problem_text!r}: {e}")
            return unverified(CONFIDENCE_UNVERIFIED, f"Self-check error: {e}")

        if not response.success:
            return unverified(CONFIDENCE_UNVERIFIED, f"Self-check failed: {response.error}")

        try:
            verdict = parse_verification_response(response.content)
        except VerificationError as e:
            logger.warning(f"Self-check for {problem_text!r}: {e.message}")
            return unverified(
                CONFIDENCE_UNPARSEABLE_VERDICT,
                "Could not parse self-check response, assuming correct",
            )

        comparison = compare(claimed_answer, verdict.your_answer, tolerance)
        matched = comparison.matched or verdict.match
        conflict = not comparison.matched and not verdict.match

        if conflict:
            details = f"CONFLICT: AI={claimed_answer}, self-check={verdict.your_answer}. {verdict.discrepancy or ''}".strip()
        else:
            details = f"Self-check verified: {verdict.your_answer}"

        return VerificationResult(
            method=VerificationMethod.SELF_CHECK,
            original_answer=claimed_answer,
            verification_answer=verdict.your_answer or None,
            matched=matched,
            conflict=conflict,
            confidence=min(max(verdict.confidence, 0.0), 1.0),
            difficulty=difficulty,
            details=details,
        )

    async def verify_batch(
        self,
        problems: Sequence[Tuple[str, str]],
        options: Optional[VerificationOptions] = None,
    ) -> List[VerificationResult]:
        """Verify (problem_text, claimed_answer) pairs concurrently, results in input order."""
        return list(await asyncio.gather(
            *(self.verify(problem, answer, options) for problem, answer in problems)
        ))


def verification_stats(results: Sequence[VerificationResult]) -> Dict:
    """Summary counts over a set of verification results."""
    by_method = {m.value: 0 for m in VerificationMethod}
    by_difficulty = {d.value: 0 for d in Difficulty}
    verified = conflicts = 0
    total_confidence = 0.0

    for result in results:
        if result.matched:
            verified += 1
        if result.conflict:
            conflicts += 1
        by_method[result.method.value] += 1
        by_difficulty[result.difficulty.value] += 1
        total_confidence += result.confidence

    return {
        "total": len(results),
        "verified": verified,
        "conflicts": conflicts,
        "by_method": by_method,
        "by_difficulty": by_difficulty,
        "average_confidence": total_confidence / len(results) if results else 0.0,
    }
