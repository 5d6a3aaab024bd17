"""
Wolfram Alpha solver (Short Answers API).

The Short Answers API returns the answer as plain text. A 501 status means
Wolfram could not interpret the query; callers treat that as "solver
unavailable", not as a disagreement.
"""

import re
import time
from typing import List, Optional

import httpx
from loguru import logger

from mathgrade.ai.base_provider import _sanitize_for_logging, classify_exception
from mathgrade.config.constants import SOLVER_TIMEOUT, WOLFRAM_API_URL, WOLFRAM_UNINTERPRETABLE_STATUS
from mathgrade.core.models import SolverResult

# (pattern, replacement), applied in order
_LATEX_RULES = (
    (re.compile(r"\s*=\s*$"), ""),
    (re.compile(r"\\frac\{([^}]+)\}\{([^}]+)\}"), r"(\1)/(\2)"),
    (re.compile(r"\\times"), "*"),
    (re.compile(r"\\cdot"), "*"),
    (re.compile(r"\\div"), "/"),
    (re.compile(r"\\sqrt\{([^}]+)\}"), r"sqrt(\1)"),
    (re.compile(r"\^\{([^}]+)\}"), r"^\1"),
    (re.compile("×"), "*"),
    (re.compile("÷"), "/"),
    (re.compile("−"), "-"),
    (re.compile("√"), "sqrt"),
    (re.compile(r"\s+"), " "),
)


def normalize_expression(expression: str) -> str:
    """Convert LaTeX and unicode math notation into a plain solver query."""
    normalized = expression.strip()
    for pattern, replacement in _LATEX_RULES:
        normalized = pattern.sub(replacement, normalized)
    return normalized.strip()


class WolframProvider:
    """Client for the Wolfram Alpha Short Answers API."""

    name = "wolfram"

    def __init__(
        self,
        app_id: str,
        timeout: float = SOLVER_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.app_id = app_id
        self.timeout = timeout
        self._client = client

    @property
    def is_available(self) -> bool:
        return bool(self.app_id)

    async def solve(self, expression: str) -> SolverResult:
        """
        Ask the solver for the value of an expression.

        Returns:
            SolverResult; success is False on any failure (never raises)
        """
        query = normalize_expression(expression or "")

        if not self.is_available:
            return SolverResult(success=False, query=query, error="Wolfram Alpha API not configured (missing app id)")
        if not query:
            return SolverResult(success=False, query=query, error="Empty expression")

        start = time.perf_counter()
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            response = await client.get(
                WOLFRAM_API_URL,
                params={"appid": self.app_id, "i": query},
                timeout=self.timeout,
            )
        except Exception as exc:
            error = classify_exception(exc, self.name)
            logger.warning(f"Wolfram query failed: {_sanitize_for_logging(error.message)}")
            return SolverResult(success=False, query=query, error=error.message)
        finally:
            if self._client is None:
                await client.aclose()

        latency = (time.perf_counter() - start) * 1000

        if response.status_code == WOLFRAM_UNINTERPRETABLE_STATUS:
            return SolverResult(success=False, query=query, error="Wolfram Alpha could not interpret the expression")

        if response.status_code >= 400:
            return SolverResult(
                success=False,
                query=query,
                error=f"Wolfram Alpha API error: {response.status_code} - {response.text[:200]}",
            )

        answer = response.text.strip()
        logger.debug(f"Wolfram answered {query!r} -> {answer!r} in {latency:.0f}ms")
        if not answer:
            return SolverResult(success=False, query=query, error="Wolfram Alpha returned an empty answer")
        return SolverResult(success=True, query=query, answer=answer)

    async def solve_batch(self, expressions: List[str]) -> List[SolverResult]:
        """Sequential; the Short Answers API has no batch endpoint."""
        return [await self.solve(expr) for expr in expressions]
