"""
Shared fixtures and fakes.

Fakes stand in for the vision providers, the solver and OCR so the
pipeline can be exercised without network access.
"""

import json
from typing import Dict, List, Optional, Union

import pytest

from mathgrade.ai.base_provider import VisionProvider
from mathgrade.core.models import ImageInput, OCRResult, SolverResult
from mathgrade.db.database import create_session_factory, init_db
from mathgrade.processing.queue import ProcessingQueue


class FakeVisionProvider(VisionProvider):
    """Returns scripted replies in order; an Exception entry is raised instead."""

    def __init__(self, name: str, replies: List[Union[str, Exception]], timeout: float = 5.0):
        super().__init__(name, model=f"{name}-test", timeout=timeout)
        self.replies = list(replies)
        self.calls: List[Dict] = []

    async def _complete(self, prompt, image, system_prompt):
        self.calls.append({"prompt": prompt, "image": image, "system_prompt": system_prompt})
        if not self.replies:
            raise RuntimeError("No scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply, 100


class FakeSolver:
    """Answers queries containing a known substring."""

    def __init__(self, answers: Dict[str, str], available: bool = True):
        self.answers = answers
        self.available = available
        self.queries: List[str] = []

    @property
    def is_available(self) -> bool:
        return self.available

    async def solve(self, expression: str) -> SolverResult:
        self.queries.append(expression)
        for needle, answer in self.answers.items():
            if needle in expression:
                return SolverResult(success=True, query=expression, answer=answer)
        return SolverResult(success=False, query=expression, error="Wolfram Alpha could not interpret the expression")


class FakeOCR:
    name = "mathpix"

    def __init__(self, text: str, confidence: float = 0.9, success: bool = True):
        self.result = OCRResult(success=success, text=text, confidence=confidence,
                                error=None if success else "OCR down")
        self.calls = 0

    @property
    def is_available(self) -> bool:
        return True

    async def extract(self, image: ImageInput) -> OCRResult:
        self.calls += 1
        return self.result


class RecordingSelfCheck:
    """Async self-check function that returns a fixed verdict."""

    def __init__(self, verdict: Optional[dict] = None, raw: Optional[str] = None, success: bool = True):
        self.content = raw if raw is not None else json.dumps(verdict or {})
        self.success = success
        self.calls: List[str] = []

    async def __call__(self, prompt: str, system_prompt: str):
        from mathgrade.core.models import ProviderResponse

        self.calls.append(prompt)
        if not self.success:
            return ProviderResponse(success=False, error="reasoning provider down")
        return ProviderResponse(success=True, content=self.content, provider="fake")


def grading_reply(questions: List[dict], **extra) -> str:
    """A blind grading JSON response as a model would send it."""
    data = {
        "student_name": extra.pop("student_name", "Alex"),
        "name_confidence": 0.9,
        "questions": questions,
        "needs_review": extra.pop("needs_review", False),
        "review_reason": extra.pop("review_reason", None),
    }
    data.update(extra)
    return "```json\n" + json.dumps(data) + "\n```"


def question(number: int, problem: str, ai_answer: str, student: str, correct: bool, **extra) -> dict:
    data = {
        "question_number": number,
        "problem_text": problem,
        "ai_calculation": f"{problem} -> {ai_answer}",
        "ai_answer": ai_answer,
        "student_answer": student,
        "is_correct": correct,
        "confidence": 0.95,
        "readability_confidence": 0.95,
        "readability_issue": None,
        "points_awarded": 1 if correct else 0,
        "points_possible": 1,
    }
    data.update(extra)
    return data


@pytest.fixture
def image() -> ImageInput:
    return ImageInput.from_bytes(b"\x89PNG fake image", "image/png")


@pytest.fixture
def session_factory():
    engine, factory = create_session_factory("sqlite://")
    init_db(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def queue(session_factory) -> ProcessingQueue:
    return ProcessingQueue(session_factory)
