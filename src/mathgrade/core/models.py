"""
Core data models for the math grading pipeline.

This module defines the Pydantic models passed between the queue, the
providers, the verification router and the grading orchestrator.
"""

from __future__ import annotations

import base64
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mathgrade.config.constants import DEFAULT_MIME_TYPE, MIN_POINTS_POSSIBLE


class Difficulty(str, Enum):
    """Difficulty tier of a single problem."""
    SIMPLE = "simple"       # Integer arithmetic, trusted as-is
    MODERATE = "moderate"   # Fractions, decimals, percentages, chains
    COMPLEX = "complex"     # Variables, equations, roots, trig/log

    @property
    def rank(self) -> int:
        return _DIFFICULTY_RANK[self]


_DIFFICULTY_RANK = {
    Difficulty.SIMPLE: 0,
    Difficulty.MODERATE: 1,
    Difficulty.COMPLEX: 2,
}


class VerificationMethod(str, Enum):
    """How a claimed answer was independently checked."""
    NONE = "none"
    SOLVER = "solver"
    SELF_CHECK = "self-check"


class QueueStatus(str, Enum):
    """Lifecycle status of a processing queue item."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImageMode(str, Enum):
    """How the image is addressed when sent to a provider."""
    BASE64 = "base64"
    URL = "url"


# ==================== Requests ====================

class ImageInput(BaseModel):
    """A homework photo, either inline (base64) or by URL."""
    data: str
    mime_type: str = DEFAULT_MIME_TYPE
    mode: ImageMode = ImageMode.BASE64

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> "ImageInput":
        return cls(
            data=base64.b64encode(raw).decode("ascii"),
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            mode=ImageMode.BASE64,
        )

    @classmethod
    def from_url(cls, url: str) -> "ImageInput":
        return cls(data=url, mode=ImageMode.URL)

    def as_data_url(self) -> str:
        """Data URL for base64 images, the URL itself otherwise."""
        if self.mode == ImageMode.URL:
            return self.data
        return f"data:{self.mime_type};base64,{self.data}"


class AnswerKeyEntry(BaseModel):
    """Caller-supplied expected answer for one question."""
    model_config = ConfigDict(frozen=True)

    question_number: int
    correct_answer: str
    alternates: List[str] = Field(default_factory=list)
    points: float = 1.0

    @property
    def accepted_answers(self) -> List[str]:
        return [self.correct_answer, *self.alternates]


class GradingOptions(BaseModel):
    """Per-request switches for the orchestrator."""
    use_ocr: bool = True
    enable_verification: bool = True
    preferred_provider: Optional[str] = None
    tolerance: Optional[float] = None


class GradingRequest(BaseModel):
    """Everything needed to grade one submission. Not persisted."""
    submission_id: str
    image: ImageInput
    answer_key: List[AnswerKeyEntry] = Field(default_factory=list)
    options: GradingOptions = Field(default_factory=GradingOptions)

    def key_for(self, question_number: int) -> Optional[AnswerKeyEntry]:
        for entry in self.answer_key:
            if entry.question_number == question_number:
                return entry
        return None


# ==================== Provider Results ====================

class ProviderResponse(BaseModel):
    """Uniform result of a vision or reasoning call. Never raised, always returned."""
    success: bool
    content: str = ""
    provider: Optional[str] = None
    model: Optional[str] = None
    tokens_used: Optional[int] = None
    error: Optional[str] = None
    retryable: bool = False
    latency_ms: float = 0.0


class OCRResult(BaseModel):
    """Transcription of a homework image."""
    success: bool
    text: str = ""
    latex: Optional[str] = None
    confidence: float = 0.0
    error: Optional[str] = None


class SolverResult(BaseModel):
    """Answer from the symbolic solver for one expression."""
    success: bool
    query: str = ""
    answer: Optional[str] = None
    error: Optional[str] = None


# ==================== Comparison / Verification ====================

ComparisonMethod = Literal["exact", "numeric", "fraction", "percentage", "none"]


class ComparisonResult(BaseModel):
    """Outcome of comparing two answer strings."""
    matched: bool
    method: ComparisonMethod = "none"
    a_normalized: Optional[str] = None
    b_normalized: Optional[str] = None


class VerificationResult(BaseModel):
    """Outcome of independently checking one claimed answer."""
    method: VerificationMethod
    original_answer: str
    verification_answer: Optional[str] = None
    matched: bool
    conflict: bool = False
    confidence: float = Field(ge=0.0, le=1.0)
    difficulty: Difficulty
    details: Optional[str] = None


class InterpretationOption(BaseModel):
    """One candidate reading of a problem when OCR and vision disagree."""
    model_config = ConfigDict(frozen=True)

    rank: int
    source: Literal["vision", "ocr"]
    transcription: str
    computed_answer: Optional[str] = None
    confidence: float = 0.0


class ReadingConflict(BaseModel):
    """Result of comparing the OCR and vision transcriptions of one problem."""
    has_conflict: bool
    vision_reading: str = ""
    ocr_reading: Optional[str] = None
    vision_core: Optional[str] = None
    ocr_core: Optional[str] = None
    options: List[InterpretationOption] = Field(default_factory=list)
    reason: Optional[str] = None


# ==================== Grading Results ====================

class QuestionResult(BaseModel):
    """
    Final, assembled result for one question.

    is_correct comes from the vision model comparing the student answer with
    its own calculation. answer_key_value is informational only and feeds the
    discrepancy note.
    """
    model_config = ConfigDict(frozen=True)

    question_number: int
    problem_text: str = ""
    ai_calculation: str = ""
    ai_answer: str = ""
    correct_answer: str = ""
    student_answer: str = ""
    answer_key_value: Optional[str] = None
    discrepancy: Optional[str] = None
    is_correct: bool = False
    points_awarded: float = 0.0
    points_possible: float = MIN_POINTS_POSSIBLE
    confidence: float = 0.5
    readability_confidence: float = 1.0
    readability_issue: Optional[str] = None
    difficulty_level: Difficulty = Difficulty.SIMPLE
    verification_method: VerificationMethod = VerificationMethod.NONE
    verification_answer: Optional[str] = None
    verification_conflict: bool = False
    verification_details: Optional[str] = None
    has_reading_conflict: bool = False
    interpretation_options: List[InterpretationOption] = Field(default_factory=list)


class GradingResult(BaseModel):
    """Outcome of grading one submission."""
    submission_id: str
    success: bool
    total_score: float = 0.0
    total_possible: float = 0.0
    percentage: int = 0
    questions: List[QuestionResult] = Field(default_factory=list)
    needs_review: bool = False
    review_reason: Optional[str] = None
    provider: Optional[str] = None
    processing_time_ms: float = 0.0
    error: Optional[str] = None
    detected_student_name: Optional[str] = None
    name_confidence: Optional[float] = None
    ocr_provider: Optional[str] = None
    ocr_confidence: Optional[float] = None
    math_difficulty: Optional[Difficulty] = None
    tokens_used: Optional[int] = None

    @classmethod
    def failure(cls, submission_id: str, error: str, **kwargs) -> "GradingResult":
        """A failed grading: nothing scored, always sent for review."""
        return cls(
            submission_id=submission_id,
            success=False,
            error=error,
            needs_review=True,
            review_reason=error,
            **kwargs,
        )


# ==================== Queue ====================

class QueueItem(BaseModel):
    """Snapshot of a processing queue row."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    submission_id: str
    project_id: str
    priority: int = 0
    status: QueueStatus = QueueStatus.PENDING
    attempts: int = 0
    locked_at: Optional[datetime] = None
    locked_by: Optional[str] = None
    result_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class QueueStats(BaseModel):
    """Item counts per status."""
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed


class EnqueueRequest(BaseModel):
    """One submission to put on the queue."""
    submission_id: str
    project_id: str
    priority: int = 0

    @field_validator("submission_id", "project_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class BatchReport(BaseModel):
    """Summary of one worker batch."""
    worker_id: str
    released_stale: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    job_ids: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
