"""
Grading pipeline: comparison, classification, verification, conflict
detection and orchestration.
"""

from mathgrade.grading.comparator import (
    answers_equivalent,
    compare,
    format_answer,
    normalize_answer,
    parse_fraction,
    parse_numeric,
    parse_percentage,
)
from mathgrade.grading.classifier import (
    Classification,
    classify,
    classify_batch,
    classify_with_reason,
    max_difficulty,
    requires_solver,
    requires_verification,
)
from mathgrade.grading.verification import VerificationOptions, VerificationRouter, verification_stats
from mathgrade.grading.conflict_detector import ConflictDetector
from mathgrade.grading.orchestrator import GradingOrchestrator

__all__ = [
    # Comparator
    'answers_equivalent',
    'compare',
    'format_answer',
    'normalize_answer',
    'parse_fraction',
    'parse_numeric',
    'parse_percentage',
    # Classifier
    'Classification',
    'classify',
    'classify_batch',
    'classify_with_reason',
    'max_difficulty',
    'requires_solver',
    'requires_verification',
    # Verification
    'VerificationOptions',
    'VerificationRouter',
    'verification_stats',
    # Orchestration
    'ConflictDetector',
    'GradingOrchestrator',
]
