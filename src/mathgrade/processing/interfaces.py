"""
Collaborator interfaces for the queue worker.

The worker needs three things from the outside world: where a submission's
image and answer key live, how to fetch the image bytes, and where to put
the finished result. Storage, user management and the web front end stay
behind these protocols.
"""

from dataclasses import dataclass, field
from typing import List, Protocol, Tuple

from mathgrade.core.models import AnswerKeyEntry, GradingResult


@dataclass
class SubmissionPayload:
    """What the worker needs to grade one submission."""
    image_ref: str
    answer_key: List[AnswerKeyEntry] = field(default_factory=list)


class SubmissionSource(Protocol):
    """Looks up a submission by id."""

    def load(self, submission_id: str, project_id: str) -> SubmissionPayload:
        """
        Raises:
            JobNotFoundError: Unknown submission
        """
        ...


class BlobFetcher(Protocol):
    """Fetches an image by reference."""

    async def fetch(self, ref: str) -> Tuple[bytes, str]:
        """Returns (raw bytes, content type)."""
        ...


class ResultSink(Protocol):
    """Persists a grading result."""

    def save(self, result: GradingResult, project_id: str) -> str:
        """Returns the id of the stored result."""
        ...
