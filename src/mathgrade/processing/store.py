"""
JSON file store for submissions and results.

Architecture:
    data/
    └── {project_id}/
        ├── submissions/
        │   └── {submission_id}.json   # {"image_ref": ..., "answer_key": [...]}
        └── results/
            └── {result_id}.json       # GradingResult

Used by the CLI worker. Deployments with their own storage implement
SubmissionSource and ResultSink instead.
"""

import json
import uuid
from pathlib import Path
from typing import List, Optional

from loguru import logger

from mathgrade.core.exceptions import JobNotFoundError, MathGradeError
from mathgrade.core.models import AnswerKeyEntry, GradingResult
from mathgrade.processing.interfaces import SubmissionPayload


class JsonFileStore:
    """SubmissionSource and ResultSink over a directory tree."""

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def _submission_file(self, project_id: str, submission_id: str) -> Path:
        return self.base_dir / project_id / "submissions" / f"{submission_id}.json"

    def _results_dir(self, project_id: str) -> Path:
        return self.base_dir / project_id / "results"

    # ==================== Submissions ====================

    def add_submission(
        self,
        project_id: str,
        submission_id: str,
        image_ref: str,
        answer_key: Optional[List[AnswerKeyEntry]] = None,
    ) -> Path:
        path = self._submission_file(project_id, submission_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "image_ref": image_ref,
            "answer_key": [entry.model_dump(mode='json') for entry in answer_key or []],
        }
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        return path

    def load(self, submission_id: str, project_id: str) -> SubmissionPayload:
        path = self._submission_file(project_id, submission_id)
        if not path.exists():
            raise JobNotFoundError(
                f"Submission not found: {submission_id}",
                {"project_id": project_id, "path": str(path)},
            )

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise MathGradeError(f"Corrupt submission file {path}: {e}") from e

        return SubmissionPayload(
            image_ref=data["image_ref"],
            answer_key=[AnswerKeyEntry.model_validate(entry) for entry in data.get("answer_key", [])],
        )

    # ==================== Results ====================

    def save(self, result: GradingResult, project_id: str) -> str:
        result_id = str(uuid.uuid4())
        results_dir = self._results_dir(project_id)
        results_dir.mkdir(parents=True, exist_ok=True)

        with open(results_dir / f"{result_id}.json", 'w', encoding='utf-8') as f:
            json.dump(result.model_dump(mode='json'), f, indent=2, ensure_ascii=False)

        logger.debug(f"Saved result {result_id} for submission {result.submission_id}")
        return result_id

    def load_result(self, project_id: str, result_id: str) -> GradingResult:
        path = self._results_dir(project_id) / f"{result_id}.json"
        if not path.exists():
            raise JobNotFoundError(f"Result not found: {result_id}", {"project_id": project_id})
        with open(path, 'r', encoding='utf-8') as f:
            return GradingResult.model_validate(json.load(f))
