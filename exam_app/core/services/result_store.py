"""In-process persistence collaborator for finished attempts."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path

from exam_app.core.models import AttemptResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResultSummary:
    """Lightweight history row used for re-attempt checks and listings."""

    exam_id: str
    exam_title: str
    student_id: str
    score: float
    category_scores: dict[str, float]
    disqualified: bool
    submitted_at: str


class ResultStore:
    """Keeps attempt results in memory and optionally appends them to a JSONL file.

    History written by earlier runs is read back at construction so completed
    exams stay blocked across restarts.
    """

    def __init__(self, results_path: Path | None = None) -> None:
        self._results_path = results_path
        self._summaries: list[ResultSummary] = []
        self._results: list[AttemptResult] = []
        if results_path is not None and results_path.exists():
            self._summaries.extend(self._load_summaries(results_path))

    def record(self, result: AttemptResult) -> None:
        """Accept a finished attempt; used as the session's result sink."""
        self._results.append(result)
        payload = result.to_dict()
        self._summaries.append(_summary_from_payload(payload))
        if self._results_path is not None:
            self._append_line(self._results_path, payload)
        logger.info(
            "Stored result: exam=%s student=%s score=%.1f",
            result.exam_id,
            result.student.id,
            result.score,
        )

    def completed_exam_ids(self, student_id: str) -> set[str]:
        return {summary.exam_id for summary in self._summaries if summary.student_id == student_id}

    def history_for(self, student_id: str) -> list[ResultSummary]:
        return [summary for summary in self._summaries if summary.student_id == student_id]

    def get_results(self) -> list[AttemptResult]:
        """Return results recorded during this process."""
        return list(self._results)

    @staticmethod
    def _append_line(path: Path, payload: dict[str, object]) -> None:
        path = path.resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False) + "\n")

    @staticmethod
    def _load_summaries(path: Path) -> list[ResultSummary]:
        summaries: list[ResultSummary] = []
        for line_number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                summaries.append(_summary_from_payload(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError) as exc:
                logger.warning("Skipping unreadable result line %d in %s: %s", line_number, path, exc)
        return summaries


def _summary_from_payload(payload: dict) -> ResultSummary:
    return ResultSummary(
        exam_id=str(payload["exam_id"]),
        exam_title=str(payload["exam_title"]),
        student_id=str(payload["student_id"]),
        score=float(payload["score"]),
        category_scores=dict(payload.get("category_scores") or {}),
        disqualified=bool(payload["disqualified"]),
        submitted_at=str(payload["submitted_at"]),
    )
