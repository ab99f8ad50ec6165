"""Load exam definitions from a JSON document.

File format::

    {
      "exams": [
        {
          "id": "e1",
          "title": "Midterm",
          "duration_minutes": 60,
          "eligible_groups": ["IX A"],
          "questions": [
            {"id": "q1", "kind": "single-choice", "prompt": "...",
             "options": ["a", "b"], "correct_index": 0, "category": "Literacy"},
            {"id": "q2", "kind": "multi-choice", "prompt": "...",
             "options": ["2", "4", "5"], "correct_indices": [0, 2]},
            {"id": "q3", "kind": "matching", "prompt": "...",
             "matching_labels": ["True", "False"],
             "matching_pairs": [{"statement": "...", "correct_label": "True"}]}
          ]
        }
      ]
    }

The authoring side owns this data; the loader only validates shape and
converts it into immutable definitions. Missing answer keys are allowed and
left for the grader to treat as ungradable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from exam_app.constants.exam_constants import DEFAULT_MATCHING_LABELS
from exam_app.core.models import ExamDefinition, MatchingPair, Question, QuestionKind

DEFAULT_EXAMS_PATH = Path(__file__).resolve().parent.parent / "data" / "sample_exams.json"


class ExamImportError(Exception):
    """Raised when an exam file cannot be parsed."""


class MatchingPairPayload(BaseModel):
    statement: str
    correct_label: str


class QuestionPayload(BaseModel):
    id: str
    kind: QuestionKind
    prompt: str
    stimulus: str | None = None
    image: str | None = None
    options: list[str] = Field(default_factory=list)
    correct_index: int | None = None
    correct_indices: list[int] | None = None
    matching_pairs: list[MatchingPairPayload] = Field(default_factory=list)
    matching_labels: tuple[str, str] = DEFAULT_MATCHING_LABELS
    category: str | None = None


class ExamPayload(BaseModel):
    id: str
    title: str
    duration_minutes: float = Field(gt=0)
    questions: list[QuestionPayload] = Field(default_factory=list)
    eligible_groups: list[str] = Field(default_factory=list)
    category: str | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    is_active: bool = True


class ExamFilePayload(BaseModel):
    exams: list[ExamPayload]


@dataclass(slots=True)
class ImportedExams:
    """Container for the source path and the exams read from it."""

    source_path: Path
    exams: list[ExamDefinition]


def load_exams_from_file(file_path: Path) -> ImportedExams:
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ExamImportError(f"Cannot read exam file {file_path}: {exc}") from exc
    exams = parse_exams(text)
    if not exams:
        raise ExamImportError("Exam file did not contain any exams.")
    return ImportedExams(source_path=file_path, exams=exams)


def parse_exams(text: str) -> list[ExamDefinition]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ExamImportError(f"Exam file is not valid JSON: {exc}") from exc
    try:
        payload = ExamFilePayload.model_validate(document)
    except ValidationError as exc:
        raise ExamImportError(f"Exam file failed validation:\n{exc}") from exc

    try:
        return [to_definition(exam) for exam in payload.exams]
    except ValueError as exc:
        raise ExamImportError(str(exc)) from exc


def to_definition(payload: ExamPayload) -> ExamDefinition:
    duration_seconds = round(payload.duration_minutes * 60)
    if duration_seconds < 1:
        raise ValueError(f"Exam {payload.id!r} must last at least one second.")
    return ExamDefinition(
        id=payload.id,
        title=payload.title.strip(),
        questions=tuple(_to_question(question) for question in payload.questions),
        duration_seconds=duration_seconds,
        eligible_groups=frozenset(payload.eligible_groups),
        category=payload.category,
        scheduled_start=_as_utc(payload.scheduled_start),
        scheduled_end=_as_utc(payload.scheduled_end),
        is_active=payload.is_active,
    )


def _to_question(payload: QuestionPayload) -> Question:
    return Question(
        id=payload.id,
        prompt=payload.prompt,
        kind=payload.kind,
        stimulus=payload.stimulus,
        image=payload.image,
        options=tuple(option.strip() for option in payload.options),
        correct_index=payload.correct_index,
        correct_indices=(
            frozenset(payload.correct_indices) if payload.correct_indices is not None else None
        ),
        matching_pairs=tuple(
            MatchingPair(statement=pair.statement, correct_label=pair.correct_label)
            for pair in payload.matching_pairs
        ),
        matching_labels=payload.matching_labels,
        category=payload.category,
    )


def _as_utc(value: datetime | None) -> datetime | None:
    # Naive timestamps in exam files are taken as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
