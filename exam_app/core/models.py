"""Domain models for the exam engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from exam_app.constants.exam_constants import DEFAULT_MATCHING_LABELS


class QuestionKind(str, Enum):
    """Discriminant for the three supported question shapes."""

    SINGLE_CHOICE = "single-choice"
    MULTI_CHOICE = "multi-choice"
    MATCHING = "matching"


class TerminationReason(str, Enum):
    """How an attempt reached its end."""

    MANUAL = "manual"
    TIME_EXPIRED = "time-expired"
    DISQUALIFIED = "disqualified"


@dataclass(frozen=True, slots=True)
class MatchingPair:
    """One statement row of a matching question and its correct label."""

    statement: str
    correct_label: str


@dataclass(frozen=True, slots=True)
class Question:
    """Immutable question as authored in the exam definition.

    Only the fields of ``kind`` may be populated. A question may still lack
    its own answer key (no correct index, no pairs); the grader counts such
    questions but never scores them correct.
    """

    id: str
    prompt: str
    kind: QuestionKind
    stimulus: str | None = None
    image: str | None = None
    options: tuple[str, ...] = ()
    correct_index: int | None = None
    correct_indices: frozenset[int] | None = None
    matching_pairs: tuple[MatchingPair, ...] = ()
    matching_labels: tuple[str, str] = DEFAULT_MATCHING_LABELS
    category: str | None = None

    def __post_init__(self) -> None:
        kind = QuestionKind(self.kind)
        object.__setattr__(self, "kind", kind)
        if self.correct_indices is not None:
            object.__setattr__(self, "correct_indices", frozenset(self.correct_indices))
        if kind is not QuestionKind.SINGLE_CHOICE and self.correct_index is not None:
            raise ValueError(f"Question {self.id}: correct_index is only valid for single-choice.")
        if kind is not QuestionKind.MULTI_CHOICE and self.correct_indices is not None:
            raise ValueError(f"Question {self.id}: correct_indices is only valid for multi-choice.")
        if kind is not QuestionKind.MATCHING and self.matching_pairs:
            raise ValueError(f"Question {self.id}: matching_pairs is only valid for matching.")
        if kind is QuestionKind.MATCHING and self.options:
            raise ValueError(f"Question {self.id}: matching questions do not take options.")


@dataclass(frozen=True, slots=True)
class ExamDefinition:
    """Read-only exam supplied by the authoring side."""

    id: str
    title: str
    questions: tuple[Question, ...]
    duration_seconds: int
    eligible_groups: frozenset[str] = frozenset()
    category: str | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    is_active: bool = True

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def categories(self) -> tuple[str, ...]:
        """Distinct question categories in authoring order."""
        seen: dict[str, None] = {}
        for question in self.questions:
            if question.category:
                seen.setdefault(question.category, None)
        return tuple(seen)

    def is_eligible(self, group: str | None) -> bool:
        if not self.eligible_groups:
            return True
        return group in self.eligible_groups

    def schedule_status(self, now: datetime) -> str:
        """Return ``upcoming``, ``open`` or ``ended`` for the given instant."""
        if self.scheduled_start is not None and now < self.scheduled_start:
            return "upcoming"
        if self.scheduled_end is not None and now > self.scheduled_end:
            return "ended"
        return "open"


@dataclass(frozen=True, slots=True)
class WorkingQuestion:
    """Session-scoped copy of a question with its displayed option order."""

    question: Question
    options: tuple[str, ...]
    option_order: tuple[int, ...]
    correct_index: int | None

    @property
    def id(self) -> str:
        return self.question.id

    @property
    def kind(self) -> QuestionKind:
        return self.question.kind

    @property
    def category(self) -> str | None:
        return self.question.category

    @property
    def correct_indices(self) -> frozenset[int] | None:
        return self.question.correct_indices

    @property
    def matching_pairs(self) -> tuple[MatchingPair, ...]:
        return self.question.matching_pairs

    @property
    def matching_labels(self) -> tuple[str, str]:
        return self.question.matching_labels


@dataclass(frozen=True, slots=True)
class Answer:
    """Tagged answer value; ``kind`` mirrors the owning question."""

    kind: QuestionKind
    payload: Any

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", QuestionKind(self.kind))

    @classmethod
    def single(cls, option_index: int) -> Answer:
        return cls(QuestionKind.SINGLE_CHOICE, option_index)

    @classmethod
    def multi(cls, option_indices: Any) -> Answer:
        return cls(QuestionKind.MULTI_CHOICE, frozenset(option_indices))

    @classmethod
    def matching(cls, labels: dict[str, str]) -> Answer:
        return cls(QuestionKind.MATCHING, dict(labels))

    def to_json(self) -> Any:
        if self.kind is QuestionKind.MULTI_CHOICE:
            return sorted(self.payload)
        if self.kind is QuestionKind.MATCHING:
            return dict(self.payload)
        return self.payload


@dataclass(frozen=True, slots=True)
class ViolationState:
    """Snapshot of the proctor's focus-loss bookkeeping."""

    count: int = 0
    disqualified: bool = False


@dataclass(frozen=True, slots=True)
class StudentIdentity:
    """Who is taking the attempt; supplied by the login side."""

    id: str
    name: str
    group: str | None = None


@dataclass(frozen=True, slots=True)
class AttemptResult:
    """Immutable record of a finished attempt, handed to persistence."""

    exam_id: str
    exam_title: str
    student: StudentIdentity
    score: float
    category_scores: dict[str, float]
    answers: dict[str, Answer]
    submitted_at: datetime
    violation_count: int
    disqualified: bool
    termination_reason: TerminationReason
    correct_count: int = 0
    question_count: int = 0
    flagged_question_ids: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {
            "exam_id": self.exam_id,
            "exam_title": self.exam_title,
            "student_id": self.student.id,
            "student_name": self.student.name,
            "student_group": self.student.group,
            "score": self.score,
            "category_scores": dict(self.category_scores),
            "answers": {
                question_id: {"kind": answer.kind.value, "value": answer.to_json()}
                for question_id, answer in self.answers.items()
            },
            "submitted_at": self.submitted_at.isoformat(),
            "violation_count": self.violation_count,
            "disqualified": self.disqualified,
            "termination_reason": self.termination_reason.value,
            "correct_count": self.correct_count,
            "question_count": self.question_count,
            "flagged_question_ids": list(self.flagged_question_ids),
        }
