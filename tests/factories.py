"""Builders for questions, exams and working questions used across tests."""

from __future__ import annotations

from datetime import datetime, timezone

from exam_app.core.models import (
    ExamDefinition,
    MatchingPair,
    Question,
    QuestionKind,
    StudentIdentity,
    WorkingQuestion,
)

FIXED_NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def single(question_id: str, correct: int | None = 0, options=("A", "B", "C", "D"), category=None) -> Question:
    return Question(
        id=question_id,
        prompt=f"Prompt {question_id}",
        kind=QuestionKind.SINGLE_CHOICE,
        options=tuple(options),
        correct_index=correct,
        category=category,
    )


def multi(question_id: str, correct=(0, 2), options=("2", "4", "5", "9"), category=None) -> Question:
    return Question(
        id=question_id,
        prompt=f"Prompt {question_id}",
        kind=QuestionKind.MULTI_CHOICE,
        options=tuple(options),
        correct_indices=frozenset(correct) if correct is not None else None,
        category=category,
    )


def matching(question_id: str, pairs=(("Japan - Tokyo", "True"), ("England - Paris", "False")), category=None) -> Question:
    return Question(
        id=question_id,
        prompt=f"Prompt {question_id}",
        kind=QuestionKind.MATCHING,
        matching_pairs=tuple(MatchingPair(statement, label) for statement, label in pairs),
        category=category,
    )


def exam(questions, exam_id: str = "e1", duration_seconds: int = 60, **overrides) -> ExamDefinition:
    return ExamDefinition(
        id=exam_id,
        title=overrides.pop("title", "Practice Exam"),
        questions=tuple(questions),
        duration_seconds=duration_seconds,
        **overrides,
    )


def working(question: Question) -> WorkingQuestion:
    """Working copy in authored order, as if the shuffle were the identity."""
    return WorkingQuestion(
        question=question,
        options=tuple(question.options),
        option_order=tuple(range(len(question.options))),
        correct_index=question.correct_index,
    )


def student(group: str | None = "IX A") -> StudentIdentity:
    return StudentIdentity(id="12345", name="Ahmad Santoso", group=group)
