"""Scoring of a finished attempt.

Grading is a pure function of the working questions and the stored answers,
so regrading the same inputs always gives the same numbers. Each question is
all-or-nothing:

* single-choice: the stored index equals the remapped correct index.
* multi-choice: the stored set equals the correct set exactly.
* matching: every statement carries its correct label.

A question without a usable answer key still counts toward the total but can
never be correct, and an answer whose kind differs from its question's kind
is treated as wrong rather than coerced.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
import logging

from exam_app.core.models import Answer, QuestionKind, WorkingQuestion

logger = logging.getLogger(__name__)


def is_correct(question: WorkingQuestion, answer: Answer | None) -> bool:
    if answer is not None and _answer_kind(answer) is not question.kind:
        logger.warning(
            "Answer kind %s does not match question %s (%s)",
            getattr(answer.kind, "value", answer.kind),
            question.id,
            question.kind.value,
        )
        return False

    if question.kind is QuestionKind.SINGLE_CHOICE:
        return _single_choice_correct(question, answer)
    if question.kind is QuestionKind.MULTI_CHOICE:
        return _multi_choice_correct(question, answer)
    if question.kind is QuestionKind.MATCHING:
        return _matching_correct(question, answer)
    return False


def _answer_kind(answer: Answer) -> QuestionKind | None:
    try:
        return QuestionKind(answer.kind)
    except ValueError:
        return None


def score_items(
    questions: Sequence[WorkingQuestion],
    answers: Mapping[str, Answer],
) -> dict[str, bool]:
    """Return per-question correctness keyed by question id."""
    return {question.id: is_correct(question, answers.get(question.id)) for question in questions}


def grade(
    questions: Sequence[WorkingQuestion],
    answers: Mapping[str, Answer],
    categories: Iterable[str] = (),
) -> tuple[float, dict[str, float]]:
    """Compute the overall score and per-category subscores (0-100).

    ``categories`` names subscores the caller always wants reported; any of
    them without questions in this attempt scores 0.
    """
    correctness = score_items(questions, answers)
    overall = _percentage(sum(correctness.values()), len(questions))

    totals: dict[str, list[int]] = {category: [0, 0] for category in categories}
    for question in questions:
        if not question.category:
            continue
        bucket = totals.setdefault(question.category, [0, 0])
        bucket[1] += 1
        if correctness[question.id]:
            bucket[0] += 1

    category_scores = {
        category: _percentage(correct, total) for category, (correct, total) in totals.items()
    }
    return overall, category_scores


def _percentage(correct: int, total: int) -> float:
    if total == 0:
        return 0.0
    return correct / total * 100


def _single_choice_correct(question: WorkingQuestion, answer: Answer | None) -> bool:
    if question.correct_index is None or answer is None:
        return False
    payload = answer.payload
    if isinstance(payload, bool) or not isinstance(payload, int):
        return False
    return payload == question.correct_index


def _multi_choice_correct(question: WorkingQuestion, answer: Answer | None) -> bool:
    expected = question.correct_indices
    if expected is None:
        return False
    if answer is None:
        return not expected
    try:
        selected = frozenset(answer.payload)
    except TypeError:
        return False
    return selected == expected


def _matching_correct(question: WorkingQuestion, answer: Answer | None) -> bool:
    pairs = question.matching_pairs
    if not pairs or answer is None:
        return False
    chosen = answer.payload
    if not isinstance(chosen, Mapping):
        return False
    return all(chosen.get(pair.statement) == pair.correct_label for pair in pairs)
