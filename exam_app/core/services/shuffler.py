"""Randomizes question order and single-choice option order for an attempt."""

from __future__ import annotations

import random

from exam_app.core.models import ExamDefinition, Question, QuestionKind, WorkingQuestion


class Shuffler:
    """Builds the working question list for one attempt.

    Every call to :meth:`prepare` draws a fresh order. Only single-choice
    questions get their options permuted; multi-choice and matching keep the
    authored order so historical results stay comparable.
    """

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def set_seed(self, seed: int | None) -> None:
        self._rng.seed(seed)

    def prepare(self, definition: ExamDefinition) -> list[WorkingQuestion]:
        questions = list(definition.questions)
        self._rng.shuffle(questions)
        return [self._prepare_question(question) for question in questions]

    def _prepare_question(self, question: Question) -> WorkingQuestion:
        if question.kind is not QuestionKind.SINGLE_CHOICE:
            return WorkingQuestion(
                question=question,
                options=tuple(question.options),
                option_order=tuple(range(len(question.options))),
                correct_index=None,
            )

        combined = list(zip(question.options, range(len(question.options))))
        self._rng.shuffle(combined)
        option_order = [original_index for _, original_index in combined]

        # Find new correct index
        if question.correct_index is not None:
            try:
                correct_index = option_order.index(question.correct_index)
            except ValueError:
                correct_index = None
        else:
            correct_index = None

        return WorkingQuestion(
            question=question,
            options=tuple(text for text, _ in combined),
            option_order=tuple(option_order),
            correct_index=correct_index,
        )
