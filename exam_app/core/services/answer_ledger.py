"""Per-question answer capture for one attempt."""

from __future__ import annotations

from exam_app.core.models import Answer, QuestionKind


class AnswerLedger:
    """Holds the current answer for each question id.

    Writes are not validated against the question; the grader decides what a
    stored value is worth. A missing key means unanswered, which is distinct
    from an explicit empty multi-choice selection.
    """

    def __init__(self) -> None:
        self._answers: dict[str, Answer] = {}

    def set_answer(self, question_id: str, answer: Answer) -> None:
        self._answers[question_id] = answer

    def toggle_multi_choice(self, question_id: str, option_index: int) -> Answer:
        current = self._answers.get(question_id)
        selected: set[int] = set()
        if current is not None and current.kind is QuestionKind.MULTI_CHOICE:
            selected = set(current.payload)

        if option_index in selected:
            selected.discard(option_index)
        else:
            selected.add(option_index)

        answer = Answer.multi(selected)
        self._answers[question_id] = answer
        return answer

    def set_matching(self, question_id: str, statement: str, label: str) -> Answer:
        current = self._answers.get(question_id)
        labels: dict[str, str] = {}
        if current is not None and current.kind is QuestionKind.MATCHING:
            labels = dict(current.payload)

        labels[statement] = label
        answer = Answer.matching(labels)
        self._answers[question_id] = answer
        return answer

    def get(self, question_id: str) -> Answer | None:
        return self._answers.get(question_id)

    def has_answer(self, question_id: str) -> bool:
        return question_id in self._answers

    def answered_ids(self) -> set[str]:
        return set(self._answers)

    def clear(self, question_id: str) -> None:
        self._answers.pop(question_id, None)

    def snapshot(self) -> dict[str, Answer]:
        """Return a copy of the answers; ``Answer`` values are immutable."""
        return dict(self._answers)
