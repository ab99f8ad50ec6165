"""Service for holding the exam definitions offered to students."""

from __future__ import annotations

from datetime import datetime

from exam_app.core.models import ExamDefinition, QuestionKind


class ExamCatalog:
    """Validated, ordered collection of exam definitions."""

    def __init__(self) -> None:
        self._exams: dict[str, ExamDefinition] = {}

    def load_exams(self, exams: list[ExamDefinition]) -> None:
        """Replace the catalog with a new list of exams."""
        prepared: dict[str, ExamDefinition] = {}
        for exam in exams:
            self._validate_exam(exam)
            if exam.id in prepared:
                raise ValueError(f"Duplicate exam id {exam.id!r}.")
            prepared[exam.id] = exam
        self._exams = prepared

    def get_exam(self, exam_id: str) -> ExamDefinition:
        try:
            return self._exams[exam_id]
        except KeyError:
            raise KeyError(f"Unknown exam id {exam_id!r}") from None

    def exams_for_group(self, group: str | None) -> list[ExamDefinition]:
        """Active exams open to ``group``, whatever their schedule."""
        return [exam for exam in self._exams.values() if exam.is_active and exam.is_eligible(group)]

    def schedule_overview(self, group: str | None, now: datetime) -> list[tuple[ExamDefinition, str]]:
        return [(exam, exam.schedule_status(now)) for exam in self.exams_for_group(group)]

    @staticmethod
    def _validate_exam(exam: ExamDefinition) -> None:
        if not exam.title.strip():
            raise ValueError(f"Exam {exam.id!r} must have a title.")
        if exam.duration_seconds <= 0:
            raise ValueError(f"Exam {exam.id!r} must have a positive duration.")
        seen: set[str] = set()
        for question in exam.questions:
            if question.id in seen:
                raise ValueError(f"Exam {exam.id!r} repeats question id {question.id!r}.")
            seen.add(question.id)
            if question.kind is QuestionKind.MATCHING:
                statements = [pair.statement for pair in question.matching_pairs]
                if len(statements) != len(set(statements)):
                    raise ValueError(f"Question {question.id!r} repeats a matching statement.")
        if (
            exam.scheduled_start is not None
            and exam.scheduled_end is not None
            and exam.scheduled_end < exam.scheduled_start
        ):
            raise ValueError(f"Exam {exam.id!r} ends before it starts.")
