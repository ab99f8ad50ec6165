"""Session controller for a single student's attempt at an exam."""

from __future__ import annotations

from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import logging

from exam_app.constants.exam_constants import MAX_FOCUS_VIOLATIONS
from exam_app.core.models import (
    Answer,
    AttemptResult,
    ExamDefinition,
    StudentIdentity,
    TerminationReason,
    ViolationState,
    WorkingQuestion,
)
from exam_app.core.services import grader
from exam_app.core.services.answer_ledger import AnswerLedger
from exam_app.core.services.countdown_timer import CountdownTimer
from exam_app.core.services.proctor import Proctor, ProctorStatus
from exam_app.core.services.shuffler import Shuffler

logger = logging.getLogger(__name__)

ResultSink = Callable[[AttemptResult], None]


class AttemptRefusedError(RuntimeError):
    """Raised when an attempt may not start; nothing has been changed."""


class SessionStateError(RuntimeError):
    """Raised when an action does not fit the session's current phase."""


class SessionPhase(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    TERMINATED = "terminated"


class QuestionStatus(str, Enum):
    UNANSWERED = "unanswered"
    ANSWERED = "answered"
    FLAGGED = "flagged"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class SessionState:
    """Mutable attempt state; only :class:`ExamSession` touches it."""

    phase: SessionPhase = SessionPhase.NOT_STARTED
    working_questions: list[WorkingQuestion] = field(default_factory=list)
    current_index: int = 0
    flagged: set[str] = field(default_factory=set)
    started_at: datetime | None = None
    result: AttemptResult | None = None


class ExamSession:
    """Runs one attempt from start to a single graded result.

    The host feeds events through :meth:`on_tick`, :meth:`on_focus_lost` and
    the answer methods. Manual finish, time expiry and disqualification all
    end in :meth:`_terminate`, which runs at most once.
    """

    def __init__(
        self,
        definition: ExamDefinition,
        student: StudentIdentity,
        result_sink: ResultSink | None = None,
        completed_exam_ids: Collection[str] = (),
        shuffler: Shuffler | None = None,
        clock: Callable[[], datetime] = _utc_now,
        violation_limit: int = MAX_FOCUS_VIOLATIONS,
        on_warning: Callable[[int], None] | None = None,
    ) -> None:
        self._definition = definition
        self._student = student
        self._result_sink = result_sink
        self._completed_exam_ids = frozenset(completed_exam_ids)
        self._shuffler = shuffler or Shuffler()
        self._clock = clock
        self._state = SessionState()
        self._ledger = AnswerLedger()
        self._timer = CountdownTimer()
        self._proctor = Proctor(
            on_warning=on_warning,
            on_disqualify=self._handle_disqualification,
            violation_limit=violation_limit,
        )

    # --- Lifecycle ---

    def start(self) -> None:
        if self._state.phase is not SessionPhase.NOT_STARTED:
            raise SessionStateError("This attempt has already been started.")
        self._check_preconditions()

        self._state.working_questions = self._shuffler.prepare(self._definition)
        self._state.current_index = 0
        self._state.started_at = self._clock()
        self._timer.start(self._definition.duration_seconds, self._handle_time_expired)
        self._state.phase = SessionPhase.IN_PROGRESS
        logger.info(
            "Attempt started: exam=%s student=%s questions=%d duration=%ds",
            self._definition.id,
            self._student.id,
            len(self._state.working_questions),
            self._definition.duration_seconds,
        )

    def finish(self) -> AttemptResult:
        """Finish after the student confirmed; repeated calls return the same result."""
        if self._state.phase is SessionPhase.NOT_STARTED:
            raise SessionStateError("Cannot finish an attempt that has not started.")
        return self._terminate(TerminationReason.MANUAL)

    def on_tick(self) -> None:
        if self._state.phase is SessionPhase.IN_PROGRESS:
            self._timer.tick()

    def on_focus_lost(self) -> ProctorStatus:
        if self._state.phase is not SessionPhase.IN_PROGRESS:
            return self._proctor.status
        return self._proctor.record_focus_loss()

    # --- Navigation ---

    def go_to(self, index: int) -> WorkingQuestion:
        self._require_in_progress()
        last = len(self._state.working_questions) - 1
        self._state.current_index = min(max(index, 0), last)
        return self.current_question

    def next_question(self) -> WorkingQuestion:
        return self.go_to(self._state.current_index + 1)

    def previous_question(self) -> WorkingQuestion:
        return self.go_to(self._state.current_index - 1)

    # --- Answers ---

    def set_answer(self, question_id: str, answer: Answer) -> None:
        self._require_question(question_id)
        self._ledger.set_answer(question_id, answer)

    def select_option(self, question_id: str, option_index: int) -> Answer:
        answer = Answer.single(option_index)
        self.set_answer(question_id, answer)
        return answer

    def toggle_multi_choice(self, question_id: str, option_index: int) -> Answer:
        self._require_question(question_id)
        return self._ledger.toggle_multi_choice(question_id, option_index)

    def set_matching(self, question_id: str, statement: str, label: str) -> Answer:
        self._require_question(question_id)
        return self._ledger.set_matching(question_id, statement, label)

    def toggle_flag(self, question_id: str) -> bool:
        """Toggle the doubt marker on a question and return the new state."""
        self._require_question(question_id)
        if question_id in self._state.flagged:
            self._state.flagged.discard(question_id)
            return False
        self._state.flagged.add(question_id)
        return True

    def get_answer(self, question_id: str) -> Answer | None:
        return self._ledger.get(question_id)

    # --- Read-only views ---

    @property
    def definition(self) -> ExamDefinition:
        return self._definition

    @property
    def student(self) -> StudentIdentity:
        return self._student

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def result(self) -> AttemptResult | None:
        return self._state.result

    @property
    def working_questions(self) -> list[WorkingQuestion]:
        return list(self._state.working_questions)

    @property
    def current_index(self) -> int:
        return self._state.current_index

    @property
    def current_question(self) -> WorkingQuestion:
        if not self._state.working_questions:
            raise SessionStateError("No questions are loaded for this attempt.")
        return self._state.working_questions[self._state.current_index]

    @property
    def remaining_seconds(self) -> int:
        return self._timer.remaining_seconds

    def format_remaining(self) -> str:
        return self._timer.format_remaining()

    def is_low_on_time(self) -> bool:
        return self._timer.is_low_on_time()

    @property
    def proctor_status_label(self) -> str:
        return self._proctor.status_label

    @property
    def violation_limit(self) -> int:
        return self._proctor.violation_limit

    def violation_state(self) -> ViolationState:
        return self._proctor.get_state()

    def is_flagged(self, question_id: str) -> bool:
        return question_id in self._state.flagged

    def question_statuses(self) -> list[QuestionStatus]:
        """Status per displayed position; a flag outranks an answer."""
        statuses: list[QuestionStatus] = []
        for question in self._state.working_questions:
            if question.id in self._state.flagged:
                statuses.append(QuestionStatus.FLAGGED)
            elif self._ledger.has_answer(question.id):
                statuses.append(QuestionStatus.ANSWERED)
            else:
                statuses.append(QuestionStatus.UNANSWERED)
        return statuses

    # --- Internals ---

    def _check_preconditions(self) -> None:
        definition = self._definition
        if definition.id in self._completed_exam_ids:
            raise AttemptRefusedError(f"Exam '{definition.title}' has already been completed.")
        if not definition.questions:
            raise AttemptRefusedError(f"Exam '{definition.title}' has no questions.")
        if definition.duration_seconds <= 0:
            raise AttemptRefusedError(f"Exam '{definition.title}' has no time allowance.")
        if not definition.is_active:
            raise AttemptRefusedError(f"Exam '{definition.title}' is not active.")
        if not definition.is_eligible(self._student.group):
            raise AttemptRefusedError(
                f"Exam '{definition.title}' is not open to group {self._student.group!r}."
            )
        status = definition.schedule_status(self._clock())
        if status == "upcoming":
            raise AttemptRefusedError(f"Exam '{definition.title}' has not opened yet.")
        if status == "ended":
            raise AttemptRefusedError(f"Exam '{definition.title}' has already closed.")

    def _require_in_progress(self) -> None:
        if self._state.phase is not SessionPhase.IN_PROGRESS:
            raise SessionStateError(f"Attempt is {self._state.phase.value}; no changes accepted.")

    def _require_question(self, question_id: str) -> None:
        self._require_in_progress()
        if not any(question.id == question_id for question in self._state.working_questions):
            raise ValueError(f"Unknown question id {question_id!r}.")

    def _handle_time_expired(self) -> None:
        logger.info("Time expired for exam=%s student=%s", self._definition.id, self._student.id)
        self._terminate(TerminationReason.TIME_EXPIRED)

    def _handle_disqualification(self) -> None:
        self._terminate(TerminationReason.DISQUALIFIED)

    def _terminate(self, reason: TerminationReason) -> AttemptResult:
        if self._state.phase is SessionPhase.TERMINATED:
            if self._state.result is None:
                raise SessionStateError("Attempt ended without a result.")
            return self._state.result
        self._timer.cancel()

        try:
            result = self._build_result(reason, graded=True)
        except Exception:
            logger.exception(
                "Grading failed for exam=%s student=%s; recording an ungraded result",
                self._definition.id,
                self._student.id,
            )
            result = self._build_result(reason, graded=False)

        self._state.phase = SessionPhase.TERMINATED
        self._state.result = result
        logger.info(
            "Attempt terminated (%s): exam=%s student=%s score=%.1f violations=%d",
            reason.value,
            self._definition.id,
            self._student.id,
            result.score,
            result.violation_count,
        )
        self._publish(result)
        return result

    def _build_result(self, reason: TerminationReason, graded: bool) -> AttemptResult:
        questions = self._state.working_questions
        answers = self._ledger.snapshot()
        if graded:
            score, category_scores = grader.grade(questions, answers, self._definition.categories())
            correct_count = sum(grader.score_items(questions, answers).values())
        else:
            score, category_scores, correct_count = 0.0, {}, 0
        violations = self._proctor.get_state()

        return AttemptResult(
            exam_id=self._definition.id,
            exam_title=self._definition.title,
            student=self._student,
            score=score,
            category_scores=category_scores,
            answers=answers,
            submitted_at=self._clock(),
            violation_count=violations.count,
            disqualified=violations.disqualified,
            termination_reason=reason,
            correct_count=correct_count,
            question_count=len(questions),
            flagged_question_ids=tuple(
                question.id for question in questions if question.id in self._state.flagged
            ),
        )

    def _publish(self, result: AttemptResult) -> None:
        if self._result_sink is None:
            return
        try:
            self._result_sink(result)
        except Exception:
            logger.exception(
                "Result sink failed for exam=%s student=%s", result.exam_id, result.student.id
            )
