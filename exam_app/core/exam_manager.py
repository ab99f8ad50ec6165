"""Business logic shared between the HTTP layer and the tick driver."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock

from exam_app.core.models import (
    Answer,
    AttemptResult,
    ExamDefinition,
    StudentIdentity,
    WorkingQuestion,
)
from exam_app.core.services.exam_catalog import ExamCatalog
from exam_app.core.services.exam_session import ExamSession, SessionPhase
from exam_app.core.services.proctor import ProctorStatus
from exam_app.core.services.result_store import ResultStore, ResultSummary
from exam_app.core.services.shuffler import Shuffler


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ExamListing:
    """One row of the student's exam lobby."""

    exam_id: str
    title: str
    question_count: int
    duration_seconds: int
    schedule_status: str
    completed: bool


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Consistent view of the active attempt taken under the manager lock."""

    phase: SessionPhase
    exam_id: str
    exam_title: str
    student: StudentIdentity
    current_index: int
    question_count: int
    question: WorkingQuestion | None
    answer: Answer | None
    flagged: bool
    statuses: tuple[str, ...]
    remaining_seconds: int
    remaining_label: str
    low_on_time: bool
    violation_count: int
    violation_limit: int
    proctor_status: str
    result: AttemptResult | None


class ExamManager:
    """Facade over the catalog, result store and the single active attempt.

    Every entry point takes the same lock, so HTTP requests and timer ticks
    are applied one at a time in arrival order.
    """

    def __init__(
        self,
        result_store: ResultStore | None = None,
        shuffler: Shuffler | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._lock = Lock()
        self._catalog = ExamCatalog()
        self._results = result_store or ResultStore()
        self._shuffler = shuffler or Shuffler()
        self._clock = clock
        self._session: ExamSession | None = None

    # --- Catalog ---

    def load_exams(self, exams: list[ExamDefinition]) -> None:
        with self._lock:
            self._catalog.load_exams(exams)

    def get_available_exams(self, student: StudentIdentity) -> list[ExamListing]:
        with self._lock:
            completed = self._results.completed_exam_ids(student.id)
            return [
                ExamListing(
                    exam_id=exam.id,
                    title=exam.title,
                    question_count=exam.question_count,
                    duration_seconds=exam.duration_seconds,
                    schedule_status=status,
                    completed=exam.id in completed,
                )
                for exam, status in self._catalog.schedule_overview(student.group, self._clock())
            ]

    # --- Attempt lifecycle ---

    def start_exam(self, exam_id: str, student: StudentIdentity) -> SessionSnapshot:
        with self._lock:
            if self._session is not None and self._session.phase is SessionPhase.IN_PROGRESS:
                raise RuntimeError("An attempt is already in progress.")
            exam = self._catalog.get_exam(exam_id)
            session = ExamSession(
                definition=exam,
                student=student,
                result_sink=self._results.record,
                completed_exam_ids=self._results.completed_exam_ids(student.id),
                shuffler=self._shuffler,
                clock=self._clock,
            )
            session.start()
            self._session = session
            return self._snapshot(session)

    def tick(self) -> None:
        with self._lock:
            if self._session is not None:
                self._session.on_tick()

    def focus_lost(self) -> ProctorStatus:
        with self._lock:
            return self._require_session().on_focus_lost()

    def finish(self) -> AttemptResult:
        with self._lock:
            return self._require_session().finish()

    # --- Navigation and answers ---

    def navigate(self, index: int) -> SessionSnapshot:
        with self._lock:
            session = self._require_session()
            session.go_to(index)
            return self._snapshot(session)

    def select_option(self, question_id: str, option_index: int) -> Answer:
        with self._lock:
            return self._require_session().select_option(question_id, option_index)

    def toggle_option(self, question_id: str, option_index: int) -> Answer:
        with self._lock:
            return self._require_session().toggle_multi_choice(question_id, option_index)

    def set_matching(self, question_id: str, statement: str, label: str) -> Answer:
        with self._lock:
            return self._require_session().set_matching(question_id, statement, label)

    def toggle_flag(self, question_id: str) -> bool:
        with self._lock:
            return self._require_session().toggle_flag(question_id)

    # --- Views ---

    def get_snapshot(self) -> SessionSnapshot | None:
        with self._lock:
            if self._session is None:
                return None
            return self._snapshot(self._session)

    def get_history(self, student_id: str) -> list[ResultSummary]:
        with self._lock:
            return self._results.history_for(student_id)

    def get_results(self) -> list[AttemptResult]:
        with self._lock:
            return self._results.get_results()

    # --- Internals ---

    def _require_session(self) -> ExamSession:
        if self._session is None:
            raise RuntimeError("No attempt has been started.")
        return self._session

    @staticmethod
    def _snapshot(session: ExamSession) -> SessionSnapshot:
        question = session.current_question if session.working_questions else None
        violations = session.violation_state()
        return SessionSnapshot(
            phase=session.phase,
            exam_id=session.definition.id,
            exam_title=session.definition.title,
            student=session.student,
            current_index=session.current_index,
            question_count=len(session.working_questions),
            question=question,
            answer=session.get_answer(question.id) if question is not None else None,
            flagged=session.is_flagged(question.id) if question is not None else False,
            statuses=tuple(status.value for status in session.question_statuses()),
            remaining_seconds=session.remaining_seconds,
            remaining_label=session.format_remaining(),
            low_on_time=session.is_low_on_time(),
            violation_count=violations.count,
            violation_limit=session.violation_limit,
            proctor_status=session.proctor_status_label,
            result=session.result,
        )
