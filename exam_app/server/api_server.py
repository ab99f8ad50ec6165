"""FastAPI server that hosts a student's attempt in the browser."""

from __future__ import annotations

from threading import Thread

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
import uvicorn

from exam_app.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.exam_manager import ExamManager, SessionSnapshot
from exam_app.core.markdown_math_renderer import renderer
from exam_app.core.models import AttemptResult, QuestionKind, StudentIdentity
from exam_app.core.services.result_store import ResultSummary
from exam_app.server.tick_driver import TickDriver

_STUDENT_PAGE_HTML = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>ExamRunner</title>
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <style>
      :root { font-family: 'Inter', system-ui, sans-serif; background: #0b1120; color: #f5f7ff; }
      body { margin: 0; padding: 1.5rem; display: flex; flex-direction: column; gap: 1rem; }
      .card { background: #111a30; border-radius: 0.75rem; padding: 1.5rem; box-shadow: 0 0.5rem 1.5rem rgba(0, 0, 0, 0.4); }
      .hidden { display: none; }
      #question-image { max-width: 100%; max-height: 20rem; border-radius: 0.5rem; }
      .primary-button, .option-button, .nav-button { border: none; border-radius: 0.75rem; padding: 0.85rem 1.25rem; font-size: 1rem; background: #1f9aa5; color: #fff; cursor: pointer; }
      .option-button.selected { background: #facc15; color: #0b1120; }
      .nav-grid { display: flex; flex-wrap: wrap; gap: 0.4rem; }
      .nav-cell { width: 2.4rem; height: 2.4rem; border-radius: 0.4rem; border: 1px solid #334155; background: #1e293b; color: #94a3b8; cursor: pointer; }
      .nav-cell.answered { background: #059669; color: #fff; }
      .nav-cell.flagged { background: #ea580c; color: #fff; }
      .nav-cell.current { outline: 3px solid #facc15; }
      .hud { display: flex; justify-content: space-between; align-items: center; gap: 1rem; }
      #timer.low { color: #f87171; }
      #proctor-status.warned { color: #f87171; }
      table { width: 100%; border-collapse: collapse; }
      td, th { padding: 0.5rem; border-bottom: 1px solid #334155; }
      #warning { background: #7f1d1d; }
    </style>
    <script>
      window.MathJax = { tex: { inlineMath: [['$','$']], displayMath: [['$$','$$']] }, svg: { fontCache: 'global' } };
    </script>
    <script defer src="https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"></script>
  </head>
  <body>
    <section class="card" id="login-card">
      <h1>ExamRunner</h1>
      <p>Enter your details to see the exams open to your class.</p>
      <input id="student-id" placeholder="Student number" />
      <input id="student-name" placeholder="Name" />
      <input id="student-group" placeholder="Class" />
      <button id="list-button" class="primary-button">Show exams</button>
      <div id="exam-list"></div>
      <p id="login-status"></p>
    </section>
    <section class="card hidden" id="warning">
      <strong>Warning:</strong> you left the exam window. <span id="warning-count"></span>
      <button id="warning-dismiss" class="primary-button">Back to exam</button>
    </section>
    <section class="card hidden" id="exam-card">
      <div class="hud">
        <h2 id="exam-title"></h2>
        <span id="proctor-status"></span>
        <span id="timer"></span>
        <button id="finish-button" class="primary-button">Finish</button>
      </div>
      <div id="nav-grid" class="nav-grid"></div>
      <div id="stimulus"></div>
      <img id="question-image" class="hidden" alt="Question attachment" />
      <div id="prompt"></div>
      <div id="answer-area"></div>
      <p>
        <button id="prev-button" class="nav-button">Previous</button>
        <button id="flag-button" class="nav-button">Flag</button>
        <button id="next-button" class="nav-button">Next</button>
      </p>
      <p id="status"></p>
    </section>
    <section class="card hidden" id="result-card">
      <h2>Attempt finished</h2>
      <p id="result-text"></p>
    </section>
    <script>
      const el = id => document.getElementById(id);
      let session = null;
      let lastViolations = 0;
      let pollHandle = null;

      async function call(method, url, body) {
        const response = await fetch(url, {
          method,
          headers: { 'Content-Type': 'application/json' },
          body: body === undefined ? undefined : JSON.stringify(body)
        });
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          throw new Error(payload.detail || 'Request failed');
        }
        return payload;
      }

      function student() {
        return { student_id: el('student-id').value.trim(), name: el('student-name').value.trim(), group: el('student-group').value.trim() || null };
      }

      async function listExams() {
        const who = student();
        const query = new URLSearchParams({ student_id: who.student_id, group: who.group || '' });
        try {
          const exams = await call('GET', '/exams?' + query.toString());
          const list = el('exam-list');
          list.innerHTML = '';
          exams.forEach(exam => {
            const button = document.createElement('button');
            button.className = 'primary-button';
            const minutes = Math.round(exam.duration_seconds / 60);
            button.textContent = `${exam.title} (${exam.question_count} Qs, ${minutes}m)`;
            button.disabled = exam.completed || exam.schedule_status !== 'open';
            button.addEventListener('click', () => startExam(exam.exam_id));
            list.appendChild(button);
          });
        } catch (error) {
          el('login-status').textContent = error.message;
        }
      }

      async function startExam(examId) {
        try {
          session = await call('POST', '/start', { exam_id: examId, ...student() });
          lastViolations = 0;
          render();
          pollHandle = setInterval(refresh, 1000);
        } catch (error) {
          el('login-status').textContent = error.message;
        }
      }

      async function refresh() {
        try {
          session = await call('GET', '/session');
          render();
        } catch (error) {
          el('status').textContent = error.message;
        }
      }

      async function act(url, body) {
        try {
          await call('POST', url, body);
        } catch (error) {
          el('status').textContent = error.message;
        }
        await refresh();
      }

      function renderAnswerArea(question, answer) {
        const area = el('answer-area');
        area.innerHTML = '';
        if (question.kind === 'matching') {
          const table = document.createElement('table');
          const head = document.createElement('tr');
          ['Statement', ...question.matching_labels].forEach(text => {
            const th = document.createElement('th');
            th.textContent = text;
            head.appendChild(th);
          });
          table.appendChild(head);
          const chosen = answer || {};
          question.matching_statements.forEach((statement, row) => {
            const tr = document.createElement('tr');
            const td = document.createElement('td');
            td.textContent = statement;
            tr.appendChild(td);
            question.matching_labels.forEach(label => {
              const cell = document.createElement('td');
              const radio = document.createElement('input');
              radio.type = 'radio';
              radio.name = `row-${row}`;
              radio.checked = chosen[statement] === label;
              radio.addEventListener('change', () => act('/answer/matching', { question_id: question.id, statement, label }));
              cell.appendChild(radio);
              tr.appendChild(cell);
            });
            table.appendChild(tr);
          });
          area.appendChild(table);
          return;
        }
        question.options.forEach((option, index) => {
          const button = document.createElement('button');
          button.className = 'option-button';
          button.textContent = `${String.fromCharCode(65 + index)}. ${option}`;
          const selected = question.kind === 'multi-choice' ? (answer || []).includes(index) : answer === index;
          if (selected) button.classList.add('selected');
          const url = question.kind === 'multi-choice' ? '/answer/multi' : '/answer/single';
          button.addEventListener('click', () => act(url, { question_id: question.id, option_index: index }));
          area.appendChild(button);
        });
      }

      function render() {
        if (!session) return;
        if (session.phase === 'terminated') {
          clearInterval(pollHandle);
          el('exam-card').classList.add('hidden');
          el('warning').classList.add('hidden');
          el('result-card').classList.remove('hidden');
          const result = session.result;
          el('result-text').textContent = result.disqualified
            ? `Disqualified after ${result.violation_count} violations. Score: ${result.score.toFixed(1)}`
            : `Score: ${result.score.toFixed(1)} (${result.correct_count}/${result.question_count} correct)`;
          return;
        }
        el('login-card').classList.add('hidden');
        el('exam-card').classList.remove('hidden');
        el('exam-title').textContent = session.exam_title;
        el('timer').textContent = session.remaining_label;
        el('timer').classList.toggle('low', session.low_on_time);
        el('proctor-status').textContent = session.proctor_status;
        el('proctor-status').classList.toggle('warned', session.violation_count > 0);
        if (session.violation_count > lastViolations) {
          el('warning-count').textContent = `(${session.violation_count}/${session.violation_limit})`;
          el('warning').classList.remove('hidden');
        }
        lastViolations = session.violation_count;
        const grid = el('nav-grid');
        grid.innerHTML = '';
        session.statuses.forEach((status, index) => {
          const cell = document.createElement('button');
          cell.className = `nav-cell ${status}` + (index === session.current_index ? ' current' : '');
          cell.textContent = index + 1;
          cell.addEventListener('click', () => act('/navigate', { index }));
          grid.appendChild(cell);
        });
        const question = session.question;
        el('stimulus').innerHTML = question.stimulus_html;
        el('prompt').innerHTML = question.prompt_html;
        const image = el('question-image');
        if (question.image) {
          image.src = question.image;
          image.classList.remove('hidden');
        } else {
          image.removeAttribute('src');
          image.classList.add('hidden');
        }
        el('flag-button').textContent = question.flagged ? 'Unflag' : 'Flag';
        renderAnswerArea(question, question.answer);
        if (window.MathJax && window.MathJax.typesetPromise) {
          window.MathJax.typesetPromise([el('stimulus'), el('prompt')]).catch(() => {});
        }
      }

      el('list-button').addEventListener('click', listExams);
      el('warning-dismiss').addEventListener('click', () => el('warning').classList.add('hidden'));
      el('prev-button').addEventListener('click', () => act('/navigate', { index: session.current_index - 1 }));
      el('next-button').addEventListener('click', () => {
        if (session.current_index >= session.question_count - 1) {
          el('status').textContent = 'This is the last question. Review your answers before finishing.';
          return;
        }
        act('/navigate', { index: session.current_index + 1 });
      });
      el('flag-button').addEventListener('click', () => act('/flag', { question_id: session.question.id }));
      el('finish-button').addEventListener('click', () => {
        if (confirm('Finish the exam now? You cannot change your answers afterwards.')) {
          act('/finish');
        }
      });
      document.addEventListener('visibilitychange', () => {
        if (document.hidden && session && session.phase === 'in-progress') {
          act('/focus-lost');
        }
      });
    </script>
  </body>
</html>
"""


class StartPayload(BaseModel):
    """Payload schema for starting an attempt."""

    exam_id: str
    student_id: str
    name: str
    group: str | None = None


class NavigatePayload(BaseModel):
    index: int


class OptionPayload(BaseModel):
    question_id: str
    option_index: int


class MatchingPayload(BaseModel):
    question_id: str
    statement: str
    label: str


class FlagPayload(BaseModel):
    question_id: str


def _get_exam_manager_dependency(exam_manager: ExamManager):
    def dependency() -> ExamManager:
        return exam_manager

    return dependency


def _serialize_result(result: AttemptResult) -> dict[str, object]:
    return result.to_dict()


def _serialize_summary(summary: ResultSummary) -> dict[str, object]:
    return {
        "exam_id": summary.exam_id,
        "exam_title": summary.exam_title,
        "score": summary.score,
        "category_scores": summary.category_scores,
        "disqualified": summary.disqualified,
        "submitted_at": summary.submitted_at,
    }


def _serialize_snapshot(snapshot: SessionSnapshot) -> dict[str, object]:
    question_payload: dict[str, object] | None = None
    question = snapshot.question
    if question is not None:
        # Answer keys never leave the server.
        question_payload = {
            "id": question.id,
            "kind": question.kind.value,
            "image": question.question.image,
            "options": list(question.options),
            "matching_statements": [pair.statement for pair in question.matching_pairs],
            "matching_labels": list(question.matching_labels) if question.kind is QuestionKind.MATCHING else [],
            "answer": snapshot.answer.to_json() if snapshot.answer is not None else None,
            "flagged": snapshot.flagged,
            **renderer.render_question(question),
        }
    return {
        "phase": snapshot.phase.value,
        "exam_id": snapshot.exam_id,
        "exam_title": snapshot.exam_title,
        "student_id": snapshot.student.id,
        "current_index": snapshot.current_index,
        "question_count": snapshot.question_count,
        "question": question_payload,
        "statuses": list(snapshot.statuses),
        "remaining_seconds": snapshot.remaining_seconds,
        "remaining_label": snapshot.remaining_label,
        "low_on_time": snapshot.low_on_time,
        "violation_count": snapshot.violation_count,
        "violation_limit": snapshot.violation_limit,
        "proctor_status": snapshot.proctor_status,
        "result": _serialize_result(snapshot.result) if snapshot.result is not None else None,
    }


def create_api_app(exam_manager: ExamManager) -> FastAPI:
    """Create a FastAPI application wired to the provided exam manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, description=APP_ABOUT_TEXT)
    exam_manager_dep = _get_exam_manager_dependency(exam_manager)

    def _call(action):
        try:
            return action()
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc.args[0]) if exc.args else "Not found") from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

    @app.get("/", response_class=HTMLResponse)
    def serve_student_page() -> str:
        return _STUDENT_PAGE_HTML

    @app.get("/exams")
    def list_exams(
        student_id: str,
        group: str | None = None,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> list[dict[str, object]]:
        student = StudentIdentity(id=student_id, name=student_id, group=group or None)
        return [
            {
                "exam_id": listing.exam_id,
                "title": listing.title,
                "question_count": listing.question_count,
                "duration_seconds": listing.duration_seconds,
                "schedule_status": listing.schedule_status,
                "completed": listing.completed,
            }
            for listing in manager.get_available_exams(student)
        ]

    @app.post("/start", status_code=201)
    def start_exam(payload: StartPayload, manager: ExamManager = Depends(exam_manager_dep)) -> dict[str, object]:
        student = StudentIdentity(id=payload.student_id, name=payload.name, group=payload.group)
        snapshot = _call(lambda: manager.start_exam(payload.exam_id, student))
        return _serialize_snapshot(snapshot)

    @app.get("/session")
    def get_session(manager: ExamManager = Depends(exam_manager_dep)) -> dict[str, object]:
        snapshot = manager.get_snapshot()
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No attempt has been started.")
        return _serialize_snapshot(snapshot)

    @app.post("/navigate")
    def navigate(payload: NavigatePayload, manager: ExamManager = Depends(exam_manager_dep)) -> dict[str, object]:
        snapshot = _call(lambda: manager.navigate(payload.index))
        return _serialize_snapshot(snapshot)

    @app.post("/answer/single")
    def answer_single(payload: OptionPayload, manager: ExamManager = Depends(exam_manager_dep)) -> dict[str, object]:
        answer = _call(lambda: manager.select_option(payload.question_id, payload.option_index))
        return {"question_id": payload.question_id, "answer": answer.to_json()}

    @app.post("/answer/multi")
    def answer_multi(payload: OptionPayload, manager: ExamManager = Depends(exam_manager_dep)) -> dict[str, object]:
        answer = _call(lambda: manager.toggle_option(payload.question_id, payload.option_index))
        return {"question_id": payload.question_id, "answer": answer.to_json()}

    @app.post("/answer/matching")
    def answer_matching(payload: MatchingPayload, manager: ExamManager = Depends(exam_manager_dep)) -> dict[str, object]:
        answer = _call(lambda: manager.set_matching(payload.question_id, payload.statement, payload.label))
        return {"question_id": payload.question_id, "answer": answer.to_json()}

    @app.post("/flag")
    def flag_question(payload: FlagPayload, manager: ExamManager = Depends(exam_manager_dep)) -> dict[str, object]:
        flagged = _call(lambda: manager.toggle_flag(payload.question_id))
        return {"question_id": payload.question_id, "flagged": flagged}

    @app.post("/focus-lost")
    def focus_lost(manager: ExamManager = Depends(exam_manager_dep)) -> dict[str, object]:
        status = _call(manager.focus_lost)
        snapshot = manager.get_snapshot()
        return {
            "proctor_status": status.value,
            "violation_count": snapshot.violation_count if snapshot is not None else 0,
        }

    @app.post("/finish")
    def finish(manager: ExamManager = Depends(exam_manager_dep)) -> dict[str, object]:
        result = _call(manager.finish)
        return _serialize_result(result)

    @app.get("/results")
    def get_results(student_id: str, manager: ExamManager = Depends(exam_manager_dep)) -> list[dict[str, object]]:
        return [_serialize_summary(summary) for summary in manager.get_history(student_id)]

    return app


def start_api_server(
    exam_manager: ExamManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> tuple[Thread, TickDriver]:
    """Start the FastAPI server and the tick driver in background daemon threads."""
    app = create_api_app(exam_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    ticker = TickDriver(exam_manager)
    ticker.start()
    thread = Thread(target=run_server, name="ExamApiServer", daemon=True)
    thread.start()
    return thread, ticker
