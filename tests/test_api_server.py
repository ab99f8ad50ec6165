from __future__ import annotations

from fastapi.testclient import TestClient
import pytest

from exam_app.core.exam_manager import ExamManager
from exam_app.core.services.result_store import ResultStore
from exam_app.core.services.shuffler import Shuffler
from exam_app.server.api_server import create_api_app

from factories import FIXED_NOW, exam, matching, multi, single

_STUDENT = {"student_id": "12345", "name": "Ahmad Santoso", "group": "IX A"}


@pytest.fixture
def manager() -> ExamManager:
    manager = ExamManager(result_store=ResultStore(), shuffler=Shuffler(8), clock=lambda: FIXED_NOW)
    manager.load_exams(
        [
            exam(
                [single("q1", correct=2), multi("q2"), matching("q3")],
                exam_id="e1",
                duration_seconds=120,
            )
        ]
    )
    return manager


@pytest.fixture
def client(manager) -> TestClient:
    return TestClient(create_api_app(manager))


def _start(client: TestClient) -> dict:
    response = client.post("/start", json={"exam_id": "e1", **_STUDENT})
    assert response.status_code == 201
    return response.json()


def test_student_page_is_served(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "visibilitychange" in response.text


def test_exam_listing(client):
    response = client.get("/exams", params={"student_id": "12345", "group": "IX A"})
    assert response.json() == [
        {
            "exam_id": "e1",
            "title": "Practice Exam",
            "question_count": 3,
            "duration_seconds": 120,
            "schedule_status": "open",
            "completed": False,
        }
    ]


def test_session_payload_hides_answer_keys(client):
    payload = _start(client)

    assert payload["phase"] == "in-progress"
    assert payload["remaining_label"] == "2:00"
    question = payload["question"]
    assert "correct_index" not in question
    assert "correct_indices" not in question
    assert question["prompt_html"].startswith("<p>Prompt")


def test_answer_flow_and_finish(client, manager):
    _start(client)
    working = {q.id: q for q in manager._session.working_questions}

    response = client.post("/answer/single", json={"question_id": "q1", "option_index": working["q1"].correct_index})
    assert response.status_code == 200
    client.post("/answer/multi", json={"question_id": "q2", "option_index": 0})
    response = client.post("/answer/multi", json={"question_id": "q2", "option_index": 2})
    assert response.json()["answer"] == [0, 2]
    client.post("/answer/matching", json={"question_id": "q3", "statement": "Japan - Tokyo", "label": "True"})
    response = client.post("/flag", json={"question_id": "q3"})
    assert response.json()["flagged"] is True

    response = client.post("/finish")

    assert response.status_code == 200
    result = response.json()
    assert result["correct_count"] == 2
    assert result["score"] == pytest.approx(200 / 3)
    assert result["flagged_question_ids"] == ["q3"]
    assert client.get("/session").json()["phase"] == "terminated"
    assert client.get("/results", params={"student_id": "12345"}).json()[0]["exam_id"] == "e1"


def test_three_focus_losses_end_the_attempt(client):
    _start(client)

    statuses = [client.post("/focus-lost").json()["proctor_status"] for _ in range(3)]

    assert statuses == ["warned", "warned", "disqualified"]
    session = client.get("/session").json()
    assert session["phase"] == "terminated"
    assert session["result"]["disqualified"] is True
    assert session["result"]["violation_count"] == 3


def test_error_mapping(client):
    assert client.get("/session").status_code == 404
    assert client.post("/finish").status_code == 409
    assert client.post("/start", json={"exam_id": "nope", **_STUDENT}).status_code == 404

    _start(client)
    assert client.post("/answer/single", json={"question_id": "zzz", "option_index": 0}).status_code == 422
    client.post("/finish")
    assert client.post("/start", json={"exam_id": "e1", **_STUDENT}).status_code == 409
    assert client.post("/navigate", json={"index": 1}).status_code == 409


def test_page_renders_labels_as_text_and_shows_attachments(client):
    page = client.get("/").text

    assert "<th>${" not in page
    assert "th.textContent = text" in page
    assert 'id="question-image"' in page
    assert "image.src = question.image" in page


def test_session_payload_carries_the_question_image(client):
    payload = _start(client)
    assert "image" in payload["question"]
