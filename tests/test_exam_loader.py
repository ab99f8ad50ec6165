from __future__ import annotations

from datetime import timezone
import json

import pytest

from exam_app.core.exam_loader import DEFAULT_EXAMS_PATH, ExamImportError, load_exams_from_file, parse_exams
from exam_app.core.models import QuestionKind


def _document(**exam_overrides) -> str:
    exam = {
        "id": "e1",
        "title": " Midterm ",
        "duration_minutes": 1.5,
        "eligible_groups": ["IX A"],
        "questions": [
            {"id": "q1", "kind": "single-choice", "prompt": "Capital?", "options": [" Jakarta ", "Bandung"], "correct_index": 0},
            {"id": "q2", "kind": "multi-choice", "prompt": "Primes?", "options": ["2", "4", "5"], "correct_indices": [2, 0]},
            {
                "id": "q3",
                "kind": "matching",
                "prompt": "Match",
                "matching_labels": ["Benar", "Salah"],
                "matching_pairs": [{"statement": "Japan - Tokyo", "correct_label": "Benar"}],
            },
        ],
    }
    exam.update(exam_overrides)
    return json.dumps({"exams": [exam]})


def test_parses_all_question_kinds():
    [definition] = parse_exams(_document())

    assert definition.title == "Midterm"
    assert definition.duration_seconds == 90
    assert definition.eligible_groups == frozenset({"IX A"})
    q1, q2, q3 = definition.questions
    assert q1.kind is QuestionKind.SINGLE_CHOICE
    assert q1.options == ("Jakarta", "Bandung")
    assert q2.correct_indices == frozenset({0, 2})
    assert q3.matching_labels == ("Benar", "Salah")
    assert q3.matching_pairs[0].correct_label == "Benar"


def test_naive_schedule_is_read_as_utc():
    [definition] = parse_exams(_document(scheduled_start="2026-03-02T07:00:00", scheduled_end="2026-03-02T09:00:00+07:00"))

    assert definition.scheduled_start.tzinfo == timezone.utc
    assert definition.scheduled_end.hour == 2


def test_missing_answer_key_is_allowed():
    document = _document(questions=[{"id": "q1", "kind": "single-choice", "prompt": "?", "options": ["a"]}])
    [definition] = parse_exams(document)
    assert definition.questions[0].correct_index is None


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        json.dumps({"exams": [{"id": "e1"}]}),
        _document(duration_minutes=0),
        _document(duration_minutes=0.001),
        _document(questions=[{"id": "q", "kind": "essay", "prompt": "?"}]),
        _document(questions=[{"id": "q", "kind": "matching", "prompt": "?", "correct_index": 1}]),
    ],
)
def test_invalid_documents_raise_import_error(text):
    with pytest.raises(ExamImportError):
        parse_exams(text)


def test_load_from_file(tmp_path):
    path = tmp_path / "exams.json"
    path.write_text(_document(), encoding="utf-8")

    imported = load_exams_from_file(path)

    assert imported.source_path == path
    assert [exam.id for exam in imported.exams] == ["e1"]


def test_empty_file_and_missing_file(tmp_path):
    empty = tmp_path / "empty.json"
    empty.write_text(json.dumps({"exams": []}), encoding="utf-8")
    with pytest.raises(ExamImportError):
        load_exams_from_file(empty)
    with pytest.raises(ExamImportError):
        load_exams_from_file(tmp_path / "missing.json")


def test_bundled_sample_exams_load():
    imported = load_exams_from_file(DEFAULT_EXAMS_PATH)
    assert imported.exams[0].question_count == 4


def test_duration_rounding_to_zero_seconds_is_rejected():
    with pytest.raises(ExamImportError, match="at least one second"):
        parse_exams(_document(duration_minutes=0.001))
