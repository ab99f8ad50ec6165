from __future__ import annotations

from datetime import timedelta

import pytest

from exam_app.core.services.exam_catalog import ExamCatalog

from factories import FIXED_NOW, exam, matching, single


def test_load_keeps_authoring_order_and_lists_by_group():
    catalog = ExamCatalog()
    catalog.load_exams(
        [
            exam([single("q1")], exam_id="b"),
            exam([single("q1")], exam_id="a", eligible_groups=frozenset({"VII A"})),
            exam([single("q1")], exam_id="c", is_active=False),
        ]
    )

    assert [e.id for e in catalog.exams_for_group("IX A")] == ["b"]
    assert [e.id for e in catalog.exams_for_group("VII A")] == ["b", "a"]


def test_schedule_overview_marks_each_exam():
    catalog = ExamCatalog()
    catalog.load_exams(
        [
            exam([single("q1")], exam_id="open"),
            exam([single("q1")], exam_id="later", scheduled_start=FIXED_NOW + timedelta(hours=1)),
            exam([single("q1")], exam_id="past", scheduled_end=FIXED_NOW - timedelta(hours=1)),
        ]
    )

    overview = {e.id: status for e, status in catalog.schedule_overview(None, FIXED_NOW)}

    assert overview == {"open": "open", "later": "upcoming", "past": "ended"}


def test_unknown_exam_raises_key_error():
    with pytest.raises(KeyError, match="nope"):
        ExamCatalog().get_exam("nope")


@pytest.mark.parametrize(
    "exams",
    [
        [exam([single("q1")], title="   ")],
        [exam([single("q1")], duration_seconds=0)],
        [exam([single("q1"), single("q1")])],
        [exam([matching("m1", pairs=(("Same", "True"), ("Same", "False")))])],
        [exam([single("q1")], scheduled_start=FIXED_NOW, scheduled_end=FIXED_NOW - timedelta(minutes=1))],
        [exam([single("q1")], exam_id="x"), exam([single("q2")], exam_id="x")],
    ],
)
def test_invalid_exams_are_rejected(exams):
    catalog = ExamCatalog()

    with pytest.raises(ValueError):
        catalog.load_exams(exams)


def test_failed_load_keeps_previous_catalog():
    catalog = ExamCatalog()
    catalog.load_exams([exam([single("q1")], exam_id="kept")])

    with pytest.raises(ValueError):
        catalog.load_exams([exam([single("q1")], exam_id="new", duration_seconds=-5)])

    assert catalog.get_exam("kept").id == "kept"
