from __future__ import annotations

from exam_app.core.models import Answer, QuestionKind
from exam_app.core.services.answer_ledger import AnswerLedger


def test_unset_is_distinct_from_empty_selection():
    ledger = AnswerLedger()
    assert ledger.get("q1") is None

    ledger.toggle_multi_choice("q1", 2)
    ledger.toggle_multi_choice("q1", 2)

    answer = ledger.get("q1")
    assert answer is not None
    assert answer.payload == frozenset()
    assert ledger.has_answer("q1")


def test_toggle_adds_and_removes():
    ledger = AnswerLedger()
    ledger.toggle_multi_choice("q1", 0)
    ledger.toggle_multi_choice("q1", 2)
    ledger.toggle_multi_choice("q1", 1)
    ledger.toggle_multi_choice("q1", 1)

    assert ledger.get("q1") == Answer.multi({0, 2})


def test_toggle_over_a_different_kind_starts_from_empty():
    ledger = AnswerLedger()
    ledger.set_answer("q1", Answer.single(3))

    answer = ledger.toggle_multi_choice("q1", 1)

    assert answer.kind is QuestionKind.MULTI_CHOICE
    assert answer.payload == frozenset({1})


def test_set_matching_merges_rows():
    ledger = AnswerLedger()
    ledger.set_matching("q3", "Japan - Tokyo", "True")
    ledger.set_matching("q3", "England - Paris", "True")
    ledger.set_matching("q3", "England - Paris", "False")

    assert ledger.get("q3").payload == {"Japan - Tokyo": "True", "England - Paris": "False"}


def test_set_answer_overwrites_without_validation():
    ledger = AnswerLedger()
    ledger.set_answer("q1", Answer.single(1))
    ledger.set_answer("q1", Answer(QuestionKind.SINGLE_CHOICE, "not an index"))

    assert ledger.get("q1").payload == "not an index"


def test_snapshot_is_independent_of_later_writes():
    ledger = AnswerLedger()
    ledger.set_matching("q3", "Japan - Tokyo", "True")
    snapshot = ledger.snapshot()

    ledger.set_matching("q3", "England - Paris", "False")
    ledger.clear("q3")

    assert snapshot["q3"].payload == {"Japan - Tokyo": "True"}
    assert ledger.answered_ids() == set()
