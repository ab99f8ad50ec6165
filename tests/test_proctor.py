from __future__ import annotations

from exam_app.core.models import ViolationState
from exam_app.core.services.proctor import Proctor, ProctorStatus


def test_starts_secure():
    proctor = Proctor()
    assert proctor.status is ProctorStatus.SECURE
    assert proctor.status_label == "SECURE"
    assert proctor.get_state() == ViolationState(count=0, disqualified=False)


def test_warns_before_the_limit():
    warnings = []
    proctor = Proctor(on_warning=warnings.append)

    assert proctor.record_focus_loss() is ProctorStatus.WARNED
    assert proctor.record_focus_loss() is ProctorStatus.WARNED

    assert warnings == [1, 2]
    assert proctor.status_label == "WARNING 2/3"
    assert not proctor.get_state().disqualified


def test_third_signal_disqualifies_once():
    disqualifications = []
    proctor = Proctor(on_disqualify=lambda: disqualifications.append(True))

    statuses = [proctor.record_focus_loss() for _ in range(5)]

    assert statuses[2:] == [ProctorStatus.DISQUALIFIED] * 3
    assert disqualifications == [True]
    assert proctor.get_state() == ViolationState(count=3, disqualified=True)
    assert proctor.status_label == "DISQUALIFIED"


def test_custom_limit():
    proctor = Proctor(violation_limit=1)
    assert proctor.record_focus_loss() is ProctorStatus.DISQUALIFIED
    assert proctor.get_state().count == 1
