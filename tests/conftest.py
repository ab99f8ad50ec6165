from __future__ import annotations

import pytest

from exam_app.core.models import AttemptResult


class RecordingSink:
    """Result sink that remembers every result it receives."""

    def __init__(self) -> None:
        self.results: list[AttemptResult] = []

    def __call__(self, result: AttemptResult) -> None:
        self.results.append(result)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
