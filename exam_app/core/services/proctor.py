"""Focus-loss proctoring with escalation to forced submission."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
import logging

from exam_app.constants.exam_constants import MAX_FOCUS_VIOLATIONS
from exam_app.core.models import ViolationState

logger = logging.getLogger(__name__)


class ProctorStatus(str, Enum):
    SECURE = "secure"
    WARNED = "warned"
    DISQUALIFIED = "disqualified"


class Proctor:
    """Counts focus-loss signals and disqualifies at the violation limit.

    Every signal counts, including rapid repeats. Warnings are informational
    and never pause the countdown. Once disqualified, further signals are
    ignored.
    """

    def __init__(
        self,
        on_warning: Callable[[int], None] | None = None,
        on_disqualify: Callable[[], None] | None = None,
        violation_limit: int = MAX_FOCUS_VIOLATIONS,
    ) -> None:
        if violation_limit < 1:
            raise ValueError("Violation limit must be at least 1.")
        self._on_warning = on_warning
        self._on_disqualify = on_disqualify
        self._limit = violation_limit
        self._count: int = 0
        self._disqualified: bool = False

    def record_focus_loss(self) -> ProctorStatus:
        if self._disqualified:
            return ProctorStatus.DISQUALIFIED

        self._count += 1
        if self._count < self._limit:
            logger.warning("Focus lost (%d/%d)", self._count, self._limit)
            if self._on_warning is not None:
                self._on_warning(self._count)
            return ProctorStatus.WARNED

        self._count = self._limit
        self._disqualified = True
        logger.warning("Focus lost %d times; attempt disqualified", self._count)
        if self._on_disqualify is not None:
            self._on_disqualify()
        return ProctorStatus.DISQUALIFIED

    @property
    def status(self) -> ProctorStatus:
        if self._disqualified:
            return ProctorStatus.DISQUALIFIED
        if self._count:
            return ProctorStatus.WARNED
        return ProctorStatus.SECURE

    @property
    def status_label(self) -> str:
        status = self.status
        if status is ProctorStatus.SECURE:
            return "SECURE"
        if status is ProctorStatus.WARNED:
            return f"WARNING {self._count}/{self._limit}"
        return "DISQUALIFIED"

    @property
    def violation_limit(self) -> int:
        return self._limit

    def get_state(self) -> ViolationState:
        return ViolationState(count=self._count, disqualified=self._disqualified)
