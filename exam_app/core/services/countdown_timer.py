"""Countdown clock that drives time-based auto-submission."""

from __future__ import annotations

from collections.abc import Callable

from exam_app.constants.exam_constants import LOW_TIME_WARNING_SECONDS


class CountdownTimer:
    """Counts down one second per :meth:`tick` and fires once at zero.

    The timer never reads a clock; the host calls :meth:`tick` once a second.
    """

    def __init__(self) -> None:
        self._remaining_seconds: int = 0
        self._running: bool = False
        self._on_expire: Callable[[], None] | None = None

    def start(self, duration_seconds: int, on_expire: Callable[[], None]) -> None:
        """Begin a fresh countdown, discarding any previous one."""
        if duration_seconds <= 0:
            raise ValueError("Countdown duration must be a positive number of seconds.")
        self._remaining_seconds = duration_seconds
        self._on_expire = on_expire
        self._running = True

    def tick(self) -> None:
        if not self._running:
            return
        self._remaining_seconds = max(0, self._remaining_seconds - 1)
        if self._remaining_seconds == 0:
            callback = self._on_expire
            self._running = False
            self._on_expire = None
            if callback is not None:
                callback()

    def cancel(self) -> None:
        self._running = False
        self._on_expire = None

    @property
    def remaining_seconds(self) -> int:
        return self._remaining_seconds

    def is_running(self) -> bool:
        return self._running

    def is_low_on_time(self, threshold_seconds: int = LOW_TIME_WARNING_SECONDS) -> bool:
        return self._running and self._remaining_seconds < threshold_seconds

    def format_remaining(self) -> str:
        """Render the remaining time as ``m:ss``."""
        minutes, seconds = divmod(self._remaining_seconds, 60)
        return f"{minutes}:{seconds:02d}"
