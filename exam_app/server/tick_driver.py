"""Background thread feeding one-second ticks to the exam manager."""

from __future__ import annotations

import logging
from threading import Event, Thread

from exam_app.constants.exam_constants import TICK_INTERVAL_SECONDS
from exam_app.core.exam_manager import ExamManager

logger = logging.getLogger(__name__)


class TickDriver:
    """Calls :meth:`ExamManager.tick` at a fixed interval until stopped."""

    def __init__(self, exam_manager: ExamManager, interval_seconds: float = TICK_INTERVAL_SECONDS) -> None:
        self._manager = exam_manager
        self._interval = interval_seconds
        self._stop = Event()
        self._thread: Thread | None = None

    def start(self) -> Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = Thread(target=self._run, name="ExamTickDriver", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval * 2)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._manager.tick()
            except Exception:
                logger.exception("Tick failed")
