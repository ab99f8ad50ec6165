"""Exam-related constants shared across the engine and the hosting server."""

MAX_FOCUS_VIOLATIONS: int = 3
TICK_INTERVAL_SECONDS: float = 1.0
LOW_TIME_WARNING_SECONDS: int = 300
DEFAULT_MATCHING_LABELS: tuple[str, str] = ("True", "False")
