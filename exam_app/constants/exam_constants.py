"""Exam-related constants shared across server and core layers."""

OPTION_LABELS: tuple[str, ...] = ("A", "B", "C", "D")
NO_SELECTION: str = "n"
TICK_INTERVAL_SECONDS: float = 1.0
VIOLATION_SUBMIT_DELAY_SECONDS: float = 2.0
LOW_TIME_THRESHOLD_SECONDS: int = 300
DEFAULT_EXAMS_DIR: str = "exams"
FINALIZE_WRITE_TIMEOUT_SECONDS: float = 10.0
