"""Runtime configuration read from environment variables."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Mapping

from exam_app.constants.exam_constants import DEFAULT_EXAMS_DIR, VIOLATION_SUBMIT_DELAY_SECONDS
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT


@dataclass(slots=True, frozen=True)
class AppConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    exams_dir: Path = Path(DEFAULT_EXAMS_DIR)
    data_file: Path | None = None
    violation_delay_seconds: float = VIOLATION_SUBMIT_DELAY_SECONDS
    kiosk: bool = True
    log_level: str = "INFO"


def load_config(env: Mapping[str, str] | None = None) -> AppConfig:
    """Build the configuration from ``EXAM_APP_*`` variables, falling back to defaults."""
    env = os.environ if env is None else env

    data_file = (env.get("EXAM_APP_DATA_FILE") or "").strip()
    return AppConfig(
        host=(env.get("EXAM_APP_HOST") or DEFAULT_HOST).strip(),
        port=_int_var(env, "EXAM_APP_PORT", DEFAULT_PORT),
        exams_dir=Path((env.get("EXAM_APP_EXAMS_DIR") or DEFAULT_EXAMS_DIR).strip()),
        data_file=Path(data_file) if data_file else None,
        violation_delay_seconds=_float_var(
            env, "EXAM_APP_VIOLATION_DELAY_SECONDS", VIOLATION_SUBMIT_DELAY_SECONDS
        ),
        kiosk=(env.get("EXAM_APP_KIOSK", "1").strip().lower() in ("1", "true", "yes")),
        log_level=(env.get("EXAM_APP_LOG_LEVEL") or "INFO").strip().upper(),
    )


def _int_var(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive.")
    return value


def _float_var(env: Mapping[str, str], name: str, default: float) -> float:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}.") from exc
    if value < 0:
        raise ValueError(f"{name} must not be negative.")
    return value
