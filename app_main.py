"""Application entry point for ProctorQt."""

from __future__ import annotations

import sys

from exam_app.core.exam_manager import ExamManager
from exam_app.core.services.exam_library import ExamLibrary
from exam_app.core.services.persistence import InMemoryExamStore, JsonFileExamStore
from exam_app.server.api_server import run_api_server, start_api_server
from exam_app.utils.app_config import AppConfig, load_config
from exam_app.utils.logging_config import configure_logging


def _build_store(config: AppConfig) -> InMemoryExamStore:
    if config.data_file is not None:
        return JsonFileExamStore(config.data_file)
    return InMemoryExamStore()


def _run_kiosk(config: AppConfig, library: ExamLibrary, store: InMemoryExamStore) -> None:
    # Qt imports stay local so headless servers do not need a display.
    from PySide6.QtWidgets import QApplication

    from exam_app.ui.kiosk_window import KioskBridge, KioskWindow

    app = QApplication(sys.argv)
    bridge = KioskBridge()
    exam_manager = ExamManager(
        library,
        store,
        exit_hook=bridge.exit_requested.emit,
        violation_delay_seconds=config.violation_delay_seconds,
    )
    start_api_server(exam_manager, host=config.host, port=config.port)

    window = KioskWindow(exam_url=f"http://{config.host}:{config.port}/", bridge=bridge)
    window.show()
    sys.exit(app.exec())


def main() -> None:
    """Load configuration and exams, start the API server, and open the kiosk window."""
    config = load_config()
    logger = configure_logging(config.log_level)
    logger.info("Starting ProctorQt…")

    library = ExamLibrary.from_directory(config.exams_dir)
    for exam in library.list_exams():
        logger.info("Exam %s (%s): %s to %s", exam.name, exam.status, exam.start_time, exam.end_time)
    store = _build_store(config)

    if config.kiosk:
        _run_kiosk(config, library, store)
        return

    logger.info("Running headless; exam page at http://%s:%d/", config.host, config.port)
    exam_manager = ExamManager(library, store, violation_delay_seconds=config.violation_delay_seconds)
    run_api_server(exam_manager, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
