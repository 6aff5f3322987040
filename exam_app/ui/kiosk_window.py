"""Qt window hosting the student exam page in a locked-down web view."""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, QTimer, QUrl, Signal, Slot
from PySide6.QtWebEngineCore import QWebEngineFullScreenRequest, QWebEnginePage, QWebEngineSettings
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import QMainWindow, QMessageBox

from exam_app.constants.about import APP_NAME
from exam_app.constants.ui_constants import KIOSK_EXIT_MESSAGE, SERVER_STARTUP_DELAY_MS, WINDOW_TITLE

logger = logging.getLogger(__name__)


class KioskBridge(QObject):
    """Carries the exit request from the server thread onto the Qt thread.

    ``exit_requested.emit`` is passed to the exam manager as its exit hook.
    Signals crossing threads are queued, so the window reacts on the GUI
    thread no matter which thread finalized the exam.
    """

    exit_requested = Signal()


class KioskWindow(QMainWindow):
    """Full-screen window that shows the exam page and leaves kiosk mode on exit."""

    def __init__(self, exam_url: str, bridge: KioskBridge) -> None:
        super().__init__()
        self.setWindowTitle(WINDOW_TITLE)
        self._exam_url = exam_url
        self._exit_notified = False

        self.view = QWebEngineView(self)
        self.view.settings().setAttribute(QWebEngineSettings.WebAttribute.FullScreenSupportEnabled, True)
        self.view.page().fullScreenRequested.connect(self._handle_fullscreen_request)
        self.setCentralWidget(self.view)

        bridge.exit_requested.connect(self._handle_exit_requested)

        # Give uvicorn a moment to bind before the first request.
        QTimer.singleShot(SERVER_STARTUP_DELAY_MS, self._load_exam_page)

    def _load_exam_page(self) -> None:
        logger.info("Loading exam page from %s", self._exam_url)
        self.view.setUrl(QUrl(self._exam_url))

    def _handle_fullscreen_request(self, request: QWebEngineFullScreenRequest) -> None:
        request.accept()
        if request.toggleOn():
            self.showFullScreen()
        else:
            self.showNormal()

    @Slot()
    def _handle_exit_requested(self) -> None:
        if self._exit_notified:
            return
        self._exit_notified = True
        logger.info("Leaving kiosk mode")
        self.view.page().triggerAction(QWebEnginePage.WebAction.ExitFullScreen)
        self.showNormal()
        QMessageBox.information(self, APP_NAME, KIOSK_EXIT_MESSAGE)
