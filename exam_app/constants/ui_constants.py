"""Qt UI constants used by the kiosk window."""

WINDOW_TITLE: str = "ProctorQt Exam"
KIOSK_EXIT_MESSAGE: str = "Exam submitted. You may close this window."
SERVER_STARTUP_DELAY_MS: int = 500
