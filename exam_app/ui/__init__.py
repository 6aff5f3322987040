"""Qt UI components for the exam kiosk."""

from .kiosk_window import KioskBridge, KioskWindow

__all__ = [
    "KioskBridge",
    "KioskWindow",
]
