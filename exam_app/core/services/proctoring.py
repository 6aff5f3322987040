"""Service tracking full-screen compliance during a proctored exam."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable

from exam_app.core.services.countdown import Clock, utc_now

logger = logging.getLogger(__name__)

TAB_SWITCH_ADVISORY = "Tab switch detected. Please return to the exam immediately."
FULLSCREEN_EXIT_ADVISORY = "Fullscreen exit detected. Your exam will be auto-submitted due to policy violation."
PROCTORED_MODE_NOTICE = "You are now in proctored mode. Do not exit fullscreen."

_MAX_ADVISORIES = 20


@dataclass(slots=True, frozen=True)
class Advisory:
    message: str
    raised_at: datetime
    is_violation: bool = False


class ProctoringMonitor:
    """Turns full-screen and visibility signals into at most one violation.

    The violation callback only fires once the monitor is armed, which
    happens when the session's submission exists. A violation seen earlier
    is held and delivered exactly once on arming.
    """

    def __init__(self, on_violation: Callable[[], None], *, clock: Clock = utc_now) -> None:
        self._on_violation = on_violation
        self._clock = clock
        self._compliant = False
        self._violation_triggered = False
        self._violation_pending = False
        self._armed = False
        self._advisories: deque[Advisory] = deque(maxlen=_MAX_ADVISORIES)

    @property
    def is_compliant(self) -> bool:
        return self._compliant

    @property
    def violation_triggered(self) -> bool:
        return self._violation_triggered

    @property
    def has_pending_violation(self) -> bool:
        return self._violation_pending

    def get_advisories(self) -> list[Advisory]:
        return list(self._advisories)

    def fullscreen_changed(self, is_fullscreen: bool) -> bool:
        """Record a full-screen transition. Returns True when it raised the violation."""
        if is_fullscreen:
            if not self._compliant:
                self._compliant = True
                self._advise(PROCTORED_MODE_NOTICE)
            return False

        was_compliant = self._compliant
        self._compliant = False
        if not was_compliant or self._violation_triggered:
            return False

        self._violation_triggered = True
        self._advise(FULLSCREEN_EXIT_ADVISORY, is_violation=True)
        if self._armed:
            logger.warning("Proctoring violation: full-screen exited")
            self._on_violation()
        else:
            logger.warning("Proctoring violation before submission exists; queued")
            self._violation_pending = True
        return True

    def visibility_changed(self, hidden: bool) -> None:
        """Tab or window hidden. Advisory only; never submits by itself."""
        if hidden:
            logger.warning("Exam page hidden (tab switch)")
            self._advise(TAB_SWITCH_ADVISORY)

    def arm(self) -> None:
        """Enable violation delivery and replay a queued violation once."""
        if self._armed:
            return
        self._armed = True
        if self._violation_pending:
            self._violation_pending = False
            logger.warning("Replaying queued proctoring violation")
            self._on_violation()

    def disarm(self) -> None:
        self._armed = False
        self._violation_pending = False

    def _advise(self, message: str, is_violation: bool = False) -> None:
        self._advisories.append(Advisory(message=message, raised_at=self._clock(), is_violation=is_violation))
