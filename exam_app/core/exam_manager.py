"""Facade over the exam library, student records and running sessions."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

from exam_app.constants.exam_constants import TICK_INTERVAL_SECONDS, VIOLATION_SUBMIT_DELAY_SECONDS
from exam_app.core.errors import (
    AlreadySubmittedError,
    ExamUnavailableError,
    InvalidAccessCodeError,
    PreconditionError,
    SessionNotFoundError,
    SetupError,
)
from exam_app.core.models import Exam, SessionState, Student
from exam_app.core.services.countdown import Clock, utc_now
from exam_app.core.services.exam_library import ExamLibrary
from exam_app.core.services.persistence import StudentDirectory, SubmissionStore
from exam_app.core.session_controller import ExamSessionController

logger = logging.getLogger(__name__)


class ExamStore(SubmissionStore, StudentDirectory, Protocol):
    """A store that also keeps student records."""


class ExamManager:
    """Entry point used by the API: access codes, registration and sessions."""

    def __init__(
        self,
        library: ExamLibrary,
        store: ExamStore,
        *,
        clock: Clock = utc_now,
        exit_hook: Callable[[], None] | None = None,
        violation_delay_seconds: float = VIOLATION_SUBMIT_DELAY_SECONDS,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self._library = library
        self._store = store
        self._clock = clock
        self._exit_hook = exit_hook
        self._violation_delay = violation_delay_seconds
        self._tick_interval = tick_interval_seconds
        self._students: dict[str, Student] = {}
        self._sessions: dict[str, ExamSessionController] = {}
        self._startup_tasks: set[asyncio.Task] = set()

    # --- Access code ---

    def verify_access_code(self, access_code: str) -> Exam:
        code = (access_code or "").strip().upper()
        if not code:
            raise ValueError("Please enter an access code.")
        exam = self._library.find_by_access_code(code)
        if exam is None:
            logger.info("No exam found for access code %s", code)
            raise InvalidAccessCodeError(
                "No exam found with this access code. Please check and try again."
            )
        if exam.status != "active":
            raise ExamUnavailableError(exam.status)
        return exam

    # --- Registration ---

    async def register_student(self, exam: Exam, name: str, email: str, roll_number: str) -> Student:
        """Upsert the student by roll number and refuse repeat attempts."""
        name, email, roll_number = name.strip(), email.strip(), roll_number.strip()
        if not name or not email or not roll_number:
            raise ValueError("Please fill in all required fields.")
        if "@" not in email:
            raise ValueError("Please enter a valid email address.")

        student = await self._store.upsert_student(name, email, roll_number)
        await self._ensure_not_submitted(student, exam)
        self._students[student.id] = student
        logger.info("Student %s registered for exam %s", student.id, exam.id)
        return student

    def get_student(self, student_id: str) -> Student:
        student = self._students.get(student_id)
        if student is None:
            raise PreconditionError("Student is not registered. Please register first.")
        return student

    # --- Sessions ---

    async def start_session(self, exam: Exam, student: Student) -> ExamSessionController:
        """Start a session and wait until it is active.

        Returns the session already running for this student and exam when
        there is one. SetupError propagates and the session is discarded.
        """
        controller, created = await self._live_or_new_session(exam, student)
        if not created:
            logger.info("Resuming session %s for student %s", controller.session_id, student.id)
            return controller

        try:
            await controller.start()
        except SetupError:
            self._sessions.pop(controller.session_id, None)
            raise
        return controller

    async def open_session(self, exam: Exam, student: Student) -> ExamSessionController:
        """Create a session and load it in the background.

        The caller gets the session token while it is still loading, so
        proctoring signals can be reported before the submission exists.
        Setup failures are recorded on the session instead of raised.
        """
        controller, created = await self._live_or_new_session(exam, student)
        if not created:
            return controller

        task = asyncio.get_running_loop().create_task(
            self._start_in_background(controller), name=f"StartSession-{controller.session_id}"
        )
        self._startup_tasks.add(task)
        task.add_done_callback(self._startup_tasks.discard)
        return controller

    def get_session(self, session_id: str) -> ExamSessionController:
        controller = self._sessions.get(session_id)
        if controller is None:
            raise SessionNotFoundError(f"No session {session_id}.")
        return controller

    async def shutdown(self) -> None:
        for task in list(self._startup_tasks):
            task.cancel()
        if self._startup_tasks:
            await asyncio.gather(*self._startup_tasks, return_exceptions=True)
        for controller in list(self._sessions.values()):
            await controller.close()

    async def _live_or_new_session(
        self, exam: Exam, student: Student
    ) -> tuple[ExamSessionController, bool]:
        existing = self._find_live_session(exam, student)
        if existing is not None:
            return existing, False

        await self._ensure_not_submitted(student, exam)
        # Another request may have created the session while we were waiting.
        existing = self._find_live_session(exam, student)
        if existing is not None:
            return existing, False
        return self._new_session(exam, student), True

    def _new_session(self, exam: Exam, student: Student) -> ExamSessionController:
        self._prune_sessions(exam, student)
        controller = ExamSessionController(
            exam,
            student,
            self._library,
            self._store,
            clock=self._clock,
            exit_hook=self._exit_hook,
            violation_delay_seconds=self._violation_delay,
            tick_interval_seconds=self._tick_interval,
        )
        self._sessions[controller.session_id] = controller
        return controller

    async def _start_in_background(self, controller: ExamSessionController) -> None:
        try:
            await controller.start()
        except SetupError as exc:
            logger.info("Session %s ended during setup: %s", controller.session_id, exc)

    async def _ensure_not_submitted(self, student: Student, exam: Exam) -> None:
        if await self._store.find_submission(student.id, exam.id) is not None:
            raise AlreadySubmittedError("You have already submitted this exam.")

    def _prune_sessions(self, exam: Exam, student: Student) -> None:
        """Forget completed sessions that a new attempt replaces or whose exam has ended."""
        now = self._clock()
        stale = [
            session_id
            for session_id, s in self._sessions.items()
            if s.state is SessionState.COMPLETED
            and ((s.exam.id == exam.id and s.student.id == student.id) or now >= s.exam.end_time)
        ]
        for session_id in stale:
            del self._sessions[session_id]
        if stale:
            logger.debug("Dropped %d completed session(s)", len(stale))

    def _find_live_session(self, exam: Exam, student: Student) -> ExamSessionController | None:
        return next(
            (
                s
                for s in self._sessions.values()
                if s.exam.id == exam.id
                and s.student.id == student.id
                and s.state is not SessionState.COMPLETED
            ),
            None,
        )
