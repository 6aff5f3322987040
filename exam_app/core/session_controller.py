"""State machine for one student's attempt at one exam.

The controller is the only owner of the session's answers, countdown and
proctoring state. It runs on a single asyncio event loop: durable writes
suspend only the coroutine that issued them, and the finalize latch is
checked and set in synchronous code so no two finalize sequences can
interleave, whichever of timer expiry, proctoring violation or manual
submit arrives first.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, NoReturn
from uuid import uuid4

from exam_app.constants.exam_constants import (
    FINALIZE_WRITE_TIMEOUT_SECONDS,
    TICK_INTERVAL_SECONDS,
    VIOLATION_SUBMIT_DELAY_SECONDS,
)
from exam_app.core.errors import (
    AlreadySubmittedError,
    ExamAlreadyEndedError,
    FinalizeError,
    NoQuestionsError,
    PersistenceError,
    PreconditionError,
    SetupError,
)
from exam_app.core.models import (
    AnswerRecord,
    AnswerStatus,
    Exam,
    FinalResult,
    Question,
    SessionState,
    StatusCounts,
    Student,
    Submission,
    SubmitTrigger,
)
from exam_app.core.services.answer_store import AnswerPersistenceAdapter, AnswerStore
from exam_app.core.services.countdown import Clock, CountdownEngine, utc_now
from exam_app.core.services.finalizer import SubmissionFinalizer
from exam_app.core.services.persistence import QuestionSource, SubmissionStore
from exam_app.core.services.proctoring import ProctoringMonitor

logger = logging.getLogger(__name__)

_NO_SUBMISSION_MESSAGE = "No submission ID available. Please refresh or contact support."
_ALREADY_SUBMITTED_MESSAGE = "The exam is being submitted; answers can no longer change."


class ExamSessionController:
    """Coordinates user actions, the countdown and proctoring for one session."""

    def __init__(
        self,
        exam: Exam,
        student: Student,
        question_source: QuestionSource,
        store: SubmissionStore,
        *,
        clock: Clock = utc_now,
        exit_hook: Callable[[], None] | None = None,
        violation_delay_seconds: float = VIOLATION_SUBMIT_DELAY_SECONDS,
        tick_interval_seconds: float = TICK_INTERVAL_SECONDS,
        write_timeout_seconds: float = FINALIZE_WRITE_TIMEOUT_SECONDS,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or uuid4().hex
        self.exam = exam
        self.student = student
        self._question_source = question_source
        self._store = store
        self._clock = clock
        self._exit_hook = exit_hook
        self._violation_delay = violation_delay_seconds
        self._write_timeout = write_timeout_seconds

        self._state = SessionState.LOADING
        self._started = False
        self._questions: list[Question] = []
        self._answers = AnswerStore([])
        self._adapter = AnswerPersistenceAdapter(store, self._answers)
        self._finalizer = SubmissionFinalizer(store, self._answers, self._adapter, clock=clock)
        self._submission: Submission | None = None
        self._current_index = 0
        self._question_started_at = clock()

        self._countdown = CountdownEngine(
            exam.end_time,
            clock=clock,
            on_expire=self._handle_expiry,
            interval_seconds=tick_interval_seconds,
        )
        self._proctoring = ProctoringMonitor(on_violation=self._handle_violation, clock=clock)

        # Finalize latch: set once, never re-armed.
        self._finalize_latched = False
        self._finalize_running = False
        self._trigger: SubmitTrigger | None = None
        self._result: FinalResult | None = None
        self._last_error: str | None = None
        self._setup_error: SetupError | None = None
        self._tasks: set[asyncio.Task] = set()
        self._write_tasks: set[asyncio.Task] = set()

    # --- Read access ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def questions(self) -> list[Question]:
        return list(self._questions)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_question(self) -> Question | None:
        if not self._questions:
            return None
        return self._questions[self._current_index]

    @property
    def submission(self) -> Submission | None:
        return self._submission

    @property
    def remaining_seconds(self) -> int:
        if self._state in (SessionState.FINALIZING, SessionState.COMPLETED) and self._countdown.expired:
            return 0
        return self._countdown.remaining_seconds

    @property
    def countdown(self) -> CountdownEngine:
        return self._countdown

    @property
    def proctoring(self) -> ProctoringMonitor:
        return self._proctoring

    @property
    def trigger(self) -> SubmitTrigger | None:
        return self._trigger

    @property
    def result(self) -> FinalResult | None:
        return self._result

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def setup_error(self) -> SetupError | None:
        return self._setup_error

    @property
    def is_finalize_running(self) -> bool:
        return self._finalize_running

    def answer_for(self, question_id: str) -> AnswerRecord | None:
        return self._answers.get(question_id)

    def status_of(self, question_id: str) -> AnswerStatus:
        return self._answers.status_of(question_id)

    def status_counts(self) -> StatusCounts:
        return self._answers.status_counts()

    # --- Lifecycle ---

    async def start(self) -> None:
        """Load questions and create the submission, then become active.

        Raises a SetupError subclass after moving straight to COMPLETED when
        the exam has ended, has no questions, or the submission cannot be
        created.
        """
        if self._started:
            return
        self._started = True

        if self._countdown.compute_remaining() <= 0:
            self._fail_setup(ExamAlreadyEndedError("This exam has already ended."))

        try:
            questions = await self._question_source.load_questions(self.exam.id)
        except PersistenceError as exc:
            self._fail_setup(SetupError("Failed to load exam questions."), exc)
        if not questions:
            self._fail_setup(NoQuestionsError("This exam has no questions available."))

        self._questions = sorted(questions, key=lambda q: q.position)
        self._answers = AnswerStore(self._questions)
        self._adapter = AnswerPersistenceAdapter(self._store, self._answers)
        self._finalizer = SubmissionFinalizer(self._store, self._answers, self._adapter, clock=self._clock)
        logger.info("Loaded %d question(s) for exam %s", len(self._questions), self.exam.id)

        try:
            submission_id = await self._store.create_submission(
                self.student.id, self.exam.id, len(self._questions)
            )
        except (PersistenceError, AlreadySubmittedError) as exc:
            self._fail_setup(SetupError("Failed to initialize exam submission."), exc)
        self._submission = Submission(
            id=submission_id,
            student_id=self.student.id,
            exam_id=self.exam.id,
            total_questions=len(self._questions),
            created_at=self._clock(),
        )
        logger.info("Created submission %s for session %s", submission_id, self.session_id)

        self._transition(SessionState.ACTIVE)
        self._question_started_at = self._clock()
        self._countdown.start()
        self._proctoring.arm()

    async def close(self) -> None:
        """Stop the countdown and cancel outstanding background work."""
        self._countdown.stop()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def drain(self) -> None:
        """Wait until all background writes and scheduled submits have settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- User actions ---

    def select_answer(self, question_id: str, option: str) -> AnswerRecord:
        submission_id = self._require_active("select an answer")
        record = self._answers.record_selection(question_id, option, self._time_on_question_ms())
        self._spawn_write(submission_id, record)
        return record

    def mark_for_review(self, question_id: str) -> AnswerRecord:
        submission_id = self._require_active("mark a question for review")
        record = self._answers.mark_for_review(question_id, self._time_on_question_ms())
        self._spawn_write(submission_id, record)
        return record

    def navigate(self, index: int) -> int:
        """Move to a question, clamping the index into range."""
        if self._state is not SessionState.ACTIVE:
            raise PreconditionError("Navigation is only possible while the exam is active.")
        self._current_index = min(max(int(index), 0), len(self._questions) - 1)
        self._question_started_at = self._clock()
        return self._current_index

    async def submit(self, trigger: SubmitTrigger = SubmitTrigger.MANUAL) -> Submission | None:
        """Request finalization.

        The first request runs the finalize sequence; later ones are no-ops,
        except that a manual request retries the final commit after it failed.
        Returns the committed submission, or None when nothing was done.
        """
        if self._claim_finalize(trigger):
            return await self._run_finalize()

        if self._state is SessionState.LOADING and not trigger.is_auto:
            logger.error("Submit requested without a submission ID")
            raise PreconditionError(_NO_SUBMISSION_MESSAGE)

        if (
            self._state is SessionState.FINALIZING
            and not trigger.is_auto
            and not self._finalize_running
            and self._result is not None
        ):
            logger.info("Retrying final commit for submission %s", self._submission.id)
            return await self._commit()

        logger.debug("Ignoring %s submit in state %s", trigger.value, self._state.name)
        return None

    # --- Proctoring signals ---

    def report_fullscreen(self, is_fullscreen: bool) -> bool:
        if self._state not in (SessionState.LOADING, SessionState.ACTIVE):
            return False
        return self._proctoring.fullscreen_changed(is_fullscreen)

    def report_visibility(self, hidden: bool) -> None:
        if self._state not in (SessionState.LOADING, SessionState.ACTIVE):
            return
        self._proctoring.visibility_changed(hidden)

    # --- Internals ---

    def _claim_finalize(self, trigger: SubmitTrigger) -> bool:
        # Check and set with no await in between.
        if self._finalize_latched or self._state is not SessionState.ACTIVE:
            return False
        self._finalize_latched = True
        self._trigger = trigger
        self._transition(SessionState.FINALIZING)
        self._countdown.stop()
        return True

    async def _run_finalize(self) -> Submission:
        self._finalize_running = True
        try:
            self._result = self._finalizer.compute_result(self.exam, len(self._questions))
            await self._settle_writes()
        finally:
            self._finalize_running = False
        return await self._commit()

    async def _settle_writes(self) -> None:
        # Writes in flight must land before the commit closes the submission,
        # but a store that never answers must not hold finalize forever.
        if self._write_tasks:
            _, pending = await asyncio.wait(list(self._write_tasks), timeout=self._write_timeout)
            if pending:
                logger.warning(
                    "%d answer write(s) still running for submission %s; finalizing anyway",
                    len(pending),
                    self._submission.id,
                )
        try:
            await asyncio.wait_for(self._finalizer.sweep(self._submission.id), self._write_timeout)
        except asyncio.TimeoutError:
            logger.warning("Answer sweep for submission %s timed out; committing without it", self._submission.id)

    async def _commit(self) -> Submission:
        self._finalize_running = True
        try:
            submission = await self._finalizer.commit(self._submission.id, self._result)
        except FinalizeError as exc:
            self._last_error = str(exc)
            logger.exception("Error submitting exam for submission %s", self._submission.id)
            raise
        finally:
            self._finalize_running = False

        self._submission = submission
        self._last_error = None
        logger.info(
            "Exam submitted successfully: submission=%s score=%d/%d time=%d min trigger=%s",
            submission.id,
            submission.total_score,
            submission.total_questions,
            submission.time_taken_minutes,
            self._trigger.value,
        )
        self._release_ui()
        self._proctoring.disarm()
        self._transition(SessionState.COMPLETED)
        return submission

    async def _auto_submit(self, trigger: SubmitTrigger, delay_seconds: float = 0.0) -> None:
        if delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        try:
            await self.submit(trigger)
        except FinalizeError:
            logger.warning("Automatic %s submit failed; waiting for a manual retry", trigger.value)

    def _handle_expiry(self) -> None:
        self._spawn(self._auto_submit(SubmitTrigger.TIMER), "TimerSubmit")

    def _handle_violation(self) -> None:
        self._spawn(
            self._auto_submit(SubmitTrigger.VIOLATION, self._violation_delay),
            "ViolationSubmit",
        )

    def _require_active(self, action: str) -> str:
        if self._state in (SessionState.FINALIZING, SessionState.COMPLETED):
            raise PreconditionError(_ALREADY_SUBMITTED_MESSAGE)
        if self._state is not SessionState.ACTIVE or self._submission is None:
            logger.error("Attempted to %s without a submission ID", action)
            raise PreconditionError(_NO_SUBMISSION_MESSAGE)
        return self._submission.id

    def _time_on_question_ms(self) -> int:
        return int((self._clock() - self._question_started_at).total_seconds() * 1000)

    def _fail_setup(self, error: SetupError, cause: Exception | None = None) -> NoReturn:
        self._setup_error = error
        self._last_error = str(error)
        if self._proctoring.has_pending_violation:
            logger.warning("Discarding queued violation; session %s never became active", self.session_id)
        self._proctoring.disarm()
        logger.warning("Session %s could not start: %s", self.session_id, error)
        self._transition(SessionState.COMPLETED)
        self._release_ui()
        if cause is not None:
            raise error from cause
        raise error

    def _release_ui(self) -> None:
        if self._exit_hook is None:
            return
        try:
            self._exit_hook()
        except Exception:
            logger.exception("Exit hook failed")

    def _transition(self, new_state: SessionState) -> None:
        logger.info("Session %s: %s -> %s", self.session_id, self._state.name, new_state.name)
        self._state = new_state

    def _spawn(self, coro: Awaitable[object], name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _spawn_write(self, submission_id: str, record: AnswerRecord) -> None:
        task = self._spawn(self._adapter.upsert(submission_id, record), f"SaveAnswer-{record.question_id}")
        self._write_tasks.add(task)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._write_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed", task.get_name(), exc_info=exc)
