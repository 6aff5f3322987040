"""Service computing the final score and committing the submission."""

from __future__ import annotations

import logging
import math

from exam_app.core.errors import FinalizeError, PersistenceError, SubmissionClosedError
from exam_app.core.models import Exam, FinalResult, Submission
from exam_app.core.services.answer_store import AnswerPersistenceAdapter, AnswerStore
from exam_app.core.services.countdown import Clock, utc_now
from exam_app.core.services.persistence import SubmissionStore

logger = logging.getLogger(__name__)


class SubmissionFinalizer:
    """Runs the finalize steps: score, sweep, time taken, commit."""

    def __init__(
        self,
        store: SubmissionStore,
        answers: AnswerStore,
        adapter: AnswerPersistenceAdapter,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._answers = answers
        self._adapter = adapter
        self._clock = clock

    def compute_result(self, exam: Exam, total_questions: int) -> FinalResult:
        now = self._clock()
        elapsed_seconds = (now - exam.start_time).total_seconds()
        return FinalResult(
            score=self._answers.score(),
            total_questions=total_questions,
            time_taken_minutes=max(0, math.floor(elapsed_seconds / 60)),
            submitted_at=now,
        )

    async def sweep(self, submission_id: str) -> int:
        """Rewrite unconfirmed answers, then add a not-answered row for every question without a record."""
        for question_id in self._adapter.unconfirmed:
            record = self._answers.get(question_id)
            if record is not None:
                logger.info("Retrying save for question %s", question_id)
                await self._adapter.upsert(submission_id, record)

        swept = 0
        for question in self._answers.unrecorded_questions():
            record = self._answers.record_not_answered(question.id)
            await self._adapter.upsert(submission_id, record)
            swept += 1
        if swept:
            logger.info("Swept %d unanswered question(s) for submission %s", swept, submission_id)
        return swept

    async def commit(self, submission_id: str, result: FinalResult) -> Submission:
        try:
            return await self._store.finalize_submission(
                submission_id,
                result.score,
                result.time_taken_minutes,
                result.submitted_at,
            )
        except SubmissionClosedError:
            # An earlier attempt reached the store even though we saw it fail.
            existing = await self._store.get_submission(submission_id)
            if existing is None:
                raise FinalizeError("Failed to submit exam. Please try again.")
            logger.warning("Submission %s was already committed", submission_id)
            return existing
        except PersistenceError as exc:
            raise FinalizeError("Failed to submit exam. Please try again.") from exc
