"""Service holding the session's answers and mirroring them to the store."""

from __future__ import annotations

import logging

from exam_app.constants.exam_constants import NO_SELECTION, OPTION_LABELS
from exam_app.core.errors import PersistenceError
from exam_app.core.models import AnswerRecord, AnswerStatus, Question, StatusCounts
from exam_app.core.services.persistence import SubmissionStore

logger = logging.getLogger(__name__)


def normalize_option(option: str) -> str:
    """Return the upper-case option label or raise ValueError."""
    label = (option or "").strip().upper()
    if label not in OPTION_LABELS:
        raise ValueError(f"Option must be one of {', '.join(OPTION_LABELS)}.")
    return label


class AnswerStore:
    """Single-owner mapping from question id to AnswerRecord.

    Only the session controller mutates it, so no locking is needed on the
    event loop.
    """

    def __init__(self, questions: list[Question]) -> None:
        self._questions: dict[str, Question] = {q.id: q for q in questions}
        self._records: dict[str, AnswerRecord] = {}

    def record_selection(self, question_id: str, option: str, time_spent_ms: int) -> AnswerRecord:
        self._require_question(question_id)
        record = AnswerRecord(
            question_id=question_id,
            selected_option=normalize_option(option),
            status=AnswerStatus.ANSWERED,
            time_spent_ms=max(0, time_spent_ms),
        )
        self._records[question_id] = record
        return record

    def mark_for_review(self, question_id: str, time_spent_ms: int) -> AnswerRecord:
        """Flag a question, keeping any option already chosen."""
        self._require_question(question_id)
        existing = self._records.get(question_id)
        record = AnswerRecord(
            question_id=question_id,
            selected_option=existing.selected_option if existing else NO_SELECTION,
            status=AnswerStatus.MARKED_FOR_REVIEW,
            time_spent_ms=max(0, time_spent_ms),
        )
        self._records[question_id] = record
        return record

    def record_not_answered(self, question_id: str) -> AnswerRecord:
        self._require_question(question_id)
        record = AnswerRecord(question_id=question_id)
        self._records[question_id] = record
        return record

    def get(self, question_id: str) -> AnswerRecord | None:
        return self._records.get(question_id)

    def status_of(self, question_id: str) -> AnswerStatus:
        record = self._records.get(question_id)
        return record.status if record else AnswerStatus.NOT_ANSWERED

    def records(self) -> list[AnswerRecord]:
        return list(self._records.values())

    def unrecorded_questions(self) -> list[Question]:
        return [q for q_id, q in self._questions.items() if q_id not in self._records]

    def is_correct(self, record: AnswerRecord) -> bool:
        return self._questions[record.question_id].is_correct(record.selected_option)

    def score(self) -> int:
        """Number of answered (not merely flagged) records matching the key."""
        return sum(
            1
            for record in self._records.values()
            if record.status is AnswerStatus.ANSWERED and self.is_correct(record)
        )

    def status_counts(self) -> StatusCounts:
        answered = sum(1 for r in self._records.values() if r.status is AnswerStatus.ANSWERED)
        marked = sum(1 for r in self._records.values() if r.status is AnswerStatus.MARKED_FOR_REVIEW)
        return StatusCounts(
            answered=answered,
            marked_for_review=marked,
            not_answered=len(self._questions) - answered - marked,
        )

    def question(self, question_id: str) -> Question:
        return self._require_question(question_id)

    def _require_question(self, question_id: str) -> Question:
        question = self._questions.get(question_id)
        if question is None:
            raise ValueError(f"Unknown question {question_id!r}.")
        return question


class AnswerPersistenceAdapter:
    """Mirrors answer records to the submission store, keyed by (submission, question).

    Question ids whose latest write has not been confirmed by the store are
    kept in ``unconfirmed`` so finalize can write them once more.
    """

    def __init__(self, store: SubmissionStore, answers: AnswerStore) -> None:
        self._store = store
        self._answers = answers
        self._unconfirmed: set[str] = set()

    @property
    def unconfirmed(self) -> list[str]:
        return sorted(self._unconfirmed)

    async def upsert(self, submission_id: str, record: AnswerRecord) -> bool:
        """Best-effort write. Returns False when the store rejected it."""
        question = self._answers.question(record.question_id)
        selection = record.selected_option.lower() if record.has_selection else NO_SELECTION
        is_correct = question.is_correct(selection)
        self._unconfirmed.add(record.question_id)
        try:
            await self._store.upsert_answer(
                submission_id,
                record.question_id,
                selection,
                is_correct,
                record.time_spent_ms // 1000,
                correct_option=question.correct_option.lower(),
            )
        except PersistenceError:
            logger.exception("Error saving response for question %s", record.question_id)
            return False
        self._unconfirmed.discard(record.question_id)
        logger.debug(
            "Response saved for question %s: selection=%s correct=%s",
            record.question_id,
            selection,
            is_correct,
        )
        return True
