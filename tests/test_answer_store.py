"""
Tests for the answer store and its persistence adapter
"""
import pytest

from conftest import FlakyStore, make_questions
from exam_app.core.models import AnswerStatus
from exam_app.core.services.answer_store import AnswerPersistenceAdapter, AnswerStore, normalize_option


class TestNormalizeOption:
    def test_accepts_any_case(self):
        assert normalize_option(" c ") == "C"

    def test_rejects_unknown_label(self):
        with pytest.raises(ValueError):
            normalize_option("E")


class TestAnswerStore:
    """Test answer records and scoring"""

    def test_selection_sets_answered(self):
        answers = AnswerStore(make_questions())
        record = answers.record_selection("exam-1-q1", "b", 1500)
        assert record.selected_option == "B"
        assert record.status is AnswerStatus.ANSWERED
        assert answers.status_of("exam-1-q1") is AnswerStatus.ANSWERED

    def test_reselect_replaces_time_spent(self):
        answers = AnswerStore(make_questions())
        answers.record_selection("exam-1-q1", "A", 5000)
        record = answers.record_selection("exam-1-q1", "B", 2000)
        assert record.time_spent_ms == 2000

    def test_mark_for_review_keeps_selection(self):
        answers = AnswerStore(make_questions())
        answers.record_selection("exam-1-q1", "B", 1000)
        record = answers.mark_for_review("exam-1-q1", 3000)
        assert record.status is AnswerStatus.MARKED_FOR_REVIEW
        assert record.selected_option == "B"

    def test_mark_for_review_without_selection(self):
        answers = AnswerStore(make_questions())
        record = answers.mark_for_review("exam-1-q2", 0)
        assert not record.has_selection

    def test_score_counts_only_answered(self):
        answers = AnswerStore(make_questions(correct="B"))
        answers.record_selection("exam-1-q1", "B", 0)
        answers.record_selection("exam-1-q2", "B", 0)
        answers.mark_for_review("exam-1-q2", 0)
        answers.record_selection("exam-1-q3", "A", 0)
        assert answers.score() == 1

    def test_status_counts(self):
        answers = AnswerStore(make_questions(count=4))
        answers.record_selection("exam-1-q1", "A", 0)
        answers.mark_for_review("exam-1-q2", 0)
        counts = answers.status_counts()
        assert (counts.answered, counts.marked_for_review, counts.not_answered) == (1, 1, 2)

    def test_unknown_question_rejected(self):
        answers = AnswerStore(make_questions())
        with pytest.raises(ValueError):
            answers.record_selection("nope", "A", 0)

    def test_unrecorded_questions(self):
        answers = AnswerStore(make_questions())
        answers.record_selection("exam-1-q2", "A", 0)
        assert [q.id for q in answers.unrecorded_questions()] == ["exam-1-q1", "exam-1-q3"]


class TestAnswerPersistenceAdapter:
    """Test the best-effort write path"""

    @pytest.mark.asyncio
    async def test_writes_lowercase_selection_and_seconds(self):
        store = FlakyStore()
        submission_id = await store.create_submission("s1", "exam-1", 3)
        answers = AnswerStore(make_questions(correct="B"))
        adapter = AnswerPersistenceAdapter(store, answers)

        record = answers.record_selection("exam-1-q1", "B", 4200)
        assert await adapter.upsert(submission_id, record) is True

        [stored] = await store.list_answers(submission_id)
        assert stored.selected_answer == "b"
        assert stored.correct_answer == "b"
        assert stored.is_correct is True
        assert stored.time_taken_seconds == 4

    @pytest.mark.asyncio
    async def test_marked_without_selection_writes_sentinel(self):
        store = FlakyStore()
        submission_id = await store.create_submission("s1", "exam-1", 3)
        answers = AnswerStore(make_questions())
        adapter = AnswerPersistenceAdapter(store, answers)

        await adapter.upsert(submission_id, answers.mark_for_review("exam-1-q1", 0))
        [stored] = await store.list_answers(submission_id)
        assert stored.selected_answer == "n"
        assert stored.is_correct is False

    @pytest.mark.asyncio
    async def test_repeat_write_overwrites_row(self):
        store = FlakyStore()
        submission_id = await store.create_submission("s1", "exam-1", 3)
        answers = AnswerStore(make_questions())
        adapter = AnswerPersistenceAdapter(store, answers)

        await adapter.upsert(submission_id, answers.record_selection("exam-1-q1", "A", 0))
        await adapter.upsert(submission_id, answers.record_selection("exam-1-q1", "C", 0))
        stored = await store.list_answers(submission_id)
        assert [a.selected_answer for a in stored] == ["c"]

    @pytest.mark.asyncio
    async def test_store_failure_is_reported_not_raised(self):
        store = FlakyStore()
        submission_id = await store.create_submission("s1", "exam-1", 3)
        store.fail_upsert = True
        answers = AnswerStore(make_questions())
        adapter = AnswerPersistenceAdapter(store, answers)

        record = answers.record_selection("exam-1-q1", "A", 0)
        assert await adapter.upsert(submission_id, record) is False
        assert answers.get("exam-1-q1").selected_option == "A"

    @pytest.mark.asyncio
    async def test_failed_write_stays_unconfirmed_until_saved(self):
        store = FlakyStore()
        submission_id = await store.create_submission("s1", "exam-1", 3)
        answers = AnswerStore(make_questions())
        adapter = AnswerPersistenceAdapter(store, answers)

        store.fail_upsert = True
        record = answers.record_selection("exam-1-q2", "A", 0)
        await adapter.upsert(submission_id, record)
        assert adapter.unconfirmed == ["exam-1-q2"]

        store.fail_upsert = False
        await adapter.upsert(submission_id, record)
        assert adapter.unconfirmed == []
