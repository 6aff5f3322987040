"""
Pytest configuration and shared fixtures for exam_app tests
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from exam_app.core.errors import PersistenceError
from exam_app.core.models import Exam, Question, Student
from exam_app.core.services.persistence import InMemoryExamStore


START = datetime(2026, 10, 16, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for deterministic countdown tests."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class FlakyStore(InMemoryExamStore):
    """In-memory store whose operations can be told to fail."""

    def __init__(self):
        super().__init__()
        self.fail_create = False
        self.fail_upsert = False
        self.finalize_failures = 0
        self.finalize_calls = 0
        self.commit_then_fail = False
        self.upsert_calls = []
        self.hang_upserts = 0
        self.release_upserts = asyncio.Event()

    async def create_submission(self, student_id, exam_id, total_questions):
        if self.fail_create:
            raise PersistenceError("create failed")
        return await super().create_submission(student_id, exam_id, total_questions)

    async def upsert_answer(self, submission_id, question_id, selection, is_correct,
                            time_spent_seconds, *, correct_option=""):
        self.upsert_calls.append((question_id, selection, is_correct, time_spent_seconds))
        if self.hang_upserts > 0:
            self.hang_upserts -= 1
            await self.release_upserts.wait()
        if self.fail_upsert:
            raise PersistenceError("upsert failed")
        await super().upsert_answer(
            submission_id, question_id, selection, is_correct, time_spent_seconds,
            correct_option=correct_option,
        )

    async def find_submission(self, student_id, exam_id):
        # Yield like a real database round trip would.
        await asyncio.sleep(0)
        return await super().find_submission(student_id, exam_id)

    async def finalize_submission(self, submission_id, score, time_taken_minutes, submitted_at):
        self.finalize_calls += 1
        if self.commit_then_fail:
            self.commit_then_fail = False
            await super().finalize_submission(submission_id, score, time_taken_minutes, submitted_at)
            raise PersistenceError("connection dropped after commit")
        if self.finalize_failures > 0:
            self.finalize_failures -= 1
            raise PersistenceError("finalize failed")
        return await super().finalize_submission(submission_id, score, time_taken_minutes, submitted_at)


class StaticQuestions:
    """Question source returning a fixed list."""

    def __init__(self, questions, error=None):
        self.questions = questions
        self.error = error

    async def load_questions(self, exam_id):
        if self.error is not None:
            raise self.error
        return list(self.questions)


def make_exam(duration_minutes=60, start=START, **overrides):
    values = dict(
        id="exam-1",
        name="Physics Midterm",
        access_code="PHY101",
        start_time=start,
        end_time=start + timedelta(minutes=duration_minutes),
        topic="Physics",
    )
    values.update(overrides)
    return Exam(**values)


def make_questions(count=3, exam_id="exam-1", correct="B"):
    return [
        Question(
            id=f"{exam_id}-q{position}",
            exam_id=exam_id,
            position=position,
            question_text=f"Question {position}?",
            options=("alpha", "beta", "gamma", "delta"),
            correct_option=correct,
        )
        for position in range(1, count + 1)
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def exam():
    return make_exam()


@pytest.fixture
def questions():
    return make_questions()


@pytest.fixture
def student():
    return Student(id="student-1", name="Ada Lovelace", email="ada@example.com", roll_number="R-001")


@pytest.fixture
def store():
    return FlakyStore()
