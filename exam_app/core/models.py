"""Domain models for the exam application."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto

from exam_app.constants.exam_constants import NO_SELECTION


class AnswerStatus(str, Enum):
    """Per-question status shown in the navigation grid."""

    ANSWERED = "answered"
    NOT_ANSWERED = "not-answered"
    MARKED_FOR_REVIEW = "marked-for-review"


class SessionState(Enum):
    """Lifecycle of a single exam session."""

    LOADING = auto()
    ACTIVE = auto()
    FINALIZING = auto()
    COMPLETED = auto()


class SubmitTrigger(str, Enum):
    """What caused the session to start finalizing."""

    MANUAL = "manual"
    TIMER = "timer"
    VIOLATION = "violation"

    @property
    def is_auto(self) -> bool:
        return self is not SubmitTrigger.MANUAL


@dataclass(slots=True, frozen=True)
class Exam:
    """An exam instance students can join with an access code."""

    id: str
    name: str
    access_code: str
    start_time: datetime
    end_time: datetime
    topic: str = ""
    status: str = "active"

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)


@dataclass(slots=True, frozen=True)
class Student:
    """A registered student, keyed by roll number."""

    id: str
    name: str
    email: str
    roll_number: str


@dataclass(slots=True, frozen=True)
class Question:
    """Multiple-choice exam question with exactly four labeled options."""

    id: str
    exam_id: str
    position: int
    question_text: str
    options: tuple[str, str, str, str]
    correct_option: str
    topic_tag: str = ""

    def is_correct(self, selection: str) -> bool:
        """Case-insensitive comparison; the no-selection sentinel is never correct."""
        if not selection or selection.lower() == NO_SELECTION:
            return False
        return selection.lower() == self.correct_option.lower()


@dataclass(slots=True)
class AnswerRecord:
    """In-memory answer for one question of the active session."""

    question_id: str
    selected_option: str = NO_SELECTION
    status: AnswerStatus = AnswerStatus.NOT_ANSWERED
    time_spent_ms: int = 0

    @property
    def has_selection(self) -> bool:
        return self.selected_option != NO_SELECTION


@dataclass(slots=True)
class StoredAnswer:
    """Durable answer row, unique per (submission, question)."""

    submission_id: str
    question_id: str
    selected_answer: str
    correct_answer: str
    is_correct: bool
    time_taken_seconds: int


@dataclass(slots=True)
class Submission:
    """One student's submission for one exam.

    Created with a zero score when the session starts and completed exactly
    once when the session is finalized.
    """

    id: str
    student_id: str
    exam_id: str
    total_questions: int
    created_at: datetime
    total_score: int = 0
    time_taken_minutes: int = 0
    submitted_at: datetime | None = None

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None


@dataclass(slots=True, frozen=True)
class FinalResult:
    """Score and timing computed once when finalizing begins."""

    score: int
    total_questions: int
    time_taken_minutes: int
    submitted_at: datetime


@dataclass(slots=True, frozen=True)
class StatusCounts:
    answered: int
    marked_for_review: int
    not_answered: int
