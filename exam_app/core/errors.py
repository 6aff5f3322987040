"""Exception hierarchy for exam sessions and their collaborators."""

from __future__ import annotations


class ExamAppError(Exception):
    """Base class for all errors raised by the exam application."""


class PreconditionError(ExamAppError):
    """Raised when an action is requested before the session is ready for it."""


class PersistenceError(ExamAppError):
    """Raised by a store when a durable write or read fails."""


class SubmissionClosedError(PersistenceError):
    """Raised when a store is asked to modify an already submitted submission."""


class FinalizeError(ExamAppError):
    """Raised when the final score commit fails. The caller may retry."""


class SetupError(ExamAppError):
    """Raised when a session cannot become active."""


class ExamAlreadyEndedError(SetupError):
    """Raised when the exam end time has passed before the session loaded."""


class NoQuestionsError(SetupError):
    """Raised when the exam has no questions."""


class InvalidAccessCodeError(ExamAppError):
    """Raised when no exam matches an access code."""


class ExamUnavailableError(ExamAppError):
    """Raised when an exam exists but is not open for attempts."""

    def __init__(self, status: str) -> None:
        super().__init__(f"Exam found but status is: {status}")
        self.status = status


class AlreadySubmittedError(ExamAppError):
    """Raised when a student already holds a submission for an exam."""


class SessionNotFoundError(ExamAppError):
    """Raised when a session token does not match any running session."""


class ExamImportError(ExamAppError):
    """Raised when an exam definition cannot be parsed."""
