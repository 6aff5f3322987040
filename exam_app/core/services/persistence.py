"""Durable storage contracts for exam sessions and their implementations.

Architecture note:
    The session controller only talks to the ``SubmissionStore`` protocol.
    Answer rows are unique per (submission id, question id), so repeating a
    write for the same key overwrites it instead of adding a row. That is
    what makes best-effort answer writes safe to retry. ``JsonFileExamStore``
    keeps the same semantics as the in-memory store and flushes the whole
    document to disk after every mutation.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, replace
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Protocol
from uuid import uuid4

from exam_app.core.errors import AlreadySubmittedError, PersistenceError, SubmissionClosedError
from exam_app.core.models import Question, StoredAnswer, Student, Submission

logger = logging.getLogger(__name__)


class QuestionSource(Protocol):
    """Ordered questions for an exam; empty when the exam has none."""

    async def load_questions(self, exam_id: str) -> list[Question]: ...


class SubmissionStore(Protocol):
    """Durable, idempotent storage for submissions and answers."""

    async def create_submission(self, student_id: str, exam_id: str, total_questions: int) -> str: ...

    async def upsert_answer(
        self,
        submission_id: str,
        question_id: str,
        selection: str,
        is_correct: bool,
        time_spent_seconds: int,
        *,
        correct_option: str = "",
    ) -> None: ...

    async def finalize_submission(
        self,
        submission_id: str,
        score: int,
        time_taken_minutes: int,
        submitted_at: datetime,
    ) -> Submission: ...

    async def get_submission(self, submission_id: str) -> Submission | None: ...

    async def find_submission(self, student_id: str, exam_id: str) -> Submission | None: ...

    async def list_answers(self, submission_id: str) -> list[StoredAnswer]: ...


class StudentDirectory(Protocol):
    """Student records keyed by roll number."""

    async def upsert_student(self, name: str, email: str, roll_number: str) -> Student: ...


class InMemoryExamStore:
    """Store implementation that keeps everything in process memory."""

    def __init__(self) -> None:
        self._students: dict[str, Student] = {}
        self._submissions: dict[str, Submission] = {}
        self._answers: dict[tuple[str, str], StoredAnswer] = {}

    async def upsert_student(self, name: str, email: str, roll_number: str) -> Student:
        existing = self._students.get(roll_number)
        if existing is not None:
            logger.info("Using existing student %s", existing.id)
            return existing
        student = Student(id=uuid4().hex, name=name, email=email, roll_number=roll_number)
        self._students[roll_number] = student
        await self._persist()
        logger.info("Created new student %s", student.id)
        return student

    async def create_submission(self, student_id: str, exam_id: str, total_questions: int) -> str:
        if self._find(student_id, exam_id) is not None:
            raise AlreadySubmittedError("A submission already exists for this student and exam.")
        submission = Submission(
            id=uuid4().hex,
            student_id=student_id,
            exam_id=exam_id,
            total_questions=total_questions,
            created_at=datetime.now(timezone.utc),
        )
        self._submissions[submission.id] = submission
        await self._persist()
        return submission.id

    async def upsert_answer(
        self,
        submission_id: str,
        question_id: str,
        selection: str,
        is_correct: bool,
        time_spent_seconds: int,
        *,
        correct_option: str = "",
    ) -> None:
        submission = self._require(submission_id)
        if submission.is_submitted:
            raise SubmissionClosedError(f"Submission {submission_id} is already submitted.")
        self._answers[(submission_id, question_id)] = StoredAnswer(
            submission_id=submission_id,
            question_id=question_id,
            selected_answer=selection,
            correct_answer=correct_option,
            is_correct=is_correct,
            time_taken_seconds=max(0, time_spent_seconds),
        )
        await self._persist()

    async def finalize_submission(
        self,
        submission_id: str,
        score: int,
        time_taken_minutes: int,
        submitted_at: datetime,
    ) -> Submission:
        submission = self._require(submission_id)
        if submission.is_submitted:
            raise SubmissionClosedError(f"Submission {submission_id} is already submitted.")
        previous = replace(submission)
        submission.total_score = score
        submission.time_taken_minutes = time_taken_minutes
        submission.submitted_at = submitted_at
        try:
            await self._persist()
        except PersistenceError:
            self._submissions[submission_id] = previous
            raise
        return replace(submission)

    async def get_submission(self, submission_id: str) -> Submission | None:
        submission = self._submissions.get(submission_id)
        return replace(submission) if submission else None

    async def find_submission(self, student_id: str, exam_id: str) -> Submission | None:
        submission = self._find(student_id, exam_id)
        return replace(submission) if submission else None

    async def list_answers(self, submission_id: str) -> list[StoredAnswer]:
        return [
            replace(answer)
            for (owner_id, _), answer in self._answers.items()
            if owner_id == submission_id
        ]

    async def _persist(self) -> None:
        """Hook for durable subclasses; memory needs no flush."""

    def _find(self, student_id: str, exam_id: str) -> Submission | None:
        return next(
            (
                s
                for s in self._submissions.values()
                if s.student_id == student_id and s.exam_id == exam_id
            ),
            None,
        )

    def _require(self, submission_id: str) -> Submission:
        submission = self._submissions.get(submission_id)
        if submission is None:
            raise PersistenceError(f"Unknown submission {submission_id}.")
        return submission


class JsonFileExamStore(InMemoryExamStore):
    """In-memory store mirrored to a JSON document on disk."""

    def __init__(self, file_path: Path) -> None:
        super().__init__()
        self._file_path = file_path.resolve()
        self._write_lock = Lock()
        self._version = 0
        self._written_version = 0
        if self._file_path.exists():
            self._load()

    def _load(self) -> None:
        try:
            document = json.loads(self._file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Cannot read store file {self._file_path}: {exc}") from exc

        for raw in document.get("students", []):
            student = Student(**raw)
            self._students[student.roll_number] = student
        for raw in document.get("submissions", []):
            raw["created_at"] = datetime.fromisoformat(raw["created_at"])
            if raw.get("submitted_at"):
                raw["submitted_at"] = datetime.fromisoformat(raw["submitted_at"])
            submission = Submission(**raw)
            self._submissions[submission.id] = submission
        for raw in document.get("answers", []):
            answer = StoredAnswer(**raw)
            self._answers[(answer.submission_id, answer.question_id)] = answer
        logger.info(
            "Loaded %d submission(s) from %s", len(self._submissions), self._file_path
        )

    async def _persist(self) -> None:
        self._version += 1
        document = self._serialize()
        await asyncio.to_thread(self._write, self._version, document)

    def _serialize(self) -> str:
        submissions = []
        for submission in self._submissions.values():
            raw = asdict(submission)
            raw["created_at"] = submission.created_at.isoformat()
            raw["submitted_at"] = submission.submitted_at.isoformat() if submission.submitted_at else None
            submissions.append(raw)
        document = {
            "students": [asdict(s) for s in self._students.values()],
            "submissions": submissions,
            "answers": [asdict(a) for a in self._answers.values()],
        }
        return json.dumps(document, indent=2)

    def _write(self, version: int, document: str) -> None:
        with self._write_lock:
            # A newer snapshot already reached the disk.
            if version <= self._written_version:
                return
            try:
                self._file_path.parent.mkdir(parents=True, exist_ok=True)
                temp_path = self._file_path.with_suffix(self._file_path.suffix + ".tmp")
                temp_path.write_text(document, encoding="utf-8")
                temp_path.replace(self._file_path)
            except OSError as exc:
                raise PersistenceError(f"Cannot write store file {self._file_path}: {exc}") from exc
            self._written_version = version
