"""Service holding the loaded exam definitions and their questions."""

from __future__ import annotations

import logging
from pathlib import Path

from exam_app.core.exam_importer import ImportedExam, load_exam_from_file
from exam_app.core.models import Exam, Question

logger = logging.getLogger(__name__)


class ExamLibrary:
    """In-memory catalogue of exams, looked up by id or access code."""

    def __init__(self, imported: list[ImportedExam] | None = None) -> None:
        self._exams: dict[str, Exam] = {}
        self._questions: dict[str, list[Question]] = {}
        for item in imported or []:
            self.add(item)

    @classmethod
    def from_directory(cls, directory: Path) -> "ExamLibrary":
        """Load every ``*.txt`` exam definition in a directory."""
        library = cls()
        if not directory.is_dir():
            logger.warning("Exam directory %s does not exist", directory)
            return library
        for file_path in sorted(directory.glob("*.txt")):
            library.add(load_exam_from_file(file_path))
        logger.info("Loaded %d exam(s) from %s", len(library.list_exams()), directory)
        return library

    def add(self, imported: ImportedExam) -> None:
        exam = imported.exam
        if exam.id in self._exams:
            raise ValueError(f"Duplicate exam id {exam.id!r}.")
        if self.find_by_access_code(exam.access_code) is not None:
            raise ValueError(f"Duplicate access code {exam.access_code!r}.")
        self._exams[exam.id] = exam
        self._questions[exam.id] = sorted(imported.questions, key=lambda q: q.position)

    def list_exams(self) -> list[Exam]:
        return sorted(self._exams.values(), key=lambda e: e.start_time)

    def find_by_access_code(self, access_code: str) -> Exam | None:
        code = access_code.strip().upper()
        return next((e for e in self._exams.values() if e.access_code == code), None)

    async def load_questions(self, exam_id: str) -> list[Question]:
        return list(self._questions.get(exam_id, []))
