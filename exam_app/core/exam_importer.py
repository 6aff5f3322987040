"""Utilities for importing exam definitions from a human-friendly text file.

File format: a header block followed by question blocks, separated by blank
lines or '---':

    EXAM: Physics Midterm
    CODE: PHY101
    TOPIC: Physics            (optional)
    STATUS: active            (optional, defaults to active)
    START: 2026-10-16T09:00:00+00:00
    END: 2026-10-16T10:00:00+00:00
    DURATION: 60              (minutes, used only when END is omitted)

    ---

    Q: Question text (supports markdown). Additional lines until the
       next marker are treated as part of the question.
    A: First option text
    B: Second option text
    C: Third option text
    D: Fourth option text
    CORRECT: A|B|C|D
    TOPIC: Kinematics         (optional)

Timestamps without an offset are read as UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from exam_app.constants.exam_constants import OPTION_LABELS
from exam_app.core.errors import ExamImportError
from exam_app.core.models import Exam, Question

_HEADER_KEYS = ("EXAM", "CODE", "TOPIC", "STATUS", "START", "END", "DURATION")


@dataclass(slots=True)
class ImportedExam:
    """Container for an imported exam and its questions."""

    source_path: Path | None
    exam: Exam
    questions: list[Question]


def load_exam_from_file(file_path: Path) -> ImportedExam:
    text = file_path.read_text(encoding="utf-8")
    imported = parse_exam_text(text, exam_id=file_path.stem)
    imported.source_path = file_path
    return imported


def parse_exam_text(text: str, exam_id: str) -> ImportedExam:
    blocks = _split_blocks(text)
    if not blocks:
        raise ExamImportError("Exam file is empty.")

    exam = _parse_header(blocks[0], exam_id)
    questions = [
        _parse_question_block(block, exam_id, position)
        for position, block in enumerate(blocks[1:], start=1)
    ]
    return ImportedExam(source_path=None, exam=exam, questions=questions)


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_header(block: str, exam_id: str) -> Exam:
    fields: dict[str, str] = {}
    for raw_line in block.splitlines():
        line = raw_line.strip()
        key, sep, value = line.partition(":")
        key = key.strip().upper()
        if not sep or key not in _HEADER_KEYS:
            raise ExamImportError(f"Expected an exam header line, got: '{line}'.")
        fields[key] = value.strip()

    name = fields.get("EXAM", "")
    access_code = fields.get("CODE", "").upper()
    if not name:
        raise ExamImportError("Exam name missing (EXAM: ...)")
    if not access_code:
        raise ExamImportError("Access code missing (CODE: ...)")
    if "START" not in fields:
        raise ExamImportError("Exam start time missing (START: ...)")

    start_time = _parse_timestamp(fields["START"], "START")
    if "END" in fields:
        end_time = _parse_timestamp(fields["END"], "END")
    elif "DURATION" in fields:
        try:
            minutes = int(fields["DURATION"])
        except ValueError as exc:
            raise ExamImportError("DURATION must be an integer number of minutes.") from exc
        if minutes <= 0:
            raise ExamImportError("DURATION must be a positive integer.")
        end_time = start_time + timedelta(minutes=minutes)
    else:
        raise ExamImportError("Either END or DURATION must be given.")
    if end_time <= start_time:
        raise ExamImportError("END must be after START.")

    return Exam(
        id=exam_id,
        name=name,
        access_code=access_code,
        start_time=start_time,
        end_time=end_time,
        topic=fields.get("TOPIC", ""),
        status=(fields.get("STATUS") or "active").lower(),
    )


def _parse_timestamp(raw_value: str, label: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(raw_value)
    except ValueError as exc:
        raise ExamImportError(f"{label} must be an ISO-8601 timestamp.") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_question_block(block: str, exam_id: str, position: int) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    topic_tag = ""
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("TOPIC:"):
            topic_tag = line.split(":", 1)[1].strip()
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LABELS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in OPTION_LABELS:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise ExamImportError(
                f"Question {position}: text outside of a known section: '{line}'."
            )

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise ExamImportError(f"Question {position}: text missing (Q: ...)")
    if len(options) != 4:
        raise ExamImportError(f"Question {position}: must define exactly four options (A-D).")

    option_list = tuple(options[letter].strip() for letter in OPTION_LABELS)
    if any(not opt for opt in option_list):
        raise ExamImportError(f"Question {position}: option text cannot be empty.")

    if correct_letter is None:
        raise ExamImportError(f"Question {position}: CORRECT answer missing.")
    if correct_letter not in OPTION_LABELS:
        raise ExamImportError(f"Question {position}: CORRECT must be one of A, B, C, or D.")

    return Question(
        id=f"{exam_id}-q{position}",
        exam_id=exam_id,
        position=position,
        question_text=question_text,
        options=option_list,
        correct_option=correct_letter,
        topic_tag=topic_tag,
    )
