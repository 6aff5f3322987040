"""FastAPI server that exposes the student exam page and session endpoints."""

from __future__ import annotations

from contextlib import asynccontextmanager
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
import uvicorn

from exam_app.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from exam_app.constants.exam_constants import LOW_TIME_THRESHOLD_SECONDS, OPTION_LABELS
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.errors import (
    AlreadySubmittedError,
    ExamUnavailableError,
    FinalizeError,
    InvalidAccessCodeError,
    PreconditionError,
    SessionNotFoundError,
)
from exam_app.core.exam_manager import ExamManager
from exam_app.core.markdown_renderer import renderer
from exam_app.core.models import Exam, SessionState, Student
from exam_app.core.services.countdown import format_remaining
from exam_app.core.session_controller import ExamSessionController
from exam_app.server.student_page import STUDENT_PAGE_HTML


class AccessPayload(BaseModel):
    """Payload schema for access code verification."""

    access_code: str


class RegisterPayload(BaseModel):
    """Payload schema for student registration."""

    access_code: str
    name: str
    email: str
    roll_number: str


class StartPayload(BaseModel):
    access_code: str
    student_id: str


class SelectPayload(BaseModel):
    option: str
    question_id: str | None = None


class ReviewPayload(BaseModel):
    question_id: str | None = None


class NavigatePayload(BaseModel):
    index: int


class ProctoringPayload(BaseModel):
    """Full-screen and visibility changes reported by the page."""

    fullscreen: bool | None = None
    hidden: bool | None = None


def _exam_summary(exam: Exam) -> dict[str, object]:
    return {
        "id": exam.id,
        "name": exam.name,
        "topic": exam.topic,
        "start_time": exam.start_time.isoformat(),
        "end_time": exam.end_time.isoformat(),
        "duration_minutes": exam.duration_minutes,
    }


def _student_summary(student: Student) -> dict[str, object]:
    return {
        "student_id": student.id,
        "name": student.name,
        "email": student.email,
        "roll_number": student.roll_number,
    }


def session_snapshot(controller: ExamSessionController) -> dict[str, object]:
    """Everything the page needs to render the current session state."""
    remaining = controller.remaining_seconds
    questions = controller.questions
    counts = controller.status_counts()
    current = controller.current_question
    question_payload = None
    if current is not None and controller.state is SessionState.ACTIVE:
        record = controller.answer_for(current.id)
        question_payload = {
            "id": current.id,
            "position": current.position,
            "topic_tag": current.topic_tag,
            "labels": list(OPTION_LABELS),
            "selected_option": record.selected_option if record and record.has_selection else None,
            "status": controller.status_of(current.id).value,
            **renderer.render_question(current),
        }

    submission = controller.submission
    result = None
    if controller.state is SessionState.COMPLETED and submission is not None and submission.is_submitted:
        result = {
            "score": submission.total_score,
            "total_questions": submission.total_questions,
            "time_taken_minutes": submission.time_taken_minutes,
            "submitted_at": submission.submitted_at.isoformat(),
        }

    return {
        "session_id": controller.session_id,
        "state": controller.state.name.lower(),
        "exam": _exam_summary(controller.exam),
        "student": _student_summary(controller.student),
        "remaining_seconds": remaining,
        "remaining_label": format_remaining(remaining),
        "low_time": remaining < LOW_TIME_THRESHOLD_SECONDS,
        "current_index": controller.current_index,
        "total_questions": len(questions),
        "question": question_payload,
        "statuses": [controller.status_of(q.id).value for q in questions],
        "counts": {
            "answered": counts.answered,
            "marked_for_review": counts.marked_for_review,
            "not_answered": counts.not_answered,
        },
        "fullscreen": controller.proctoring.is_compliant,
        "violation": controller.proctoring.violation_triggered,
        "advisories": [
            {"message": a.message, "raised_at": a.raised_at.isoformat(), "violation": a.is_violation}
            for a in controller.proctoring.get_advisories()
        ],
        "trigger": controller.trigger.value if controller.trigger else None,
        "submitting": controller.is_finalize_running,
        "error": controller.last_error,
        "setup_failed": controller.setup_error is not None,
        "result": result,
    }


def _get_exam_manager_dependency(exam_manager: ExamManager):
    def dependency() -> ExamManager:
        return exam_manager

    return dependency


def _verify_or_raise(manager: ExamManager, access_code: str) -> Exam:
    try:
        return manager.verify_access_code(access_code)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except InvalidAccessCodeError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ExamUnavailableError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


def _session_or_404(manager: ExamManager, session_id: str) -> ExamSessionController:
    try:
        return manager.get_session(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def create_api_app(exam_manager: ExamManager) -> FastAPI:
    """Create a FastAPI application wired to the provided exam manager."""

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await exam_manager.shutdown()

    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, description=APP_ABOUT_TEXT, lifespan=lifespan)
    exam_manager_dep = _get_exam_manager_dependency(exam_manager)

    @app.get("/", response_class=HTMLResponse)
    def serve_student_page() -> str:
        return STUDENT_PAGE_HTML

    @app.post("/access")
    def verify_access(
        payload: AccessPayload,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        exam = _verify_or_raise(manager, payload.access_code)
        return _exam_summary(exam)

    @app.post("/register", status_code=201)
    async def register_student(
        payload: RegisterPayload,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        exam = _verify_or_raise(manager, payload.access_code)
        try:
            student = await manager.register_student(
                exam, payload.name, payload.email, payload.roll_number
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except AlreadySubmittedError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _student_summary(student)

    @app.post("/sessions", status_code=202)
    async def start_session(
        payload: StartPayload,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        exam = _verify_or_raise(manager, payload.access_code)
        try:
            student = manager.get_student(payload.student_id)
            controller = await manager.open_session(exam, student)
        except PreconditionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except AlreadySubmittedError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return session_snapshot(controller)

    @app.get("/sessions/{session_id}")
    def get_session(
        session_id: str,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        return session_snapshot(_session_or_404(manager, session_id))

    @app.post("/sessions/{session_id}/select")
    async def select_answer(
        session_id: str,
        payload: SelectPayload,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        controller = _session_or_404(manager, session_id)
        try:
            question_id = payload.question_id or _current_question_id(controller)
            controller.select_answer(question_id, payload.option)
        except PreconditionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return session_snapshot(controller)

    @app.post("/sessions/{session_id}/mark-review")
    async def mark_for_review(
        session_id: str,
        payload: ReviewPayload,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        controller = _session_or_404(manager, session_id)
        try:
            question_id = payload.question_id or _current_question_id(controller)
            controller.mark_for_review(question_id)
        except PreconditionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return session_snapshot(controller)

    @app.post("/sessions/{session_id}/navigate")
    async def navigate(
        session_id: str,
        payload: NavigatePayload,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        controller = _session_or_404(manager, session_id)
        try:
            controller.navigate(payload.index)
        except PreconditionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return session_snapshot(controller)

    @app.post("/sessions/{session_id}/submit")
    async def submit_exam(
        session_id: str,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        controller = _session_or_404(manager, session_id)
        try:
            await controller.submit()
        except PreconditionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except FinalizeError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return session_snapshot(controller)

    @app.post("/sessions/{session_id}/proctoring")
    async def report_proctoring(
        session_id: str,
        payload: ProctoringPayload,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        controller = _session_or_404(manager, session_id)
        if payload.fullscreen is not None:
            controller.report_fullscreen(payload.fullscreen)
        if payload.hidden is not None:
            controller.report_visibility(payload.hidden)
        return session_snapshot(controller)

    return app


def _current_question_id(controller: ExamSessionController) -> str:
    question = controller.current_question
    if question is None:
        raise PreconditionError("No question is loaded yet.")
    return question.id


def start_api_server(
    exam_manager: ExamManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(exam_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ExamApiServer", daemon=True)
    thread.start()
    return thread


def run_api_server(
    exam_manager: ExamManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve in the foreground, for headless use without the kiosk window."""
    uvicorn.run(create_api_app(exam_manager), host=host, port=port, log_level="info")
