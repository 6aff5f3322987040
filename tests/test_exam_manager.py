"""
Tests for the exam manager facade
"""
import asyncio
from datetime import timedelta

import pytest

from conftest import START, FakeClock, FlakyStore, make_exam, make_questions
from exam_app.core.errors import (
    AlreadySubmittedError,
    ExamAlreadyEndedError,
    ExamUnavailableError,
    InvalidAccessCodeError,
    PreconditionError,
    SessionNotFoundError,
)
from exam_app.core.exam_importer import ImportedExam
from exam_app.core.exam_manager import ExamManager
from exam_app.core.models import SessionState
from exam_app.core.services.exam_library import ExamLibrary


def build_manager(clock=None, store=None, exits=None):
    library = ExamLibrary(
        [
            ImportedExam(None, make_exam(), make_questions()),
            ImportedExam(None, make_exam(id="exam-2", access_code="DRAFT1", status="draft"), []),
        ]
    )
    return ExamManager(
        library,
        store or FlakyStore(),
        clock=clock or FakeClock(),
        exit_hook=(lambda: exits.append(1)) if exits is not None else None,
        violation_delay_seconds=0,
        tick_interval_seconds=3600,
    )


async def wait_for_state(controller, state):
    for _ in range(20):
        if controller.state is state:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"session stayed in {controller.state}")


class TestAccessCode:
    """Test access code verification"""

    def test_case_insensitive_match(self):
        manager = build_manager()
        assert manager.verify_access_code(" phy101 ").id == "exam-1"

    def test_empty_code(self):
        with pytest.raises(ValueError):
            build_manager().verify_access_code("  ")

    def test_unknown_code(self):
        with pytest.raises(InvalidAccessCodeError):
            build_manager().verify_access_code("NOPE")

    def test_inactive_exam(self):
        with pytest.raises(ExamUnavailableError) as excinfo:
            build_manager().verify_access_code("DRAFT1")
        assert excinfo.value.status == "draft"
        assert str(excinfo.value) == "Exam found but status is: draft"


class TestRegistration:
    """Test student registration"""

    @pytest.mark.asyncio
    async def test_register_and_lookup(self):
        manager = build_manager()
        exam = manager.verify_access_code("PHY101")
        student = await manager.register_student(exam, " Ada ", "ada@example.com", "R-1")
        assert student.name == "Ada"
        assert manager.get_student(student.id) == student

    @pytest.mark.asyncio
    async def test_same_roll_number_reuses_student(self):
        manager = build_manager()
        exam = manager.verify_access_code("PHY101")
        first = await manager.register_student(exam, "Ada", "ada@example.com", "R-1")
        second = await manager.register_student(exam, "Ada", "ada@example.com", "R-1")
        assert first.id == second.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name, email, roll",
        [("", "ada@example.com", "R-1"), ("Ada", "", "R-1"), ("Ada", "ada@example.com", " "), ("Ada", "not-an-email", "R-1")],
    )
    async def test_invalid_fields(self, name, email, roll):
        manager = build_manager()
        exam = manager.verify_access_code("PHY101")
        with pytest.raises(ValueError):
            await manager.register_student(exam, name, email, roll)

    @pytest.mark.asyncio
    async def test_unknown_student(self):
        with pytest.raises(PreconditionError):
            build_manager().get_student("nobody")

    @pytest.mark.asyncio
    async def test_repeat_attempt_refused(self):
        manager = build_manager()
        exam = manager.verify_access_code("PHY101")
        student = await manager.register_student(exam, "Ada", "ada@example.com", "R-1")
        controller = await manager.start_session(exam, student)
        await controller.submit()

        with pytest.raises(AlreadySubmittedError):
            await manager.register_student(exam, "Ada", "ada@example.com", "R-1")
        with pytest.raises(AlreadySubmittedError):
            await manager.start_session(exam, student)
        await manager.shutdown()


class TestSessions:
    """Test session lifecycle through the manager"""

    @pytest.mark.asyncio
    async def test_start_session_resumes_live_session(self):
        manager = build_manager()
        exam = manager.verify_access_code("PHY101")
        student = await manager.register_student(exam, "Ada", "ada@example.com", "R-1")

        controller = await manager.start_session(exam, student)
        assert controller.state is SessionState.ACTIVE
        assert await manager.start_session(exam, student) is controller
        assert manager.get_session(controller.session_id) is controller
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_start_session_setup_failure_discards_session(self):
        exits = []
        manager = build_manager(clock=FakeClock(START + timedelta(hours=3)), exits=exits)
        exam = manager.verify_access_code("PHY101")
        student = await manager.register_student(exam, "Ada", "ada@example.com", "R-1")

        with pytest.raises(ExamAlreadyEndedError):
            await manager.start_session(exam, student)
        assert exits == [1]

    @pytest.mark.asyncio
    async def test_open_session_loads_in_background(self):
        manager = build_manager()
        exam = manager.verify_access_code("PHY101")
        student = await manager.register_student(exam, "Ada", "ada@example.com", "R-1")

        controller = await manager.open_session(exam, student)
        assert controller.state is SessionState.LOADING
        controller.report_fullscreen(True)

        await wait_for_state(controller, SessionState.ACTIVE)
        assert controller.submission is not None
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_open_session_records_setup_failure(self):
        manager = build_manager(clock=FakeClock(START + timedelta(hours=3)))
        exam = manager.verify_access_code("PHY101")
        student = await manager.register_student(exam, "Ada", "ada@example.com", "R-1")

        controller = await manager.open_session(exam, student)
        await wait_for_state(controller, SessionState.COMPLETED)
        assert isinstance(controller.setup_error, ExamAlreadyEndedError)
        assert manager.get_session(controller.session_id) is controller
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_concurrent_opens_share_one_session(self):
        manager = build_manager()
        exam = manager.verify_access_code("PHY101")
        student = await manager.register_student(exam, "Ada", "ada@example.com", "R-1")

        first, second = await asyncio.gather(
            manager.open_session(exam, student), manager.open_session(exam, student)
        )

        assert first is second
        await wait_for_state(first, SessionState.ACTIVE)
        assert first.setup_error is None
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_new_attempt_drops_completed_session(self):
        manager = build_manager(clock=FakeClock(START + timedelta(hours=3)))
        exam = manager.verify_access_code("PHY101")
        student = await manager.register_student(exam, "Ada", "ada@example.com", "R-1")

        first = await manager.open_session(exam, student)
        await wait_for_state(first, SessionState.COMPLETED)
        second = await manager.open_session(exam, student)

        assert second is not first
        with pytest.raises(SessionNotFoundError):
            manager.get_session(first.session_id)
        assert manager.get_session(second.session_id) is second
        await manager.shutdown()

    @pytest.mark.asyncio
    async def test_sessions_of_ended_exam_are_dropped(self):
        clock = FakeClock()
        manager = build_manager(clock=clock)
        exam = manager.verify_access_code("PHY101")
        ada = await manager.register_student(exam, "Ada", "ada@example.com", "R-1")
        grace = await manager.register_student(exam, "Grace", "grace@example.com", "R-2")

        finished = await manager.start_session(exam, ada)
        await finished.submit()
        assert manager.get_session(finished.session_id) is finished

        clock.advance(2 * 3600)
        await manager.open_session(exam, grace)

        with pytest.raises(SessionNotFoundError):
            manager.get_session(finished.session_id)
        await manager.shutdown()

    def test_unknown_session(self):
        with pytest.raises(SessionNotFoundError):
            build_manager().get_session("missing")
