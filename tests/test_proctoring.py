"""
Tests for full-screen proctoring
"""
from exam_app.core.services.proctoring import (
    FULLSCREEN_EXIT_ADVISORY,
    PROCTORED_MODE_NOTICE,
    TAB_SWITCH_ADVISORY,
    ProctoringMonitor,
)


def _monitor(armed=True):
    calls = []
    monitor = ProctoringMonitor(on_violation=lambda: calls.append("violation"))
    if armed:
        monitor.arm()
    return monitor, calls


class TestFullscreenViolation:
    """Test violation detection"""

    def test_exit_after_compliance_is_violation(self):
        monitor, calls = _monitor()
        monitor.fullscreen_changed(True)
        assert monitor.fullscreen_changed(False) is True
        assert calls == ["violation"]
        assert monitor.violation_triggered

    def test_exit_without_prior_compliance_is_ignored(self):
        monitor, calls = _monitor()
        assert monitor.fullscreen_changed(False) is False
        assert calls == []

    def test_violation_fires_only_once(self):
        monitor, calls = _monitor()
        monitor.fullscreen_changed(True)
        monitor.fullscreen_changed(False)
        monitor.fullscreen_changed(True)
        assert monitor.fullscreen_changed(False) is False
        assert calls == ["violation"]

    def test_advisories_recorded(self):
        monitor, _ = _monitor()
        monitor.fullscreen_changed(True)
        monitor.fullscreen_changed(False)
        messages = [a.message for a in monitor.get_advisories()]
        assert messages == [PROCTORED_MODE_NOTICE, FULLSCREEN_EXIT_ADVISORY]
        assert monitor.get_advisories()[-1].is_violation


class TestVisibility:
    """Test tab switch handling"""

    def test_hidden_page_is_advisory_only(self):
        monitor, calls = _monitor()
        monitor.fullscreen_changed(True)
        monitor.visibility_changed(True)
        monitor.visibility_changed(False)
        assert calls == []
        assert [a.message for a in monitor.get_advisories()][-1] == TAB_SWITCH_ADVISORY


class TestArming:
    """Test violations observed before the monitor is armed"""

    def test_pending_violation_replayed_once_on_arm(self):
        monitor, calls = _monitor(armed=False)
        monitor.fullscreen_changed(True)
        monitor.fullscreen_changed(False)
        assert calls == []
        assert monitor.has_pending_violation

        monitor.arm()
        monitor.arm()
        assert calls == ["violation"]
        assert not monitor.has_pending_violation

    def test_disarm_drops_pending_violation(self):
        monitor, calls = _monitor(armed=False)
        monitor.fullscreen_changed(True)
        monitor.fullscreen_changed(False)
        monitor.disarm()
        monitor.arm()
        assert calls == []

    def test_disarmed_monitor_does_not_fire(self):
        monitor, calls = _monitor()
        monitor.disarm()
        monitor.fullscreen_changed(True)
        monitor.fullscreen_changed(False)
        assert calls == []
