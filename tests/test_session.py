"""
Tests for the Monitoring Session, Violation Log, page event bus and CLI
"""
import re

import pytest

from proctor_monitor.__main__ import build_parser
from proctor_monitor.events import VISIBILITY_CHANGE, PageEventBus, SubscriptionGroup
from proctor_monitor.metrics import ViolationLog
from proctor_monitor.reporting import ReportOutcome
from proctor_monitor.results import Outcome
from proctor_monitor.session import MonitoringSession
from proctor_monitor.violations import Severity, ViolationEvent, ViolationType, default_rules


class TestMonitoringSession:
    """Tests for MonitoringSession"""

    def test_session_creation(self):
        session = MonitoringSession(exam_id="EXAM_1", student_id="STU_1")

        assert re.fullmatch(r"EXM_[0-9A-F]{6}", session.id)
        assert session.is_active
        assert session.log.total_violations == 0

    def test_custom_session_id(self):
        session = MonitoringSession(exam_id="EXAM_1", student_id="STU_1", session_id="EXM_CUSTOM")
        assert session.id == "EXM_CUSTOM"

    def test_skipped_tick_is_counted_only(self, settings):
        session = MonitoringSession("EXAM_1", "STU_1", rules=default_rules(settings))

        events = session.process_detection(Outcome.skipped("no_face_model"), 5.0)

        assert events == []
        assert session.log.tick_outcomes["face"]["skipped"] == 1

    def test_finalize(self, settings):
        session = MonitoringSession("EXAM_1", "STU_1", rules=default_rules(settings))
        session.process_visibility(True, 0.0)

        result = session.finalize()

        assert session.is_active is False
        assert result["exam_id"] == "EXAM_1"
        assert result["student_id"] == "STU_1"
        assert result["total_violations"] == 1
        assert result["duration_seconds"] >= 0
        assert result["active_conditions"] == ["tab_switch"]

    def test_no_events_after_finalize(self, settings):
        session = MonitoringSession("EXAM_1", "STU_1", rules=default_rules(settings))
        session.finalize()

        assert session.process_visibility(True, 0.0) == []
        assert session.process_focus(False, 0.0) == []


class TestViolationLog:
    """Tests for ViolationLog aggregation"""

    def make_event(self, violation_type, severity):
        return ViolationEvent(type=violation_type, description="x", severity=severity)

    def test_counts(self):
        log = ViolationLog(session_id="EXM_TEST")
        log.record_violation(self.make_event(ViolationType.NO_FACE, Severity.MEDIUM))
        log.record_violation(self.make_event(ViolationType.NO_FACE, Severity.MEDIUM))
        log.record_violation(self.make_event(ViolationType.TAB_SWITCH, Severity.HIGH))

        summary = log.get_summary()

        assert summary["total_violations"] == 3
        assert summary["by_type"] == {"no_face": 2, "tab_switch": 1}
        assert summary["by_severity"] == {"medium": 2, "high": 1}
        assert summary["last_event_at"] is not None

    def test_report_outcomes(self):
        log = ViolationLog(session_id="EXM_TEST")
        log.record_report(ReportOutcome(delivered=True, suspicion_score=20))
        log.record_report(ReportOutcome(delivered=False, error="timeout"))
        log.record_report(ReportOutcome(delivered=True))

        assert log.delivered_reports == 2
        assert log.dropped_reports == 1
        assert log.suspicion_score == 20

    def test_reset(self):
        log = ViolationLog(session_id="EXM_TEST")
        log.record_violation(self.make_event(ViolationType.GAZE_AWAY, Severity.LOW))
        log.record_tick("face", Outcome.failed("boom"))
        log.reset()

        assert log.total_violations == 0
        assert log.tick_outcomes == {}


class TestPageEventBus:
    """Tests for subscriptions"""

    def test_cancel_is_idempotent(self):
        bus = PageEventBus()
        received = []
        subscription = bus.subscribe(VISIBILITY_CHANGE, lambda hidden: received.append(hidden))

        bus.set_visibility(True)
        subscription.cancel()
        subscription.cancel()
        bus.set_visibility(False)

        assert received == [True]
        assert bus.handler_count(VISIBILITY_CHANGE) == 0

    def test_failing_handler_does_not_block_others(self):
        bus = PageEventBus()
        received = []

        def broken(hidden):
            raise RuntimeError("handler crashed")

        bus.subscribe(VISIBILITY_CHANGE, broken)
        bus.subscribe(VISIBILITY_CHANGE, lambda hidden: received.append(hidden))
        bus.set_visibility(True)

        assert received == [True]

    def test_group_cancel_all(self):
        bus = PageEventBus()
        group = SubscriptionGroup()
        group.add(bus.subscribe(VISIBILITY_CHANGE, lambda hidden: None))
        group.add(bus.subscribe(VISIBILITY_CHANGE, lambda hidden: None))

        assert len(group) == 2
        group.cancel_all()

        assert len(group) == 0
        assert bus.handler_count(VISIBILITY_CHANGE) == 0


class TestCli:
    """Argument parsing for python -m proctor_monitor"""

    def test_required_ids(self):
        args = build_parser().parse_args(["--exam-id", "EXAM_1", "--student-id", "STU_1"])

        assert args.exam_id == "EXAM_1"
        assert args.student_id == "STU_1"
        assert args.duration == 0
        assert args.session_id is None

    def test_missing_exam_id(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--student-id", "STU_1"])
