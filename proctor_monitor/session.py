"""
Monitoring Session - Per-attempt state for the monitoring engine
"""

import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from .metrics import ViolationLog
from .results import Outcome
from .violations import ConditionRule, ViolationEvent, ViolationStateMachine, ViolationType
from .utils.logging import (
    log_session_start,
    log_session_end,
    log_violation_emitted,
    log_report_failed
)

logger = logging.getLogger(__name__)


class MonitoringSession:
    """
    Holds everything that belongs to one exam attempt.

    Owns the condition timers (through the state machine) and the
    violation log. A new session is created for every attempt and
    discarded when the engine stops.
    """

    def __init__(
        self,
        exam_id: str,
        student_id: str,
        session_id: Optional[str] = None,
        rules: Optional[Dict[ViolationType, ConditionRule]] = None
    ):
        """
        Initialize a new monitoring session.

        Args:
            exam_id: ID of the exam being taken
            student_id: ID of the student being monitored
            session_id: Optional custom session ID (auto-generated if not provided)
            rules: Optional condition rule table
        """
        self.id = session_id or f"EXM_{uuid.uuid4().hex[:6].upper()}"
        self.exam_id = exam_id
        self.student_id = student_id
        self.started_at = datetime.now(timezone.utc)
        self.is_active = True

        self.state_machine = ViolationStateMachine(rules)
        self.log = ViolationLog(session_id=self.id)

        log_session_start(self.id, exam_id, student_id)

    def process_detection(self, outcome: Outcome, now: float) -> List[ViolationEvent]:
        """
        Apply a face/gaze detection tick.

        Skipped and failed ticks are counted but leave every timer as it was.
        """
        self.log.record_tick("face", outcome)
        if not self.is_active or not outcome.ok:
            return []
        return self._record(self.state_machine.observe_detection(outcome.value, now))

    def process_audio(self, outcome: Outcome, now: float) -> List[ViolationEvent]:
        """Apply an audio level tick"""
        self.log.record_tick("audio", outcome)
        if not self.is_active or not outcome.ok:
            return []
        return self._record(self.state_machine.observe_audio(outcome.value, now))

    def process_visibility(self, hidden: bool, now: float) -> List[ViolationEvent]:
        """Apply a page visibility change"""
        if not self.is_active:
            return []
        return self._record(self.state_machine.observe_visibility(hidden, now))

    def process_focus(self, focused: bool, now: float) -> List[ViolationEvent]:
        """Apply a window focus change"""
        if not self.is_active:
            return []
        return self._record(self.state_machine.observe_focus(focused, now))

    def record_event(self, event: ViolationEvent):
        """Record a violation that did not come from a condition timer"""
        self._record([event])

    def record_report(self, event: ViolationEvent, outcome):
        """Record the reporting sink's answer for an event"""
        self.log.record_report(outcome)
        if not outcome.delivered:
            log_report_failed(self.id, event.type.value, outcome.error or "unknown")

    def _record(self, events: List[ViolationEvent]) -> List[ViolationEvent]:
        for event in events:
            self.log.record_violation(event)
            log_violation_emitted(self.id, event.type.value, event.severity.value, event.duration)
        return events

    def summary(self) -> Dict[str, Any]:
        """Current status (also sent with heartbeats)"""
        summary = self.log.get_summary()
        summary["active_conditions"] = [c.value for c in self.state_machine.active_conditions()]
        return summary

    def finalize(self) -> Dict[str, Any]:
        """
        Close the session and return its final summary.

        Returns:
            Summary with identifiers, duration and violation counts
        """
        self.is_active = False

        log_session_end(self.id, self.log.total_violations, self.log.dropped_reports)

        result = {
            "session_id": self.id,
            "exam_id": self.exam_id,
            "student_id": self.student_id,
            "duration_seconds": (datetime.now(timezone.utc) - self.started_at).total_seconds(),
            **self.summary()
        }

        logger.info(
            f"Session {self.id} finalized: violations={self.log.total_violations}, "
            f"dropped={self.log.dropped_reports}"
        )

        return result
