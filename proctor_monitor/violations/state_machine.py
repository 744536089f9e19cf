"""
Violation State Machine - Turns raw detector signal into violation events

Per condition:
    INACTIVE -> ACTIVE(since=now) -> [duration >= threshold] -> REPORTED
    -> ACTIVE (suppressed until the throttle window expires) -> ...
    -> INACTIVE as soon as the condition stops holding

Edge-triggered conditions (tab_switch, window_blur) go straight from
INACTIVE to REPORTED on the rising edge and re-arm only on the opposite
transition.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..detectors.face_detector import DetectionFrame
from ..detectors.audio_detector import AudioSample
from .condition_timer import (
    ConditionRule,
    ConditionTimer,
    Severity,
    ViolationType,
    default_rules
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ViolationEvent:
    """A discrete, severity-tagged violation ready for reporting"""
    type: ViolationType
    description: str
    severity: Severity
    timestamp: datetime = field(default_factory=_utcnow)
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "duration": round(self.duration, 2)
        }


def acquisition_failure_event(error: Exception) -> ViolationEvent:
    """Violation raised when camera or microphone cannot be acquired"""
    return ViolationEvent(
        type=ViolationType.CAMERA_ACCESS_FAILED,
        description=f"Failed to access camera or microphone: {error}",
        severity=Severity.CRITICAL
    )


class ViolationStateMachine:
    """
    Owns one ConditionTimer per monitored condition.

    Every observe_* call is a self-contained tick: it takes the complete
    detector output for that tick and returns the violations it produced.
    """

    def __init__(self, rules: Optional[Dict[ViolationType, ConditionRule]] = None):
        """
        Args:
            rules: Optional rule table (defaults from settings)
        """
        self.rules = rules if rules is not None else default_rules()
        self.timers: Dict[ViolationType, ConditionTimer] = {
            condition: ConditionTimer(condition, rule)
            for condition, rule in self.rules.items()
        }

    def observe(
        self,
        condition: ViolationType,
        holding: bool,
        now: float,
        **context
    ) -> Optional[ViolationEvent]:
        """
        Feed one condition's value for this tick.

        Args:
            condition: Condition being observed
            holding: Whether it is currently true
            now: Monotonic timestamp in seconds
            **context: Extra values used in the description template

        Returns:
            ViolationEvent if one is due, else None
        """
        timer = self.timers.get(condition)
        if timer is None:
            return None

        if not timer.observe(holding, now):
            return None

        rule = timer.rule
        duration = 0.0 if rule.edge_triggered else timer.duration(now)
        event = ViolationEvent(
            type=condition,
            description=rule.description.format(duration=duration, **context),
            severity=rule.severity,
            duration=duration
        )
        logger.debug(f"[VIOLATION] {condition.value} after {duration:.2f}s")
        return event

    def observe_detection(self, frame: DetectionFrame, now: float) -> List[ViolationEvent]:
        """
        Apply one face/gaze detection result.

        no_face and multiple_faces come from the same face count, so at
        most one of them can hold for a given frame. Gaze only holds with
        exactly one face; any other count clears the gaze timer.
        """
        events = [
            self.observe(ViolationType.NO_FACE, frame.no_face, now),
            self.observe(
                ViolationType.MULTIPLE_FACES,
                frame.multiple_faces,
                now,
                face_count=frame.face_count
            ),
            self.observe(ViolationType.GAZE_AWAY, bool(frame.gaze_away), now),
        ]
        return [event for event in events if event is not None]

    def observe_audio(self, sample: AudioSample, now: float) -> List[ViolationEvent]:
        """Apply one audio level sample"""
        event = self.observe(ViolationType.MIC_MUTED, sample.is_muted, now)
        return [event] if event is not None else []

    def observe_visibility(self, hidden: bool, now: float) -> List[ViolationEvent]:
        """Apply a page visibility change (hidden=True when tab is switched away)"""
        event = self.observe(ViolationType.TAB_SWITCH, hidden, now)
        return [event] if event is not None else []

    def observe_focus(self, focused: bool, now: float) -> List[ViolationEvent]:
        """Apply a window focus change"""
        event = self.observe(ViolationType.WINDOW_BLUR, not focused, now)
        return [event] if event is not None else []

    def active_conditions(self) -> List[ViolationType]:
        """Conditions whose timers are currently running"""
        return [condition for condition, timer in self.timers.items() if timer.is_active]

    def reset(self):
        """Reset every timer"""
        for timer in self.timers.values():
            timer.reset()
