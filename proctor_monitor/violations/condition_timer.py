"""
Condition Timers - Per-condition "active since" clocks with throttling
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class ViolationType(str, Enum):
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    GAZE_AWAY = "gaze_away"
    MIC_MUTED = "mic_muted"
    TAB_SWITCH = "tab_switch"
    WINDOW_BLUR = "window_blur"
    CAMERA_ACCESS_FAILED = "camera_access_failed"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ConditionRule:
    """
    How one condition turns into violations.

    Duration-gated rules report once the condition has held for
    `threshold` seconds and then at most every `throttle` seconds.
    Edge-triggered rules report on the rising edge only.
    """
    severity: Severity
    description: str
    threshold: float = 0.0
    throttle: float = 0.0
    edge_triggered: bool = False


class ConditionTimer:
    """
    Tracks one monitored condition across ticks.

    Attributes:
        active_since: When the condition most recently became true
                      (None while it does not hold)
        last_reported_at: When a violation was last emitted
    """

    def __init__(self, condition: ViolationType, rule: ConditionRule):
        self.condition = condition
        self.rule = rule
        self.active_since: Optional[float] = None
        self.last_reported_at: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.active_since is not None

    def duration(self, now: float) -> float:
        """Seconds the condition has held continuously (0 if inactive)"""
        if self.active_since is None:
            return 0.0
        return max(0.0, now - self.active_since)

    def observe(self, holding: bool, now: float) -> bool:
        """
        Feed the condition's current value.

        Args:
            holding: Whether the condition is true this tick
            now: Monotonic timestamp in seconds

        Returns:
            True if a violation should be emitted for this tick
        """
        if not holding:
            # No duration carries over a gap
            self.active_since = None
            return False

        if self.rule.edge_triggered:
            if self.active_since is not None:
                return False
            self.active_since = now
            self.last_reported_at = now
            return True

        if self.active_since is None:
            self.active_since = now

        if now - self.active_since < self.rule.threshold:
            return False

        if self.last_reported_at is not None and now - self.last_reported_at < self.rule.throttle:
            return False

        self.last_reported_at = now
        return True

    def reset(self):
        """Forget all timing state"""
        self.active_since = None
        self.last_reported_at = None


# ============================================================================
# Default Rules
# ============================================================================

def default_rules(settings=None) -> Dict[ViolationType, ConditionRule]:
    """
    Build the rule table from settings (module defaults if None).

    camera_access_failed is reported directly by the engine and has no
    timer rule.
    """
    if settings is None:
        from ..config import settings

    return {
        ViolationType.NO_FACE: ConditionRule(
            severity=Severity.MEDIUM,
            description="No face detected for {duration:.1f} seconds",
            threshold=settings.NO_FACE_THRESHOLD,
            throttle=settings.NO_FACE_THROTTLE
        ),
        ViolationType.MULTIPLE_FACES: ConditionRule(
            severity=Severity.HIGH,
            description="Multiple faces detected ({face_count} faces)",
            threshold=settings.MULTIPLE_FACES_THRESHOLD,
            throttle=settings.MULTIPLE_FACES_THROTTLE
        ),
        ViolationType.GAZE_AWAY: ConditionRule(
            severity=Severity.LOW,
            description="Student looking away for {duration:.1f} seconds",
            threshold=settings.GAZE_AWAY_THRESHOLD,
            throttle=settings.GAZE_AWAY_THROTTLE
        ),
        ViolationType.MIC_MUTED: ConditionRule(
            severity=Severity.MEDIUM,
            description="Microphone muted for {duration:.0f} seconds",
            threshold=settings.MIC_MUTED_THRESHOLD,
            throttle=settings.MIC_MUTED_THROTTLE
        ),
        ViolationType.TAB_SWITCH: ConditionRule(
            severity=Severity.HIGH,
            description="Student switched tabs or minimized browser",
            edge_triggered=True
        ),
        ViolationType.WINDOW_BLUR: ConditionRule(
            severity=Severity.MEDIUM,
            description="Student switched focus away from exam window",
            edge_triggered=True
        ),
    }
