"""Violation timing and emission"""

from .condition_timer import (
    ConditionRule,
    ConditionTimer,
    Severity,
    ViolationType,
    default_rules
)
from .state_machine import ViolationEvent, ViolationStateMachine, acquisition_failure_event

__all__ = [
    "ConditionRule",
    "ConditionTimer",
    "Severity",
    "ViolationType",
    "default_rules",
    "ViolationEvent",
    "ViolationStateMachine",
    "acquisition_failure_event"
]
