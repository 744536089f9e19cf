"""
Best-effort result types

Detector ticks and network reports never raise into the monitoring loop.
Instead they return an Outcome that records whether the work produced a
value, was skipped, or failed, so callers and tests can inspect the path
taken.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class OutcomeStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one best-effort unit of work"""
    status: OutcomeStatus
    value: Optional[T] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.OK

    @classmethod
    def success(cls, value: Any) -> "Outcome":
        return cls(status=OutcomeStatus.OK, value=value)

    @classmethod
    def skipped(cls, reason: str) -> "Outcome":
        return cls(status=OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "Outcome":
        return cls(status=OutcomeStatus.FAILED, reason=reason)
