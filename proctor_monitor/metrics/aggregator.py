"""
Violation Log - Aggregates violations and tick outcomes for a session
"""

import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ..results import Outcome, OutcomeStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ViolationLog:
    """
    Aggregates everything the monitoring engine observed for one session.
    
    Tracks emitted violations by type and severity, delivery results
    from the reporting sink, and how many detector ticks succeeded,
    were skipped or failed.
    """
    
    session_id: str
    
    # Emitted violations (in order)
    events: List[Any] = field(default_factory=list)
    counts_by_type: Dict[str, int] = field(default_factory=dict)
    counts_by_severity: Dict[str, int] = field(default_factory=dict)
    
    # Reporting sink results
    delivered_reports: int = 0
    dropped_reports: int = 0
    suspicion_score: Optional[float] = None
    terminated: bool = False
    
    # Tick outcomes per source ("face", "audio")
    tick_outcomes: Dict[str, Dict[str, int]] = field(default_factory=dict)
    
    # Timestamps
    started_at: datetime = field(default_factory=_utcnow)
    last_event_at: Optional[datetime] = None
    
    def record_violation(self, event):
        """
        Record an emitted ViolationEvent.
        
        Args:
            event: ViolationEvent from the state machine
        """
        self.events.append(event)
        type_key = event.type.value
        severity_key = event.severity.value
        self.counts_by_type[type_key] = self.counts_by_type.get(type_key, 0) + 1
        self.counts_by_severity[severity_key] = self.counts_by_severity.get(severity_key, 0) + 1
        self.last_event_at = event.timestamp
    
    def record_report(self, outcome):
        """
        Record the reporting sink's answer for one violation.
        
        Args:
            outcome: ReportOutcome from the reporter
        """
        if not outcome.delivered:
            self.dropped_reports += 1
            return
        
        self.delivered_reports += 1
        if outcome.suspicion_score is not None:
            self.suspicion_score = outcome.suspicion_score
        if outcome.terminated:
            self.terminated = True
    
    def record_tick(self, source: str, outcome: Outcome):
        """Count a detector tick outcome"""
        counters = self.tick_outcomes.setdefault(
            source, {status.value: 0 for status in OutcomeStatus}
        )
        counters[outcome.status.value] += 1
    
    @property
    def total_violations(self) -> int:
        return len(self.events)
    
    def get_summary(self) -> Dict[str, Any]:
        """
        Get complete violation summary.
        
        Returns:
            Dict with all aggregated counts
        """
        return {
            "session_id": self.session_id,
            "total_violations": self.total_violations,
            "by_type": dict(self.counts_by_type),
            "by_severity": dict(self.counts_by_severity),
            "delivered_reports": self.delivered_reports,
            "dropped_reports": self.dropped_reports,
            "suspicion_score": self.suspicion_score,
            "terminated": self.terminated,
            "ticks": {source: dict(counts) for source, counts in self.tick_outcomes.items()},
            "last_event_at": self.last_event_at.isoformat() if self.last_event_at else None
        }
    
    def reset(self):
        """Reset all counters"""
        self.events = []
        self.counts_by_type = {}
        self.counts_by_severity = {}
        self.delivered_reports = 0
        self.dropped_reports = 0
        self.suspicion_score = None
        self.terminated = False
        self.tick_outcomes = {}
        self.started_at = _utcnow()
        self.last_event_at = None
