"""
Violation Reporter - Sends violations and heartbeats to the exam platform API

Delivery is best-effort and at-most-once: a failed report is logged and
dropped, never retried or queued.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


# ============== Wire Models ==============

class ViolationReport(BaseModel):
    """Body of POST /violations"""
    exam_id: str = Field(..., alias="examId")
    student_id: str = Field(..., alias="studentId")
    session_id: str = Field(..., alias="sessionId")
    event_type: str = Field(..., alias="eventType")
    description: str
    severity: str
    timestamp: str

    model_config = {"populate_by_name": True}


class HeartbeatReport(BaseModel):
    """Body of POST /heartbeat"""
    exam_id: str = Field(..., alias="examId")
    student_id: str = Field(..., alias="studentId")
    session_id: str = Field(..., alias="sessionId")
    timestamp: str
    status: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class ReportResponse(BaseModel):
    """Acknowledgement from the platform (all fields optional)"""
    success: Optional[bool] = None
    suspicion_score: Optional[float] = Field(None, alias="suspicionScore")
    terminated: bool = False

    model_config = {"populate_by_name": True, "extra": "ignore"}


@dataclass(frozen=True)
class ReportOutcome:
    """Result of delivering one report"""
    delivered: bool
    suspicion_score: Optional[float] = None
    terminated: bool = False
    error: Optional[str] = None


# ============== Reporter ==============

class ViolationReporter:
    """
    HTTP client for the reporting sink.

    Args:
        base_url: Platform API base URL
        exam_id: Exam being taken
        student_id: Student taking it
        session_id: Monitoring session ID
        token: Optional bearer token
        report_path: Path for violation reports
        heartbeat_path: Path for heartbeats
        timeout: Request timeout in seconds
        client: Optional pre-built httpx.AsyncClient (not closed by aclose)
    """

    def __init__(
        self,
        base_url: str,
        exam_id: str,
        student_id: str,
        session_id: str,
        token: Optional[str] = None,
        report_path: str = "/violations",
        heartbeat_path: str = "/heartbeat",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.exam_id = exam_id
        self.student_id = student_id
        self.session_id = session_id
        self.report_path = report_path
        self.heartbeat_path = heartbeat_path

        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout
        )

    @classmethod
    def from_settings(
        cls,
        settings,
        exam_id: str,
        student_id: str,
        session_id: str,
        client: Optional[httpx.AsyncClient] = None
    ) -> "ViolationReporter":
        return cls(
            base_url=settings.API_BASE_URL,
            exam_id=exam_id,
            student_id=student_id,
            session_id=session_id,
            token=settings.API_TOKEN,
            report_path=settings.REPORT_PATH,
            heartbeat_path=settings.HEARTBEAT_PATH,
            timeout=settings.REPORT_TIMEOUT,
            client=client
        )

    def build_report(self, event) -> ViolationReport:
        return ViolationReport(
            exam_id=self.exam_id,
            student_id=self.student_id,
            session_id=self.session_id,
            event_type=event.type.value,
            description=event.description,
            severity=event.severity.value,
            timestamp=event.timestamp.isoformat()
        )

    async def report(self, event) -> ReportOutcome:
        """
        Deliver one ViolationEvent.

        Never raises: transport errors, non-2xx responses and refusals are
        returned as an undelivered ReportOutcome.
        """
        body = self.build_report(event).model_dump(by_alias=True)
        return await self._post(self.report_path, body, event.type.value)

    async def heartbeat(self, status: Dict[str, Any]) -> ReportOutcome:
        """Send a liveness heartbeat with the current session status"""
        body = HeartbeatReport(
            exam_id=self.exam_id,
            student_id=self.student_id,
            session_id=self.session_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            status=status
        ).model_dump(by_alias=True)
        return await self._post(self.heartbeat_path, body, "heartbeat")

    async def _post(self, path: str, body: Dict[str, Any], label: str) -> ReportOutcome:
        try:
            response = await self.client.post(path, json=body)
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning(f"[REPORT] {label} timed out")
            return ReportOutcome(delivered=False, error="timeout")
        except httpx.HTTPError as e:
            logger.warning(f"[REPORT] {label} failed: {e}")
            return ReportOutcome(delivered=False, error=str(e))

        try:
            ack = ReportResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.debug(f"[REPORT] {label} acknowledged without readable body: {e}")
            return ReportOutcome(delivered=True)

        if ack.success is False:
            logger.warning(f"[REPORT] {label} refused by server")
            return ReportOutcome(delivered=False, error="refused")

        return ReportOutcome(
            delivered=True,
            suspicion_score=ack.suspicion_score,
            terminated=ack.terminated
        )

    async def aclose(self):
        """Close the underlying HTTP client if this reporter created it"""
        if self._owns_client:
            await self.client.aclose()
