"""
Tests for the Violation Reporter
"""
import httpx
import pytest

from proctor_monitor.config import MonitorSettings
from proctor_monitor.reporting import ReportResponse, ViolationReporter
from proctor_monitor.violations import Severity, ViolationEvent, ViolationType


@pytest.fixture
def event():
    return ViolationEvent(
        type=ViolationType.NO_FACE,
        description="No face detected for 1.0 seconds",
        severity=Severity.MEDIUM,
        duration=1.0
    )


class TestViolationPayload:
    """Wire format of POST /violations"""

    @pytest.mark.asyncio
    async def test_report_body_uses_camel_case(self, reporter, sink, event):
        outcome = await reporter.report(event)

        assert outcome.delivered is True
        request = sink["requests"][0]
        assert request["path"] == "/violations"
        assert request["body"] == {
            "examId": "EXAM_1",
            "studentId": "STU_1",
            "sessionId": "EXM_TEST",
            "eventType": "no_face",
            "description": "No face detected for 1.0 seconds",
            "severity": "medium",
            "timestamp": event.timestamp.isoformat()
        }

    def test_build_report(self, reporter, event):
        report = reporter.build_report(event)

        assert report.event_type == "no_face"
        assert report.severity == "medium"

    @pytest.mark.asyncio
    async def test_custom_report_path(self, sink, event):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(sink["handler"]),
            base_url="http://testserver"
        )
        reporter = ViolationReporter(
            base_url="http://testserver",
            exam_id="EXAM_1",
            student_id="STU_1",
            session_id="EXM_TEST",
            report_path="/proctoring/events",
            client=client
        )

        await reporter.report(event)

        assert sink["requests"][0]["path"] == "/proctoring/events"
        await client.aclose()


class TestResponseHandling:
    """How sink answers become ReportOutcomes"""

    @pytest.mark.asyncio
    async def test_suspicion_score_is_read(self, reporter, event):
        outcome = await reporter.report(event)

        assert outcome.suspicion_score == 10
        assert outcome.terminated is False
        assert outcome.error is None

    @pytest.mark.asyncio
    async def test_terminated_flag(self, reporter, sink, event):
        sink["response"] = (200, {"success": True, "suspicionScore": 85, "terminated": True})

        outcome = await reporter.report(event)

        assert outcome.delivered is True
        assert outcome.terminated is True
        assert outcome.suspicion_score == 85

    @pytest.mark.asyncio
    async def test_server_error_is_not_delivered(self, reporter, sink, event):
        sink["response"] = (500, {"error": "boom"})

        outcome = await reporter.report(event)

        assert outcome.delivered is False
        assert "500" in outcome.error

    @pytest.mark.asyncio
    async def test_connection_error_is_not_raised(self, reporter, sink, event):
        sink["response"] = httpx.ConnectError("connection refused")

        outcome = await reporter.report(event)

        assert outcome.delivered is False
        assert "connection refused" in outcome.error

    @pytest.mark.asyncio
    async def test_timeout(self, reporter, sink, event):
        sink["response"] = httpx.ReadTimeout("slow sink")

        outcome = await reporter.report(event)

        assert outcome.delivered is False
        assert outcome.error == "timeout"

    @pytest.mark.asyncio
    async def test_refused_by_server(self, reporter, sink, event):
        sink["response"] = (200, {"success": False})

        outcome = await reporter.report(event)

        assert outcome.delivered is False
        assert outcome.error == "refused"

    @pytest.mark.asyncio
    async def test_unreadable_body_still_delivered(self, event):
        def handler(request):
            return httpx.Response(200, text="OK")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://testserver")
        reporter = ViolationReporter("http://testserver", "EXAM_1", "STU_1", "EXM_TEST", client=client)

        outcome = await reporter.report(event)

        assert outcome.delivered is True
        assert outcome.suspicion_score is None
        await client.aclose()

    def test_response_ignores_unknown_fields(self):
        ack = ReportResponse.model_validate({"success": True, "violationId": 7})

        assert ack.success is True
        assert ack.suspicion_score is None


class TestHeartbeat:
    """POST /heartbeat"""

    @pytest.mark.asyncio
    async def test_heartbeat_body(self, reporter, sink):
        outcome = await reporter.heartbeat({"total_violations": 2})

        assert outcome.delivered is True
        request = sink["requests"][0]
        assert request["path"] == "/heartbeat"
        assert request["body"]["sessionId"] == "EXM_TEST"
        assert request["body"]["status"] == {"total_violations": 2}
        assert "timestamp" in request["body"]


class TestClientOwnership:
    """Client construction and closing"""

    @pytest.mark.asyncio
    async def test_bearer_token_header(self):
        reporter = ViolationReporter(
            base_url="http://testserver",
            exam_id="EXAM_1",
            student_id="STU_1",
            session_id="EXM_TEST",
            token="secret"
        )

        assert reporter.client.headers["Authorization"] == "Bearer secret"
        await reporter.aclose()
        assert reporter.client.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_is_left_open(self, reporter):
        await reporter.aclose()

        assert not reporter.client.is_closed
        await reporter.client.aclose()

    @pytest.mark.asyncio
    async def test_from_settings(self):
        settings = MonitorSettings(API_BASE_URL="http://platform.local/api", API_TOKEN="tok")
        reporter = ViolationReporter.from_settings(settings, "EXAM_1", "STU_1", "EXM_TEST")

        assert str(reporter.client.base_url).startswith("http://platform.local/api")
        assert reporter.client.headers["Authorization"] == "Bearer tok"
        assert reporter.report_path == settings.REPORT_PATH
        await reporter.aclose()
