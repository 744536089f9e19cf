"""
Monitoring Engine - Schedules detection and reports violations

Runs three cooperative activities on one asyncio event loop:
- Face loop: one inference at a time, re-scheduled every frame interval
- Audio timer: one loudness sample per audio interval
- Heartbeat timer: periodic liveness report to the platform

Page visibility and focus changes arrive through a PageEventBus.
Blocking device reads and model inference run in a worker thread and are
awaited, so each tick is applied to the session as a single unit.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Set

from .capture import CaptureConstraints, CaptureError, CaptureManager, CaptureSession
from .config import MonitorSettings
from .detectors import AudioLevelMonitor, FaceGazeDetector, FaceModel
from .events import FOCUS_CHANGE, VISIBILITY_CHANGE, PageEventBus, SubscriptionGroup
from .reporting import ReportOutcome, ViolationReporter
from .results import Outcome
from .session import MonitoringSession
from .violations import ViolationEvent, acquisition_failure_event, default_rules

logger = logging.getLogger(__name__)


class MonitoringEngine:
    """
    Client-side proctoring engine for one exam attempt.

    Args:
        exam_id: Exam being taken
        student_id: Student being monitored
        session_id: Optional session ID (generated if omitted)
        settings: MonitorSettings (module defaults if omitted)
        capture_manager: Source of the camera + microphone
        face_model: Face-detection capability; without one the face
                    conditions never fire and everything else keeps working
        reporter: Reporting sink client (built from settings if omitted)
        event_bus: Page event source (a private bus if omitted)
        clock: Monotonic clock in seconds
        on_violation: Called with each ViolationEvent as soon as it is emitted
        on_report: Called with (event, ReportOutcome) once delivery finishes
        on_terminate: Called once with a reason when the platform ends the exam
    """

    def __init__(
        self,
        exam_id: str,
        student_id: str,
        session_id: Optional[str] = None,
        settings: Optional[MonitorSettings] = None,
        capture_manager: Optional[CaptureManager] = None,
        face_model: Optional[FaceModel] = None,
        reporter: Optional[ViolationReporter] = None,
        event_bus: Optional[PageEventBus] = None,
        clock: Callable[[], float] = time.monotonic,
        on_violation: Optional[Callable[[ViolationEvent], Any]] = None,
        on_report: Optional[Callable[[ViolationEvent, ReportOutcome], Any]] = None,
        on_terminate: Optional[Callable[[str], Any]] = None
    ):
        if settings is None:
            from .config import settings as default_settings
            settings = default_settings

        self.settings = settings
        self.session = MonitoringSession(
            exam_id=exam_id,
            student_id=student_id,
            session_id=session_id,
            rules=default_rules(settings)
        )
        self.capture_manager = capture_manager or CaptureManager()
        self.face_model = face_model
        self.face_detector = FaceGazeDetector(
            gaze_offset_ratio=settings.GAZE_OFFSET_RATIO,
            min_frame_size=settings.MIN_FRAME_SIZE
        )
        self.audio_monitor = AudioLevelMonitor(muted_threshold=settings.MUTED_LEVEL_THRESHOLD)

        self._owns_reporter = reporter is None
        self.reporter = reporter or ViolationReporter.from_settings(
            settings,
            exam_id=exam_id,
            student_id=student_id,
            session_id=self.session.id
        )
        self.event_bus = event_bus or PageEventBus()

        self.on_violation = on_violation
        self.on_report = on_report
        self.on_terminate = on_terminate

        self.capture: Optional[CaptureSession] = None
        self._clock = clock
        self._tasks: List[asyncio.Task] = []
        self._pending_reports: Set[asyncio.Task] = set()
        self._inflight: Set[asyncio.Task] = set()
        self._subscriptions = SubscriptionGroup()
        self._stop_event = asyncio.Event()
        self._running = False
        self._stopped = False
        self._terminate_notified = False
        self._final_summary: Optional[Dict[str, Any]] = None

    @property
    def is_running(self) -> bool:
        return self._running

    # ============== Lifecycle ==============

    async def start(self, autorun: bool = True):
        """
        Acquire capture devices and begin monitoring.

        Args:
            autorun: Schedule the face loop, audio timer and heartbeat.
                     With False the embedding application drives
                     face_tick() / audio_tick() itself.

        Raises:
            CaptureError: camera or microphone could not be acquired
        """
        if self._running:
            return
        if self._stopped:
            raise RuntimeError(f"Engine for session {self.session.id} was already stopped")

        constraints = CaptureConstraints.from_settings(self.settings)
        try:
            capture = await asyncio.to_thread(self.capture_manager.acquire, constraints)
        except CaptureError as e:
            logger.error(f"[ENGINE] Capture acquisition failed: {e}")
            if not self._stopped:
                event = acquisition_failure_event(e)
                self.session.record_event(event)
                self._dispatch(event)
            raise

        # stop() may have run while the permission prompt was open
        if self._stopped:
            logger.info(f"[ENGINE] Session {self.session.id} stopped during acquisition, releasing capture")
            self.capture_manager.release(capture)
            return

        self.capture = capture

        self._running = True

        self._subscriptions.add(
            self.event_bus.subscribe(VISIBILITY_CHANGE, self._on_visibility_change)
        )
        self._subscriptions.add(
            self.event_bus.subscribe(FOCUS_CHANGE, self._on_focus_change)
        )

        if autorun:
            if self.face_model is not None:
                self._tasks.append(asyncio.create_task(self._face_loop()))
            else:
                logger.warning("[ENGINE] No face model injected, face and gaze checks disabled")
            self._tasks.append(asyncio.create_task(self._audio_loop()))
            if self.settings.HEARTBEAT_INTERVAL > 0:
                self._tasks.append(asyncio.create_task(self._heartbeat_loop()))

        logger.info(f"[ENGINE] Monitoring started for session {self.session.id}")

    async def stop(self) -> Dict[str, Any]:
        """
        Tear everything down and return the session summary.

        Order: stop scheduling and unsubscribe, let in-flight ticks and
        reports finish, then release the capture devices. Safe to call
        repeatedly.
        """
        if self._stopped:
            return self._final_summary

        self._stopped = True
        self._running = False
        self._stop_event.set()
        self._subscriptions.cancel_all()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []

        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

        if self._pending_reports:
            await asyncio.gather(*list(self._pending_reports), return_exceptions=True)

        if self.capture is not None:
            self.capture_manager.release(self.capture)

        if self._owns_reporter:
            await self.reporter.aclose()

        self._final_summary = self.session.finalize()
        logger.info(f"[ENGINE] Monitoring stopped for session {self.session.id}")
        return self._final_summary

    # ============== Ticks ==============

    async def face_tick(self) -> Outcome:
        """Run one face/gaze detection tick"""
        if not self._running:
            return Outcome.skipped("not_running")

        outcome, now = await self._run_blocking(self._read_and_detect)

        # stop() may have run while inference was in flight
        if not self._running:
            return Outcome.skipped("stopped")

        for event in self.session.process_detection(outcome, now):
            self._dispatch(event)
        return outcome

    async def audio_tick(self) -> Outcome:
        """Run one audio level tick"""
        if not self._running:
            return Outcome.skipped("not_running")

        outcome = await self._run_blocking(self.audio_monitor.sample, self.capture.analyser)
        now = self._clock()

        if not self._running:
            return Outcome.skipped("stopped")

        for event in self.session.process_audio(outcome, now):
            self._dispatch(event)
        return outcome

    async def _run_blocking(self, func, *args):
        """Run device or model work in a thread; stop() waits for it before releasing"""
        work = asyncio.ensure_future(asyncio.to_thread(func, *args))
        self._inflight.add(work)
        try:
            return await work
        finally:
            self._inflight.discard(work)

    def _read_and_detect(self):
        try:
            frame = self.capture.read_frame()
        except Exception as e:
            logger.debug(f"[ENGINE] Frame read failed: {e}")
            return Outcome.failed(f"frame_read: {e}"), self._clock()

        now = self._clock()
        return self.face_detector.detect(frame, self.face_model), now

    # ============== Loops ==============

    async def _wait(self, seconds: float) -> bool:
        """Sleep for `seconds`; returns False as soon as the engine stops"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return self._running
        return False

    async def _face_loop(self):
        while self._running:
            await self.face_tick()
            if not await self._wait(self.settings.FACE_LOOP_INTERVAL):
                break

    async def _audio_loop(self):
        while await self._wait(self.settings.AUDIO_SAMPLE_INTERVAL):
            await self.audio_tick()

    async def _heartbeat_loop(self):
        while await self._wait(self.settings.HEARTBEAT_INTERVAL):
            outcome = await self.reporter.heartbeat(self.session.summary())
            if not outcome.delivered:
                logger.debug(f"[ENGINE] Heartbeat not delivered: {outcome.error}")

    # ============== Page Events ==============

    def _on_visibility_change(self, hidden: bool):
        if not self._running:
            return
        for event in self.session.process_visibility(hidden, self._clock()):
            self._dispatch(event)

    def _on_focus_change(self, focused: bool):
        if not self._running:
            return
        for event in self.session.process_focus(focused, self._clock()):
            self._dispatch(event)

    # ============== Dispatch ==============

    def _dispatch(self, event: ViolationEvent):
        """Surface an event locally and report it without blocking the caller"""
        self._notify_violation(event)
        task = asyncio.create_task(self._deliver(event))
        self._pending_reports.add(task)
        task.add_done_callback(self._pending_reports.discard)

    def _notify_violation(self, event: ViolationEvent):
        if self.on_violation is None:
            return
        try:
            self.on_violation(event)
        except Exception as e:
            logger.error(f"[ENGINE] on_violation callback failed: {e}")

    async def _deliver(self, event: ViolationEvent) -> ReportOutcome:
        outcome = await self.reporter.report(event)
        self.session.record_report(event, outcome)

        if self.on_report is not None:
            try:
                self.on_report(event, outcome)
            except Exception as e:
                logger.error(f"[ENGINE] on_report callback failed: {e}")

        if outcome.terminated and not self._terminate_notified:
            self._terminate_notified = True
            logger.warning(f"[ENGINE] Platform terminated session {self.session.id}")
            if self.on_terminate is not None:
                try:
                    self.on_terminate(f"Exam terminated after {event.type.value} violation")
                except Exception as e:
                    logger.error(f"[ENGINE] on_terminate callback failed: {e}")

        return outcome
