"""
Proctor Monitor - Client-side exam proctoring engine

Watches the webcam and microphone during an exam and reports integrity
violations to the exam platform:
- No face in frame
- Multiple faces in frame
- Gaze away from the screen
- Muted microphone
- Tab switches and window focus loss

Each violation is severity-tagged, de-duplicated per condition and
throttled before it is sent.
"""

from .capture import (
    CaptureConstraints,
    CaptureError,
    CaptureManager,
    DeviceNotFoundError,
    PermissionDeniedError
)
from .config import MonitorSettings
from .engine import MonitoringEngine
from .events import PageEventBus
from .session import MonitoringSession
from .violations import Severity, ViolationEvent, ViolationType

__all__ = [
    "CaptureConstraints",
    "CaptureError",
    "CaptureManager",
    "DeviceNotFoundError",
    "PermissionDeniedError",
    "MonitorSettings",
    "MonitoringEngine",
    "PageEventBus",
    "MonitoringSession",
    "Severity",
    "ViolationEvent",
    "ViolationType"
]
