"""
Pytest Configuration for Proctor Monitor Tests

Fakes for the camera, microphone, face model, clock and reporting sink,
so no test touches real devices, MediaPipe or the network.
"""
import json
import os
import sys

import httpx
import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from proctor_monitor.config import MonitorSettings
from proctor_monitor.detectors import BoundingBox
from proctor_monitor.reporting import ViolationReporter


# ============================================================================
# Fakes
# ============================================================================

class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now = round(self.now + seconds, 6)


class ScriptedFaceModel:
    """
    Face model double returning scripted results.

    Each script entry is a list of BoundingBox or an Exception to raise.
    The last entry repeats once the script runs out.
    """

    def __init__(self, *script):
        self.script = list(script) or [[]]
        self.calls = 0

    def set(self, result):
        self.script = [result]

    def estimate_faces(self, frame):
        index = min(self.calls, len(self.script) - 1)
        self.calls += 1
        result = self.script[index]
        if isinstance(result, Exception):
            raise result
        return result


class FakeVideo:
    """cv2.VideoCapture stand-in"""

    def __init__(self, opened: bool = True, width: int = 640, height: int = 480):
        self.opened = opened
        self.frame = np.zeros((height, width, 3), dtype=np.uint8)
        self.props = {}
        self.release_count = 0

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        if self.release_count or self.frame is None:
            return False, None
        return True, self.frame

    def release(self):
        self.release_count += 1


class FakeAudioStream:
    """PyAudio input stream stand-in fed with int16 samples"""

    def __init__(self):
        self.pending = np.zeros(0, dtype=np.int16)
        self.stop_count = 0
        self.close_count = 0

    def feed(self, samples):
        self.pending = np.concatenate([self.pending, np.asarray(samples, dtype=np.int16)])

    def get_read_available(self):
        return len(self.pending)

    def read(self, num_frames, exception_on_overflow=True):
        chunk, self.pending = self.pending[:num_frames], self.pending[num_frames:]
        return chunk.tobytes()

    def stop_stream(self):
        self.stop_count += 1

    def close(self):
        self.close_count += 1


class FakeAudioBackend:
    """pyaudio.PyAudio stand-in"""

    def __init__(self, open_error: Exception = None):
        self.open_error = open_error
        self.stream = FakeAudioStream()
        self.open_kwargs = None
        self.terminate_count = 0

    def get_format_from_width(self, width):
        return 8

    def open(self, **kwargs):
        self.open_kwargs = kwargs
        if self.open_error is not None:
            raise self.open_error
        return self.stream

    def terminate(self):
        self.terminate_count += 1


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """Default thresholds with background timers slowed down"""
    return MonitorSettings(
        API_BASE_URL="http://testserver",
        HEARTBEAT_INTERVAL=0,
        FACE_LOOP_INTERVAL=0.01,
        AUDIO_SAMPLE_INTERVAL=0.01
    )


@pytest.fixture
def centered_face():
    """Face box centered in a 640x480 frame"""
    return BoundingBox(top_left=(270, 190), bottom_right=(370, 290))


@pytest.fixture
def fake_video():
    return FakeVideo()


@pytest.fixture
def fake_audio():
    return FakeAudioBackend()


@pytest.fixture
def capture_manager(fake_video, fake_audio):
    from proctor_monitor.capture import CaptureManager

    return CaptureManager(
        video_factory=lambda index: fake_video,
        audio_factory=lambda: fake_audio
    )


@pytest.fixture
def sink():
    """
    Records requests sent to the reporting sink.

    Set sink["response"] to a (status, body) tuple or an exception.
    """
    state = {"requests": [], "response": (200, {"success": True, "suspicionScore": 10})}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append({
            "path": request.url.path,
            "headers": dict(request.headers),
            "body": json.loads(request.content) if request.content else None
        })
        response = state["response"]
        if isinstance(response, Exception):
            raise response
        status, body = response
        return httpx.Response(status, json=body)

    state["handler"] = handler
    return state


@pytest.fixture
def reporter(sink):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(sink["handler"]),
        base_url="http://testserver"
    )
    return ViolationReporter(
        base_url="http://testserver",
        exam_id="EXAM_1",
        student_id="STU_1",
        session_id="EXM_TEST",
        client=client
    )
