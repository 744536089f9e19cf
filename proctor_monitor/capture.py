"""
Capture Manager - Acquires and releases the camera + microphone

The video side uses OpenCV's VideoCapture, the audio side a PyAudio input
stream. Both back-ends are injectable so the rest of the engine can be
exercised without real devices.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================

class CaptureError(RuntimeError):
    """Camera or microphone could not be acquired"""


class PermissionDeniedError(CaptureError):
    """Access to a capture device was refused"""


class DeviceNotFoundError(CaptureError):
    """A capture device is missing or could not be opened"""


# ============================================================================
# Constraints
# ============================================================================

@dataclass
class CaptureConstraints:
    """Requested capture parameters"""
    camera_index: int = 0
    frame_width: int = 640
    frame_height: int = 480
    sample_rate: int = 44100
    chunk_size: int = 1024
    fft_size: int = 256

    @classmethod
    def from_settings(cls, settings) -> "CaptureConstraints":
        return cls(
            camera_index=settings.CAMERA_INDEX,
            frame_width=settings.FRAME_WIDTH,
            frame_height=settings.FRAME_HEIGHT,
            sample_rate=settings.AUDIO_SAMPLE_RATE,
            chunk_size=settings.AUDIO_CHUNK_SIZE,
            fft_size=settings.FFT_SIZE
        )


# ============================================================================
# Frequency Analyser
# ============================================================================

class FrequencyAnalyser:
    """
    Frequency-domain view over the microphone samples.

    Mirrors the byte output of a Web Audio AnalyserNode:
    - Blackman window over the most recent fft_size samples
    - Magnitude smoothed over time
    - Converted to dB and scaled from [min_db, max_db] onto 0-255
    """

    def __init__(
        self,
        fft_size: int = 256,
        smoothing: float = 0.8,
        min_db: float = -100.0,
        max_db: float = -30.0,
        source: Optional[Callable[[], np.ndarray]] = None
    ):
        """
        Args:
            fft_size: Window length, must be a power of two
            smoothing: Time constant between 0 and 1
            min_db: dB value mapped to byte 0
            max_db: dB value mapped to byte 255
            source: Optional callable returning newly captured samples
        """
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")

        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_db = min_db
        self.max_db = max_db
        self._source = source
        self._samples = deque([0.0] * fft_size, maxlen=fft_size)
        self._smoothed = np.zeros(fft_size // 2, dtype=np.float64)

        n = np.arange(fft_size)
        self._window = (
            0.42
            - 0.5 * np.cos(2 * np.pi * n / fft_size)
            + 0.08 * np.cos(4 * np.pi * n / fft_size)
        )

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def push(self, samples: np.ndarray):
        """Append float samples in [-1, 1]"""
        self._samples.extend(np.asarray(samples, dtype=np.float64).ravel().tolist())

    def get_byte_frequency_data(self) -> np.ndarray:
        """Return the current spectrum as uint8 values (frequency_bin_count long)"""
        if self._source is not None:
            self.push(self._source())

        block = np.fromiter(self._samples, dtype=np.float64, count=self.fft_size)
        spectrum = np.fft.rfft(block * self._window)[:self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size

        self._smoothed = self.smoothing * self._smoothed + (1 - self.smoothing) * magnitude

        with np.errstate(divide="ignore"):
            db = 20 * np.log10(self._smoothed)

        scaled = (db - self.min_db) * (255.0 / (self.max_db - self.min_db))
        return np.clip(np.floor(scaled), 0, 255).astype(np.uint8)


# ============================================================================
# Capture Session
# ============================================================================

class CaptureSession:
    """
    Live camera + microphone owned by one monitoring engine.

    Frames and audio are shared read-only with the detectors; only
    release() tears the devices down.
    """

    def __init__(
        self,
        video: Any,
        audio_backend: Any,
        audio_stream: Any,
        constraints: CaptureConstraints,
        on_release: Optional[Callable[["CaptureSession"], None]] = None
    ):
        self.video = video
        self.audio_backend = audio_backend
        self.audio_stream = audio_stream
        self.constraints = constraints
        self.analyser = FrequencyAnalyser(
            fft_size=constraints.fft_size,
            source=self.read_audio
        )
        self._on_release = on_release
        self._released = False

    @property
    def is_live(self) -> bool:
        return not self._released

    def read_frame(self) -> Optional[np.ndarray]:
        """Grab the latest BGR frame, or None if the camera has nothing ready"""
        if self._released:
            return None

        ok, frame = self.video.read()
        if not ok:
            return None
        return frame

    def read_audio(self) -> np.ndarray:
        """Drain pending microphone samples as float32 in [-1, 1]"""
        if self._released:
            return np.zeros(0, dtype=np.float32)

        available = self.audio_stream.get_read_available()
        if available <= 0:
            return np.zeros(0, dtype=np.float32)

        data = self.audio_stream.read(available, exception_on_overflow=False)
        return np.frombuffer(data, dtype=np.int16).astype(np.float32) / 32768.0

    def release(self):
        """Stop all tracks and free audio resources. Safe to call repeatedly."""
        if self._released:
            return
        self._released = True

        try:
            self.video.release()
        except Exception as e:
            logger.warning(f"[CAPTURE] Error releasing camera: {e}")

        try:
            self.audio_stream.stop_stream()
            self.audio_stream.close()
        except Exception as e:
            logger.warning(f"[CAPTURE] Error closing audio stream: {e}")

        try:
            self.audio_backend.terminate()
        except Exception as e:
            logger.warning(f"[CAPTURE] Error terminating audio backend: {e}")

        logger.info("[CAPTURE] Capture session released")

        if self._on_release is not None:
            self._on_release(self)


# ============================================================================
# Capture Manager
# ============================================================================

def _default_audio_backend():
    """Create a PyAudio instance (imported lazily)"""
    try:
        import pyaudio
    except ImportError as e:
        raise DeviceNotFoundError("PyAudio not installed. Run: pip install pyaudio") from e
    return pyaudio.PyAudio()


class CaptureManager:
    """
    Creates and destroys capture sessions.

    Args:
        video_factory: Callable taking a camera index and returning a
                       VideoCapture-like object (default cv2.VideoCapture)
        audio_factory: Callable returning a PyAudio-like object
    """

    def __init__(
        self,
        video_factory: Optional[Callable[[int], Any]] = None,
        audio_factory: Optional[Callable[[], Any]] = None
    ):
        self._video_factory = video_factory or cv2.VideoCapture
        self._audio_factory = audio_factory or _default_audio_backend
        self.active_sessions = 0

    def acquire(self, constraints: Optional[CaptureConstraints] = None) -> CaptureSession:
        """
        Open camera and microphone.

        Raises:
            PermissionDeniedError: access to a device was refused
            DeviceNotFoundError: a device is missing or failed to open
        """
        constraints = constraints or CaptureConstraints()

        video = self._open_camera(constraints)
        try:
            audio_backend, audio_stream = self._open_microphone(constraints)
        except CaptureError:
            video.release()
            raise

        session = CaptureSession(
            video=video,
            audio_backend=audio_backend,
            audio_stream=audio_stream,
            constraints=constraints,
            on_release=self._on_session_released
        )
        self.active_sessions += 1

        logger.info(
            f"[CAPTURE] Acquired camera {constraints.camera_index} "
            f"({constraints.frame_width}x{constraints.frame_height}) "
            f"and microphone @ {constraints.sample_rate}Hz"
        )
        return session

    def release(self, session: CaptureSession):
        """Release a session (idempotent)"""
        session.release()

    def _on_session_released(self, session: CaptureSession):
        self.active_sessions = max(0, self.active_sessions - 1)

    def _open_camera(self, constraints: CaptureConstraints):
        try:
            video = self._video_factory(constraints.camera_index)
        except PermissionError as e:
            raise PermissionDeniedError(f"Camera access denied: {e}") from e

        if not video.isOpened():
            video.release()
            raise DeviceNotFoundError(f"Could not open camera {constraints.camera_index}")

        video.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.frame_width)
        video.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.frame_height)
        return video

    def _open_microphone(self, constraints: CaptureConstraints):
        backend = self._audio_factory()

        try:
            stream = backend.open(
                format=backend.get_format_from_width(2),
                channels=1,
                rate=constraints.sample_rate,
                input=True,
                frames_per_buffer=constraints.chunk_size
            )
        except PermissionError as e:
            backend.terminate()
            raise PermissionDeniedError(f"Microphone access denied: {e}") from e
        except OSError as e:
            backend.terminate()
            raise DeviceNotFoundError(f"Could not open microphone: {e}") from e

        return backend, stream
