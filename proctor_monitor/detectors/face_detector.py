"""
Face/Gaze Detector - Counts faces and estimates gaze from face position

The neural inference itself is delegated to an injected FaceModel. The
production model wraps MediaPipe face detection; tests use a scripted
double.
"""

import cv2
import numpy as np
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from ..results import Outcome
from ..utils.frame_quality import check_frame_ready

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class BoundingBox:
    """Face box in pixel coordinates"""
    top_left: Tuple[float, float]
    bottom_right: Tuple[float, float]

    @property
    def center(self) -> Tuple[float, float]:
        return (
            (self.top_left[0] + self.bottom_right[0]) / 2,
            (self.top_left[1] + self.bottom_right[1]) / 2
        )

    @property
    def width(self) -> float:
        return self.bottom_right[0] - self.top_left[0]

    @property
    def height(self) -> float:
        return self.bottom_right[1] - self.top_left[1]


@dataclass(frozen=True)
class DetectionFrame:
    """Result of one inference tick"""
    face_count: int
    primary_face: Optional[BoundingBox]
    frame_width: int
    frame_height: int
    gaze_offset: Optional[Tuple[float, float]] = None
    gaze_away: Optional[bool] = None

    @property
    def no_face(self) -> bool:
        return self.face_count == 0

    @property
    def multiple_faces(self) -> bool:
        return self.face_count > 1


class FaceModel(Protocol):
    """Face-detection capability injected into the detector"""

    def estimate_faces(self, frame: np.ndarray) -> List[BoundingBox]:
        ...


# ============================================================================
# Gaze Classification
# ============================================================================

def estimate_gaze(
    face: BoundingBox,
    frame_width: int,
    frame_height: int,
    offset_ratio: float = 0.30
) -> Tuple[Tuple[float, float], bool]:
    """
    Classify gaze from how far the face sits from the frame center.

    A face whose center is more than offset_ratio of the frame width
    (horizontally) or height (vertically) away from the frame center is
    looking away. An offset of exactly offset_ratio is still on screen.

    Returns:
        ((offset_x, offset_y), gaze_away)
    """
    face_x, face_y = face.center
    offset_x = abs(face_x - frame_width / 2)
    offset_y = abs(face_y - frame_height / 2)

    gaze_away = offset_x > frame_width * offset_ratio or offset_y > frame_height * offset_ratio
    return (offset_x, offset_y), gaze_away


# ============================================================================
# Detector
# ============================================================================

class FaceGazeDetector:
    """
    Turns a video frame into a DetectionFrame.

    Failures of the injected model never propagate: they are returned as
    a failed Outcome so the monitoring loop keeps running.
    """

    def __init__(self, gaze_offset_ratio: float = 0.30, min_frame_size: int = 32):
        """
        Args:
            gaze_offset_ratio: Fraction of frame width/height beyond which
                               the face counts as looking away
            min_frame_size: Frames smaller than this are treated as not ready
        """
        self.gaze_offset_ratio = gaze_offset_ratio
        self.min_frame_size = min_frame_size

    def detect(self, frame: np.ndarray, face_model: Optional[FaceModel]) -> Outcome:
        """
        Run one detection tick.

        Args:
            frame: BGR image from the capture session
            face_model: Injected face-detection capability (may be None)

        Returns:
            Outcome holding a DetectionFrame, or skipped/failed
        """
        if face_model is None:
            return Outcome.skipped("no_face_model")

        readiness = check_frame_ready(frame, self.min_frame_size)
        if not readiness["is_ready"]:
            return Outcome.skipped(",".join(readiness["issues"]))

        width, height = readiness["dimensions"]

        try:
            faces = list(face_model.estimate_faces(frame))
        except Exception as e:
            logger.debug(f"[FACE] Inference failed, skipping tick: {e}")
            return Outcome.failed(str(e))

        primary = faces[0] if faces else None
        gaze_offset = None
        gaze_away = None

        if len(faces) == 1:
            gaze_offset, gaze_away = estimate_gaze(
                primary, width, height, self.gaze_offset_ratio
            )

        return Outcome.success(DetectionFrame(
            face_count=len(faces),
            primary_face=primary,
            frame_width=width,
            frame_height=height,
            gaze_offset=gaze_offset,
            gaze_away=gaze_away
        ))


# ============================================================================
# MediaPipe Face Model
# ============================================================================

class MediaPipeFaceModel:
    """
    Production FaceModel backed by MediaPipe Face Detection.

    MediaPipe is imported and initialised on first use.
    """

    def __init__(self, min_confidence: float = 0.5, model_selection: int = 0):
        """
        Args:
            min_confidence: Minimum detection confidence
            model_selection: 0 for faces within ~2m, 1 for up to ~5m
        """
        self.min_confidence = min_confidence
        self.model_selection = model_selection
        self.detector = None
        self._initialized = False

    def _ensure_initialized(self):
        """Lazy initialize MediaPipe face detection"""
        if self._initialized:
            return

        import mediapipe as mp
        self.detector = mp.solutions.face_detection.FaceDetection(
            model_selection=self.model_selection,
            min_detection_confidence=self.min_confidence
        )
        self._initialized = True
        logger.info("MediaPipe Face Detection initialized successfully")

    def estimate_faces(self, frame: np.ndarray) -> List[BoundingBox]:
        """Detect faces and return pixel bounding boxes"""
        self._ensure_initialized()

        height, width = frame.shape[:2]
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        results = self.detector.process(rgb_frame)

        if not results.detections:
            return []

        boxes = []
        for detection in results.detections:
            rel = detection.location_data.relative_bounding_box
            x1 = max(0, int(rel.xmin * width))
            y1 = max(0, int(rel.ymin * height))
            x2 = min(width, int((rel.xmin + rel.width) * width))
            y2 = min(height, int((rel.ymin + rel.height) * height))
            boxes.append(BoundingBox(top_left=(x1, y1), bottom_right=(x2, y2)))

        return boxes

    def close(self):
        """Release MediaPipe resources"""
        if self.detector is not None:
            self.detector.close()
            self.detector = None
        self._initialized = False
