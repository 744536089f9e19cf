"""Detector modules for the monitoring engine"""

from .face_detector import (
    BoundingBox,
    DetectionFrame,
    FaceModel,
    FaceGazeDetector,
    MediaPipeFaceModel,
    estimate_gaze
)
from .audio_detector import AudioSample, AudioLevelMonitor

__all__ = [
    "BoundingBox",
    "DetectionFrame",
    "FaceModel",
    "FaceGazeDetector",
    "MediaPipeFaceModel",
    "estimate_gaze",
    "AudioSample",
    "AudioLevelMonitor"
]
