"""
Proctor Monitor Configuration Settings

All detection thresholds are tuning defaults, not hard rules. Every value
can be overridden through the environment or a .env file.
"""
from pydantic_settings import BaseSettings
from typing import Optional


class MonitorSettings(BaseSettings):
    """Configuration for the client-side monitoring engine."""
    
    # Reporting API Settings
    API_BASE_URL: str = "http://localhost:5000/api/proctoring"
    API_TOKEN: Optional[str] = None
    REPORT_PATH: str = "/violations"
    HEARTBEAT_PATH: str = "/heartbeat"
    REPORT_TIMEOUT: float = 5.0
    HEARTBEAT_INTERVAL: float = 30.0
    
    # Capture Settings
    CAMERA_INDEX: int = 0
    FRAME_WIDTH: int = 640
    FRAME_HEIGHT: int = 480
    AUDIO_SAMPLE_RATE: int = 44100
    AUDIO_CHUNK_SIZE: int = 1024
    FFT_SIZE: int = 256
    
    # Scheduling (seconds)
    FACE_LOOP_INTERVAL: float = 1 / 60  # display refresh cadence
    AUDIO_SAMPLE_INTERVAL: float = 1.0
    
    # Detection Settings
    GAZE_OFFSET_RATIO: float = 0.30  # fraction of frame width/height
    MUTED_LEVEL_THRESHOLD: float = 1.0  # mean analyser byte level
    MIN_DETECTION_CONFIDENCE: float = 0.5
    MIN_FRAME_SIZE: int = 32
    
    # Condition thresholds and throttle windows (seconds)
    NO_FACE_THRESHOLD: float = 1.0
    NO_FACE_THROTTLE: float = 5.0
    MULTIPLE_FACES_THRESHOLD: float = 0.0
    # Also the re-report interval while extra faces persist (no separate 3s setting)
    MULTIPLE_FACES_THROTTLE: float = 5.0
    GAZE_AWAY_THRESHOLD: float = 1.5
    GAZE_AWAY_THROTTLE: float = 3.0
    MIC_MUTED_THRESHOLD: float = 10.0
    MIC_MUTED_THROTTLE: float = 10.0
    
    LOG_LEVEL: str = "INFO"
    
    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = MonitorSettings()
