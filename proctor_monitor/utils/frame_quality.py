"""
Frame Readiness Checker - Validates a frame before running inference
"""

import numpy as np
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)


def check_frame_ready(frame: np.ndarray, min_size: int = 32) -> Dict[str, Any]:
    """
    Check whether a captured frame can be handed to the face model.
    
    Args:
        frame: BGR image from OpenCV (or None when the camera had nothing)
        min_size: Minimum width and height in pixels
        
    Returns:
        Dict with:
            - is_ready: bool
            - issues: List of readiness issues
            - dimensions: Tuple[int, int] as (width, height)
    """
    if frame is None or not hasattr(frame, "shape") or frame.size == 0:
        return {
            "is_ready": False,
            "issues": ["empty_frame"],
            "dimensions": (0, 0)
        }
    
    if frame.ndim < 2:
        return {
            "is_ready": False,
            "issues": ["not_an_image"],
            "dimensions": (0, 0)
        }
    
    height, width = frame.shape[:2]
    issues = []
    
    if width < min_size or height < min_size:
        issues.append("too_small")
    
    return {
        "is_ready": not issues,
        "issues": issues,
        "dimensions": (width, height)
    }
