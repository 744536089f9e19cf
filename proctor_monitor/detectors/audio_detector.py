"""
Audio Level Monitor - Detects a muted or silent microphone

Samples the analyser's frequency-domain byte buffer about once per second
and reduces it to a single loudness value. Brief silence is normal during
an exam, so muting only becomes a violation after the state machine has
seen it persist.
"""

import logging
import numpy as np
from typing import Dict, Any, Optional
from dataclasses import dataclass

from ..results import Outcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioSample:
    """Loudness estimate for one audio tick"""
    average_level: float
    is_muted: bool


class AudioLevelMonitor:
    """
    Derives a scalar loudness from a frequency analyser.

    The analyser must expose get_byte_frequency_data() returning values
    in the 0-255 range.
    """

    DEFAULT_MUTED_THRESHOLD = 1.0

    def __init__(self, muted_threshold: float = DEFAULT_MUTED_THRESHOLD):
        """
        Args:
            muted_threshold: Mean byte level below which the mic counts as muted
        """
        self.muted_threshold = muted_threshold

        self._total_samples = 0
        self._muted_samples = 0
        self._last_level: Optional[float] = None

    def sample(self, analyser) -> Outcome:
        """
        Take one loudness sample.

        Args:
            analyser: FrequencyAnalyser (or any object with get_byte_frequency_data)

        Returns:
            Outcome holding an AudioSample, or skipped/failed
        """
        if analyser is None:
            return Outcome.skipped("no_analyser")

        try:
            data = np.asarray(analyser.get_byte_frequency_data(), dtype=np.float64)
        except Exception as e:
            logger.warning(f"[AUDIO] Error sampling analyser: {e}")
            return Outcome.failed(str(e))

        if data.size == 0:
            return Outcome.skipped("empty_buffer")

        average = float(np.mean(data))
        is_muted = average < self.muted_threshold

        self._total_samples += 1
        self._last_level = average
        if is_muted:
            self._muted_samples += 1

        return Outcome.success(AudioSample(average_level=average, is_muted=is_muted))

    def get_metrics(self) -> Dict[str, Any]:
        """Get accumulated audio metrics"""
        return {
            "total_samples": self._total_samples,
            "muted_samples": self._muted_samples,
            "muted_ratio": self._muted_samples / max(1, self._total_samples),
            "last_level": self._last_level,
            "muted_threshold": self.muted_threshold
        }

    def reset(self):
        """Reset sampling counters"""
        self._total_samples = 0
        self._muted_samples = 0
        self._last_level = None
