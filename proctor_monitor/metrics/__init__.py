"""Session metrics"""

from .aggregator import ViolationLog

__all__ = ["ViolationLog"]
