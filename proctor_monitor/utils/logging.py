"""
Proctoring Logger - Logs monitoring events and terminal output
"""

import logging
import sys
from datetime import datetime
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


# ============================================================================
# ANSI Colors for Terminal
# ============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    BG_RED = "\033[41m"


class ColoredFormatter(logging.Formatter):
    """Colored formatter for terminal output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DIM + Colors.WHITE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BG_RED + Colors.WHITE,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        level_str = f"{color}{record.levelname:8}{Colors.RESET}"
        time_str = f"{Colors.DIM}{timestamp}{Colors.RESET}"
        name_str = f"{Colors.CYAN}{record.name}{Colors.RESET}"

        return f"{time_str} {level_str} [{name_str}] {record.getMessage()}"


def setup_logger(name: str = "proctor_monitor", level: int = logging.INFO) -> logging.Logger:
    """Configure colored logger for terminal output."""
    configured = logging.getLogger(name)
    configured.setLevel(level)

    # Remove existing handlers
    configured.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    handler.setLevel(level)
    configured.addHandler(handler)

    return configured


# ============================================================================
# Proctoring Events
# ============================================================================

def log_proctor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event.

    Args:
        session_id: Monitoring session ID
        event_type: Type of event (session_start, violation, report_failed, ...)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_start(session_id: str, exam_id: str, student_id: str):
    """Log session start event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_start",
        details={
            "exam_id": exam_id,
            "student_id": student_id
        }
    )


def log_session_end(session_id: str, total_violations: int, dropped_reports: int):
    """Log session end event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_end",
        details={
            "violations": total_violations,
            "dropped_reports": dropped_reports
        }
    )


def log_violation_emitted(session_id: str, violation_type: str, severity: str, duration: float):
    """Log when the state machine emits a violation"""
    log_proctor_event(
        session_id=session_id,
        event_type="violation",
        details={
            "type": violation_type,
            "severity": severity,
            "duration": round(duration, 2)
        },
        level="warning"
    )


def log_report_failed(session_id: str, violation_type: str, error: str):
    """Log a violation report that could not be delivered"""
    log_proctor_event(
        session_id=session_id,
        event_type="report_failed",
        details={
            "type": violation_type,
            "error": error
        },
        level="warning"
    )
