"""
Run the monitoring engine against the local webcam and microphone.

Usage:
    python -m proctor_monitor --exam-id EXAM_1 --student-id STU_42
    python -m proctor_monitor --exam-id EXAM_1 --student-id STU_42 --duration 120
"""

import argparse
import asyncio
import json
import logging
import sys

from .capture import CaptureError
from .config import MonitorSettings
from .detectors import MediaPipeFaceModel
from .engine import MonitoringEngine
from .utils.logging import Colors, setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Client-side exam proctoring monitor")
    parser.add_argument("--exam-id", required=True, help="Exam being taken")
    parser.add_argument("--student-id", required=True, help="Student being monitored")
    parser.add_argument("--session-id", help="Session ID (generated if omitted)")
    parser.add_argument("--api-url", help="Override API_BASE_URL")
    parser.add_argument(
        "--duration",
        type=float,
        default=0,
        help="Stop after this many seconds (0 = until Ctrl+C)"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override LOG_LEVEL"
    )
    return parser


def print_violation(event):
    color = Colors.RED if event.severity.value in ("high", "critical") else Colors.YELLOW
    print(f"{color}⚠ [{event.severity.value.upper()}] {event.description}{Colors.RESET}")


async def run(args) -> int:
    overrides = {}
    if args.api_url:
        overrides["API_BASE_URL"] = args.api_url
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level
    settings = MonitorSettings(**overrides)

    setup_logger("proctor_monitor", getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    face_model = MediaPipeFaceModel(min_confidence=settings.MIN_DETECTION_CONFIDENCE)
    engine = MonitoringEngine(
        exam_id=args.exam_id,
        student_id=args.student_id,
        session_id=args.session_id,
        settings=settings,
        face_model=face_model,
        on_violation=print_violation,
        on_terminate=lambda reason: print(f"{Colors.BG_RED}{reason}{Colors.RESET}")
    )

    exit_code = 0
    try:
        await engine.start()
        if args.duration > 0:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    except CaptureError as e:
        print(f"{Colors.RED}Camera and microphone access is required: {e}{Colors.RESET}")
        exit_code = 1
    finally:
        summary = await engine.stop()
        face_model.close()
        print(json.dumps(summary, indent=2, default=str))

    return exit_code


def main():
    args = build_parser().parse_args()
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
