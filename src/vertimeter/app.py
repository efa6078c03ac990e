"""Command-line demo: measure a vertical jump with the webcam."""

from __future__ import annotations

import argparse
import sys
from enum import Enum, auto
from pathlib import Path

import cv2
import numpy as np
from numpy.typing import NDArray

from vertimeter.analysis.result import export_result
from vertimeter.camera.stream import CameraStream
from vertimeter.core.config import get_settings
from vertimeter.core.exceptions import CameraError, PoseEstimationError, VertimeterError
from vertimeter.core.logging import get_logger, setup_logging
from vertimeter.core.types import (
    AnalysisState,
    CalibrationFailed,
    JumpAborted,
    JumpCompleted,
    Keypoint,
    KeypointFrame,
    SessionEvent,
)
from vertimeter.pipeline.session import JumpSession
from vertimeter.vision.pose import PoseEstimator

logger = get_logger(__name__)

WINDOW_NAME = "Vertimeter"

# Colors (BGR format)
COLOR_KEYPOINT = (255, 255, 255)
COLOR_REFERENCE = (0, 255, 255)
COLOR_TEXT = (255, 255, 255)
COLOR_TEXT_BG = (0, 0, 0)

STATE_PROMPTS = {
    AnalysisState.NOT_STARTED: "Press SPACE to start",
    AnalysisState.WAITING_FOR_BODY: "Step into the frame",
    AnalysisState.BODY_IN_FRAME: "Stand still",
    AnalysisState.COUNTDOWN: "Get ready",
    AnalysisState.JUMP: "Jump!",
    AnalysisState.DONE: "Press R to try again",
}


class KeyAction(Enum):
    """Actions triggered by keyboard input."""

    NONE = auto()
    QUIT = auto()
    START = auto()
    RESET = auto()


KEY_BINDINGS: dict[int, KeyAction] = {
    ord("q"): KeyAction.QUIT,
    ord("Q"): KeyAction.QUIT,
    27: KeyAction.QUIT,  # ESC
    ord(" "): KeyAction.START,
    ord("r"): KeyAction.RESET,
    ord("R"): KeyAction.RESET,
}


class StatusBoard:
    """Last user-facing message, updated from session events."""

    def __init__(self, save_path: Path | None = None) -> None:
        self.message = ""
        self.save_path = save_path

    def __call__(self, event: SessionEvent) -> None:
        if isinstance(event, JumpCompleted):
            result = event.result
            self.message = f"{result.jump_height_cm:.1f} cm in {result.jump_duration_s:.2f} s"
            logger.info("Result: %s", self.message)
            if self.save_path is not None:
                export_result(result, self.save_path)
                logger.info("Saved result to %s", self.save_path)

        elif isinstance(event, JumpAborted):
            self.message = "Jump not detected, try again"

        elif isinstance(event, CalibrationFailed):
            self.message = "Please step back so your whole body is visible"


def draw_overlay(
    image: NDArray[np.uint8],
    frame: KeypointFrame,
    session: JumpSession,
    message: str,
) -> NDArray[np.uint8]:
    """Draw keypoints, state and countdown onto a copy of the image."""
    output = image.copy()

    for keypoint in frame.keypoints.values():
        if not isinstance(keypoint, Keypoint) or not keypoint.is_usable(0.5):
            continue
        cv2.circle(output, (int(keypoint.x), int(keypoint.y)), 4, COLOR_KEYPOINT, -1)

    reference_y = frame.reference_y(0.5)
    if reference_y is not None:
        cv2.line(output, (0, int(reference_y)), (output.shape[1], int(reference_y)), COLOR_REFERENCE, 1)

    state = session.analysis_state
    lines = [f"{state.name}: {STATE_PROMPTS[state]}"]
    if state == AnalysisState.COUNTDOWN and session.countdown_remaining is not None:
        lines.append(f"{session.countdown_remaining}")
    if message:
        lines.append(message)

    for i, text in enumerate(lines):
        origin = (20, 40 + i * 40)
        cv2.putText(output, text, origin, cv2.FONT_HERSHEY_SIMPLEX, 1.0, COLOR_TEXT_BG, 4)
        cv2.putText(output, text, origin, cv2.FONT_HERSHEY_SIMPLEX, 1.0, COLOR_TEXT, 2)

    return output


def poll_key(wait_ms: int = 1) -> KeyAction:
    """Read a key press from the OpenCV window."""
    key = cv2.waitKey(wait_ms) & 0xFF
    return KEY_BINDINGS.get(key, KeyAction.NONE)


def run(calibration_height_cm: int | None, save_path: Path | None) -> int:
    """Run the webcam measurement loop.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    settings = get_settings()
    setup_logging(settings.logging.level, settings.logging.file)

    session = JumpSession(calibration_height_cm, settings)
    board = StatusBoard(save_path)
    session.subscribe(board)

    estimator = PoseEstimator(settings.pose)
    stream = CameraStream(settings.camera)

    try:
        estimator.initialize()
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)

        with stream:
            for camera_frame in stream.frames():
                try:
                    frame = estimator.estimate(camera_frame.image, camera_frame.timestamp)
                except PoseEstimationError as e:
                    logger.warning("Frame %d treated as absent: %s", camera_frame.index, e)
                    frame = KeypointFrame.absent(
                        camera_frame.timestamp, camera_frame.width, camera_frame.height
                    )

                session.on_frame(frame)

                cv2.imshow(WINDOW_NAME, draw_overlay(camera_frame.image, frame, session, board.message))

                action = poll_key()
                if action == KeyAction.QUIT:
                    logger.info("Quit requested")
                    break
                elif action == KeyAction.START:
                    board.message = ""
                    session.start()
                elif action == KeyAction.RESET:
                    board.message = ""
                    session.reset()

        return 0

    except CameraError as e:
        logger.error("Camera failed: %s", e)
        return 1

    except VertimeterError as e:
        logger.error("Measurement error: %s", e)
        return 2

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    finally:
        session.close()
        estimator.close()
        cv2.destroyAllWindows()
        logger.info("Vertimeter stopped")


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Vertimeter - vertical jump measurement from a webcam"
    )
    parser.add_argument(
        "--height",
        type=int,
        default=None,
        help="Your standing height in cm (defaults to SESSION_CALIBRATION_HEIGHT_CM)",
    )
    parser.add_argument("--camera", type=int, default=None, help="Camera device index")
    parser.add_argument("--save", type=Path, default=None, help="Write the result to this JSON file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.height is not None and args.height <= 0:
        parser.error("--height must be a positive number of centimeters")

    settings = get_settings()
    if args.debug:
        settings.logging.level = "DEBUG"
    if args.camera is not None:
        settings.camera.index = args.camera

    sys.exit(run(args.height, args.save))


if __name__ == "__main__":
    main()
