"""Calibration of the pixel-to-cm scale from a standing body."""

from __future__ import annotations

from vertimeter.core.config import CalibrationSettings
from vertimeter.core.exceptions import DegeneratePixelHeightError, InsufficientKeypointsError
from vertimeter.core.logging import get_logger
from vertimeter.core.types import (
    FOOT_KEYPOINTS,
    HEAD_KEYPOINTS,
    SHOULDER_KEYPOINTS,
    KeypointFrame,
    ScaleFactor,
)

logger = get_logger(__name__)


def measure_pixel_height(frame: KeypointFrame, min_confidence: float = 0.5) -> float:
    """Vertical distance from the topmost keypoint to the lowest foot keypoint.

    Head landmarks and shoulders are both candidates for the top; the lowest
    ankle, heel or toe stands in for the ground contact point.

    Raises:
        InsufficientKeypointsError: If no top or no foot landmark is usable
    """
    top_points = [
        frame.confident(name, min_confidence) for name in HEAD_KEYPOINTS + SHOULDER_KEYPOINTS
    ]
    foot_points = [frame.confident(name, min_confidence) for name in FOOT_KEYPOINTS]

    top_candidates = [kp.y for kp in top_points if kp is not None]
    foot_candidates = [kp.y for kp in foot_points if kp is not None]

    if not top_candidates:
        raise InsufficientKeypointsError("No head or shoulder landmark visible")
    if not foot_candidates:
        raise InsufficientKeypointsError("No ankle or foot landmark visible")

    return max(foot_candidates) - min(top_candidates)


def compute_scale(
    frame: KeypointFrame,
    calibration_height_cm: int,
    settings: CalibrationSettings | None = None,
) -> ScaleFactor:
    """Pure function deriving cm-per-pixel from a standing, framed body.

    Args:
        frame: Keypoints of a stationary, fully framed body
        calibration_height_cm: User's real standing height
        settings: Calibration thresholds

    Returns:
        ScaleFactor with cm_per_px = calibration_height_cm / pixel_height

    Raises:
        ValueError: If calibration_height_cm is not positive
        InsufficientKeypointsError: If required landmarks are missing
        DegeneratePixelHeightError: If the pixel height is at or below the minimum
    """
    settings = settings or CalibrationSettings()

    if calibration_height_cm <= 0:
        raise ValueError(f"Calibration height must be positive, got {calibration_height_cm}")

    pixel_height = measure_pixel_height(frame, settings.min_landmark_confidence)

    if pixel_height <= settings.min_pixel_height:
        raise DegeneratePixelHeightError(
            f"Standing height of {pixel_height:.1f} px is below "
            f"{settings.min_pixel_height:.1f} px"
        )

    return ScaleFactor(
        cm_per_px=calibration_height_cm / pixel_height,
        pixel_height=pixel_height,
        calibration_height_cm=calibration_height_cm,
        timestamp=frame.timestamp,
    )


class ScaleCalibrator:
    """Derives the pixel-to-cm scale for a session.

    The calibrator never pushes its result anywhere; the phase detector
    decides when to call it and whether to accept the factor.
    """

    def __init__(self, settings: CalibrationSettings | None = None) -> None:
        """Initialize calibrator with settings.

        Args:
            settings: Calibration settings (uses defaults if None)
        """
        self.settings = settings or CalibrationSettings()
        self._current_scale: ScaleFactor | None = None

    @property
    def current_scale(self) -> ScaleFactor | None:
        """Most recently computed scale, if any."""
        return self._current_scale

    @property
    def is_calibrated(self) -> bool:
        """Check if a scale has been computed."""
        return self._current_scale is not None

    def compute_scale(self, frame: KeypointFrame, calibration_height_cm: int) -> ScaleFactor:
        """Compute the scale from a standing frame.

        Raises:
            CalibrationError: If the frame cannot be calibrated
        """
        try:
            scale = compute_scale(frame, calibration_height_cm, self.settings)
        except (InsufficientKeypointsError, DegeneratePixelHeightError) as e:
            logger.warning("Calibration rejected: %s", e)
            raise

        self._current_scale = scale
        logger.info(
            "Height calibration: %.4f cm/px (height: %d cm -> %.0f px)",
            scale.cm_per_px,
            calibration_height_cm,
            scale.pixel_height,
        )
        return scale

    def reset(self) -> None:
        """Forget the last computed scale."""
        self._current_scale = None
