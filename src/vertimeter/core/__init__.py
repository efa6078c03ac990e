"""Core infrastructure: config, types, exceptions, and logging."""

from vertimeter.core.config import Settings, get_settings
from vertimeter.core.exceptions import (
    CalibrationError,
    CameraError,
    DegeneratePixelHeightError,
    InsufficientKeypointsError,
    MeasurementError,
    NoLandingDetectedError,
    NoTakeoffDetectedError,
    PoseEstimationError,
    TraceFrozenError,
    VertimeterError,
)
from vertimeter.core.logging import get_logger, setup_logging
from vertimeter.core.types import (
    AnalysisState,
    JumpResult,
    Keypoint,
    KeypointFrame,
    KeypointName,
    PhaseState,
    ScaleFactor,
    VerticalTrace,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Types
    "Keypoint",
    "KeypointName",
    "KeypointFrame",
    "PhaseState",
    "AnalysisState",
    "ScaleFactor",
    "VerticalTrace",
    "JumpResult",
    # Exceptions
    "VertimeterError",
    "CameraError",
    "PoseEstimationError",
    "CalibrationError",
    "InsufficientKeypointsError",
    "DegeneratePixelHeightError",
    "MeasurementError",
    "NoTakeoffDetectedError",
    "NoLandingDetectedError",
    "TraceFrozenError",
    # Logging
    "setup_logging",
    "get_logger",
]
