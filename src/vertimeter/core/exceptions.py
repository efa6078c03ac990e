"""Custom exceptions for Vertimeter.

Every error here is recoverable at the session level: the phase detector
falls back to ABSENT and a new attempt can begin.
"""


class VertimeterError(Exception):
    """Base exception for all Vertimeter errors."""

    kind = "error"

    def __init__(self, message: str = "Vertimeter error") -> None:
        self.message = message
        super().__init__(self.message)


class CameraError(VertimeterError):
    """Error opening or reading the camera."""

    kind = "camera"

    def __init__(self, message: str = "Camera error") -> None:
        super().__init__(message)


class PoseEstimationError(VertimeterError):
    """Pose estimation failed or returned invalid data."""

    kind = "pose_estimation"

    def __init__(self, message: str = "Pose estimation failed") -> None:
        super().__init__(message)


class CalibrationError(VertimeterError):
    """Pixel-to-centimeter calibration failed.

    Surfaces to the user as "please recalibrate / step back" guidance.
    """

    kind = "calibration"

    def __init__(self, message: str = "Calibration failed") -> None:
        super().__init__(message)


class InsufficientKeypointsError(CalibrationError):
    """Required head/shoulder or foot landmarks are missing."""

    kind = "insufficient_keypoints"

    def __init__(self, message: str = "Not enough keypoints to calibrate") -> None:
        super().__init__(message)


class DegeneratePixelHeightError(CalibrationError):
    """Standing pixel height is too small to give a meaningful scale."""

    kind = "degenerate_pixel_height"

    def __init__(self, message: str = "Standing pixel height too small") -> None:
        super().__init__(message)


class MeasurementError(VertimeterError):
    """A jump attempt ended without a usable measurement.

    Surfaces to the user as "jump not detected, try again".
    """

    kind = "measurement"

    def __init__(self, message: str = "Jump measurement failed") -> None:
        super().__init__(message)


class NoTakeoffDetectedError(MeasurementError):
    """Flight tracking ended before a takeoff was confirmed."""

    kind = "no_takeoff_detected"

    def __init__(self, message: str = "No takeoff detected") -> None:
        super().__init__(message)


class NoLandingDetectedError(MeasurementError):
    """Takeoff was confirmed but landing never was."""

    kind = "no_landing_detected"

    def __init__(self, message: str = "No landing detected") -> None:
        super().__init__(message)


class TraceFrozenError(VertimeterError):
    """Attempted to append to a finalized vertical trace."""

    kind = "trace_frozen"

    def __init__(self, message: str = "Vertical trace is frozen") -> None:
        super().__init__(message)
