"""Core data types and structures."""

from __future__ import annotations

import math
import numbers
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Union

from vertimeter.core.exceptions import TraceFrozenError

if TYPE_CHECKING:
    from vertimeter.core.exceptions import CalibrationError, MeasurementError


class KeypointName(Enum):
    """MediaPipe pose landmark indices (subset used for jump analysis)."""

    NOSE = 0
    LEFT_EYE = 2
    RIGHT_EYE = 5
    LEFT_EAR = 7
    RIGHT_EAR = 8
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


HEAD_KEYPOINTS = (
    KeypointName.NOSE,
    KeypointName.LEFT_EYE,
    KeypointName.RIGHT_EYE,
    KeypointName.LEFT_EAR,
    KeypointName.RIGHT_EAR,
)

SHOULDER_KEYPOINTS = (KeypointName.LEFT_SHOULDER, KeypointName.RIGHT_SHOULDER)

FOOT_KEYPOINTS = (
    KeypointName.LEFT_ANKLE,
    KeypointName.RIGHT_ANKLE,
    KeypointName.LEFT_HEEL,
    KeypointName.RIGHT_HEEL,
    KeypointName.LEFT_FOOT_INDEX,
    KeypointName.RIGHT_FOOT_INDEX,
)

# Landmarks that must all be visible for the body to count as framed
MANDATORY_KEYPOINTS = (
    KeypointName.LEFT_SHOULDER,
    KeypointName.RIGHT_SHOULDER,
    KeypointName.LEFT_HIP,
    KeypointName.RIGHT_HIP,
    KeypointName.LEFT_ANKLE,
    KeypointName.RIGHT_ANKLE,
)


def is_finite_number(value: object) -> bool:
    """Whether ``value`` is a real, finite number."""
    return isinstance(value, numbers.Real) and math.isfinite(value)


@dataclass(frozen=True, slots=True)
class Keypoint:
    """A single body landmark in frame-pixel coordinates.

    Attributes:
        x: Horizontal pixel position
        y: Vertical pixel position (grows toward the bottom of the frame)
        confidence: Detector visibility score [0, 1]
    """

    x: float
    y: float
    confidence: float = 1.0

    @property
    def is_finite(self) -> bool:
        """Whether both coordinates are real numbers."""
        return is_finite_number(self.x) and is_finite_number(self.y)

    def is_usable(self, min_confidence: float) -> bool:
        """Whether the coordinates and confidence are finite and confident enough."""
        return (
            self.is_finite
            and is_finite_number(self.confidence)
            and self.confidence >= min_confidence
        )


@dataclass(frozen=True, slots=True)
class KeypointFrame:
    """Keypoints detected in one camera frame.

    An empty keypoint mapping means no body was detected.

    Attributes:
        timestamp: Monotonic capture time in seconds
        keypoints: Mapping of landmark index to Keypoint
        width: Frame width in pixels
        height: Frame height in pixels
    """

    timestamp: float
    keypoints: Mapping[int, Keypoint] = field(default_factory=dict)
    width: int = 0
    height: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "keypoints", MappingProxyType(dict(self.keypoints)))

    @classmethod
    def absent(cls, timestamp: float, width: int = 0, height: int = 0) -> KeypointFrame:
        """Build a frame signalling that no body was detected."""
        return cls(timestamp=timestamp, keypoints={}, width=width, height=height)

    @property
    def is_present(self) -> bool:
        """Whether the detector reported a body in this frame."""
        return len(self.keypoints) > 0

    def get(self, name: KeypointName) -> Keypoint | None:
        """Get a specific keypoint by name."""
        return self.keypoints.get(name.value)

    def confident(self, name: KeypointName, min_confidence: float) -> Keypoint | None:
        """Get a keypoint only if it is well formed, finite and confident enough."""
        keypoint = self.keypoints.get(name.value)
        if not isinstance(keypoint, Keypoint) or not keypoint.is_usable(min_confidence):
            return None
        return keypoint

    def reference_y(self, min_confidence: float = 0.0) -> float | None:
        """Vertical pixel position of the hip midpoint."""
        left_hip = self.confident(KeypointName.LEFT_HIP, min_confidence)
        right_hip = self.confident(KeypointName.RIGHT_HIP, min_confidence)

        if left_hip is None or right_hip is None:
            return None

        return (left_hip.y + right_hip.y) / 2


class PhaseState(Enum):
    """States of the jump phase detector."""

    ABSENT = auto()
    PRESENT = auto()
    COUNTDOWN = auto()
    FLIGHT = auto()
    COMPLETE = auto()


class AnalysisState(Enum):
    """Application-level analysis state exposed to the UI."""

    NOT_STARTED = auto()
    WAITING_FOR_BODY = auto()
    BODY_IN_FRAME = auto()
    COUNTDOWN = auto()
    JUMP = auto()
    DONE = auto()

    @classmethod
    def from_phase(cls, phase: PhaseState) -> AnalysisState:
        """Map a detector phase onto the UI-facing state."""
        return _PHASE_TO_ANALYSIS[phase]


_PHASE_TO_ANALYSIS = {
    PhaseState.ABSENT: AnalysisState.WAITING_FOR_BODY,
    PhaseState.PRESENT: AnalysisState.BODY_IN_FRAME,
    PhaseState.COUNTDOWN: AnalysisState.COUNTDOWN,
    PhaseState.FLIGHT: AnalysisState.JUMP,
    PhaseState.COMPLETE: AnalysisState.DONE,
}


@dataclass(frozen=True, slots=True)
class ScaleFactor:
    """Centimeters-per-pixel conversion derived from a standing body.

    Attributes:
        cm_per_px: Centimeters represented by one pixel
        pixel_height: Standing body height in pixels
        calibration_height_cm: User-entered real height
        timestamp: Timestamp of the frame used for calibration
    """

    cm_per_px: float
    pixel_height: float
    calibration_height_cm: int
    timestamp: float = 0.0

    def px_to_cm(self, pixels: float) -> float:
        """Convert pixel distance to centimeters."""
        return pixels * self.cm_per_px

    def cm_to_px(self, cm: float) -> float:
        """Convert centimeters to pixel distance."""
        return cm / self.cm_per_px


class VerticalTrace:
    """Append-only series of (timestamp, y_px) samples recorded in flight."""

    __slots__ = ("_samples", "_frozen")

    def __init__(self) -> None:
        self._samples: list[tuple[float, float]] = []
        self._frozen = False

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[tuple[float, float]]:
        return iter(self._samples)

    def __repr__(self) -> str:
        return f"VerticalTrace(samples={len(self._samples)}, frozen={self._frozen})"

    @property
    def is_frozen(self) -> bool:
        """Whether the trace has been finalized."""
        return self._frozen

    @property
    def samples(self) -> tuple[tuple[float, float], ...]:
        """Snapshot of the recorded samples."""
        return tuple(self._samples)

    def append(self, timestamp: float, y: float) -> None:
        """Record a sample.

        Raises:
            TraceFrozenError: If the trace was already finalized
            ValueError: If the timestamp does not advance past the last sample
        """
        if self._frozen:
            raise TraceFrozenError()
        if self._samples and timestamp <= self._samples[-1][0]:
            raise ValueError(
                f"Trace timestamp {timestamp} does not follow {self._samples[-1][0]}"
            )
        self._samples.append((timestamp, y))

    def freeze(self) -> None:
        """Finalize the trace; further appends raise."""
        self._frozen = True

    def as_mapping(self) -> Mapping[float, float]:
        """Read-only timestamp -> y mapping."""
        return MappingProxyType(dict(self._samples))


@dataclass(frozen=True, slots=True)
class JumpResult:
    """A measured jump.

    Attributes:
        jump_height_cm: Geometric jump height (authoritative)
        jump_duration_s: Takeoff-to-landing time in seconds
        vertical_trace: Read-only mapping of timestamp to reference y (px)
        calibration_height_cm: Height used to calibrate the scale
        ballistic_height_cm: Flight-time estimate g*t^2/8 (diagnostic)
        takeoff_time: Timestamp of takeoff
        landing_time: Timestamp of landing
        peak_displacement_px: Maximum rise above baseline in pixels
        cm_per_px: Scale used for the measurement
    """

    jump_height_cm: float
    jump_duration_s: float
    vertical_trace: Mapping[float, float]
    calibration_height_cm: int
    ballistic_height_cm: float | None = None
    takeoff_time: float | None = None
    landing_time: float | None = None
    peak_displacement_px: float | None = None
    cm_per_px: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict form for JSON export."""
        return {
            "jump_height_cm": self.jump_height_cm,
            "jump_duration_s": self.jump_duration_s,
            "calibration_height_cm": self.calibration_height_cm,
            "ballistic_height_cm": self.ballistic_height_cm,
            "takeoff_time": self.takeoff_time,
            "landing_time": self.landing_time,
            "peak_displacement_px": self.peak_displacement_px,
            "cm_per_px": self.cm_per_px,
            "vertical_trace": [[t, y] for t, y in self.vertical_trace.items()],
        }


# Events emitted by the phase detector and session


@dataclass(frozen=True, slots=True)
class PhaseChanged:
    """A committed phase transition."""

    previous: PhaseState
    current: PhaseState
    timestamp: float
    reason: str = ""


@dataclass(frozen=True, slots=True)
class AnalysisStateChanged:
    """The UI-facing analysis state changed."""

    previous: AnalysisState
    current: AnalysisState


@dataclass(frozen=True, slots=True)
class CountdownTick:
    """Whole seconds left before flight tracking starts."""

    remaining: int


@dataclass(frozen=True, slots=True)
class ScaleCalibrated:
    """A new scale factor was accepted."""

    scale: ScaleFactor


@dataclass(frozen=True, slots=True)
class CalibrationFailed:
    """Stillness was confirmed but the scale could not be computed."""

    error: CalibrationError


@dataclass(frozen=True, slots=True)
class DetectorDropout:
    """No usable body for longer than the absence debounce window."""

    timestamp: float
    absent_for: float


@dataclass(frozen=True, slots=True)
class JumpCompleted:
    """A jump was measured successfully."""

    result: JumpResult


@dataclass(frozen=True, slots=True)
class JumpAborted:
    """Flight tracking ended without a result."""

    error: MeasurementError


SessionEvent = Union[
    PhaseChanged,
    AnalysisStateChanged,
    CountdownTick,
    ScaleCalibrated,
    CalibrationFailed,
    DetectorDropout,
    JumpCompleted,
    JumpAborted,
]
