"""Takeoff/landing detection and jump height measurement.

This module is pure logic with NO I/O and NO OpenCV imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from vertimeter.core.config import GRAVITY_CM_S2, MeasurementSettings
from vertimeter.core.exceptions import (
    MeasurementError,
    NoLandingDetectedError,
    NoTakeoffDetectedError,
)
from vertimeter.core.logging import get_logger
from vertimeter.core.types import ScaleFactor, VerticalTrace

logger = get_logger(__name__)


class FlightStage(Enum):
    """Progress of a single flight measurement."""

    GROUNDED = auto()
    AIRBORNE = auto()
    LANDED = auto()


@dataclass(frozen=True)
class Measurement:
    """Outcome of a completed flight measurement."""

    height_cm: float
    duration_s: float
    ballistic_height_cm: float
    takeoff_time: float
    landing_time: float
    peak_displacement_px: float
    trace: VerticalTrace


def ballistic_height_cm(flight_time_s: float) -> float:
    """Jump height implied by flight time, h = g * t^2 / 8.

    Assumes symmetric rise and fall.
    """
    return GRAVITY_CM_S2 * flight_time_s**2 / 8


class JumpMeasurer:
    """Tracks the reference keypoint during FLIGHT and measures the jump.

    Takeoff is the first frame of a run of ``sustain_frames`` consecutive
    frames risen more than ``takeoff_min_displacement_px`` above the
    baseline. Landing is the first frame of a later run back within
    ``landing_tolerance_px`` of the baseline. Height is the peak rise
    between the two, converted with the scale frozen at construction.
    """

    def __init__(
        self,
        scale: ScaleFactor,
        baseline_y: float,
        started_at: float,
        settings: MeasurementSettings | None = None,
    ) -> None:
        """Initialize measurer.

        Args:
            scale: Scale factor, fixed for the whole flight
            baseline_y: Standing reference y in pixels
            started_at: Timestamp at which flight tracking began
            settings: Measurement thresholds (uses defaults if None)
        """
        self.settings = settings or MeasurementSettings()
        self.scale = scale
        self.baseline_y = baseline_y
        self.started_at = started_at

        self._trace = VerticalTrace()
        self._stage = FlightStage.GROUNDED
        self._run_start: float | None = None
        self._run_length = 0
        self._takeoff_time: float | None = None
        self._landing_time: float | None = None

    @property
    def trace(self) -> VerticalTrace:
        return self._trace

    @property
    def stage(self) -> FlightStage:
        return self._stage

    @property
    def has_taken_off(self) -> bool:
        return self._takeoff_time is not None

    @property
    def is_complete(self) -> bool:
        return self._stage == FlightStage.LANDED

    @property
    def takeoff_time(self) -> float | None:
        return self._takeoff_time

    @property
    def landing_time(self) -> float | None:
        return self._landing_time

    def timed_out(self, now: float) -> bool:
        """Whether flight tracking has exceeded its time budget."""
        return not self.is_complete and now - self.started_at > self.settings.flight_timeout_s

    def update(self, timestamp: float, y: float) -> bool:
        """Record a reference-keypoint sample.

        Args:
            timestamp: Frame timestamp in seconds
            y: Reference keypoint vertical pixel position

        Returns:
            True once landing has been confirmed
        """
        if self.is_complete:
            return True

        self._trace.append(timestamp, y)
        displacement = self.baseline_y - y

        if self._stage == FlightStage.GROUNDED:
            self._handle_grounded(timestamp, displacement)
        elif self._stage == FlightStage.AIRBORNE:
            self._handle_airborne(timestamp, displacement)

        return self.is_complete

    def _advance_run(self, timestamp: float, condition: bool) -> bool:
        """Count consecutive frames meeting ``condition``.

        Returns:
            True when the run is long enough to confirm
        """
        if not condition:
            self._run_start = None
            self._run_length = 0
            return False

        if self._run_length == 0:
            self._run_start = timestamp
        self._run_length += 1

        return self._run_length >= self.settings.sustain_frames

    def _handle_grounded(self, timestamp: float, displacement: float) -> None:
        """Handle GROUNDED stage - watch for takeoff."""
        rising = displacement > self.settings.takeoff_min_displacement_px
        if self._advance_run(timestamp, rising):
            self._takeoff_time = self._run_start
            self._stage = FlightStage.AIRBORNE
            self._run_start = None
            self._run_length = 0
            logger.debug("Takeoff confirmed at %.3f s", self._takeoff_time)

    def _handle_airborne(self, timestamp: float, displacement: float) -> None:
        """Handle AIRBORNE stage - watch for landing."""
        grounded = displacement <= self.settings.landing_tolerance_px
        if self._advance_run(timestamp, grounded):
            self._landing_time = self._run_start
            self._stage = FlightStage.LANDED
            self._trace.freeze()
            logger.debug("Landing confirmed at %.3f s", self._landing_time)

    def peak_displacement(self) -> float:
        """Largest rise above baseline between takeoff and landing, in pixels."""
        if self._takeoff_time is None:
            return 0.0

        end = self._landing_time if self._landing_time is not None else float("inf")
        rises = [
            self.baseline_y - y for t, y in self._trace if self._takeoff_time <= t <= end
        ]
        return max(rises, default=0.0)

    def abort(self) -> MeasurementError:
        """Stop tracking early and describe why no result exists.

        Returns:
            NoTakeoffDetectedError or NoLandingDetectedError
        """
        self._trace.freeze()

        if self._takeoff_time is None:
            return NoTakeoffDetectedError(
                f"No takeoff after {len(self._trace)} frames of flight tracking"
            )
        return NoLandingDetectedError(
            f"Takeoff at {self._takeoff_time:.3f} s but no landing confirmed"
        )

    def finish(self) -> Measurement:
        """Compute the jump measurement.

        Raises:
            NoTakeoffDetectedError: If takeoff was never confirmed
            NoLandingDetectedError: If landing was never confirmed
        """
        takeoff_time, landing_time = self._takeoff_time, self._landing_time
        if not self.is_complete or takeoff_time is None or landing_time is None:
            raise self.abort()

        peak_px = self.peak_displacement()
        duration = landing_time - takeoff_time
        height_cm = max(0.0, self.scale.px_to_cm(peak_px))
        ballistic_cm = ballistic_height_cm(duration)

        self._cross_check(height_cm, ballistic_cm)

        return Measurement(
            height_cm=height_cm,
            duration_s=duration,
            ballistic_height_cm=ballistic_cm,
            takeoff_time=takeoff_time,
            landing_time=landing_time,
            peak_displacement_px=peak_px,
            trace=self._trace,
        )

    def _cross_check(self, height_cm: float, ballistic_cm: float) -> None:
        """Log when geometric and flight-time estimates disagree."""
        if ballistic_cm <= 0:
            return

        deviation = abs(height_cm - ballistic_cm) / ballistic_cm
        if deviation > self.settings.ballistic_tolerance:
            logger.warning(
                "Geometric height %.1f cm deviates %.0f%% from flight-time estimate %.1f cm",
                height_cm,
                deviation * 100,
                ballistic_cm,
            )
