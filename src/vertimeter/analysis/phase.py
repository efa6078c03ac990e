"""Jump phase detection state machine.

This module is pure logic with NO I/O and NO OpenCV imports. Every entry
point takes the new input, mutates the detector's own state and returns the
events produced by that step, in order.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from statistics import median

from vertimeter.analysis.countdown import TransitionSlot
from vertimeter.analysis.measurer import JumpMeasurer
from vertimeter.analysis.result import result_from_measurement
from vertimeter.core.config import MeasurementSettings, PhaseSettings
from vertimeter.core.exceptions import CalibrationError, MeasurementError
from vertimeter.core.logging import get_logger
from vertimeter.core.types import (
    MANDATORY_KEYPOINTS,
    CalibrationFailed,
    DetectorDropout,
    JumpAborted,
    JumpCompleted,
    JumpResult,
    KeypointFrame,
    PhaseChanged,
    PhaseState,
    ScaleCalibrated,
    ScaleFactor,
    SessionEvent,
    is_finite_number,
)
from vertimeter.vision.calibration import ScaleCalibrator

logger = get_logger(__name__)


@dataclass
class DetectorState:
    """Internal state for phase detection."""

    phase: PhaseState = PhaseState.ABSENT
    last_timestamp: float | None = None
    last_seen: float | None = None
    stationary_since: float | None = None
    scale: ScaleFactor | None = None
    countdown_slot: TransitionSlot | None = None
    measurer: JumpMeasurer | None = None
    result: JumpResult | None = None
    error: MeasurementError | None = None


class PhaseDetector:
    """State machine turning keypoint frames into jump phases.

    Transitions:
        ABSENT → PRESENT: a fully framed body is detected
        PRESENT → COUNTDOWN: reference keypoint stationary for the dwell time
            and the scale calibrates
        PRESENT/COUNTDOWN → ABSENT: no framed body for the absence debounce
        COUNTDOWN → FLIGHT: countdown timer expires (``expire_countdown``)
        FLIGHT → COMPLETE: takeoff then landing confirmed
        FLIGHT → ABSENT: body lost or flight timeout, attempt aborted
        any → ABSENT: ``reset``
    """

    def __init__(
        self,
        calibration_height_cm: int,
        settings: PhaseSettings | None = None,
        measurement_settings: MeasurementSettings | None = None,
        calibrator: ScaleCalibrator | None = None,
    ) -> None:
        """Initialize detector.

        Args:
            calibration_height_cm: User's real standing height in cm
            settings: Phase thresholds (uses defaults if None)
            measurement_settings: Jump measurer thresholds (uses defaults if None)
            calibrator: Scale calibrator (a default one if None)

        Raises:
            ValueError: If calibration_height_cm is not positive
        """
        if calibration_height_cm <= 0:
            raise ValueError(f"Calibration height must be positive, got {calibration_height_cm}")

        self.calibration_height_cm = calibration_height_cm
        self.settings = settings or PhaseSettings()
        self.measurement_settings = measurement_settings or MeasurementSettings()
        self.calibrator = calibrator or ScaleCalibrator()

        self._state = DetectorState()
        self._window: deque[float] = deque(maxlen=self.settings.stationary_window_frames)

    @property
    def phase(self) -> PhaseState:
        """Current phase."""
        return self._state.phase

    @property
    def scale(self) -> ScaleFactor | None:
        """Scale accepted at the last stillness confirmation."""
        return self._state.scale

    @property
    def countdown_slot(self) -> TransitionSlot | None:
        """Exit slot of the running countdown, if in COUNTDOWN."""
        return self._state.countdown_slot

    @property
    def measurer(self) -> JumpMeasurer | None:
        """Active jump measurer while in FLIGHT."""
        return self._state.measurer

    @property
    def result(self) -> JumpResult | None:
        """Result of the completed jump, if COMPLETE."""
        return self._state.result

    @property
    def last_error(self) -> MeasurementError | None:
        """Why the last flight was aborted, if it was."""
        return self._state.error

    def reset(self) -> list[SessionEvent]:
        """Return to ABSENT, discarding scale, trace, countdown and result."""
        previous = self._state.phase
        slot = self._state.countdown_slot

        # A timer still holding this slot must lose any later claim
        if slot is not None:
            slot.claim(PhaseState.ABSENT)

        timestamp = self._state.last_timestamp or 0.0
        self._state = DetectorState(last_timestamp=self._state.last_timestamp)
        self._window.clear()
        self.calibrator.reset()

        if previous == PhaseState.ABSENT:
            return []

        logger.info("Phase %s -> ABSENT (reset)", previous.name)
        return [PhaseChanged(previous, PhaseState.ABSENT, timestamp, "reset")]

    def update(self, frame: KeypointFrame | None) -> list[SessionEvent]:
        """Process a new keypoint frame.

        Frames with no body, missing landmarks or non-finite values count as
        absence for that frame. ``None`` or a malformed frame counts as an
        absent frame at the last seen timestamp. Frames not newer than the
        last one are dropped.

        Args:
            frame: Current frame's keypoints

        Returns:
            Events produced by this frame
        """
        last = self._state.last_timestamp

        if not isinstance(frame, KeypointFrame) or not is_finite_number(frame.timestamp):
            logger.debug("Treating malformed frame %r as absent", type(frame).__name__)
            frame = KeypointFrame.absent(last if last is not None else 0.0)
        elif last is not None and frame.timestamp <= last:
            logger.debug("Dropping stale frame at %.3f s", frame.timestamp)
            return []

        self._state.last_timestamp = frame.timestamp

        phase = self._state.phase
        measurer = self._state.measurer

        if phase == PhaseState.ABSENT:
            return self._handle_absent(frame)

        elif phase == PhaseState.PRESENT:
            return self._handle_present(frame)

        elif phase == PhaseState.COUNTDOWN:
            return self._handle_countdown(frame)

        elif phase == PhaseState.FLIGHT and measurer is not None:
            return self._handle_flight(frame, measurer)

        return []

    def expire_countdown(self, slot: TransitionSlot, now: float) -> list[SessionEvent]:
        """Countdown reached zero: start flight tracking.

        Has no effect unless ``slot`` belongs to the running countdown and
        this call wins it.

        Args:
            slot: Slot handed out when the countdown began
            now: Current time in seconds
        """
        scale = self._state.scale
        if self._state.phase != PhaseState.COUNTDOWN or slot is not self._state.countdown_slot:
            return []
        if scale is None or not slot.claim(PhaseState.FLIGHT):
            return []

        baseline = median(self._window)
        self._state.measurer = JumpMeasurer(
            scale=scale,
            baseline_y=baseline,
            started_at=now,
            settings=self.measurement_settings,
        )
        self._state.countdown_slot = None
        self._state.last_seen = now
        logger.debug("Flight baseline %.1f px", baseline)

        return [self._transition(PhaseState.FLIGHT, now, "countdown expired")]

    def check_timeouts(self, now: float) -> list[SessionEvent]:
        """Apply time-based transitions when frames stop arriving.

        Args:
            now: Current time in seconds, on the same clock as frame timestamps
        """
        phase = self._state.phase

        if phase in (PhaseState.PRESENT, PhaseState.COUNTDOWN):
            if self._absence_exceeded(now):
                return self._drop_out(now)

        elif phase == PhaseState.FLIGHT and self._state.measurer is not None:
            measurer = self._state.measurer
            if self._absence_exceeded(now):
                return self._abort_flight(now, measurer, "body lost", dropout=True)
            if measurer.timed_out(now):
                return self._abort_flight(now, measurer, "flight timeout")

        return []

    def is_framed(self, frame: KeypointFrame) -> bool:
        """Whether every mandatory landmark is confident and inside the frame."""
        margin = self.settings.edge_margin_px

        for name in MANDATORY_KEYPOINTS:
            keypoint = frame.confident(name, self.settings.min_landmark_confidence)
            if keypoint is None:
                return False

            # Unknown frame size skips the clipping test
            if frame.width > 0 and frame.height > 0:
                if not margin <= keypoint.x <= frame.width - margin:
                    return False
                if not margin <= keypoint.y <= frame.height - margin:
                    return False

        return True

    def is_stationary(self) -> bool:
        """Whether the reference keypoint window is full and within tolerance."""
        if len(self._window) < self.settings.stationary_window_frames:
            return False
        return max(self._window) - min(self._window) < self.settings.stationary_tolerance_px

    def _handle_absent(self, frame: KeypointFrame) -> list[SessionEvent]:
        """Handle ABSENT phase - wait for a framed body."""
        if not self.is_framed(frame):
            return []

        self._window.clear()
        self._state.stationary_since = None
        self._track(frame)

        return [self._transition(PhaseState.PRESENT, frame.timestamp, "body in frame")]

    def _handle_present(self, frame: KeypointFrame) -> list[SessionEvent]:
        """Handle PRESENT phase - wait for stillness, then calibrate."""
        if not self.is_framed(frame):
            if self._absence_exceeded(frame.timestamp):
                return self._drop_out(frame.timestamp)
            return []

        self._track(frame)

        if not self.is_stationary():
            self._state.stationary_since = None
            return []

        if self._state.stationary_since is None:
            self._state.stationary_since = frame.timestamp

        if frame.timestamp - self._state.stationary_since < self.settings.dwell_s:
            return []

        try:
            scale = self.calibrator.compute_scale(frame, self.calibration_height_cm)
        except CalibrationError as e:
            self._state.stationary_since = None
            self._window.clear()
            return [CalibrationFailed(e)]

        self._state.scale = scale
        self._state.countdown_slot = TransitionSlot()

        return [
            ScaleCalibrated(scale),
            self._transition(PhaseState.COUNTDOWN, frame.timestamp, "stationary"),
        ]

    def _handle_countdown(self, frame: KeypointFrame) -> list[SessionEvent]:
        """Handle COUNTDOWN phase - keep the baseline fresh, watch for body loss."""
        if self.is_framed(frame):
            self._track(frame)
            return []

        if self._absence_exceeded(frame.timestamp):
            return self._drop_out(frame.timestamp)
        return []

    def _handle_flight(self, frame: KeypointFrame, measurer: JumpMeasurer) -> list[SessionEvent]:
        """Handle FLIGHT phase - feed the measurer until landing or abort."""
        y = frame.reference_y(self.settings.min_landmark_confidence)

        if y is None:
            if self._absence_exceeded(frame.timestamp):
                return self._abort_flight(frame.timestamp, measurer, "body lost", dropout=True)
            return []

        self._state.last_seen = frame.timestamp

        if measurer.update(frame.timestamp, y):
            return self._complete_flight(frame.timestamp, measurer)

        if measurer.timed_out(frame.timestamp):
            return self._abort_flight(frame.timestamp, measurer, "flight timeout")

        return []

    def _track(self, frame: KeypointFrame) -> None:
        """Record a framed frame's reference position."""
        y = frame.reference_y(self.settings.min_landmark_confidence)
        if y is None:
            return
        self._window.append(y)
        self._state.last_seen = frame.timestamp

    def _absence_exceeded(self, now: float) -> bool:
        last_seen = self._state.last_seen
        return last_seen is not None and now - last_seen > self.settings.absence_debounce_s

    def _drop_out(self, now: float) -> list[SessionEvent]:
        """Leave PRESENT or COUNTDOWN because the body is gone."""
        slot = self._state.countdown_slot
        if slot is not None and not slot.claim(PhaseState.ABSENT):
            # The countdown timer already won this exit
            return []

        absent_for = now - (self._state.last_seen or now)
        self._state.countdown_slot = None
        self._state.stationary_since = None
        self._window.clear()

        return [
            DetectorDropout(now, absent_for),
            self._transition(PhaseState.ABSENT, now, "body left frame"),
        ]

    def _complete_flight(self, now: float, measurer: JumpMeasurer) -> list[SessionEvent]:
        measurement = measurer.finish()
        result = result_from_measurement(measurement, measurer.scale)

        self._state.result = result
        self._state.measurer = None

        logger.info(
            "Jump measured: %.1f cm, %.3f s (flight-time estimate %.1f cm)",
            result.jump_height_cm,
            result.jump_duration_s,
            measurement.ballistic_height_cm,
        )

        return [
            self._transition(PhaseState.COMPLETE, now, "landing detected"),
            JumpCompleted(result),
        ]

    def _abort_flight(
        self,
        now: float,
        measurer: JumpMeasurer,
        reason: str,
        dropout: bool = False,
    ) -> list[SessionEvent]:
        error = measurer.abort()
        absent_for = now - (self._state.last_seen or now)

        self._state.error = error
        self._state.measurer = None
        self._window.clear()

        logger.warning("Jump aborted (%s): %s", reason, error)

        events: list[SessionEvent] = []
        if dropout:
            events.append(DetectorDropout(now, absent_for))
        events.append(self._transition(PhaseState.ABSENT, now, reason))
        events.append(JumpAborted(error))
        return events

    def _transition(self, phase: PhaseState, timestamp: float, reason: str) -> PhaseChanged:
        previous = self._state.phase
        self._state.phase = phase
        logger.info("Phase %s -> %s (%s)", previous.name, phase.name, reason)
        return PhaseChanged(previous, phase, timestamp, reason)


def detect_phases_batch(
    frames: list[KeypointFrame],
    calibration_height_cm: int,
    settings: PhaseSettings | None = None,
    measurement_settings: MeasurementSettings | None = None,
    countdown_expires_at: float | None = None,
) -> tuple[PhaseDetector, list[SessionEvent]]:
    """Run a recorded frame sequence through a detector.

    Pure function for offline analysis. Without a live timer, the countdown
    expires at the first frame whose timestamp is at least
    ``countdown_seconds`` after COUNTDOWN began (or at
    ``countdown_expires_at`` when given).

    Returns:
        The detector in its final state and every event produced
    """
    detector = PhaseDetector(calibration_height_cm, settings, measurement_settings)
    events: list[SessionEvent] = []
    countdown_started: float | None = None

    for frame in frames:
        if detector.phase == PhaseState.COUNTDOWN and countdown_started is not None:
            expires_at = (
                countdown_expires_at
                if countdown_expires_at is not None
                else countdown_started + detector.settings.countdown_seconds
            )
            slot = detector.countdown_slot
            if slot is not None and frame.timestamp >= expires_at:
                events.extend(detector.expire_countdown(slot, frame.timestamp))

        step = detector.update(frame)
        events.extend(step)

        for event in step:
            if isinstance(event, PhaseChanged) and event.current == PhaseState.COUNTDOWN:
                countdown_started = event.timestamp

    return detector, events
