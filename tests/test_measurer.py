"""Tests for takeoff/landing detection and height measurement."""

from __future__ import annotations

import pytest
from synthetic import FRAME_DT, JUMP_DISPLACEMENTS

from vertimeter.analysis.measurer import FlightStage, JumpMeasurer, ballistic_height_cm
from vertimeter.core.config import MeasurementSettings
from vertimeter.core.exceptions import (
    NoLandingDetectedError,
    NoTakeoffDetectedError,
    TraceFrozenError,
)
from vertimeter.core.types import ScaleFactor

BASELINE = 360.0


def _feed(measurer: JumpMeasurer, displacements: list[float], start: float = 0.0) -> float:
    """Feed rises above baseline at FRAME_DT spacing; return the next timestamp."""
    t = start
    for displacement in displacements:
        measurer.update(t, BASELINE - displacement)
        t += FRAME_DT
    return t


@pytest.fixture
def measurer(scale: ScaleFactor, measurement_settings: MeasurementSettings) -> JumpMeasurer:
    """Measurer with a 360 px baseline starting at t=0."""
    return JumpMeasurer(scale, BASELINE, started_at=0.0, settings=measurement_settings)


class TestJumpMeasurer:
    """Tests for the JumpMeasurer class."""

    def test_initial_state_is_grounded(self, measurer: JumpMeasurer) -> None:
        """Measurer should start on the ground with an empty trace."""
        assert measurer.stage == FlightStage.GROUNDED
        assert not measurer.has_taken_off
        assert len(measurer.trace) == 0

    def test_measures_reference_jump(self, measurer: JumpMeasurer) -> None:
        """100 px peak at 0.3 cm/px over 0.5 s of flight should be 30 cm."""
        t = _feed(measurer, [0, 0, 0, 0])
        takeoff_at = t
        _feed(measurer, JUMP_DISPLACEMENTS, start=t)

        assert measurer.is_complete
        measurement = measurer.finish()

        assert measurement.takeoff_time == pytest.approx(takeoff_at)
        assert measurement.height_cm == pytest.approx(30.0)
        assert measurement.duration_s == pytest.approx(0.5)
        assert measurement.peak_displacement_px == pytest.approx(100.0)
        assert measurement.ballistic_height_cm == pytest.approx(980.665 * 0.25 / 8)

    def test_single_frame_spike_is_not_takeoff(self, measurer: JumpMeasurer) -> None:
        """One noisy frame above the threshold should be ignored."""
        _feed(measurer, [0, 0, 80, 0, 0, 0])

        assert not measurer.has_taken_off
        assert measurer.stage == FlightStage.GROUNDED

    def test_sustained_rise_is_takeoff(self, measurer: JumpMeasurer) -> None:
        """Two consecutive frames above the threshold confirm takeoff at the first."""
        _feed(measurer, [0, 0, 30, 30])

        assert measurer.has_taken_off
        assert measurer.takeoff_time == pytest.approx(2 * FRAME_DT)

    def test_countermovement_dip_is_not_takeoff(self, measurer: JumpMeasurer) -> None:
        """Crouching before the jump moves the hips down, not up."""
        _feed(measurer, [0, -40, -80, -60, -20])

        assert not measurer.has_taken_off

    def test_single_grounded_frame_in_flight_is_not_landing(self, measurer: JumpMeasurer) -> None:
        """A one-frame drop to the baseline mid-flight should not land."""
        _feed(measurer, [40, 60, 80, 0, 80, 60])

        assert measurer.has_taken_off
        assert not measurer.is_complete

    def test_landing_freezes_trace(self, measurer: JumpMeasurer) -> None:
        """The trace is read-only once landing is confirmed."""
        _feed(measurer, JUMP_DISPLACEMENTS)

        assert measurer.trace.is_frozen
        with pytest.raises(TraceFrozenError):
            measurer.trace.append(10.0, BASELINE)

    def test_updates_after_landing_are_ignored(self, measurer: JumpMeasurer) -> None:
        """Frames after landing should not extend the trace."""
        t = _feed(measurer, JUMP_DISPLACEMENTS)
        length = len(measurer.trace)

        assert measurer.update(t, BASELINE - 50)
        assert len(measurer.trace) == length

    def test_abort_before_takeoff(self, measurer: JumpMeasurer) -> None:
        """No confirmed takeoff should report NoTakeoffDetected."""
        _feed(measurer, [0, 0, 50, 0])

        assert isinstance(measurer.abort(), NoTakeoffDetectedError)

    def test_abort_after_takeoff(self, measurer: JumpMeasurer) -> None:
        """Takeoff without landing should report NoLandingDetected."""
        _feed(measurer, [40, 60, 80])

        assert isinstance(measurer.abort(), NoLandingDetectedError)

    def test_finish_without_landing_raises(self, measurer: JumpMeasurer) -> None:
        """finish() must not invent a result for an incomplete flight."""
        _feed(measurer, [40, 60, 80])

        with pytest.raises(NoLandingDetectedError):
            measurer.finish()

    def test_timeout(self, measurer: JumpMeasurer, measurement_settings: MeasurementSettings) -> None:
        """Flight tracking should time out after the configured budget."""
        assert not measurer.timed_out(measurement_settings.flight_timeout_s)
        assert measurer.timed_out(measurement_settings.flight_timeout_s + 0.01)

    def test_height_scales_with_calibration(self, measurement_settings: MeasurementSettings) -> None:
        """Doubling cm/px should double the height."""
        heights = []
        for cm_per_px in (0.2, 0.4):
            scale = ScaleFactor(cm_per_px=cm_per_px, pixel_height=500.0, calibration_height_cm=170)
            measurer = JumpMeasurer(scale, BASELINE, 0.0, measurement_settings)
            _feed(measurer, JUMP_DISPLACEMENTS)
            heights.append(measurer.finish().height_cm)

        assert heights[1] == pytest.approx(2 * heights[0])


def test_ballistic_height() -> None:
    """g t^2 / 8 for a half-second flight."""
    assert ballistic_height_cm(0.5) == pytest.approx(30.645, rel=1e-3)
    assert ballistic_height_cm(0.0) == 0.0
