"""Pytest fixtures for Vertimeter tests."""

from __future__ import annotations

import pytest

from vertimeter.core.config import (
    CalibrationSettings,
    MeasurementSettings,
    PhaseSettings,
    Settings,
)
from vertimeter.core.types import KeypointFrame, ScaleFactor

from synthetic import FrameFactory, create_frame


@pytest.fixture
def make_frame() -> FrameFactory:
    """Factory for synthetic keypoint frames."""
    return create_frame


@pytest.fixture
def standing_frame() -> KeypointFrame:
    """A single fully framed standing body."""
    return create_frame(0.0)


@pytest.fixture
def calibration_settings() -> CalibrationSettings:
    """Create calibration settings for testing."""
    return CalibrationSettings(min_pixel_height=50.0, min_landmark_confidence=0.5)


@pytest.fixture
def phase_settings() -> PhaseSettings:
    """Create phase settings for testing (1 s countdown)."""
    return PhaseSettings(
        min_landmark_confidence=0.5,
        edge_margin_px=4.0,
        stationary_window_frames=10,
        stationary_tolerance_px=8.0,
        dwell_s=1.0,
        absence_debounce_s=0.5,
        countdown_seconds=1,
        countdown_tick_s=0.01,
    )


@pytest.fixture
def measurement_settings() -> MeasurementSettings:
    """Create measurement settings for testing."""
    return MeasurementSettings(
        takeoff_min_displacement_px=15.0,
        landing_tolerance_px=10.0,
        sustain_frames=2,
        flight_timeout_s=5.0,
    )


@pytest.fixture
def scale() -> ScaleFactor:
    """180 cm over 600 px."""
    return ScaleFactor(cm_per_px=0.3, pixel_height=600.0, calibration_height_cm=180)


@pytest.fixture
def settings(
    calibration_settings: CalibrationSettings,
    phase_settings: PhaseSettings,
    measurement_settings: MeasurementSettings,
) -> Settings:
    """Full settings for session tests."""
    return Settings(
        calibration=calibration_settings,
        phase=phase_settings,
        measurement=measurement_settings,
    )
