"""Tests for the scale calibrator."""

from __future__ import annotations

import math

import pytest
from synthetic import STANDING_PIXEL_HEIGHT, FrameFactory, replace_keypoint

from vertimeter.core.config import CalibrationSettings
from vertimeter.core.exceptions import (
    CalibrationError,
    DegeneratePixelHeightError,
    InsufficientKeypointsError,
)
from vertimeter.core.types import Keypoint, KeypointFrame, KeypointName, ScaleFactor
from vertimeter.vision.calibration import ScaleCalibrator, compute_scale, measure_pixel_height


def _column_frame(top_y: float, bottom_y: float) -> KeypointFrame:
    """Frame with only a nose and two ankles."""
    return KeypointFrame(
        timestamp=0.0,
        keypoints={
            KeypointName.NOSE.value: Keypoint(640.0, top_y, 0.9),
            KeypointName.LEFT_ANKLE.value: Keypoint(620.0, bottom_y, 0.9),
            KeypointName.RIGHT_ANKLE.value: Keypoint(660.0, bottom_y, 0.9),
        },
        width=1280,
        height=720,
    )


class TestComputeScale:
    """Tests for the compute_scale function."""

    def test_standing_body_gives_height_over_pixels(
        self,
        standing_frame: KeypointFrame,
        calibration_settings: CalibrationSettings,
    ) -> None:
        """180 cm over 600 px should be 0.3 cm/px."""
        scale = compute_scale(standing_frame, 180, calibration_settings)

        assert scale.pixel_height == pytest.approx(STANDING_PIXEL_HEIGHT)
        assert scale.cm_per_px == pytest.approx(0.3)
        assert scale.calibration_height_cm == 180

    @pytest.mark.parametrize(
        ("height_cm", "pixel_height"),
        [(150, 500.0), (175, 51.0), (210, 712.5)],
    )
    def test_ratio_for_various_heights(
        self,
        height_cm: int,
        pixel_height: float,
        calibration_settings: CalibrationSettings,
    ) -> None:
        """Scale should be H / P for any valid pair."""
        frame = _column_frame(top_y=5.0, bottom_y=5.0 + pixel_height)

        scale = compute_scale(frame, height_cm, calibration_settings)

        assert scale.cm_per_px == pytest.approx(height_cm / pixel_height)

    def test_pixel_height_at_threshold_is_degenerate(
        self, calibration_settings: CalibrationSettings
    ) -> None:
        """A pixel height equal to the minimum should be rejected."""
        frame = _column_frame(top_y=100.0, bottom_y=150.0)

        with pytest.raises(DegeneratePixelHeightError):
            compute_scale(frame, 180, calibration_settings)

    def test_collapsed_body_is_degenerate(self, calibration_settings: CalibrationSettings) -> None:
        """Feet above the head should never give a scale."""
        frame = _column_frame(top_y=400.0, bottom_y=300.0)

        with pytest.raises(DegeneratePixelHeightError):
            compute_scale(frame, 180, calibration_settings)

    def test_missing_feet_raises(
        self,
        make_frame: FrameFactory,
        calibration_settings: CalibrationSettings,
    ) -> None:
        """No ankle should mean insufficient keypoints."""
        frame = make_frame(0.0, omit=(KeypointName.LEFT_ANKLE, KeypointName.RIGHT_ANKLE))

        with pytest.raises(InsufficientKeypointsError):
            compute_scale(frame, 180, calibration_settings)

    def test_missing_top_raises(
        self,
        make_frame: FrameFactory,
        calibration_settings: CalibrationSettings,
    ) -> None:
        """No head or shoulder landmark should mean insufficient keypoints."""
        frame = make_frame(
            0.0,
            omit=(KeypointName.NOSE, KeypointName.LEFT_SHOULDER, KeypointName.RIGHT_SHOULDER),
        )

        with pytest.raises(InsufficientKeypointsError):
            compute_scale(frame, 180, calibration_settings)

    def test_low_confidence_keypoints_are_ignored(
        self,
        make_frame: FrameFactory,
        calibration_settings: CalibrationSettings,
    ) -> None:
        """Keypoints below the confidence threshold should not count."""
        frame = make_frame(0.0, confidence=0.2)

        with pytest.raises(InsufficientKeypointsError):
            compute_scale(frame, 180, calibration_settings)

    def test_empty_frame_raises_calibration_error(
        self, calibration_settings: CalibrationSettings
    ) -> None:
        """An absent frame should fail as a CalibrationError."""
        with pytest.raises(CalibrationError):
            compute_scale(KeypointFrame.absent(0.0), 180, calibration_settings)

    def test_non_positive_height_rejected(self, standing_frame: KeypointFrame) -> None:
        """Calibration height must be positive."""
        with pytest.raises(ValueError):
            compute_scale(standing_frame, 0)

    def test_shoulders_used_when_head_missing(self, make_frame: FrameFactory) -> None:
        """Without head landmarks the shoulders mark the top."""
        frame = make_frame(0.0, omit=(KeypointName.NOSE,))

        assert measure_pixel_height(frame) == pytest.approx(550.0)

    @pytest.mark.parametrize("confidence", [math.nan, None])
    def test_malformed_head_confidence_is_ignored(
        self, make_frame: FrameFactory, confidence: object
    ) -> None:
        """A nose with an unusable confidence should fall back to the shoulders."""
        frame = replace_keypoint(
            make_frame(0.0),
            KeypointName.NOSE,
            Keypoint(640.0, 60.0, confidence),  # type: ignore[arg-type]
        )

        assert measure_pixel_height(frame) == pytest.approx(550.0)


class TestScaleCalibrator:
    """Tests for the ScaleCalibrator class."""

    def test_initial_state_not_calibrated(self, calibration_settings: CalibrationSettings) -> None:
        """Calibrator should start without a scale."""
        calibrator = ScaleCalibrator(calibration_settings)

        assert not calibrator.is_calibrated
        assert calibrator.current_scale is None

    def test_remembers_last_scale(
        self,
        standing_frame: KeypointFrame,
        calibration_settings: CalibrationSettings,
    ) -> None:
        """A successful calibration should be retained until reset."""
        calibrator = ScaleCalibrator(calibration_settings)

        scale = calibrator.compute_scale(standing_frame, 180)

        assert calibrator.is_calibrated
        assert calibrator.current_scale == scale

        calibrator.reset()
        assert calibrator.current_scale is None

    def test_failure_keeps_previous_state(self, calibration_settings: CalibrationSettings) -> None:
        """A rejected frame should not produce a scale."""
        calibrator = ScaleCalibrator(calibration_settings)

        with pytest.raises(InsufficientKeypointsError):
            calibrator.compute_scale(KeypointFrame.absent(0.0), 180)

        assert not calibrator.is_calibrated


class TestScaleFactor:
    """Tests for ScaleFactor conversions."""

    def test_px_to_cm_conversion(self, scale: ScaleFactor) -> None:
        """Should convert pixels to centimeters."""
        assert scale.px_to_cm(100.0) == pytest.approx(30.0)

    def test_cm_to_px_conversion(self, scale: ScaleFactor) -> None:
        """Should convert centimeters to pixels."""
        assert scale.cm_to_px(30.0) == pytest.approx(100.0)
