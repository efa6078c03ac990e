"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

# Seconds of countdown between stillness confirmation and flight tracking
COUNTDOWN_SECONDS = 6

# Standard gravity in cm/s^2
GRAVITY_CM_S2 = 980.665


class CameraSettings(BaseSettings):
    """Webcam capture settings."""

    model_config = SettingsConfigDict(env_prefix="CAMERA_")

    index: int = 0
    width: int = 1280
    height: int = 720
    mirror: bool = True


class PoseSettings(BaseSettings):
    """MediaPipe pose landmarker settings."""

    model_config = SettingsConfigDict(env_prefix="POSE_")

    model_variant: Literal["lite", "full", "heavy"] = "full"
    min_detection_confidence: float = 0.5
    min_presence_confidence: float = 0.5
    min_tracking_confidence: float = 0.5


class CalibrationSettings(BaseSettings):
    """Pixel-to-cm calibration settings."""

    model_config = SettingsConfigDict(env_prefix="CALIBRATION_")

    min_pixel_height: float = Field(default=50.0, gt=0)
    min_landmark_confidence: float = 0.5


class PhaseSettings(BaseSettings):
    """Phase detector thresholds.

    Pixel tolerances are in frame pixels, durations in seconds.
    """

    model_config = SettingsConfigDict(env_prefix="PHASE_")

    min_landmark_confidence: float = 0.5
    edge_margin_px: float = 4.0
    stationary_window_frames: int = Field(default=10, ge=2)
    stationary_tolerance_px: float = 8.0
    dwell_s: float = 1.0
    absence_debounce_s: float = 0.5
    countdown_seconds: int = Field(default=COUNTDOWN_SECONDS, ge=0)
    countdown_tick_s: float = Field(default=1.0, gt=0)
    watchdog_interval_s: float = Field(default=0.1, gt=0)


class MeasurementSettings(BaseSettings):
    """Jump measurer thresholds."""

    model_config = SettingsConfigDict(env_prefix="MEASURE_")

    takeoff_min_displacement_px: float = 15.0
    landing_tolerance_px: float = 10.0
    sustain_frames: int = Field(default=2, ge=1)
    flight_timeout_s: float = 5.0
    ballistic_tolerance: float = 0.3


class SessionSettings(BaseSettings):
    """Per-session user configuration."""

    model_config = SettingsConfigDict(env_prefix="SESSION_")

    calibration_height_cm: PositiveInt = 170


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = "INFO"
    file: str | None = None


class Settings(BaseSettings):
    """Root settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    camera: CameraSettings = Field(default_factory=CameraSettings)
    pose: PoseSettings = Field(default_factory=PoseSettings)
    calibration: CalibrationSettings = Field(default_factory=CalibrationSettings)
    phase: PhaseSettings = Field(default_factory=PhaseSettings)
    measurement: MeasurementSettings = Field(default_factory=MeasurementSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings instance."""
    return Settings()
