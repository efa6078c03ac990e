"""MediaPipe pose landmarker wrapper producing pixel-space keypoint frames."""

from __future__ import annotations

import urllib.request
from pathlib import Path
from typing import TYPE_CHECKING, Any

import cv2
import mediapipe as mp
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from vertimeter.core.config import PoseSettings
from vertimeter.core.exceptions import PoseEstimationError
from vertimeter.core.logging import get_logger
from vertimeter.core.types import Keypoint, KeypointFrame

if TYPE_CHECKING:
    import numpy as np
    from numpy.typing import NDArray

logger = get_logger(__name__)

MODEL_URL_TEMPLATE = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    "pose_landmarker_{variant}/float16/latest/pose_landmarker_{variant}.task"
)
MODEL_DIR = Path.home() / ".cache" / "vertimeter" / "models"


def _download_model(variant: str) -> Path:
    """Download the pose landmarker model if not present.

    Returns:
        Path to the model file

    Raises:
        PoseEstimationError: If download fails
    """
    model_path = MODEL_DIR / f"pose_landmarker_{variant}.task"
    if model_path.exists():
        return model_path

    logger.info("Downloading MediaPipe pose landmarker model (%s)...", variant)
    MODEL_DIR.mkdir(parents=True, exist_ok=True)

    try:
        urllib.request.urlretrieve(MODEL_URL_TEMPLATE.format(variant=variant), model_path)
        logger.info("Model downloaded to %s", model_path)
        return model_path
    except Exception as e:
        raise PoseEstimationError(f"Failed to download model: {e}") from e


def landmarks_to_frame(
    pose_landmarks: Any,
    timestamp: float,
    width: int,
    height: int,
) -> KeypointFrame:
    """Convert one pose's normalized landmarks into a pixel-space KeypointFrame.

    Args:
        pose_landmarks: Sequence of landmarks with x, y in [0, 1] and visibility
        timestamp: Capture time in seconds
        width: Frame width in pixels
        height: Frame height in pixels
    """
    keypoints: dict[int, Keypoint] = {}

    for idx, lm in enumerate(pose_landmarks):
        visibility = getattr(lm, "visibility", None)
        keypoints[idx] = Keypoint(
            x=float(lm.x) * width,
            y=float(lm.y) * height,
            confidence=float(visibility) if visibility is not None else 1.0,
        )

    return KeypointFrame(timestamp=timestamp, keypoints=keypoints, width=width, height=height)


class PoseEstimator:
    """Keypoint source backed by the MediaPipe Tasks pose landmarker.

    Converts MediaPipe results to KeypointFrame so MediaPipe objects never
    reach the analysis code.
    """

    def __init__(self, settings: PoseSettings | None = None) -> None:
        """Initialize pose estimator with settings.

        Args:
            settings: Pose estimation settings (uses defaults if None)
        """
        self.settings = settings or PoseSettings()
        self._landmarker: vision.PoseLandmarker | None = None
        self._last_timestamp_ms = -1

    @property
    def is_initialized(self) -> bool:
        """Check if the MediaPipe model is loaded."""
        return self._landmarker is not None

    def initialize(self) -> None:
        """Load the MediaPipe pose model.

        Raises:
            PoseEstimationError: If model fails to load
        """
        if self._landmarker is not None:
            return

        try:
            model_path = _download_model(self.settings.model_variant)

            options = vision.PoseLandmarkerOptions(
                base_options=python.BaseOptions(model_asset_path=str(model_path)),
                running_mode=vision.RunningMode.VIDEO,
                num_poses=1,
                min_pose_detection_confidence=self.settings.min_detection_confidence,
                min_pose_presence_confidence=self.settings.min_presence_confidence,
                min_tracking_confidence=self.settings.min_tracking_confidence,
            )

            self._landmarker = vision.PoseLandmarker.create_from_options(options)
            self._last_timestamp_ms = -1
            logger.info("MediaPipe PoseLandmarker initialized (%s)", self.settings.model_variant)

        except PoseEstimationError:
            raise
        except Exception as e:
            raise PoseEstimationError(f"Failed to initialize MediaPipe: {e}") from e

    def close(self) -> None:
        """Release MediaPipe resources."""
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None

    def estimate(self, image: NDArray[np.uint8], timestamp: float) -> KeypointFrame:
        """Detect keypoints in a BGR image.

        Args:
            image: BGR frame (OpenCV format)
            timestamp: Capture time in seconds

        Returns:
            KeypointFrame; empty when no body was found

        Raises:
            PoseEstimationError: If the landmarker fails
        """
        self.initialize()
        landmarker = self._landmarker
        if landmarker is None:
            raise PoseEstimationError("Pose landmarker is not initialized")

        height, width = image.shape[:2]

        # The video running mode rejects non-increasing timestamps
        timestamp_ms = max(int(timestamp * 1000), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms

        try:
            rgb_image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
            mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_image)
            results = landmarker.detect_for_video(mp_image, timestamp_ms)
        except Exception as e:
            logger.error("Pose estimation failed: %s", e)
            raise PoseEstimationError(f"Estimation failed: {e}") from e

        if not results.pose_landmarks:
            return KeypointFrame.absent(timestamp, width, height)

        return landmarks_to_frame(results.pose_landmarks[0], timestamp, width, height)

    def __enter__(self) -> PoseEstimator:
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()
