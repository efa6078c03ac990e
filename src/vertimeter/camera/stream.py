"""Webcam frame generator."""

from __future__ import annotations

import time
from collections.abc import Callable, Generator
from dataclasses import dataclass

import cv2
import numpy as np
from numpy.typing import NDArray

from vertimeter.core.config import CameraSettings
from vertimeter.core.exceptions import CameraError
from vertimeter.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class CameraFrame:
    """A captured camera image with its capture time.

    Attributes:
        image: BGR image array (OpenCV format)
        timestamp: Monotonic capture time in seconds
        index: Frame sequence number
    """

    image: NDArray[np.uint8]
    timestamp: float
    index: int

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


class CameraStream:
    """Generator-based video stream from an OpenCV capture device.

    Timestamps come from the same monotonic clock the jump session uses.
    """

    def __init__(
        self,
        settings: CameraSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize stream with camera settings.

        Args:
            settings: Camera settings (uses defaults if None)
            clock: Monotonic clock for frame timestamps
        """
        self.settings = settings or CameraSettings()
        self._clock = clock
        self._capture: cv2.VideoCapture | None = None
        self._frame_idx = 0

    @property
    def is_running(self) -> bool:
        """Check if the capture device is open."""
        return self._capture is not None and self._capture.isOpened()

    @property
    def frame_count(self) -> int:
        """Number of frames captured so far."""
        return self._frame_idx

    def start(self) -> None:
        """Open the capture device.

        Raises:
            CameraError: If the camera cannot be opened
        """
        capture = cv2.VideoCapture(self.settings.index)
        if not capture.isOpened():
            capture.release()
            raise CameraError(f"Cannot open camera {self.settings.index}")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.settings.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.settings.height)

        self._capture = capture
        self._frame_idx = 0
        logger.info("Camera %d opened", self.settings.index)

    def stop(self) -> None:
        """Release the capture device."""
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera stopped (captured %d frames)", self._frame_idx)

    def frames(self) -> Generator[CameraFrame, None, None]:
        """Generate frames until the device runs dry.

        Yields:
            CameraFrame objects with image data and capture time

        Raises:
            CameraError: If the capture device fails
        """
        if not self.is_running:
            self.start()

        while self._capture is not None:
            ok, image = self._capture.read()
            if not ok or image is None:
                logger.warning("Camera returned no frame, stopping stream")
                break

            if self.settings.mirror:
                image = cv2.flip(image, 1)

            frame = CameraFrame(
                image=np.asarray(image, dtype=np.uint8),
                timestamp=self._clock(),
                index=self._frame_idx,
            )
            self._frame_idx += 1

            yield frame

    def __iter__(self) -> Generator[CameraFrame, None, None]:
        """Allow direct iteration over stream."""
        return self.frames()

    def __enter__(self) -> CameraStream:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.stop()
