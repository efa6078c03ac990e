"""Camera capture."""

from vertimeter.camera.stream import CameraFrame, CameraStream

__all__ = ["CameraFrame", "CameraStream"]
