"""Computer vision boundary: scale calibration and pose estimation.

The MediaPipe-backed PoseEstimator lives in vertimeter.vision.pose and is
imported explicitly so the analysis code stays importable without it.
"""

from vertimeter.vision.calibration import ScaleCalibrator, compute_scale

__all__ = ["ScaleCalibrator", "compute_scale"]
