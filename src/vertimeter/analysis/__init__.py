"""Pure analysis logic: phase detection, jump measurement, and results.

This module contains NO I/O operations and NO OpenCV imports.
All functions operate on typed dataclasses and return results.
"""

from vertimeter.analysis.countdown import Countdown, TransitionSlot
from vertimeter.analysis.measurer import JumpMeasurer, Measurement
from vertimeter.analysis.phase import PhaseDetector, detect_phases_batch
from vertimeter.analysis.result import build_result

__all__ = [
    "Countdown",
    "TransitionSlot",
    "JumpMeasurer",
    "Measurement",
    "PhaseDetector",
    "detect_phases_batch",
    "build_result",
]
