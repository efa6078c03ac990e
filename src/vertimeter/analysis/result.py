"""Jump result packaging and export.

This module is pure logic apart from the JSON export helpers.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType

from vertimeter.analysis.measurer import Measurement
from vertimeter.core.types import JumpResult, ScaleFactor, VerticalTrace


def _freeze_trace(
    trace: VerticalTrace | Mapping[float, float] | Iterable[tuple[float, float]],
) -> Mapping[float, float]:
    if isinstance(trace, VerticalTrace):
        trace.freeze()
        return trace.as_mapping()
    if isinstance(trace, Mapping):
        return MappingProxyType({float(t): float(y) for t, y in trace.items()})
    return MappingProxyType({float(t): float(y) for t, y in trace})


def build_result(
    jump_height_cm: float,
    jump_duration_s: float,
    trace: VerticalTrace | Mapping[float, float] | Iterable[tuple[float, float]],
    calibration_height_cm: int,
    *,
    ballistic_height_cm: float | None = None,
    takeoff_time: float | None = None,
    landing_time: float | None = None,
    peak_displacement_px: float | None = None,
    cm_per_px: float | None = None,
) -> JumpResult:
    """Package a successful measurement into an immutable JumpResult.

    A VerticalTrace passed in is frozen; the result holds a read-only
    timestamp -> y copy of it.
    """
    return JumpResult(
        jump_height_cm=float(jump_height_cm),
        jump_duration_s=float(jump_duration_s),
        vertical_trace=_freeze_trace(trace),
        calibration_height_cm=int(calibration_height_cm),
        ballistic_height_cm=ballistic_height_cm,
        takeoff_time=takeoff_time,
        landing_time=landing_time,
        peak_displacement_px=peak_displacement_px,
        cm_per_px=cm_per_px,
    )


def result_from_measurement(measurement: Measurement, scale: ScaleFactor) -> JumpResult:
    """Build a JumpResult from a finished measurement and its scale."""
    return build_result(
        measurement.height_cm,
        measurement.duration_s,
        measurement.trace,
        scale.calibration_height_cm,
        ballistic_height_cm=measurement.ballistic_height_cm,
        takeoff_time=measurement.takeoff_time,
        landing_time=measurement.landing_time,
        peak_displacement_px=measurement.peak_displacement_px,
        cm_per_px=scale.cm_per_px,
    )


def export_result(result: JumpResult, path: Path) -> None:
    """Export a jump result to a JSON file.

    Args:
        result: Result to export
        path: Output file path
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(result.to_dict(), f, indent=2)


def load_result(path: Path) -> JumpResult:
    """Load a jump result exported by ``export_result``.

    Args:
        path: Input file path

    Returns:
        Reconstructed JumpResult
    """
    with open(path) as f:
        data = json.load(f)

    return build_result(
        data["jump_height_cm"],
        data["jump_duration_s"],
        [(t, y) for t, y in data.get("vertical_trace", [])],
        data["calibration_height_cm"],
        ballistic_height_cm=data.get("ballistic_height_cm"),
        takeoff_time=data.get("takeoff_time"),
        landing_time=data.get("landing_time"),
        peak_displacement_px=data.get("peak_displacement_px"),
        cm_per_px=data.get("cm_per_px"),
    )
