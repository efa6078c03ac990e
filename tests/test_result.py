"""Tests for result packaging and export."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path

import pytest

from vertimeter.analysis.result import build_result, export_result, load_result
from vertimeter.core.exceptions import TraceFrozenError
from vertimeter.core.types import VerticalTrace


@pytest.fixture
def trace() -> VerticalTrace:
    """A short flight trace."""
    trace = VerticalTrace()
    for t, y in [(1.0, 360.0), (1.05, 320.0), (1.1, 260.0), (1.15, 300.0), (1.2, 360.0)]:
        trace.append(t, y)
    return trace


class TestBuildResult:
    """Tests for the build_result function."""

    def test_packages_values(self, trace: VerticalTrace) -> None:
        """Result fields should carry the measurement unchanged."""
        result = build_result(30.0, 0.5, trace, 180)

        assert result.jump_height_cm == 30.0
        assert result.jump_duration_s == 0.5
        assert result.calibration_height_cm == 180
        assert result.vertical_trace[1.1] == 260.0
        assert list(result.vertical_trace) == [1.0, 1.05, 1.1, 1.15, 1.2]

    def test_freezes_trace(self, trace: VerticalTrace) -> None:
        """The source trace should be finalized by packaging."""
        build_result(30.0, 0.5, trace, 180)

        assert trace.is_frozen
        with pytest.raises(TraceFrozenError):
            trace.append(2.0, 360.0)

    def test_result_is_immutable(self, trace: VerticalTrace) -> None:
        """Neither the fields nor the trace mapping can be changed."""
        result = build_result(30.0, 0.5, trace, 180)

        with pytest.raises(dataclasses.FrozenInstanceError):
            result.jump_height_cm = 99.0  # type: ignore[misc]
        with pytest.raises(TypeError):
            result.vertical_trace[9.0] = 0.0  # type: ignore[index]

    def test_accepts_plain_mapping(self) -> None:
        """A timestamp -> y mapping should be copied, not referenced."""
        samples = {0.0: 360.0, 0.1: 300.0}
        result = build_result(12.5, 0.3, samples, 170)
        samples[0.2] = 1.0

        assert dict(result.vertical_trace) == {0.0: 360.0, 0.1: 300.0}


class TestVerticalTrace:
    """Tests for the VerticalTrace container."""

    def test_rejects_backwards_timestamps(self) -> None:
        """Samples must be appended in time order."""
        trace = VerticalTrace()
        trace.append(1.0, 360.0)

        with pytest.raises(ValueError):
            trace.append(0.5, 360.0)

    def test_rejects_repeated_timestamp(self) -> None:
        """Two samples cannot share a timestamp."""
        trace = VerticalTrace()
        trace.append(1.0, 360.0)

        with pytest.raises(ValueError):
            trace.append(1.0, 340.0)

        assert len(trace) == 1

    def test_result_keeps_every_sample(self, trace: VerticalTrace) -> None:
        """Packaging should not collapse any recorded sample."""
        result = build_result(30.0, 0.5, trace, 180)

        assert len(result.vertical_trace) == len(trace)
        assert tuple(result.vertical_trace.items()) == trace.samples

    def test_samples_snapshot(self, trace: VerticalTrace) -> None:
        """samples should be an ordered tuple of pairs."""
        assert trace.samples[0] == (1.0, 360.0)
        assert len(trace) == 5


class TestExport:
    """Tests for JSON export and import."""

    def test_export_and_load(self, trace: VerticalTrace, tmp_path: Path) -> None:
        """An exported result should load back equal."""
        result = build_result(30.0, 0.5, trace, 180, ballistic_height_cm=30.6, cm_per_px=0.3)
        path = tmp_path / "results" / "jump.json"

        export_result(result, path)

        with open(path) as f:
            data = json.load(f)
        assert data["jump_height_cm"] == 30.0
        assert data["calibration_height_cm"] == 180

        loaded = load_result(path)
        assert loaded.jump_height_cm == result.jump_height_cm
        assert loaded.ballistic_height_cm == 30.6
        assert dict(loaded.vertical_trace) == dict(result.vertical_trace)
