"""Tests for batch cycle segmentation, edge trimming and RFD."""

import numpy as np
import pytest

from conftest import make_baseline_sine, make_ramp_force

from myomotion.cycles import (
    detect_outlier_edges,
    find_best_stable_region,
    rate_of_force_development,
    safe_extended_end_x,
    safe_extended_start_x,
    segment_cycles,
)


class TestSegmentCycles:

    def test_baseline_sine(self):
        res = segment_cycles(make_baseline_sine(), baseline=0.0)
        valleys = [s for s in res["segments"] if s["is_valley"]]
        assert len(res["segments"]) == 8
        assert len(valleys) == 4
        np.testing.assert_allclose([v["peak_x"] for v in valleys], [740, 1740, 2740, 3740], atol=10)

        full = [c for c in res["cycles"] if abs(c["duration"] - 1000) <= 20]
        assert len(full) >= 3
        for c in full:
            assert c["amplitude"] == pytest.approx(10.0, abs=0.05)
            assert c["relative_speed_ratio"] == pytest.approx(1.0, rel=0.05)

    def test_segments_alternate(self):
        res = segment_cycles(make_baseline_sine(), baseline=0.0)
        kinds = [s["is_valley"] for s in res["segments"]]
        assert all(a != b for a, b in zip(kinds, kinds[1:]))

    def test_cycles_are_ordered(self):
        cycles = segment_cycles(make_baseline_sine())["cycles"]
        starts = [c["start_x"] for c in cycles]
        assert starts == sorted(starts)
        for c in cycles:
            assert c["end_x"] > c["start_x"]
            assert c["amplitude"] > 0.05

    def test_cycle_keys(self):
        cycle = segment_cycles(make_baseline_sine())["cycles"][0]
        assert set(cycle) == {
            "start_x", "end_x", "peak_x", "peak_y", "min_x", "min_y", "amplitude",
            "duration", "speed_ratio", "relative_speed_ratio", "work_load",
        }

    def test_work_load(self):
        plain = segment_cycles(make_baseline_sine())["cycles"]
        loaded = segment_cycles(make_baseline_sine(), work_load=2.0)["cycles"]
        assert loaded[1]["speed_ratio"] == pytest.approx(plain[1]["speed_ratio"] / 2.0)
        assert loaded[1]["work_load"] == 2.0

    def test_flat_signal(self):
        points = [(i * 10.0, 1.0) for i in range(100)]
        assert segment_cycles(points, baseline=0.0) == {"segments": [], "cycles": []}

    def test_too_short(self):
        assert segment_cycles([(0.0, 1.0)]) == {"segments": [], "cycles": []}

    def test_single_hump(self):
        t = np.arange(0, 1000, 10.0)
        y = np.sin(np.pi * (t + 5) / 1000.0) * 4 - 1
        res = segment_cycles(list(zip(t, y)), baseline=0.0)
        assert len(res["cycles"]) == 1
        assert res["cycles"][0]["peak_y"] == pytest.approx(3.0, abs=0.01)


class TestBoundaryHelpers:

    def test_extend_start_to_flat_step(self):
        xs = np.arange(10) * 10.0
        ys = np.array([0, 0, 0, 1, 2, 3, 4, 5, 6, 7], dtype=float)
        assert safe_extended_start_x(xs, ys, 50.0, None) == 20.0

    def test_extend_start_blocked_by_previous_end(self):
        xs = np.arange(10) * 10.0
        ys = np.array([0, 0, 0, 1, 2, 3, 4, 5, 6, 7], dtype=float)
        assert safe_extended_start_x(xs, ys, 50.0, previous_end_x=40.0) == 50.0

    def test_extend_end_to_flat_step(self):
        xs = np.arange(10) * 10.0
        ys = np.array([7, 6, 5, 4, 3, 2, 2, 2, 2, 2], dtype=float)
        assert safe_extended_end_x(xs, ys, 20.0, None) == 60.0

    def test_unknown_peak_x(self):
        xs = np.arange(5) * 10.0
        ys = np.zeros(5)
        assert safe_extended_start_x(xs, ys, 12.5, None) == 12.5
        assert safe_extended_end_x(xs, ys, 12.5, None) == 12.5

    def test_stable_region_forward(self):
        ys = np.concatenate([np.linspace(0, 5, 20), np.full(40, -1.0)])
        idx = find_best_stable_region(ys, 0, "forward", baseline=0.0)
        assert idx is not None
        assert ys[idx] == -1.0


class TestOutlierEdges:

    def test_flat_edges(self):
        t = np.arange(200)
        y = np.concatenate([np.zeros(30), 3 * np.sin(2 * np.pi * t[:140] / 100.0 + 0.3), np.zeros(30)])
        points = list(zip(np.arange(len(y)) * 10.0, y))
        res = detect_outlier_edges(points)
        assert res == {"start_index": 20, "end_index": len(y) - 20}

    def test_no_flat_zone(self):
        t = np.arange(300)
        points = list(zip(t * 10.0, 3 * np.sin(2 * np.pi * t / 100.0)))
        assert detect_outlier_edges(points) == {"start_index": None, "end_index": None}


class TestRateOfForceDevelopment:

    def test_linear_ramp(self):
        res = rate_of_force_development(make_ramp_force(), 0.0, 1500.0)
        assert res["rfd"] == pytest.approx(20.0, rel=1e-6)
        assert res["start"] == pytest.approx(600.0, abs=10.0)
        assert res["end"] == pytest.approx(900.0, abs=10.0)
        assert res["are_newtons"] is False
        assert res["subrange"][0][0] == res["start"]

    def test_newtons(self):
        res = rate_of_force_development(make_ramp_force(), 0.0, 1500.0, convert_to_newtons=True)
        assert res["rfd"] == pytest.approx(196.2, rel=1e-6)
        assert res["are_newtons"] is True

    def test_flat_signal(self):
        points = [(i * 10.0, 2.0) for i in range(100)]
        assert rate_of_force_development(points, 0.0, 1000.0) is None

    def test_range_too_small(self):
        assert rate_of_force_development(make_ramp_force(), 0.0, 20.0) is None
