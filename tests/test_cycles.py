"""Tests for myomotion.cycles -- streaming cycle detection and fatigue."""

import numpy as np
import pytest

from conftest import make_cycles, make_sine_force, make_square_force

from myomotion.cycles import (
    AMP_DROP,
    CYCLE_SLOWDOWN,
    FORCE_DROP,
    GENERIC_FATIGUE_MESSAGE,
    NO_FATIGUE_MESSAGE,
    VARIABILITY_RISE,
    VELOCITY_DROP,
    CycleDetector,
    average_velocity,
    detect_cycles,
    detect_fatigue,
    fatigue_interpretation,
)

SINE_SETTINGS = {"hysteresis": 0.5, "moving_average_window": 2000}


# ── Streaming detector ───────────────────────────────────────────────


class TestCycleDetector:

    def test_sine_cycles(self, sine_force):
        res = detect_cycles(sine_force, SINE_SETTINGS)
        cycles = res["all_cycles"]
        assert res["cycle_count"] == 4
        np.testing.assert_allclose([c["end_x"] for c in cycles], [1030, 2030, 3030, 4030])
        np.testing.assert_allclose([c["duration"] for c in cycles], [970, 1000, 1000, 1000])
        for c in cycles:
            assert c["amplitude"] == pytest.approx(6.0, abs=0.01)
            assert c["start_x"] < c["peak_x"] <= c["end_x"]
            assert c["peak_y"] == pytest.approx(8.0, abs=0.01)

    def test_square_wave(self):
        """A square wave yields floor(transitions / 2) cycles.

        A cycle closes on the above -> below -> above return, so each one
        spans a full period (two half-periods, 1000 ms here) rather than a
        single half-period.
        """
        points = make_square_force()
        res = detect_cycles(points, {"hysteresis": 0.5, "moving_average_window": 3000})
        cycles = res["all_cycles"]
        levels = [v for _, v in points[50:]]
        transitions = sum(1 for a, b in zip(levels, levels[1:]) if a != b)
        assert transitions == 9
        assert len(cycles) == transitions // 2
        np.testing.assert_allclose([c["end_x"] for c in cycles], [1500, 2500, 3500, 4500])
        for c in cycles:
            assert c["duration"] == pytest.approx(1000.0)
            assert c["amplitude"] == pytest.approx(6.0)

    def test_update_returns_cycle_once(self, sine_force):
        detector = CycleDetector(SINE_SETTINGS)
        history = []
        returned = []
        for p in sine_force:
            history.append(p)
            cycle = detector.update(history)
            if cycle is not None:
                returned.append(history[-1][0])
        assert returned == [1030.0, 2030.0, 3030.0, 4030.0]
        assert detector.last_cycle["end_x"] == 4030.0

    def test_constant_signal_has_no_cycles(self):
        points = [(i * 10.0, 5.0) for i in range(300)]
        res = detect_cycles(points, SINE_SETTINGS)
        assert res["cycle_count"] == 0
        assert res["avg_amplitude"] is None
        assert res["fatigue"]["is_fatigued"] is False

    def test_peak_tracking(self, sine_force):
        res = detect_cycles(sine_force, SINE_SETTINGS)
        assert res["peak"] == pytest.approx(8.0, abs=0.01)
        assert res["recent_peak"] == pytest.approx(8.0, abs=0.01)
        assert res["recent_average"] == pytest.approx(5.0, abs=0.01)

    def test_initial_velocity_baseline(self):
        points = make_sine_force(n=800)
        res = detect_cycles(points, SINE_SETTINGS)
        # set once more than three cycles exist, from cycles 2..4
        assert res["cycle_count"] == 7
        assert res["initial_avg_velocity"] == pytest.approx(6.0, abs=0.05)
        last = res["all_cycles"][-1]
        assert last["relative_speed_ratio"] == pytest.approx(1.0, abs=0.02)

    def test_work_load_normalises_speed(self, sine_force):
        plain = detect_cycles(sine_force, SINE_SETTINGS)["all_cycles"][-1]
        loaded = detect_cycles(sine_force, SINE_SETTINGS, work_load=2.0)["all_cycles"][-1]
        assert loaded["speed_ratio"] == pytest.approx(plain["speed_ratio"] / 2.0)
        assert loaded["work_load"] == 2.0

    def test_empty_history_resets(self, sine_force):
        detector = CycleDetector(SINE_SETTINGS)
        history = []
        for p in sine_force:
            history.append(p)
            detector.update(history)
        assert detector.cycle_count == 4
        assert detector.update([]) is None
        assert detector.cycle_count == 0
        assert len(detector.cycles) == 0

    def test_non_finite_point_ignored(self):
        detector = CycleDetector(SINE_SETTINGS)
        assert detector.update([(0.0, float("nan"))]) is None
        assert detector._n_seen == 0

    def test_cycle_window_is_bounded(self):
        points = make_sine_force(n=1500)
        detector = CycleDetector(SINE_SETTINGS)
        history = []
        for p in points:
            history.append(p)
            detector.update(history)
        assert detector.cycle_count == 14
        assert len(detector.cycles) == 10
        assert len(detector.durations) == 3

    def test_summary_keys(self, sine_force):
        res = detect_cycles(sine_force, SINE_SETTINGS)
        assert {"cycle_count", "cycles", "avg_amplitude", "avg_duration", "recent_average",
                "recent_peak", "peak", "initial_avg_velocity", "fatigue",
                "all_cycles"} <= set(res)
        assert res["avg_duration"] == pytest.approx(1000.0)


# ── Fatigue ──────────────────────────────────────────────────────────


class TestFatigue:

    def test_declining_amplitude(self):
        cycles = make_cycles([1.0, 0.8, 0.6, 0.4, 0.3, 0.2])
        res = detect_fatigue(cycles, [1000.0] * 3, recent_peak=10.0, global_peak=10.0,
                             initial_avg_velocity=0.6)
        assert res["is_fatigued"]
        assert res["reasons"] == sorted([AMP_DROP, VELOCITY_DROP])
        assert res["codes"] == ",".join(res["reasons"])
        assert res["interpretation"] == "Movement is slower and less powerful."

    def test_steady_cycles(self):
        cycles = make_cycles([1.0] * 6)
        res = detect_fatigue(cycles, [1000.0] * 3, recent_peak=10.0, global_peak=10.0,
                             initial_avg_velocity=1.0)
        assert not res["is_fatigued"]
        assert res["reasons"] == []
        assert res["interpretation"] == NO_FATIGUE_MESSAGE

    def test_single_signal_is_not_fatigue(self):
        cycles = make_cycles([1.0] * 4)
        res = detect_fatigue(cycles, [1000.0, 1100.0, 1210.0], recent_peak=10.0,
                             global_peak=10.0, initial_avg_velocity=None)
        assert res["reasons"] == [CYCLE_SLOWDOWN]
        assert not res["is_fatigued"]

    def test_force_drop_and_variability(self):
        cycles = make_cycles([1.0, 1.5, 1.0, 1.5])
        res = detect_fatigue(cycles, [1000.0] * 3, recent_peak=5.0, global_peak=10.0,
                             initial_avg_velocity=None)
        assert set(res["reasons"]) == {FORCE_DROP, VARIABILITY_RISE}
        assert res["is_fatigued"]

    def test_velocity_skipped_without_baseline(self):
        cycles = make_cycles([0.6] * 3)
        res = detect_fatigue(cycles, [1000.0] * 3, 10.0, 10.0, initial_avg_velocity=None)
        assert VELOCITY_DROP not in res["reasons"]

    def test_work_load_scales_amplitude(self):
        cycles = make_cycles([2.0] * 3)
        res = detect_fatigue(cycles, [1000.0] * 3, 10.0, 10.0, None, work_load=5.0)
        assert AMP_DROP in res["reasons"]

    def test_empty(self):
        res = detect_fatigue([], [], 0.0, 0.0, None)
        assert res == {"is_fatigued": False, "reasons": [], "codes": "", "interpretation": ""}

    def test_settings_override(self):
        cycles = make_cycles([0.3] * 3)
        res = detect_fatigue(cycles, [1000.0] * 3, 10.0, 10.0, None,
                             settings={"min_avg_amplitude": 0.1})
        assert AMP_DROP not in res["reasons"]


class TestInterpretation:

    def test_single(self):
        assert fatigue_interpretation([VARIABILITY_RISE]) == "Movement is less stable."

    def test_order_independent(self):
        assert (fatigue_interpretation([VELOCITY_DROP, AMP_DROP])
                == fatigue_interpretation([AMP_DROP, VELOCITY_DROP]))

    def test_many_codes(self):
        codes = [AMP_DROP, CYCLE_SLOWDOWN, FORCE_DROP, VELOCITY_DROP]
        assert fatigue_interpretation(codes) == GENERIC_FATIGUE_MESSAGE

    def test_unlisted_pair(self):
        assert fatigue_interpretation([AMP_DROP, FORCE_DROP]) == GENERIC_FATIGUE_MESSAGE

    def test_none(self):
        assert fatigue_interpretation([]) == NO_FATIGUE_MESSAGE


class TestAverageVelocity:

    def test_mean(self):
        cycles = make_cycles([1.0, 2.0], duration=500.0)
        assert average_velocity(cycles) == pytest.approx(3.0)

    def test_zero_duration_skipped(self):
        cycles = make_cycles([1.0], duration=0.0)
        assert average_velocity(cycles) is None
