"""Tests for myomotion.jump -- jump phase detection and metrics."""

import numpy as np
import pytest

from conftest import JUMP_BLOCK, make_jump_frames, make_standing_frames

from myomotion.jump import (
    analyze_jump,
    detect_angle_event,
    detect_jumps,
    find_amortization_end,
    find_candidate_minima,
    find_next_peak,
    find_previous_peak,
    is_jump_like_detailed,
    moving_average,
)


class TestMovingAverage:

    def test_shrinking_edges(self):
        np.testing.assert_allclose(moving_average([1, 2, 3, 4, 5], 3), [1.5, 2, 3, 4, 4.5])

    def test_even_window_widened(self):
        np.testing.assert_allclose(moving_average([1, 2, 3, 4, 5], 2),
                                   moving_average([1, 2, 3, 4, 5], 3))

    def test_window_one_is_identity(self):
        np.testing.assert_array_equal(moving_average([3.0, 1.0, 2.0], 1), [3.0, 1.0, 2.0])

    def test_window_larger_than_signal(self):
        out = moving_average([1.0, 2.0, 3.0], 11)
        assert out[1] == pytest.approx(2.0)

    def test_empty(self):
        assert len(moving_average([], 5)) == 0


class TestAngleEvents:

    def test_sharp_rise_forward(self):
        angles = [5, 5, 5, 5, 20, 35, 40]
        assert detect_angle_event(angles, 0, 1, 1, 20, 5) == 3

    def test_backward_scan(self):
        angles = [40, 35, 20, 5, 5, 5, 5]
        assert detect_angle_event(angles, 6, -1, 1, 20, 5) == 3

    def test_no_event_returns_start(self):
        assert detect_angle_event(np.full(50, 10.0), 25, -1, 1, 20, 5) == 25

    def test_max_frames(self):
        angles = [5] * 20 + [20, 35, 50]
        assert detect_angle_event(angles, 0, 1, 1, 20, 5) == 19
        assert detect_angle_event(angles, 0, 1, 1, 20, 5, max_frames=10) == 0

    def test_max_frames_is_exclusive(self):
        angles = [5] * 20 + [20, 35, 50]
        assert detect_angle_event(angles, 0, 1, 1, 20, 5, max_frames=19) == 0
        assert detect_angle_event(angles, 0, 1, 1, 20, 5, max_frames=20) == 19

    def test_bad_direction(self):
        with pytest.raises(ValueError):
            detect_angle_event([1, 2, 3], 0, 0, 1, 1, 1)

    def test_previous_peak(self):
        angles = [0, 10, 30, 20, 29, 10, 0]
        # 4 is within tolerance of the maximum and closer to the start
        assert find_previous_peak(angles, 6, 10, tolerance=2.0) == 4
        assert find_previous_peak(angles, 6, 10, tolerance=0.5) == 2

    def test_next_peak(self):
        angles = [0, 10, 29, 20, 30, 10, 0]
        assert find_next_peak(angles, 0, 10, tolerance=2.0) == 2

    def test_amortization_end(self):
        angles = [5, 20, 50, 70, 67, 60, 30, 10]
        assert find_amortization_end(angles, 0, 10, tolerance=5.0) == 4

    def test_amortization_end_past_recording(self):
        assert find_amortization_end([1.0, 2.0], 5, 10, 5.0) == 5

    def test_candidate_minima(self):
        y = [5, 4, 3, 4, 5, 4, 2, 4, 5]
        assert find_candidate_minima(y, window=1, min_separation=1) == [2, 6]
        assert find_candidate_minima(y, window=1, min_separation=5) == [6]
        assert find_candidate_minima([1, 2], window=1, min_separation=1) == []


class TestAnalyzeJump:

    def test_phases(self, jump_frames):
        res = analyze_jump(jump_frames)
        assert res["valid"]
        assert res["index"] == 63
        assert res["takeoff_index"] == 45
        assert res["landing_index"] == 81
        assert res["impulse_start_index"] == 40
        assert res["max_flexion_index"] == 86
        assert res["amortization_end_index"] == 87

    def test_metrics(self, jump_frames):
        res = analyze_jump(jump_frames)
        assert res["flight_time"] == pytest.approx(0.36)
        assert res["height"] == pytest.approx(9.81 * 0.36 ** 2 / 8)
        assert res["rsi"] == pytest.approx(res["height"] / 0.36)
        assert res["takeoff_velocity"] == pytest.approx(9.81 * 0.36 / 2)
        assert res["mean_velocity"] == pytest.approx(res["takeoff_velocity"] / 2)
        assert res["impulse_duration"] == pytest.approx(0.05)
        assert res["amortization_duration"] == pytest.approx(0.06)
        assert res["takeoff_time"] == pytest.approx(450.0)
        assert res["landing_time"] == pytest.approx(810.0)

    def test_phase_angles(self, jump_frames):
        angles = analyze_jump(jump_frames)["angles"]
        assert angles["impulse_start"] == pytest.approx(90.0)
        assert angles["takeoff"] == pytest.approx(5.0)
        assert angles["landing"] == pytest.approx(5.0)
        assert angles["max_flexion"] == pytest.approx(70.0)
        assert angles["amortization_end"] == pytest.approx(67.0)

    def test_gravity_setting(self, jump_frames):
        res = analyze_jump(jump_frames, {"gravity": 9.0})
        assert res["height"] == pytest.approx(9.0 * 0.36 ** 2 / 8)

    def test_too_few_frames(self):
        res = analyze_jump(make_jump_frames()[:2])
        assert not res["valid"]
        assert res["index"] is None
        assert res["angles"] == {}

    def test_standing_is_invalid(self):
        res = analyze_jump(make_standing_frames(), min_index=10)
        assert not res["valid"]
        assert res["takeoff_index"] == 10

    def test_bad_min_index(self, jump_frames):
        with pytest.raises(ValueError):
            analyze_jump(jump_frames, min_index=len(jump_frames))

    def test_deterministic(self, jump_frames):
        assert analyze_jump(jump_frames) == analyze_jump(jump_frames)


class TestJumpLike:

    def test_accepts_jump(self, jump_frames):
        check = is_jump_like_detailed(jump_frames, 63)
        assert check["is_jump"]
        assert check["reason"] is None
        assert check["drop"] > 20
        assert check["angle_delta"] == pytest.approx(65.0)

    def test_edge(self, jump_frames):
        assert is_jump_like_detailed(jump_frames, 0)["reason"] == "edge"

    def test_rejects_standing(self):
        frames = make_standing_frames()
        check = is_jump_like_detailed(frames, 100)
        assert not check["is_jump"]
        assert check["reason"] == "drop"

    def test_flexion_threshold(self, jump_frames):
        check = is_jump_like_detailed(jump_frames, 63, {"min_flexion_after": 80.0})
        assert check["reason"] == "flexion_after"


class TestDetectJumps:

    def test_single(self, jump_frames):
        jumps = detect_jumps(jump_frames)
        assert len(jumps) == 1
        assert jumps[0]["index"] == 63

    def test_two_jumps(self):
        jumps = detect_jumps(make_jump_frames(n_jumps=2))
        assert [j["index"] for j in jumps] == [63, JUMP_BLOCK + 63]
        assert jumps[0]["height"] == pytest.approx(jumps[1]["height"])

    def test_standing(self):
        assert detect_jumps(make_standing_frames()) == []

    def test_empty(self):
        assert detect_jumps([]) == []
