"""Tests for myomotion.angles -- joint angles and jump-frame building."""

import pytest

from conftest import make_pose_frames

from myomotion.angles import (
    JOINT_TRIPLETS,
    build_jump_frames,
    compute_joint_angle,
    compute_joint_angles,
    joint_angle,
)


def _leg(knee_x=0.0, score=0.9):
    return [
        {"name": "right_hip", "x": 0.0, "y": 0.0, "score": 0.9},
        {"name": "right_knee", "x": knee_x, "y": 100.0, "score": score},
        {"name": "right_ankle", "x": 0.0, "y": 200.0, "score": 0.9},
    ]


class TestJointAngle:

    def test_straight(self):
        assert joint_angle((0, 0), (0, 1), (0, 2)) == pytest.approx(180.0)

    def test_straight_inverted(self):
        assert joint_angle((0, 0), (0, 1), (0, 2), invert=True) == pytest.approx(0.0)

    def test_right_angle(self):
        assert joint_angle((1, 0), (0, 0), (0, 1)) == pytest.approx(90.0)

    def test_zero_length_segment(self):
        assert joint_angle((0, 0), (0, 0), (1, 1)) == 0.0


class TestComputeJointAngle:

    def test_bent_knee(self):
        assert compute_joint_angle(_leg(knee_x=100.0), "right_knee") == pytest.approx(90.0)
        assert compute_joint_angle(_leg(knee_x=100.0), "right_knee", invert=True) == pytest.approx(90.0)

    def test_missing_keypoint(self):
        assert compute_joint_angle(_leg()[:2], "right_knee") is None

    def test_low_score(self):
        assert compute_joint_angle(_leg(score=0.1), "right_knee", min_score=0.3) is None

    def test_unknown_joint(self):
        with pytest.raises(ValueError):
            compute_joint_angle(_leg(), "right_ear")

    def test_all_joints(self):
        angles = compute_joint_angles(_leg())
        assert set(angles) == set(JOINT_TRIPLETS)
        assert angles["right_knee"] == pytest.approx(180.0)
        assert angles["left_knee"] is None


class TestBuildJumpFrames:

    def test_straight_leg(self):
        frames = build_jump_frames(make_pose_frames(n=3))
        assert len(frames) == 3
        for f in frames:
            assert f["angle"] == pytest.approx(0.0)
            assert f["y"] == pytest.approx(100.0)
        assert frames[1]["timestamp"] == pytest.approx(33.0)

    def test_upstream_angle_used(self):
        pose = make_pose_frames(n=1)
        pose[0]["angles"] = {"right_knee": 42.0}
        assert build_jump_frames(pose)[0]["angle"] == 42.0

    def test_frames_without_joint_skipped(self):
        pose = make_pose_frames(n=3)
        pose[1]["keypoints"] = pose[1]["keypoints"][:1]
        frames = build_jump_frames(pose)
        assert [f["timestamp"] for f in frames] == [0.0, 66.0]

    def test_other_side_missing(self):
        assert build_jump_frames(make_pose_frames(n=2), side="left") == []

    def test_unknown_joint(self):
        with pytest.raises(ValueError):
            build_jump_frames(make_pose_frames(), joint="ankle")
