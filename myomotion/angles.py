"""Joint angles from 2D pose keypoints.

Keypoints follow the common pose-estimator layout: a list of dicts
``{"name": "right_knee", "x": px, "y": px, "score": 0..1}``. A joint
angle is the interior angle at the middle keypoint of a triplet, in
degrees (180 = straight limb). With ``invert=True`` it is reported as
``180 - angle`` so that 0 means full extension and larger values mean
more flexion, which is the convention the jump detector expects.

Functions
---------
joint_angle
    Interior angle at ``b`` of the triangle ``a-b-c``.
compute_joint_angle
    Angle of one named joint from a keypoint list.
compute_joint_angles
    Angles of several joints from a keypoint list.
build_jump_frames
    Turn pose frames into ``{"timestamp", "angle", "y"}`` jump frames.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


JOINT_TRIPLETS = {
    "right_shoulder": ("right_hip", "right_shoulder", "right_elbow"),
    "right_elbow": ("right_shoulder", "right_elbow", "right_wrist"),
    "right_hip": ("right_shoulder", "right_hip", "right_knee"),
    "right_knee": ("right_hip", "right_knee", "right_ankle"),
    "left_shoulder": ("left_hip", "left_shoulder", "left_elbow"),
    "left_elbow": ("left_shoulder", "left_elbow", "left_wrist"),
    "left_hip": ("left_shoulder", "left_hip", "left_knee"),
    "left_knee": ("left_hip", "left_knee", "left_ankle"),
}


def joint_angle(a: Sequence[float], b: Sequence[float], c: Sequence[float],
                invert: bool = False) -> float:
    """Angle at *b* between the segments ``b-a`` and ``b-c``, in degrees.

    Returns 0.0 when either segment has zero length.
    """
    ba = np.array([a[0] - b[0], a[1] - b[1]], dtype=float)
    bc = np.array([c[0] - b[0], c[1] - b[1]], dtype=float)
    norm = np.linalg.norm(ba) * np.linalg.norm(bc)
    if norm == 0:
        return 0.0
    cos_angle = np.clip(np.dot(ba, bc) / norm, -1.0, 1.0)
    angle = math.degrees(math.acos(cos_angle))
    return 180.0 - angle if invert else angle


def _keypoint_map(keypoints: List[dict], min_score: float) -> Dict[str, dict]:
    out = {}
    for kp in keypoints:
        name = kp.get("name")
        if name is None or kp.get("x") is None or kp.get("y") is None:
            continue
        score = kp.get("score")
        if score is not None and score < min_score:
            continue
        out[name] = kp
    return out


def compute_joint_angle(keypoints: List[dict], joint: str, invert: bool = False,
                        min_score: float = 0.0) -> Optional[float]:
    """Angle of *joint* from a keypoint list.

    Parameters
    ----------
    keypoints : list of dict
        Keypoints with ``name``, ``x``, ``y`` and optional ``score``.
    joint : str
        Key of :data:`JOINT_TRIPLETS`, e.g. ``"right_knee"``.
    invert : bool
        Report ``180 - angle`` (flexion convention).
    min_score : float
        Keypoints scored below this are treated as missing.

    Returns
    -------
    float or None
        ``None`` when one of the three keypoints is missing.

    Raises
    ------
    ValueError
        If *joint* is unknown.
    """
    if joint not in JOINT_TRIPLETS:
        raise ValueError(f"Unknown joint '{joint}'. Available: {list(JOINT_TRIPLETS)}")
    kps = _keypoint_map(keypoints, min_score)
    names = JOINT_TRIPLETS[joint]
    if any(n not in kps for n in names):
        return None
    a, b, c = ((kps[n]["x"], kps[n]["y"]) for n in names)
    return joint_angle(a, b, c, invert=invert)


def compute_joint_angles(keypoints: List[dict], joints: Optional[List[str]] = None,
                         invert: bool = False, min_score: float = 0.0) -> Dict[str, Optional[float]]:
    """Angles of several joints (all known joints by default)."""
    if joints is None:
        joints = list(JOINT_TRIPLETS)
    return {j: compute_joint_angle(keypoints, j, invert, min_score) for j in joints}


def build_jump_frames(pose_frames: List[dict], joint: str = "knee", side: str = "right",
                      invert: bool = True, min_score: float = 0.0) -> List[dict]:
    """Build jump-detector frames from pose frames.

    Parameters
    ----------
    pose_frames : list of dict
        Frames with ``timestamp`` (ms), ``keypoints`` and an optional
        ``angles`` map keyed by joint name. A value in that map is used
        as-is instead of recomputing the angle.
    joint : str
        Joint type (``knee``, ``hip``, ``elbow``, ``shoulder``).
    side : str
        ``right`` or ``left``.
    invert : bool
        Flexion convention for computed angles (default True).
    min_score : float
        Minimum keypoint score.

    Returns
    -------
    list of dict
        ``{"timestamp", "angle", "y"}`` per usable frame, where ``y`` is
        the vertical position of the joint keypoint.
    """
    name = f"{side}_{joint}"
    if name not in JOINT_TRIPLETS:
        raise ValueError(f"Unknown joint '{name}'. Available: {list(JOINT_TRIPLETS)}")

    frames = []
    skipped = 0
    for pf in pose_frames:
        keypoints = pf.get("keypoints", [])
        kp = _keypoint_map(keypoints, min_score).get(name)
        upstream = (pf.get("angles") or {}).get(name)
        angle = upstream if upstream is not None else compute_joint_angle(
            keypoints, name, invert, min_score
        )
        if kp is None or angle is None:
            skipped += 1
            continue
        frames.append({
            "timestamp": float(pf["timestamp"]),
            "angle": float(angle),
            "y": float(kp["y"]),
        })

    if skipped:
        logger.debug(f"Skipped {skipped}/{len(pose_frames)} frames without {name}")
    return frames
