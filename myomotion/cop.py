"""Centre-of-pressure (COP) statistics from trunk acceleration.

Horizontal acceleration measured at a sensor ``height`` above the
ankle pivot is turned into COP displacement with the inverted-pendulum
approximation ``d = a * h / g``. From the resulting point cloud the
module derives per-axis variance, RMS sway, covariance and, in
post-processing mode only, the 95% confidence ellipse, the convex-hull
sway area and jerk.

    Ref: Winter DA. Human balance and posture control during standing
    and walking. Gait Posture. 1995;3(4):193-214.

    Ref: Prieto TE, Myklebust JB, Hoffmann RG, et al. Measures of
    postural steadiness: differences between healthy young and elderly
    adults. IEEE Trans Biomed Eng. 1996;43(9):956-966.

Functions
---------
acceleration_to_displacement
    Inverted-pendulum displacement (cm) from acceleration.
rms_sway
    RMS sway (cm) of one acceleration axis.
confidence_ellipse
    95% confidence ellipse from a 2x2 covariance.
convex_hull
    Andrew's monotone-chain convex hull.
polygon_area
    Shoelace area of a closed polygon.
sway_area
    Convex hull and its area for a COP point cloud.
jerk
    RMS jerk of an acceleration series.
cop_stats
    Full COP statistics snapshot.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .filters import filter_block

logger = logging.getLogger(__name__)

# Chi-square critical value, 2 degrees of freedom, p = 0.05
CHI2_95_2DOF = 5.991

COP_MODES = ("realtime", "post_processing")


def acceleration_to_displacement(
    acceleration: Sequence[float],
    height_cm: float,
    gravity: float = 9.81,
) -> np.ndarray:
    """Convert acceleration (m/s^2) to COP displacement in centimetres.

    Parameters
    ----------
    acceleration : sequence of float
        Horizontal acceleration along one axis.
    height_cm : float
        Sensor height above the pivot, in centimetres.
    gravity : float
        Gravitational acceleration (default 9.81 m/s^2).

    Returns
    -------
    np.ndarray
    """
    acc = np.asarray(acceleration, dtype=float)
    return acc * (height_cm / 100.0 / gravity) * 100.0


def rms_sway(acceleration: Sequence[float], height_cm: float, gravity: float = 9.81) -> float:
    """RMS sway radius in centimetres for one axis."""
    acc = np.asarray(acceleration, dtype=float)
    if len(acc) == 0:
        return 0.0
    return float((height_cm / 100.0 / gravity) * np.sqrt(np.mean(acc ** 2)) * 100.0)


def confidence_ellipse(
    variance_ml: float,
    variance_ap: float,
    covariance: float,
    center: Tuple[float, float] = (0.0, 0.0),
) -> dict:
    """95% confidence ellipse of a bivariate point cloud.

    Parameters
    ----------
    variance_ml, variance_ap : float
        Per-axis variances.
    covariance : float
        ML/AP covariance.
    center : tuple of float
        Ellipse centre ``(ml, ap)``.

    Returns
    -------
    dict
        Keys: ``center`` (dict), ``semi_major``, ``semi_minor``,
        ``orientation`` (radians), ``area``.
    """
    cov_matrix = np.array([[variance_ml, covariance], [covariance, variance_ap]], dtype=float)
    eigenvalues = np.linalg.eigvalsh(cov_matrix)
    eigenvalues = np.maximum(eigenvalues, 0.0)  # round-off can go slightly negative
    semi_minor, semi_major = np.sqrt(eigenvalues * CHI2_95_2DOF)
    orientation = 0.5 * math.atan2(2.0 * covariance, variance_ml - variance_ap)
    return {
        "center": {"ml": float(center[0]), "ap": float(center[1])},
        "semi_major": float(semi_major),
        "semi_minor": float(semi_minor),
        "orientation": float(orientation),
        "area": float(math.pi * semi_major * semi_minor),
    }


def _cross(o, a, b) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull(points: Sequence[Tuple[float, float]]) -> List[Tuple[float, float]]:
    """Convex hull by Andrew's monotone chain.

    Returns the hull vertices in counter-clockwise order without
    repeating the first vertex. Collinear points are dropped.
    """
    pts = sorted(set((float(p[0]), float(p[1])) for p in points))
    if len(pts) < 3:
        return pts

    lower: List[Tuple[float, float]] = []
    for p in pts:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper: List[Tuple[float, float]] = []
    for p in reversed(pts):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    return lower[:-1] + upper[:-1]


def polygon_area(vertices: Sequence[Tuple[float, float]]) -> float:
    """Shoelace area of a polygon (absolute value)."""
    n = len(vertices)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        x1, y1 = vertices[i]
        x2, y2 = vertices[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return abs(total) / 2.0


def sway_area(cop_points: Sequence[dict]) -> dict:
    """Convex-hull sway area of COP points.

    Parameters
    ----------
    cop_points : list of dict
        Points with ``ml`` and ``ap`` keys (cm).

    Returns
    -------
    dict
        ``{"points": [{"ml", "ap"}, ...], "value": area_cm2}``; the area
        is 0 for fewer than 3 points.
    """
    if len(cop_points) < 3:
        return {"points": [dict(p) for p in cop_points], "value": 0.0}
    hull = convex_hull([(p["ml"], p["ap"]) for p in cop_points])
    return {
        "points": [{"ml": x, "ap": y} for x, y in hull],
        "value": float(polygon_area(hull)),
    }


def jerk(
    acceleration: Sequence[float],
    sample_rate: float,
    cutoff: Optional[float] = None,
    order: int = 4,
) -> float:
    """RMS of the time derivative of acceleration, scaled by 100.

    Parameters
    ----------
    acceleration : sequence of float
        Acceleration along one axis.
    sample_rate : float
        Sampling frequency in Hz.
    cutoff : float, optional
        If given, the series is low-passed with :func:`filter_block`
        of order *order* first.
    order : int
        Filter order used with *cutoff* (default 4).

    Returns
    -------
    float
        0.0 for fewer than two samples.
    """
    acc = np.asarray(acceleration, dtype=float)
    if len(acc) < 2:
        return 0.0
    if cutoff is not None:
        acc = filter_block(acc, cutoff, order, sample_rate)
    dt = 1.0 / sample_rate
    derivative = np.diff(acc) / dt
    return float(np.sqrt(np.mean(derivative ** 2)) * 100.0)


def _empty_stats(mode: str) -> dict:
    post = mode == "post_processing"
    return {
        "mode": mode,
        "n_points": 0,
        "cop_points": [],
        "rms_ml": 0.0,
        "rms_ap": 0.0,
        "variance_ml": 0.0,
        "variance_ap": 0.0,
        "covariance": 0.0,
        "global_variance": 0.0,
        "ml_range": 0.0,
        "ap_range": 0.0,
        "sway_velocity": 0.0,
        "ellipse": confidence_ellipse(0.0, 0.0, 0.0) if post else None,
        "cop_area": {"points": [], "value": 0.0} if post else None,
        "jerk_ml": 0.0 if post else None,
        "jerk_ap": 0.0 if post else None,
    }


def cop_stats(
    ml_acceleration: Sequence[float],
    ap_acceleration: Sequence[float],
    sample_rate: float,
    cutoff: float,
    height_cm: float,
    gravity: float = 9.81,
    mode: str = "realtime",
) -> dict:
    """Compute a COP statistics snapshot.

    Parameters
    ----------
    ml_acceleration, ap_acceleration : sequence of float
        Filtered (or raw) medio-lateral and antero-posterior
        acceleration, same length.
    sample_rate : float
        Sampling frequency in Hz.
    cutoff : float
        Low-pass cutoff in Hz used for the jerk pass.
    height_cm : float
        Sensor height above the pivot, in centimetres.
    gravity : float
        Gravitational acceleration (default 9.81).
    mode : {'realtime', 'post_processing'}
        ``post_processing`` additionally computes the confidence
        ellipse, the convex-hull area and jerk.

    Returns
    -------
    dict
        Keys: ``mode``, ``n_points``, ``cop_points``, ``rms_ml``,
        ``rms_ap``, ``variance_ml``, ``variance_ap``, ``covariance``,
        ``global_variance``, ``ml_range``, ``ap_range``,
        ``sway_velocity`` (cm/s), ``ellipse``, ``cop_area``,
        ``jerk_ml``, ``jerk_ap``. The last four are ``None`` in real-time
        mode.

    Raises
    ------
    ValueError
        If *mode* is unknown or the two series differ in length.
    """
    if mode not in COP_MODES:
        raise ValueError(f"Unknown COP mode '{mode}'. Available: {list(COP_MODES)}")

    ml_acc = np.asarray(ml_acceleration, dtype=float)
    ap_acc = np.asarray(ap_acceleration, dtype=float)
    if len(ml_acc) != len(ap_acc):
        raise ValueError(
            f"ML and AP series must have the same length ({len(ml_acc)} != {len(ap_acc)})"
        )
    if len(ml_acc) == 0:
        return _empty_stats(mode)

    ml = acceleration_to_displacement(ml_acc, height_cm, gravity)
    ap = acceleration_to_displacement(ap_acc, height_cm, gravity)
    cop_points = [{"ml": float(x), "ap": float(y)} for x, y in zip(ml, ap)]

    variance_ml = float(np.var(ml))
    variance_ap = float(np.var(ap))
    covariance = float(np.mean((ml - ml.mean()) * (ap - ap.mean())))

    path = float(np.sum(np.sqrt(np.diff(ml) ** 2 + np.diff(ap) ** 2)))
    duration = len(ml) / sample_rate if sample_rate > 0 else 0.0

    stats = {
        "mode": mode,
        "n_points": len(cop_points),
        "cop_points": cop_points,
        "rms_ml": rms_sway(ml_acc, height_cm, gravity),
        "rms_ap": rms_sway(ap_acc, height_cm, gravity),
        "variance_ml": variance_ml,
        "variance_ap": variance_ap,
        "covariance": covariance,
        "global_variance": variance_ml + variance_ap,
        "ml_range": float(np.ptp(ml)),
        "ap_range": float(np.ptp(ap)),
        "sway_velocity": path / duration if duration > 0 else 0.0,
        "ellipse": None,
        "cop_area": None,
        "jerk_ml": None,
        "jerk_ap": None,
    }

    if mode == "post_processing":
        stats["ellipse"] = confidence_ellipse(
            variance_ml, variance_ap, covariance, center=(ml.mean(), ap.mean())
        )
        stats["cop_area"] = sway_area(cop_points)
        stats["jerk_ml"] = jerk(ml_acc, sample_rate, cutoff)
        stats["jerk_ap"] = jerk(ap_acc, sample_rate, cutoff)
        logger.info(
            f"COP post-processing: {len(cop_points)} points, "
            f"area={stats['cop_area']['value']:.3f} cm2, "
            f"ellipse={stats['ellipse']['area']:.3f} cm2"
        )

    return stats
