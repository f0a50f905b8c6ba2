"""Vertical-jump phase detection from a joint angle and a vertical trace.

Each frame is a dict ``{"timestamp": ms, "angle": deg, "y": px}`` where
``angle`` is the flexion of the tracked joint (0 = fully extended) and
``y`` the vertical image coordinate of the joint (growing downward, so
the smallest ``y`` is the highest body position).

The jump is anchored at the minimum of the smoothed ``y`` trace. From
there the takeoff is found by walking backward until the joint flexes
sharply (the push-off seen in reverse) and the landing by walking
forward until it flexes sharply again (the absorption). Flight time
gives the height through the flight-time method:

    Ref: Bosco C, Luhtanen P, Komi PV. A simple method for measurement
    of mechanical power in jumping. Eur J Appl Physiol Occup Physiol.
    1983;50(2):273-282. doi:10.1007/BF00422166

Functions
---------
moving_average
    Centred moving average with shrinking edges.
detect_angle_event
    First sharp angle change in a scan direction.
find_previous_peak, find_next_peak
    Nearest local angle maximum near the global one.
find_amortization_end
    End of the landing absorption phase.
find_candidate_minima
    Separated strict local minima of the vertical trace.
is_jump_like_detailed
    Quick geometric plausibility check around a candidate.
analyze_jump
    Full phase metrics of one jump.
detect_jumps
    Find and analyse every jump in a recording.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

import numpy as np
from scipy.signal import argrelmin

from .config import get_settings

logger = logging.getLogger(__name__)


def moving_average(values: Sequence[float], window: int) -> np.ndarray:
    """Centred moving average.

    Even windows are widened by one so the average stays centred. Near
    the edges only the available samples are averaged.
    """
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    if n == 0 or window <= 1:
        return arr.copy()
    if window % 2 == 0:
        window += 1
    if window > n:
        window = n if n % 2 == 1 else n - 1
    kernel = np.ones(window)
    sums = np.convolve(arr, kernel, mode="same")
    counts = np.convolve(np.ones(n), kernel, mode="same")
    return sums / counts


def detect_angle_event(
    angles: Sequence[float],
    start: int,
    direction: int,
    expected_sign: int,
    accumulated_threshold: float,
    min_single_step_change: float,
    max_frames: Optional[int] = None,
) -> int:
    """Find the first sharp angle change when scanning from *start*.

    At each index ``i`` the two consecutive deltas in the scan direction
    (``a[i+d] - a[i]`` and ``a[i+2d] - a[i+d]``) are examined. The index
    is accepted when both deltas have *expected_sign*, their summed
    magnitude reaches *accumulated_threshold* and at least one of them
    reaches *min_single_step_change*.

    Parameters
    ----------
    angles : sequence of float
        Joint angle per frame.
    start : int
        Index the scan starts from.
    direction : {-1, 1}
        Scan direction.
    expected_sign : {-1, 1}
        Required sign of both deltas.
    accumulated_threshold : float
        Minimum ``|d1 + d2|`` in degrees.
    min_single_step_change : float
        Minimum magnitude of the larger delta in degrees.
    max_frames : int, optional
        Maximum number of frames scanned (default: up to the array end).

    Returns
    -------
    int
        Index of the event, or *start* itself when nothing matches.
    """
    if direction not in (-1, 1):
        raise ValueError(f"direction must be -1 or 1, got {direction}")
    a = np.asarray(angles, dtype=float)
    n = len(a)
    steps = 0
    i = start
    while 0 <= i + 2 * direction < n:
        if max_frames is not None and steps >= max_frames:
            break
        d1 = a[i + direction] - a[i]
        d2 = a[i + 2 * direction] - a[i + direction]
        if (
            np.sign(d1) == expected_sign
            and np.sign(d2) == expected_sign
            and abs(d1 + d2) >= accumulated_threshold
            and max(abs(d1), abs(d2)) >= min_single_step_change
        ):
            return i
        i += direction
        steps += 1
    return start


def _nearest_peak(a: np.ndarray, start: int, lo: int, hi: int, tolerance: float) -> int:
    """Nearest local maximum to *start* in ``a[lo:hi]`` close to the max."""
    if hi <= lo:
        return start
    segment = a[lo:hi]
    true_max_idx = lo + int(np.argmax(segment))
    floor = a[true_max_idx] - tolerance

    best = None
    for i in range(lo, hi):
        if a[i] < floor:
            continue
        left_ok = i == 0 or a[i] >= a[i - 1]
        right_ok = i == len(a) - 1 or a[i] >= a[i + 1]
        if not (left_ok and right_ok):
            continue
        if best is None or abs(i - start) < abs(best - start):
            best = i
    return true_max_idx if best is None else best


def find_previous_peak(angles: Sequence[float], start: int, window: int,
                       tolerance: float) -> int:
    """Nearest local angle maximum before *start* within *tolerance* of the true maximum."""
    a = np.asarray(angles, dtype=float)
    lo = max(0, start - window)
    return _nearest_peak(a, start, lo, start + 1, tolerance)


def find_next_peak(angles: Sequence[float], start: int, window: int,
                   tolerance: float) -> int:
    """Nearest local angle maximum after *start* within *tolerance* of the true maximum."""
    a = np.asarray(angles, dtype=float)
    hi = min(len(a), start + window + 1)
    return _nearest_peak(a, start, start, hi, tolerance)


def find_amortization_end(angles: Sequence[float], landing: int, lookahead: int,
                          tolerance: float) -> int:
    """Latest frame after *landing* still close to the post-landing maximum.

    Parameters
    ----------
    angles : sequence of float
        Joint angle per frame.
    landing : int
        Landing frame index.
    lookahead : int
        Number of frames examined after the landing.
    tolerance : float
        Angle tolerance in degrees.

    Returns
    -------
    int
        Frame index, *landing* when the window is empty.
    """
    a = np.asarray(angles, dtype=float)
    hi = min(len(a), landing + lookahead + 1)
    if hi <= landing:
        return landing
    segment = a[landing:hi]
    floor = segment.max() - tolerance
    close = np.where(segment >= floor)[0]
    return landing + int(close[-1])


def find_candidate_minima(y: Sequence[float], window: int, min_separation: int) -> List[int]:
    """Strict local minima of *y* kept at least *min_separation* apart.

    A frame is a candidate when it is lower than every other frame
    within *window* frames on each side. Of two candidates closer than
    *min_separation* the lower one is kept.
    """
    arr = np.asarray(y, dtype=float)
    if len(arr) < 3:
        return []
    raw = argrelmin(arr, order=max(1, int(window)))[0]

    kept: List[int] = []
    for idx in raw:
        idx = int(idx)
        if kept and idx - kept[-1] < min_separation:
            if arr[idx] < arr[kept[-1]]:
                kept[-1] = idx
            continue
        kept.append(idx)
    return kept


def _series(frames: List[dict]):
    ts = np.array([float(f["timestamp"]) for f in frames])
    angles = np.array([float(f["angle"]) for f in frames])
    y = np.array([float(f["y"]) for f in frames])
    return ts, angles, y


def is_jump_like_detailed(frames: List[dict], index: int,
                          settings: Optional[dict] = None) -> dict:
    """Quick geometric check that a vertical minimum looks like a jump.

    Parameters
    ----------
    frames : list of dict
        Jump frames (``timestamp``, ``angle``, ``y``).
    index : int
        Candidate minimum.
    settings : dict, optional
        Overrides for the ``jump`` config section.

    Returns
    -------
    dict
        Keys: ``is_jump``, ``reason`` (``None`` when accepted), ``drop``,
        ``rise`` (px), ``flexion_before``, ``flexion_after``,
        ``angle_delta`` (deg).
    """
    cfg = get_settings("jump", settings)
    _, angles, y = _series(frames)
    y = moving_average(y, cfg["smoothing_window"])
    w = int(cfg["reject_window"])

    result = {
        "is_jump": False,
        "reason": None,
        "drop": 0.0,
        "rise": 0.0,
        "flexion_before": 0.0,
        "flexion_after": 0.0,
        "angle_delta": 0.0,
    }

    before = slice(max(0, index - w), index)
    after = slice(index + 1, min(len(y), index + w + 1))
    if index <= 0 or index >= len(y) - 1 or len(y[before]) == 0 or len(y[after]) == 0:
        result["reason"] = "edge"
        return result

    result["drop"] = float(y[before].max() - y[index])
    result["rise"] = float(y[after].max() - y[index])
    result["flexion_before"] = float(angles[before].max())
    result["flexion_after"] = float(angles[after].max())
    result["angle_delta"] = float(
        min(result["flexion_before"], result["flexion_after"]) - angles[index]
    )

    if result["drop"] < cfg["min_drop_px"]:
        result["reason"] = "drop"
    elif result["rise"] < cfg["min_rise_px"]:
        result["reason"] = "rise"
    elif result["flexion_before"] < cfg["min_flexion_before"]:
        result["reason"] = "flexion_before"
    elif result["flexion_after"] < cfg["min_flexion_after"]:
        result["reason"] = "flexion_after"
    elif result["angle_delta"] < cfg["min_angle_delta"]:
        result["reason"] = "angle_delta"
    else:
        result["is_jump"] = True
    return result


def _invalid_result(index: Optional[int]) -> dict:
    return {
        "valid": False,
        "index": index,
        "takeoff_index": index,
        "landing_index": index,
        "impulse_start_index": index,
        "max_flexion_index": index,
        "amortization_end_index": index,
        "takeoff_time": None,
        "landing_time": None,
        "flight_time": 0.0,
        "height": 0.0,
        "rsi": 0.0,
        "takeoff_velocity": 0.0,
        "mean_velocity": 0.0,
        "impulse_duration": 0.0,
        "amortization_duration": 0.0,
        "angles": {},
    }


def analyze_jump(frames: List[dict], settings: Optional[dict] = None,
                 min_index: Optional[int] = None) -> dict:
    """Compute the phase metrics of one jump.

    Parameters
    ----------
    frames : list of dict
        Jump frames (``timestamp`` ms, ``angle`` deg, ``y`` px).
    settings : dict, optional
        Overrides for the ``jump`` config section.
    min_index : int, optional
        Anchor frame. Defaults to the minimum of the smoothed ``y``.

    Returns
    -------
    dict
        Indices of every phase boundary, ``flight_time`` (s),
        ``height`` (m, ``g t^2 / 8``), ``rsi`` (height / flight time),
        ``takeoff_velocity`` (m/s, ``sqrt(2 g h)``), ``mean_velocity``,
        ``impulse_duration`` and ``amortization_duration`` (s),
        ``angles`` at each phase and ``valid``. A jump is invalid when
        a boundary search found no event or the flight time is not
        positive.

    Raises
    ------
    ValueError
        If *min_index* is outside the recording.
    """
    cfg = get_settings("jump", settings)
    n = len(frames)
    if n < 3:
        logger.debug(f"Jump analysis needs at least 3 frames, got {n}")
        return _invalid_result(None)

    ts, angles, y = _series(frames)
    if min_index is None:
        idx = int(np.argmin(moving_average(y, cfg["smoothing_window"])))
    else:
        idx = int(min_index)
        if not 0 <= idx < n:
            raise ValueError(f"min_index {idx} outside 0..{n - 1}")

    step = cfg["min_single_step_change"]
    max_frames = cfg["event_search_frames"]
    takeoff = detect_angle_event(angles, idx, -1, 1, cfg["takeoff_accumulated_threshold"],
                                 step, max_frames)
    landing = detect_angle_event(angles, idx, 1, 1, cfg["landing_accumulated_threshold"],
                                 step, max_frames)

    window = int(cfg["peak_search_window"])
    tol = cfg["similar_angle_tolerance"]
    impulse_start = find_previous_peak(angles, idx, window, tol)
    max_flexion = find_next_peak(angles, idx, window, tol)
    amortization_end = find_amortization_end(
        angles, landing, int(cfg["amortization_lookahead"]), cfg["angle_tolerance"]
    )

    flight_time = (ts[landing] - ts[takeoff]) / 1000.0
    valid = takeoff != idx and landing != idx and flight_time > 0
    g = cfg["gravity"]
    height = g * flight_time ** 2 / 8.0 if flight_time > 0 else 0.0
    velocity = math.sqrt(2.0 * g * height)

    result = {
        "valid": bool(valid),
        "index": idx,
        "takeoff_index": int(takeoff),
        "landing_index": int(landing),
        "impulse_start_index": int(impulse_start),
        "max_flexion_index": int(max_flexion),
        "amortization_end_index": int(amortization_end),
        "takeoff_time": float(ts[takeoff]),
        "landing_time": float(ts[landing]),
        "flight_time": float(flight_time),
        "height": float(height),
        "rsi": float(height / flight_time) if flight_time > 0 else 0.0,
        "takeoff_velocity": float(velocity),
        "mean_velocity": float(velocity / 2.0),
        "impulse_duration": float((ts[takeoff] - ts[impulse_start]) / 1000.0),
        "amortization_duration": float((ts[amortization_end] - ts[landing]) / 1000.0),
        "angles": {
            "impulse_start": float(angles[impulse_start]),
            "takeoff": float(angles[takeoff]),
            "landing": float(angles[landing]),
            "max_flexion": float(angles[max_flexion]),
            "amortization_end": float(angles[amortization_end]),
        },
    }
    if not valid:
        logger.debug(
            f"Jump at frame {idx} invalid: takeoff={takeoff}, landing={landing}, "
            f"flight={flight_time:.3f}s"
        )
    return result


def detect_jumps(frames: List[dict], settings: Optional[dict] = None) -> List[Dict]:
    """Find every valid jump in a recording.

    Candidates are the separated minima of the smoothed vertical trace;
    each passes :func:`is_jump_like_detailed` before the full
    :func:`analyze_jump`. Only valid jumps are returned, in time order.
    """
    cfg = get_settings("jump", settings)
    if len(frames) < 3:
        return []

    _, _, y = _series(frames)
    smoothed = moving_average(y, cfg["smoothing_window"])
    candidates = find_candidate_minima(smoothed, int(cfg["candidate_window"]),
                                       int(cfg["min_separation"]))

    jumps = []
    for idx in candidates:
        check = is_jump_like_detailed(frames, idx, cfg)
        if not check["is_jump"]:
            logger.debug(f"Candidate {idx} rejected ({check['reason']})")
            continue
        analysis = analyze_jump(frames, cfg, min_index=idx)
        if analysis["valid"]:
            jumps.append(analysis)

    logger.info(f"Detected {len(jumps)} jump(s) from {len(candidates)} candidate(s)")
    return jumps
