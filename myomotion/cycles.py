"""Repetition cycle detection and fatigue classification.

Two segmentation strategies are provided for force (or joint-angle)
streams:

* ``CycleDetector`` tracks a hysteresis band around the midpoint of
  the recent window and completes a cycle each time the signal leaves
  the band on the same side it started from. It is fed sample by
  sample during a live recording.
* ``segment_cycles`` works on a whole recording: it splits the signal
  at baseline crossings and builds valley-to-valley cycles whose
  boundaries are pushed outward to where the signal flattens.

Fatigue is judged on the most recent cycles by five independent
signals; two or more make the subject fatigued.

Functions
---------
detect_fatigue
    Multi-signal fatigue verdict for a window of cycles.
fatigue_interpretation
    Human-readable hint for a set of fatigue codes.
segment_cycles
    Batch baseline-crossing segmentation with boundary extension.
detect_outlier_edges
    Flat zones at the start and end of a recording.
rate_of_force_development
    RFD over the steepest ascent in a time range.

Classes
-------
CycleDetector
    Streaming hysteresis-band cycle detector.
"""

import logging
from collections import deque
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import get_settings

logger = logging.getLogger(__name__)

# Fatigue signal codes
AMP_DROP = "↓Amp"
CYCLE_SLOWDOWN = "↑Cyc"
FORCE_DROP = "↓F̄"
VELOCITY_DROP = "↓V̄"
VARIABILITY_RISE = "↑Var"

NO_FATIGUE_MESSAGE = "No fatigue detected."
GENERIC_FATIGUE_MESSAGE = "Multiple fatigue markers detected."

# Only combinations of up to three codes are described
_FATIGUE_TIPS = {
    frozenset([AMP_DROP]): "Power output is reduced.",
    frozenset([CYCLE_SLOWDOWN]): "Movement is slower.",
    frozenset([FORCE_DROP]): "Power output is reduced.",
    frozenset([VELOCITY_DROP]): "Movement is slower.",
    frozenset([VARIABILITY_RISE]): "Movement is less stable.",

    frozenset([AMP_DROP, CYCLE_SLOWDOWN]): "Movement is slower and less powerful.",
    frozenset([AMP_DROP, VELOCITY_DROP]): "Movement is slower and less powerful.",
    frozenset([FORCE_DROP, VELOCITY_DROP]): "Movement is slower and less powerful.",
    frozenset([CYCLE_SLOWDOWN, VARIABILITY_RISE]): "Movement is slower and less stable.",
    frozenset([AMP_DROP, VARIABILITY_RISE]): "Movement is less stable and less powerful.",
    frozenset([FORCE_DROP, VARIABILITY_RISE]): "Movement is less stable and less powerful.",

    frozenset([AMP_DROP, CYCLE_SLOWDOWN, VARIABILITY_RISE]):
        "Fatigue is slowing and destabilizing movement.",
    frozenset([AMP_DROP, VELOCITY_DROP, VARIABILITY_RISE]):
        "Fatigue is slowing and destabilizing movement.",
    frozenset([CYCLE_SLOWDOWN, VELOCITY_DROP, VARIABILITY_RISE]):
        "Fatigue is slowing and destabilizing movement.",
    frozenset([FORCE_DROP, VELOCITY_DROP, VARIABILITY_RISE]):
        "Fatigue is slowing and destabilizing movement.",
    frozenset([FORCE_DROP, CYCLE_SLOWDOWN, VARIABILITY_RISE]):
        "Fatigue is slowing and destabilizing movement.",
    frozenset([AMP_DROP, FORCE_DROP, VELOCITY_DROP]): "Significant power loss detected.",
    frozenset([AMP_DROP, CYCLE_SLOWDOWN, VELOCITY_DROP]):
        "Fatigue is slowing and weakening movement.",
    frozenset([AMP_DROP, CYCLE_SLOWDOWN, FORCE_DROP]):
        "Fatigue is slowing and weakening movement.",
    frozenset([AMP_DROP, FORCE_DROP, VARIABILITY_RISE]):
        "Fatigue is destabilizing and weakening movement.",
}


def _load_factor(work_load: Optional[float]) -> float:
    return float(work_load) if work_load is not None and work_load > 0 else 1.0


def _cycle_velocity(cycle: dict, work_load: Optional[float] = None) -> Optional[float]:
    """Amplitude per second, normalised by the workload."""
    duration = cycle.get("duration") or 0.0
    if duration <= 0:
        return None
    velocity = cycle["amplitude"] / (duration / 1000.0) / _load_factor(work_load)
    return velocity if np.isfinite(velocity) else None


def average_velocity(cycles: Sequence[dict], work_load: Optional[float] = None) -> Optional[float]:
    """Mean normalised velocity of *cycles*, ``None`` if none is defined."""
    velocities = [v for v in (_cycle_velocity(c, work_load) for c in cycles) if v is not None]
    if not velocities:
        return None
    return float(np.mean(velocities))


def fatigue_interpretation(reasons: Sequence[str]) -> str:
    """Look up the hint for a set of fatigue codes.

    Combinations of four or more codes, or combinations absent from the
    table, get a generic message.
    """
    if not reasons:
        return NO_FATIGUE_MESSAGE
    key = frozenset(reasons)
    if len(key) <= 3 and key in _FATIGUE_TIPS:
        return _FATIGUE_TIPS[key]
    return GENERIC_FATIGUE_MESSAGE


def detect_fatigue(
    cycles: Sequence[dict],
    durations: Sequence[float],
    recent_peak: float,
    global_peak: float,
    initial_avg_velocity: Optional[float],
    settings: Optional[dict] = None,
    work_load: Optional[float] = None,
) -> dict:
    """Multi-signal fatigue verdict.

    Parameters
    ----------
    cycles : sequence of dict
        Cycle history, oldest first. Only the last ``cycles_to_average``
        cycles are evaluated.
    durations : sequence of float
        Recent cycle durations (ms), oldest first.
    recent_peak : float
        Maximum of the trailing time window.
    global_peak : float
        Maximum of the whole recording.
    initial_avg_velocity : float or None
        Velocity baseline from the first cycles; the velocity signal is
        skipped while it is ``None``.
    settings : dict, optional
        Overrides for the ``force`` config section.
    work_load : float, optional
        External load used to normalise amplitudes, peaks and
        velocities when positive.

    Returns
    -------
    dict
        Keys: ``is_fatigued`` (at least two signals), ``reasons``
        (sorted codes), ``codes`` (comma-joined reasons),
        ``interpretation``.
    """
    cfg = get_settings("force", settings)
    if not cycles:
        return {"is_fatigued": False, "reasons": [], "codes": "", "interpretation": ""}

    n_avg = int(cfg["cycles_to_average"])
    load = _load_factor(work_load)
    window = list(cycles)[-n_avg:]

    amplitudes = np.array([c["amplitude"] for c in window], dtype=float) / load
    avg_amplitude = float(amplitudes.mean())

    change_rate = 0.0
    recent_durations = [d for d in list(durations)[-n_avg:]]
    if len(recent_durations) >= 2:
        deltas = [
            (recent_durations[i] - recent_durations[i - 1]) / recent_durations[i - 1]
            for i in range(1, len(recent_durations))
            if recent_durations[i - 1] > 0
        ]
        if deltas:
            change_rate = float(np.mean(deltas))

    avg_vel = average_velocity(window, work_load) or 0.0
    variance = float(np.var(amplitudes))

    reasons = []
    if avg_amplitude < cfg["min_avg_amplitude"]:
        reasons.append(AMP_DROP)
    if change_rate > cfg["duration_change_threshold"]:
        reasons.append(CYCLE_SLOWDOWN)
    if recent_peak / load < global_peak * cfg["peak_drop_threshold"]:
        reasons.append(FORCE_DROP)
    if initial_avg_velocity is not None and avg_vel < initial_avg_velocity * cfg["velocity_drop_threshold"]:
        reasons.append(VELOCITY_DROP)
    if variance > cfg["variability_threshold"]:
        reasons.append(VARIABILITY_RISE)

    reasons = sorted(reasons)
    return {
        "is_fatigued": len(reasons) >= 2,
        "reasons": reasons,
        "codes": ",".join(reasons),
        "interpretation": fatigue_interpretation(reasons),
    }


# ── Streaming detector ───────────────────────────────────────────────


class CycleDetector:
    """Hysteresis-band cycle detector for one stream.

    The caller owns the sample history and passes it, time-ordered, to
    :meth:`update` after each append. Only the last point is processed;
    the trailing window is used for the band midpoint and the recent
    peak. Passing an empty history resets the detector.

    Parameters
    ----------
    settings : dict, optional
        Overrides for the ``force`` config section.
    work_load : float, optional
        External load used for normalisation (overrides the setting).

    Attributes
    ----------
    cycles : collections.deque
        Last ``cycles_for_analysis`` completed cycles.
    durations : collections.deque
        Last ``cycles_to_average`` cycle durations (ms).
    initial_avg_velocity : float or None
        Velocity baseline, set once when more than
        ``cycles_to_average`` cycles exist.
    """

    def __init__(self, settings: Optional[dict] = None, work_load: Optional[float] = None):
        self.settings = get_settings("force", settings)
        self.work_load = work_load if work_load is not None else self.settings.get("work_load")
        self.reset()

    def reset(self) -> None:
        self.cycles: deque = deque(maxlen=int(self.settings["cycles_for_analysis"]))
        self.durations: deque = deque(maxlen=int(self.settings["cycles_to_average"]))
        self.cycle_count = 0
        self.initial_avg_velocity: Optional[float] = None
        self.peak = 0.0
        self.recent_average = 0.0
        self.recent_peak = 0.0
        self.last_cycle: Optional[dict] = None
        self._start_extreme: Optional[str] = None
        self._last_extreme: Optional[str] = None
        self._start_x: Optional[float] = None
        self._extremes: Optional[List[float]] = None
        self._n_seen = 0

    @staticmethod
    def _trailing(history: Sequence[Tuple[float, float]], since_x: float) -> List[Tuple[float, float]]:
        """Points of *history* with ``x >= since_x``, oldest first."""
        out = []
        for i in range(len(history) - 1, -1, -1):
            px, py = history[i][0], history[i][1]
            if px < since_x:
                break
            out.append((float(px), float(py)))
        out.reverse()
        return out

    def update(self, history: Sequence[Tuple[float, float]]) -> Optional[dict]:
        """Process the newest point of *history*.

        Parameters
        ----------
        history : sequence of (x, y)
            Whole time-ordered history, ``x`` in ms.

        Returns
        -------
        dict or None
            The cycle completed by this point, if any.
        """
        if len(history) == 0:
            if self._n_seen:
                logger.debug("Empty history, resetting cycle detector")
            self.reset()
            return None

        x, y = float(history[-1][0]), float(history[-1][1])
        if not (np.isfinite(x) and np.isfinite(y)):
            return None

        self.peak = y if self._n_seen == 0 else max(self.peak, y)
        self._n_seen += 1

        recent = [p[1] for p in self._trailing(history, x - self.settings["moving_average_window"])]
        hi, lo = max(recent), min(recent)
        self.recent_average = (hi + lo) / 2.0
        self.recent_peak = hi

        h = self.settings["hysteresis"]
        if y >= self.recent_average + h:
            extreme = "above"
        elif y <= self.recent_average - h:
            extreme = "below"
        else:
            return None

        if self._extremes is None:
            self._extremes = [y, y]
        else:
            self._extremes[0] = min(self._extremes[0], y)
            self._extremes[1] = max(self._extremes[1], y)

        if self._start_extreme is None:
            self._start_extreme = extreme
            self._last_extreme = extreme
            self._start_x = x
            return None

        if extreme == self._last_extreme:
            return None
        self._last_extreme = extreme
        if extreme != self._start_extreme:
            return None

        cycle = self._complete_cycle(history, x)
        self._start_x = x
        self._extremes = None
        return cycle

    def _complete_cycle(self, history: Sequence[Tuple[float, float]], end_x: float) -> Optional[dict]:
        start_x = self._start_x
        lo, hi = self._extremes
        duration = end_x - start_x
        amplitude = hi - lo

        if (duration < self.settings["min_cycle_duration"]
                or amplitude < self.settings["min_cycle_amplitude"]):
            logger.debug(f"Dropped degenerate cycle: {duration:.0f} ms, amplitude {amplitude:.3f}")
            return None

        seg = np.asarray(self._trailing(history, start_x), dtype=float)
        seg_x, seg_y = seg[:, 0], seg[:, 1]
        i_max, i_min = int(np.argmax(seg_y)), int(np.argmin(seg_y))
        cycle = {
            "start_x": start_x,
            "end_x": end_x,
            "peak_x": float(seg_x[i_max]),
            "peak_y": float(seg_y[i_max]),
            "min_x": float(seg_x[i_min]),
            "min_y": float(seg_y[i_min]),
            "amplitude": float(amplitude),
            "duration": float(duration),
            "speed_ratio": None,
            "relative_speed_ratio": None,
            "work_load": self.work_load,
        }
        cycle["speed_ratio"] = _cycle_velocity(cycle, self.work_load)

        self.cycles.append(cycle)
        self.durations.append(cycle["duration"])
        self.cycle_count += 1

        n_avg = int(self.settings["cycles_to_average"])
        if self.initial_avg_velocity is None and self.cycle_count > n_avg:
            history = list(self.cycles)
            baseline = average_velocity(history[1:n_avg + 1], self.work_load)
            if baseline is None:
                baseline = average_velocity(history[-n_avg:], self.work_load)
            self.initial_avg_velocity = baseline
            logger.info(f"Initial velocity baseline set to {baseline}")

        if self.initial_avg_velocity and cycle["speed_ratio"] is not None:
            cycle["relative_speed_ratio"] = cycle["speed_ratio"] / self.initial_avg_velocity

        self.last_cycle = cycle
        logger.debug(f"Cycle {self.cycle_count}: {duration:.0f} ms, amplitude {amplitude:.3f}")
        return cycle

    def fatigue_status(self) -> dict:
        """Fatigue verdict for the current cycle window."""
        return detect_fatigue(
            list(self.cycles),
            list(self.durations),
            recent_peak=self.recent_peak,
            global_peak=self.peak,
            initial_avg_velocity=self.initial_avg_velocity,
            settings=self.settings,
            work_load=self.work_load,
        )

    def summary(self) -> dict:
        """Snapshot of the detector state."""
        cycles = list(self.cycles)
        recent = cycles[-int(self.settings["cycles_to_average"]):]
        return {
            "cycle_count": self.cycle_count,
            "cycles": cycles,
            "avg_amplitude": float(np.mean([c["amplitude"] for c in recent])) if recent else None,
            "avg_duration": float(np.mean([c["duration"] for c in recent])) if recent else None,
            "recent_average": self.recent_average,
            "recent_peak": self.recent_peak,
            "peak": self.peak,
            "initial_avg_velocity": self.initial_avg_velocity,
            "fatigue": self.fatigue_status(),
        }


def detect_cycles(
    points: Sequence[Tuple[float, float]],
    settings: Optional[dict] = None,
    work_load: Optional[float] = None,
) -> dict:
    """Replay a recorded stream through a :class:`CycleDetector`.

    Returns the detector summary after the last sample.
    """
    detector = CycleDetector(settings, work_load=work_load)
    history: List[Tuple[float, float]] = []
    completed = []
    for p in points:
        history.append((float(p[0]), float(p[1])))
        cycle = detector.update(history)
        if cycle is not None:
            completed.append(cycle)
    summary = detector.summary()
    summary["all_cycles"] = completed
    logger.info(f"Detected {len(completed)} cycles in {len(history)} samples")
    return summary


# ── Batch segmentation ───────────────────────────────────────────────


def _stable_run_index(
    flat: np.ndarray,
    n: int,
    from_index: int,
    direction: str,
    window: int,
) -> Optional[int]:
    """Find the first run of *window* flat steps from *from_index*.

    ``flat[k]`` tells whether the step ``k -> k + 1`` is flat. Backward
    scans return the first sample of the run, forward scans the sample
    right after it.
    """
    csum = np.concatenate([[0], np.cumsum(flat)])

    def _is_flat(start):
        # steps start-1 .. start+window-2
        lo, hi = start - 1, start + window - 1
        if lo < 0 or hi > n - 1:
            return False
        return csum[hi] - csum[lo] == window

    if direction == "backward":
        for i in range(from_index, window - 1, -1):
            if _is_flat(i - window):
                return i - window
    else:
        for i in range(max(from_index, 0), n - window):
            if _is_flat(i):
                return i + window
    return None


def find_best_stable_region(
    ys: np.ndarray,
    from_index: int,
    direction: str,
    baseline: float,
    max_window: int = 30,
    threshold: float = 0.01,
) -> Optional[int]:
    """Index where the signal settles, tried with growing windows.

    Windows of 5, 10, ... *max_window* steps are tried and the last hit
    wins. Backward hits must lie below *baseline*.
    """
    flat = np.abs(np.diff(ys)) < threshold
    best = None
    for window in range(5, max_window + 1, 5):
        idx = _stable_run_index(flat, len(ys), from_index, direction, window)
        if idx is None:
            continue
        if direction == "forward" or ys[idx] < baseline:
            best = idx
    return best


def safe_extended_start_x(
    xs: np.ndarray,
    ys: np.ndarray,
    peak_x: float,
    previous_end_x: Optional[float],
    dy_threshold: float = 0.01,
    max_lookback: float = 100.0,
) -> float:
    """Move a cycle start back to the nearest flat step."""
    matches = np.nonzero(xs == peak_x)[0]
    if len(matches) == 0 or matches[0] <= 0:
        return peak_x
    for j in range(int(matches[0]), 0, -1):
        if abs(peak_x - xs[j]) > max_lookback:
            break
        if previous_end_x is not None and xs[j] < previous_end_x:
            break
        if abs(ys[j] - ys[j - 1]) < dy_threshold:
            return float(xs[j])
    return peak_x


def safe_extended_end_x(
    xs: np.ndarray,
    ys: np.ndarray,
    peak_x: float,
    next_start_x: Optional[float],
    dy_threshold: float = 0.01,
    max_lookahead: float = 100.0,
) -> float:
    """Move a cycle end forward to the nearest flat step."""
    matches = np.nonzero(xs == peak_x)[0]
    if len(matches) == 0 or matches[0] >= len(xs) - 1:
        return peak_x
    for j in range(int(matches[0]), len(xs) - 1):
        if abs(xs[j + 1] - peak_x) > max_lookahead:
            break
        if next_start_x is not None and xs[j + 1] > next_start_x:
            break
        if abs(ys[j + 1] - ys[j]) < dy_threshold:
            return float(xs[j + 1])
    return peak_x


def _merge_same_kind(segments: List[dict], baseline: float) -> List[dict]:
    if not segments:
        return []
    merged = []
    current = dict(segments[0])
    for seg in segments[1:]:
        if seg["is_valley"] == current["is_valley"]:
            keep = current if abs(current["peak_y"] - baseline) > abs(seg["peak_y"] - baseline) else seg
            current = {
                "start_x": min(current["start_x"], seg["start_x"]),
                "end_x": max(current["end_x"], seg["end_x"]),
                "peak_x": keep["peak_x"],
                "peak_y": keep["peak_y"],
                "is_valley": current["is_valley"],
            }
        else:
            merged.append(current)
            current = dict(seg)
    merged.append(current)
    return merged


def _baseline_segments(
    xs: np.ndarray,
    ys: np.ndarray,
    baseline: float,
    min_segment_duration: float,
    min_segment_deviation: float,
) -> List[dict]:
    crossings = []
    for i in range(1, len(xs)):
        prev, curr = ys[i - 1], ys[i]
        if (prev < baseline <= curr) or (prev > baseline >= curr):
            t = (baseline - prev) / (curr - prev)
            crossings.append(float(xs[i - 1] + t * (xs[i] - xs[i - 1])))

    segments: List[dict] = []
    for start_x, end_x in zip(crossings[:-1], crossings[1:]):
        mask = (xs >= start_x) & (xs <= end_x)
        if not mask.any():
            continue
        seg_x, seg_y = xs[mask], ys[mask]
        k = int(np.argmax(np.abs(seg_y - baseline)))
        if abs(end_x - start_x) < min_segment_duration:
            continue
        if abs(seg_y[k] - baseline) < min_segment_deviation:
            continue
        segments.append({
            "start_x": start_x,
            "end_x": end_x,
            "peak_x": float(seg_x[k]),
            "peak_y": float(seg_y[k]),
            "is_valley": bool(seg_y[k] < baseline),
        })
        segments = _merge_same_kind(segments, baseline)
    return segments


def _make_cycle(
    xs: np.ndarray,
    ys: np.ndarray,
    start_x: float,
    end_x: float,
    work_load: Optional[float],
    min_y: Optional[float] = None,
) -> Optional[dict]:
    mask = (xs >= start_x) & (xs <= end_x)
    if not mask.any():
        return None
    seg_x, seg_y = xs[mask], ys[mask]
    i_max = int(np.argmax(seg_y))
    if min_y is None:
        i_min = int(np.argmin(seg_y))
    else:
        i_min = int(np.argmin(np.abs(seg_y - min_y)))
    low = float(seg_y[i_min]) if min_y is None else float(min_y)
    cycle = {
        "start_x": float(start_x),
        "end_x": float(end_x),
        "peak_x": float(seg_x[i_max]),
        "peak_y": float(seg_y[i_max]),
        "min_x": float(seg_x[i_min]),
        "min_y": low,
        "amplitude": float(seg_y[i_max] - low),
        "duration": float(end_x - start_x),
        "speed_ratio": None,
        "relative_speed_ratio": None,
        "work_load": work_load,
    }
    cycle["speed_ratio"] = _cycle_velocity(cycle, work_load) or 0.0
    return cycle


def _apply_trim(cycles, segments, xs, ys, trim_limits, work_load) -> None:
    first = cycles[0]
    first_seg = next((s for s in segments if s["start_x"] >= trim_limits["start"]), None)
    if first_seg is not None and first["end_x"] > trim_limits["start"]:
        start = first_seg["peak_x"] if first_seg["is_valley"] else trim_limits["start"]
        trimmed = _make_cycle(xs, ys, start, first["end_x"], work_load)
        if trimmed is not None:
            cycles[0] = trimmed

    last = cycles[-1]
    last_seg = next((s for s in reversed(segments) if s["end_x"] <= trim_limits["end"]), None)
    if last_seg is not None and last["start_x"] < trim_limits["end"]:
        end = last_seg["peak_x"] if last_seg["is_valley"] else trim_limits["end"]
        trimmed = _make_cycle(xs, ys, last["start_x"], end, work_load)
        if trimmed is not None:
            cycles[-1] = trimmed


def segment_cycles(
    points: Sequence[Tuple[float, float]],
    baseline: float = 0.0,
    cycles_to_average: int = 3,
    trim_limits: Optional[Dict[str, float]] = None,
    min_cycle_amplitude: float = 0.05,
    min_cycle_duration: float = 100.0,
    work_load: Optional[float] = None,
    min_segment_duration: float = 100.0,
    min_segment_deviation: float = 0.06,
) -> dict:
    """Segment a recorded force stream into valley-to-valley cycles.

    The signal is split at its *baseline* crossings (linearly
    interpolated). Each crossing pair yields a peak or valley segment;
    short or shallow segments are dropped and consecutive segments of
    the same kind are merged. Cycles run from one valley to the next,
    with boundaries extended to the nearest flat step. The partial
    movement before the first valley and after the last one become
    cycles of their own, bounded by the region where the signal
    settles. Without valleys, a single remaining segment becomes the
    only cycle.

    Parameters
    ----------
    points : sequence of (x, y)
        Time-ordered samples, ``x`` in ms.
    baseline : float
        Reference level of the crossings (default 0).
    cycles_to_average : int
        Cycles after the first used as speed reference (default 3).
    trim_limits : dict, optional
        ``{"start": ms, "end": ms}``; first and last cycles are cut to
        these limits (snapped to a valley when one starts/ends there).
    min_cycle_amplitude : float
        Cycles at or below this amplitude are dropped (default 0.05).
    min_cycle_duration : float
        Cycles at or below this duration in ms are dropped (default 100).
    work_load : float, optional
        External load used to normalise speed ratios.
    min_segment_duration : float
        Minimum crossing-to-crossing span in ms (default 100).
    min_segment_deviation : float
        Minimum deviation from baseline of a segment (default 0.06).

    Returns
    -------
    dict
        Keys: ``segments`` (peak/valley segments) and ``cycles``.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    xs, ys = pts[:, 0], pts[:, 1]
    if len(xs) < 2:
        return {"segments": [], "cycles": []}

    segments = _baseline_segments(xs, ys, baseline, min_segment_duration, min_segment_deviation)
    valleys = [s for s in segments if s["is_valley"]]
    cycles: List[dict] = []

    if valleys:
        first = valleys[0]
        left = xs < first["peak_x"]
        if left.any():
            offset = int(np.argmax(ys[left]))
            best = find_best_stable_region(ys, offset, "backward", baseline)
            fallback = segments[0]["start_x"] if segments else float(xs[left].min())
            start_x = float(xs[best]) if best is not None else fallback
            next_start = valleys[1]["peak_x"] if len(valleys) > 1 else None
            end_x = safe_extended_end_x(xs, ys, first["peak_x"], next_start)
            cycle = _make_cycle(xs, ys, start_x, end_x, work_load)
            if cycle is not None:
                cycles.append(cycle)

    for i in range(len(valleys) - 1):
        start, end = valleys[i], valleys[i + 1]
        previous_end = cycles[-1]["end_x"] if cycles else None
        start_x = safe_extended_start_x(xs, ys, start["peak_x"], previous_end)
        next_start = valleys[i + 2]["peak_x"] if i + 2 < len(valleys) else None
        end_x = safe_extended_end_x(xs, ys, end["peak_x"], next_start)
        cycle = _make_cycle(
            xs, ys, start_x, end_x, work_load, min_y=min(start["peak_y"], end["peak_y"])
        )
        if cycle is not None:
            cycles.append(cycle)

    if valleys:
        last = valleys[-1]
        right = xs > last["peak_x"]
        if right.any():
            from_index = int(np.nonzero(right)[0][0] + np.argmax(ys[right]))
            best = find_best_stable_region(ys, from_index, "forward", baseline)
            fallback = segments[-1]["end_x"] if segments else float(xs[right].max())
            end_x = float(xs[best]) if best is not None and ys[best] < baseline else fallback
            previous_end = cycles[-1]["end_x"] if cycles else None
            start_x = safe_extended_start_x(xs, ys, last["peak_x"], previous_end)
            cycle = _make_cycle(xs, ys, start_x, end_x, work_load)
            if cycle is not None:
                cycles.append(cycle)

    if not valleys and len(segments) == 1:
        seg = segments[0]
        cycle = _make_cycle(xs, ys, seg["start_x"], seg["end_x"], work_load)
        if cycle is not None:
            cycles.append(cycle)

    if trim_limits and cycles:
        _apply_trim(cycles, segments, xs, ys, trim_limits, work_load)

    kept = [
        c for c in cycles
        if c["amplitude"] > min_cycle_amplitude and c["end_x"] - c["start_x"] > min_cycle_duration
    ]
    if len(kept) < len(cycles):
        logger.debug(f"Dropped {len(cycles) - len(kept)} degenerate cycles")

    base_speed = average_velocity(kept[1:cycles_to_average + 1], work_load) or 1.0
    for c in kept:
        c["relative_speed_ratio"] = c["speed_ratio"] / base_speed if base_speed > 0 else 1.0

    logger.info(f"Segmented {len(kept)} cycles from {len(segments)} baseline segments")
    return {"segments": segments, "cycles": kept}


def detect_outlier_edges(
    points: Sequence[Tuple[float, float]],
    flat_threshold: float = 0.01,
    min_flat_points: int = 20,
) -> Dict[str, Optional[int]]:
    """Locate flat zones at both ends of a recording.

    Returns
    -------
    dict
        ``start_index``: first index after the leading flat run,
        ``end_index``: first index of the trailing flat run. Either is
        ``None`` when no flat run exists.
    """
    ys = np.asarray(points, dtype=float).reshape(-1, 2)[:, 1]
    n = len(ys)
    start_index = end_index = None

    for i in range(0, n - min_flat_points):
        chunk = ys[i:i + min_flat_points]
        if chunk.max() - chunk.min() < flat_threshold:
            start_index = i + min_flat_points
            break

    for i in range(n - min_flat_points, -1, -1):
        chunk = ys[i:i + min_flat_points]
        if len(chunk) and chunk.max() - chunk.min() < flat_threshold:
            end_index = i
            break

    return {"start_index": start_index, "end_index": end_index}


def rate_of_force_development(
    points: Sequence[Tuple[float, float]],
    start_x: float,
    end_x: float,
    convert_to_newtons: bool = False,
    window: int = 3,
    min_slope: float = 0.01,
    low_slope: float = 0.005,
) -> Optional[dict]:
    """Rate of force development over the steepest rise in a range.

    The steepest *window*-sample slope is located, extended backward
    while the slope stays above *low_slope* and forward while the force
    does not decrease. RFD is the slope of the 20-80 % portion of that
    ascent.

    Parameters
    ----------
    points : sequence of (x, y)
        Samples with ``x`` in ms and ``y`` in kg.
    start_x, end_x : float
        Range of interest in ms (inclusive).
    convert_to_newtons : bool
        Multiply the result by 9.81 (default False, kg/s).

    Returns
    -------
    dict or None
        ``{"rfd", "start", "end", "subrange", "are_newtons"}`` with
        ``start``/``end`` in ms, or ``None`` when no clear rise exists.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    pts = pts[(pts[:, 0] >= start_x) & (pts[:, 0] <= end_x)]
    if len(pts) < 4:
        return None
    xs = pts[:, 0] / 1000.0
    ys = pts[:, 1]

    max_slope = -np.inf
    peak_idx = -1
    for i in range(len(xs) - window):
        dx = xs[i + window] - xs[i]
        slope = (ys[i + window] - ys[i]) / dx if dx != 0 else 0.0
        if slope > max_slope:
            max_slope = slope
            peak_idx = i
    if peak_idx == -1 or max_slope < min_slope:
        return None

    start_idx = peak_idx
    for i in range(peak_idx - 1, 0, -1):
        dx = xs[i + 1] - xs[i]
        slope = (ys[i + 1] - ys[i]) / dx if dx != 0 else 0.0
        if slope < low_slope:
            break
        start_idx = i

    end_idx = peak_idx + window
    for i in range(end_idx + 1, len(xs)):
        if ys[i] < ys[i - 1]:
            break
        end_idx = i

    asc_x = xs[start_idx:end_idx + 1]
    asc_y = ys[start_idx:end_idx + 1]
    if len(asc_y) < 3:
        return None
    f_min, f_max = asc_y[0], asc_y[-1]
    if f_max <= f_min:
        return None

    lo = f_min + 0.2 * (f_max - f_min)
    hi = f_min + 0.8 * (f_max - f_min)
    keep = (asc_y >= lo) & (asc_y <= hi)
    sub_x, sub_y = asc_x[keep], asc_y[keep]
    if len(sub_x) < 2 or sub_x[0] == sub_x[-1]:
        return None

    rfd = (sub_y[-1] - sub_y[0]) / (sub_x[-1] - sub_x[0])
    if convert_to_newtons:
        rfd *= 9.81

    return {
        "rfd": float(rfd),
        "start": float(sub_x[0] * 1000.0),
        "end": float(sub_x[-1] * 1000.0),
        "subrange": [(float(x * 1000.0), float(y)) for x, y in zip(sub_x, sub_y)],
        "are_newtons": convert_to_newtons,
    }
