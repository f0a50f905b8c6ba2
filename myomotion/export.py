"""Export and import of myomotion data.

Samples travel as flat ``timestamp,value`` CSV files, motion recordings
as one CSV row per device-motion sample, and analysis outputs as CSV
tables or compact JSON summaries.

Functions
---------
export_samples_csv
    Write ``(timestamp, value)`` points to CSV.
load_samples_csv
    Read ``(timestamp, value)`` points from CSV.
load_motion_csv
    Read device-motion samples for a balance session.
export_cycles_csv
    Write detected cycles to CSV.
export_frames_json
    Write jump frames to JSON.
load_frames_json
    Read jump or pose frames from JSON.
to_dataframe
    Convert an analysis result to a pandas DataFrame.
export_summary_json
    Write a compact JSON summary of an analysis.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .schema import _convert_numpy

logger = logging.getLogger(__name__)

MOTION_COLUMNS = (
    "timestamp", "interval_ms",
    "acc_x", "acc_y", "acc_z",
    "acc_g_x", "acc_g_y", "acc_g_z",
)

_CYCLE_COLUMNS = [
    "start_x", "end_x", "peak_x", "peak_y", "min_x", "min_y",
    "amplitude", "duration", "speed_ratio", "relative_speed_ratio", "work_load",
]


def _require_file(path: Union[str, Path]) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return path


# ── Samples ──────────────────────────────────────────────────────────


def export_samples_csv(points: Sequence[Tuple[float, float]], path: Union[str, Path]) -> str:
    """Write ``(timestamp, value)`` points to a ``timestamp,value`` CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(list(points), columns=["timestamp", "value"])
    df.to_csv(path, index=False)
    logger.info(f"Exported {len(df)} samples: {path}")
    return str(path)


def load_samples_csv(path: Union[str, Path]) -> List[Tuple[float, float]]:
    """Read ``(timestamp, value)`` points from CSV.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the ``timestamp`` or ``value`` column is missing.
    """
    path = _require_file(path)
    df = pd.read_csv(path)
    missing = [c for c in ("timestamp", "value") if c not in df.columns]
    if missing:
        raise ValueError(f"Missing column(s) {missing} in {path}")
    df = df.dropna(subset=["timestamp", "value"])
    return list(zip(df["timestamp"].astype(float), df["value"].astype(float)))


def load_motion_csv(path: Union[str, Path]) -> List[dict]:
    """Read device-motion samples from CSV.

    The file needs the columns of :data:`MOTION_COLUMNS`: timestamp
    (ms), sampling interval (ms), acceleration without gravity
    (``acc_*``) and including gravity (``acc_g_*``).

    Returns
    -------
    list of dict
        Samples accepted by :meth:`BalanceSession.process`.
    """
    path = _require_file(path)
    df = pd.read_csv(path)
    missing = [c for c in MOTION_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing column(s) {missing} in {path}")

    samples = []
    for row in df.itertuples(index=False):
        samples.append({
            "timestamp": float(row.timestamp),
            "interval_ms": float(row.interval_ms),
            "acceleration": {"x": float(row.acc_x), "y": float(row.acc_y), "z": float(row.acc_z)},
            "acceleration_including_gravity": {
                "x": float(row.acc_g_x), "y": float(row.acc_g_y), "z": float(row.acc_g_z),
            },
        })
    return samples


# ── Cycles and frames ────────────────────────────────────────────────


def export_cycles_csv(cycles: Sequence[dict], path: Union[str, Path]) -> str:
    """Write one row per cycle."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = to_dataframe({"cycles": list(cycles)}, "cycles")
    df.to_csv(path, index=False, float_format="%.4f")
    logger.info(f"Exported {len(df)} cycles: {path}")
    return str(path)


def export_frames_json(frames: Sequence[dict], path: Union[str, Path]) -> str:
    """Write jump frames as ``{"frames": [...]}``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump({"frames": _convert_numpy(list(frames))}, f, indent=2)
    return str(path)


def load_frames_json(path: Union[str, Path]) -> List[dict]:
    """Read frames from a JSON list or a ``{"frames": [...]}`` dict."""
    path = _require_file(path)
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("frames")
    if not isinstance(data, list):
        raise ValueError(f"No frame list found in {path}")
    return data


# ── DataFrames ───────────────────────────────────────────────────────


def to_dataframe(result: Union[dict, list], what: str = "cycles") -> pd.DataFrame:
    """Convert an analysis result to a pandas DataFrame.

    Parameters
    ----------
    result : dict or list
        Analysis output.
    what : str, optional
        - ``"cycles"`` : cycles of :func:`detect_cycles` (``all_cycles``
          when present) or :func:`segment_cycles`.
        - ``"segments"`` : baseline segments of :func:`segment_cycles`.
        - ``"jumps"`` : list of jump analyses, angles flattened to
          ``angle_<phase>`` columns.
        - ``"spectrum"`` : one spectrum, or ``{"ml", "ap"}`` spectra
          as ``amplitude_ml`` / ``amplitude_ap`` columns.
        - ``"cop"`` : COP points of :func:`cop_stats`.

    Returns
    -------
    pd.DataFrame

    Raises
    ------
    ValueError
        If *what* is not one of the recognized values.
    """
    valid_whats = ("cycles", "segments", "jumps", "spectrum", "cop")
    if what not in valid_whats:
        raise ValueError(f"what must be one of {valid_whats}, got {what!r}")

    if what == "cycles":
        rows = result.get("all_cycles", result.get("cycles", []))
        df = pd.DataFrame(rows) if rows else pd.DataFrame(columns=_CYCLE_COLUMNS)
        return df[[c for c in _CYCLE_COLUMNS if c in df.columns]]

    if what == "segments":
        rows = result.get("segments", [])
        return pd.DataFrame(rows) if rows else pd.DataFrame(
            columns=["start_x", "end_x", "peak_x", "peak_y", "is_valley"])

    if what == "jumps":
        jumps = result.get("jumps", []) if isinstance(result, dict) else result
        rows = []
        for j in jumps:
            row = {k: v for k, v in j.items() if k != "angles"}
            for phase, angle in j.get("angles", {}).items():
                row[f"angle_{phase}"] = angle
            rows.append(row)
        return pd.DataFrame(rows)

    if what == "spectrum":
        if "frequencies" in result:
            return pd.DataFrame({
                "frequency": np.asarray(result["frequencies"]),
                "amplitude": np.asarray(result["amplitudes"]),
            })
        df = pd.DataFrame({"frequency": np.asarray(result["ml"]["frequencies"])})
        for axis in ("ml", "ap"):
            df[f"amplitude_{axis}"] = np.asarray(result[axis]["amplitudes"])
        return df

    points = result.get("cop_points", [])
    return pd.DataFrame(points) if points else pd.DataFrame(columns=["ml", "ap"])


# ── Summary JSON export ──────────────────────────────────────────────


def _summarize(result, kind: str) -> dict:
    if kind == "cycles":
        return {
            "cycle_count": result.get("cycle_count"),
            "avg_amplitude": result.get("avg_amplitude"),
            "avg_duration": result.get("avg_duration"),
            "peak": result.get("peak"),
            "fatigue": result.get("fatigue"),
        }
    if kind == "balance":
        cop = result.get("cop", {})
        freq = result.get("frequency", {})
        return {
            "sample_rate": result.get("sample_rate"),
            "dominant_frequency_ml": freq.get("ml", {}).get("dominant_frequency"),
            "dominant_frequency_ap": freq.get("ap", {}).get("dominant_frequency"),
            "rms_ml": cop.get("rms_ml"),
            "rms_ap": cop.get("rms_ap"),
            "sway_velocity": cop.get("sway_velocity"),
            "ellipse_area": (cop.get("ellipse") or {}).get("area"),
            "cop_area": (cop.get("cop_area") or {}).get("value"),
        }
    if kind == "jump":
        jumps = result.get("jumps", []) if isinstance(result, dict) else result
        keys = ("flight_time", "height", "rsi", "takeoff_velocity",
                "impulse_duration", "amortization_duration")
        return {
            "n_jumps": len(jumps),
            "jumps": [{k: j.get(k) for k in keys} for j in jumps],
            "best_height": max((j["height"] for j in jumps), default=None),
        }
    if kind == "spectrum":
        if "frequencies" in result:
            return {"dominant_frequency": result.get("dominant_frequency")}
        return {
            f"dominant_frequency_{axis}": spec.get("dominant_frequency")
            for axis, spec in result.items() if isinstance(spec, dict)
        }
    raise ValueError(f"No summary available for kind '{kind}'")


def export_summary_json(result, kind: str, output_path: Union[str, Path]) -> str:
    """Export a compact JSON summary of key metrics.

    Parameters
    ----------
    result : dict or list
        Analysis output (``cycles`` summary, balance analysis, jump
        list or spectrum).
    kind : str
        ``"cycles"``, ``"balance"``, ``"jump"`` or ``"spectrum"``.
    output_path : str or Path
        Output JSON file path.

    Returns
    -------
    str
        Path to the created JSON file.
    """
    from . import __version__
    summary = {
        "metadata": {
            "version": __version__,
            "date": datetime.now().isoformat(),
            "kind": kind,
        },
        "metrics": _convert_numpy(_summarize(result, kind)),
    }

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(summary, f, indent=2, default=str)

    logger.info(f"Exported summary JSON: {path}")
    return str(path)
