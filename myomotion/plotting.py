"""Visualization of balance, force and jump analyses with matplotlib.

All functions return ``matplotlib.figure.Figure`` objects for saving or
display.

Functions
---------
plot_spectrum
    Amplitude spectra with the dominant frequency marked.
plot_cop
    COP point cloud, convex hull and confidence ellipse.
plot_force_cycles
    Force trace with detected cycles shaded.
plot_jump
    Joint angle and vertical trace with the jump phases marked.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
import matplotlib
if matplotlib.get_backend() == "":
    matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.patches import Ellipse, Polygon

logger = logging.getLogger(__name__)

# Color scheme
_COLORS = {
    "ml": "#2171b5",         # blue
    "ap": "#cb181d",         # red
    "force": "#252525",
    "cycle": "#6baed6",
    "peak": "#1a9850",       # green
    "valley": "#d73027",     # red-orange
    "hull": "#fd8d3c",
    "ellipse": "#756bb1",
}

_PHASE_STYLES = {
    "impulse_start_index": ("Impulse", "#6baed6"),
    "takeoff_index": ("Takeoff", "#1a9850"),
    "landing_index": ("Landing", "#d73027"),
    "amortization_end_index": ("Amortization end", "#756bb1"),
}


def plot_spectrum(
    spectra: dict,
    max_frequency: Optional[float] = 10.0,
    figsize: Optional[tuple] = None,
) -> plt.Figure:
    """Plot amplitude spectra.

    Parameters
    ----------
    spectra : dict
        A single spectrum (``frequencies``, ``amplitudes``) or a
        ``{"ml": ..., "ap": ...}`` dict as returned by
        :func:`frequency_features`.
    max_frequency : float, optional
        Upper x-axis limit in Hz (default 10).
    figsize : tuple, optional
        Figure size ``(width, height)`` in inches.

    Returns
    -------
    matplotlib.figure.Figure
    """
    if "frequencies" in spectra:
        spectra = {"signal": spectra}

    fig, ax = plt.subplots(figsize=figsize or (10, 4))
    for name, spec in spectra.items():
        freqs = np.asarray(spec.get("frequencies", []))
        amps = np.asarray(spec.get("amplitudes", []))
        if len(freqs) == 0:
            continue
        color = _COLORS.get(name, _COLORS["force"])
        ax.plot(freqs, amps, color=color, linewidth=1, label=name.upper())
        dom = spec.get("dominant_frequency")
        if dom:
            ax.axvline(dom, color=color, linestyle="--", alpha=0.6)
            ax.annotate(f"{dom:.2f} Hz", xy=(dom, amps.max()), fontsize=8, color=color)

    if max_frequency:
        ax.set_xlim(0, max_frequency)
    ax.set_xlabel("Frequency (Hz)")
    ax.set_ylabel("Amplitude")
    ax.set_title("Amplitude spectrum")
    if ax.get_legend_handles_labels()[0]:
        ax.legend(fontsize=8)
    fig.tight_layout()
    return fig


def plot_cop(stats: dict, figsize: Optional[tuple] = None) -> plt.Figure:
    """Plot the COP cloud with hull and 95% ellipse when available.

    Parameters
    ----------
    stats : dict
        Output of :func:`cop_stats` (post-processing mode adds the hull
        and ellipse).
    figsize : tuple, optional
        Figure size in inches.

    Returns
    -------
    matplotlib.figure.Figure
    """
    fig, ax = plt.subplots(figsize=figsize or (6, 6))
    points = stats.get("cop_points", [])
    if points:
        ml = [p["ml"] for p in points]
        ap = [p["ap"] for p in points]
        ax.plot(ml, ap, color=_COLORS["ml"], linewidth=0.5, alpha=0.7)
        ax.scatter(ml, ap, s=2, color=_COLORS["ml"])

    area = stats.get("cop_area")
    if area and len(area.get("points", [])) >= 3:
        hull = [(p["ml"], p["ap"]) for p in area["points"]]
        ax.add_patch(Polygon(hull, closed=True, fill=False, edgecolor=_COLORS["hull"],
                             linewidth=1.5, label=f"Hull {area['value']:.2f} cm²"))

    ellipse = stats.get("ellipse")
    if ellipse and ellipse.get("semi_major", 0) > 0:
        ax.add_patch(Ellipse(
            (ellipse["center"]["ml"], ellipse["center"]["ap"]),
            width=2 * ellipse["semi_major"],
            height=2 * ellipse["semi_minor"],
            angle=np.degrees(ellipse["orientation"]),
            fill=False, edgecolor=_COLORS["ellipse"], linewidth=1.5,
            label=f"95% ellipse {ellipse['area']:.2f} cm²",
        ))

    ax.set_xlabel("ML (cm)")
    ax.set_ylabel("AP (cm)")
    ax.set_title("Centre of pressure")
    ax.set_aspect("equal", adjustable="datalim")
    ax.axhline(0, color="gray", linewidth=0.5)
    ax.axvline(0, color="gray", linewidth=0.5)
    if ax.get_legend_handles_labels()[0]:
        ax.legend(fontsize=8, loc="upper right")
    fig.tight_layout()
    return fig


def plot_force_cycles(
    points: Sequence[Tuple[float, float]],
    cycles: Optional[List[dict]] = None,
    figsize: Optional[tuple] = None,
) -> plt.Figure:
    """Plot a force trace with cycles shaded and peaks marked.

    Parameters
    ----------
    points : sequence of (x, y)
        Time (ms) and force samples.
    cycles : list of dict, optional
        Cycles from :func:`detect_cycles` or :func:`segment_cycles`.
    figsize : tuple, optional
        Figure size in inches.

    Returns
    -------
    matplotlib.figure.Figure
    """
    fig, ax = plt.subplots(figsize=figsize or (12, 4))
    if len(points):
        arr = np.asarray(points, dtype=float)
        ax.plot(arr[:, 0] / 1000.0, arr[:, 1], color=_COLORS["force"], linewidth=1)

    for i, c in enumerate(cycles or []):
        ax.axvspan(c["start_x"] / 1000.0, c["end_x"] / 1000.0,
                   color=_COLORS["cycle"], alpha=0.15 if i % 2 else 0.25)
        ax.plot(c["peak_x"] / 1000.0, c["peak_y"], "v", color=_COLORS["peak"], markersize=5)
        if c.get("min_x") is not None:
            ax.plot(c["min_x"] / 1000.0, c["min_y"], "^", color=_COLORS["valley"], markersize=5)

    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Force (kg)")
    ax.set_title(f"Force cycles (n={len(cycles or [])})")
    fig.tight_layout()
    return fig


def plot_jump(
    frames: List[dict],
    jumps: Optional[List[dict]] = None,
    figsize: Optional[tuple] = None,
) -> plt.Figure:
    """Plot joint angle and vertical position with jump phases.

    Parameters
    ----------
    frames : list of dict
        Jump frames (``timestamp``, ``angle``, ``y``).
    jumps : list of dict, optional
        Analyses from :func:`detect_jumps`.
    figsize : tuple, optional
        Figure size in inches.

    Returns
    -------
    matplotlib.figure.Figure
    """
    fig, (ax_angle, ax_y) = plt.subplots(2, 1, figsize=figsize or (12, 6), sharex=True)
    time = np.array([f["timestamp"] for f in frames], dtype=float) / 1000.0
    ax_angle.plot(time, [f["angle"] for f in frames], color=_COLORS["ap"], linewidth=1)
    ax_y.plot(time, [f["y"] for f in frames], color=_COLORS["ml"], linewidth=1)
    ax_y.invert_yaxis()  # image coordinates

    for j, jump in enumerate(jumps or []):
        ax_angle.axvspan(time[jump["takeoff_index"]], time[jump["landing_index"]],
                         color=_COLORS["cycle"], alpha=0.2)
        for key, (label, color) in _PHASE_STYLES.items():
            for ax in (ax_angle, ax_y):
                ax.axvline(time[jump[key]], color=color, linewidth=0.8,
                           label=label if (j == 0 and ax is ax_angle) else None)
        ax_y.annotate(f"{jump['height'] * 100:.1f} cm",
                      xy=(time[jump["index"]], frames[jump["index"]]["y"]), fontsize=8)

    ax_angle.set_ylabel("Flexion (deg)")
    ax_y.set_ylabel("Vertical position (px)")
    ax_y.set_xlabel("Time (s)")
    ax_angle.set_title(f"Jumps (n={len(jumps or [])})")
    if ax_angle.get_legend_handles_labels()[0]:
        ax_angle.legend(fontsize=8, loc="upper right")
    fig.tight_layout()
    return fig
