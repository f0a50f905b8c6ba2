"""Second-order low-pass (Butterworth) filtering of scalar sample streams.

Two entry points share one recurrence: ``filter_sample`` for live
streams (one call per incoming sample, state carried between calls)
and ``filter_block`` for recorded buffers. Running the block form with
order ``2k`` gives exactly the same floats as feeding the samples one
by one through ``k`` fresh states.

Functions
---------
butterworth_coefficients
    Normalised biquad coefficients for a cutoff and sample rate.
filter_sample
    Filter one sample through a cascade of stateful sections.
filter_block
    Filter a whole buffer with zero initial state.
validate_filter_params
    Reject impossible cutoff / sample-rate / order combinations.

Classes
-------
FilterState
    The four delay registers of one biquad section.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Q of a 2nd-order Butterworth section
BUTTERWORTH_Q = 1.0 / math.sqrt(2.0)


@dataclass
class FilterState:
    """Delay registers of one second-order section."""
    x1: float = 0.0
    x2: float = 0.0
    y1: float = 0.0
    y2: float = 0.0

    def reset(self) -> None:
        self.x1 = self.x2 = self.y1 = self.y2 = 0.0


def validate_filter_params(
    cutoff: float,
    sample_rate: float,
    order: Optional[int] = None,
) -> None:
    """Raise ``ValueError`` if the filter cannot be built.

    Parameters
    ----------
    cutoff : float
        Cutoff frequency in Hz, must lie in ``(0, sample_rate / 2)``.
    sample_rate : float
        Sampling frequency in Hz, must be positive.
    order : int, optional
        Filter order, must be a positive even integer when given.
    """
    if order is not None:
        if int(order) != order or order < 2 or order % 2 != 0:
            raise ValueError(f"Filter order must be a positive even integer, got {order}")
    if not sample_rate > 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")
    nyquist = sample_rate / 2.0
    if not 0 < cutoff < nyquist:
        raise ValueError(
            f"Cutoff {cutoff} Hz must be within (0, {nyquist}) Hz for fs={sample_rate} Hz"
        )


def butterworth_coefficients(
    cutoff: float,
    sample_rate: float,
) -> Tuple[float, float, float, float, float]:
    """Return ``(b0, b1, b2, a1, a2)`` normalised by ``a0``.

    Parameters
    ----------
    cutoff : float
        Cutoff frequency in Hz.
    sample_rate : float
        Sampling frequency in Hz.

    Returns
    -------
    tuple of float
    """
    validate_filter_params(cutoff, sample_rate)
    omega = 2.0 * math.pi * cutoff / sample_rate
    cos_w = math.cos(omega)
    alpha = math.sin(omega) / (2.0 * BUTTERWORTH_Q)

    b0 = (1.0 - cos_w) / 2.0
    b1 = 1.0 - cos_w
    b2 = b0
    a0 = 1.0 + alpha
    a1 = -2.0 * cos_w
    a2 = 1.0 - alpha
    return b0 / a0, b1 / a0, b2 / a0, a1 / a0, a2 / a0


def _step(x0: float, state: FilterState, coeffs: Tuple[float, ...]) -> float:
    b0, b1, b2, a1, a2 = coeffs
    y0 = b0 * x0 + b1 * state.x1 + b2 * state.x2 - a1 * state.y1 - a2 * state.y2
    state.x2 = state.x1
    state.x1 = x0
    state.y2 = state.y1
    state.y1 = y0
    return y0


def filter_sample(
    x0: float,
    states: Sequence[FilterState],
    cutoff: float,
    sample_rate: float,
) -> float:
    """Filter one new sample through a cascade of biquad sections.

    Each state object is one section; the output of a section feeds the
    next one, in order. States are mutated in place. The sample rate may
    change between calls (it is derived per sample on motion streams),
    so coefficients are recomputed every call.

    Parameters
    ----------
    x0 : float
        New input sample.
    states : sequence of FilterState
        One state per cascaded section (``order / 2`` of them).
    cutoff : float
        Cutoff frequency in Hz.
    sample_rate : float
        Sampling frequency in Hz.

    Returns
    -------
    float
        Filtered sample.

    Raises
    ------
    ValueError
        If cutoff or sample rate are invalid (nothing is mutated).
    """
    coeffs = butterworth_coefficients(cutoff, sample_rate)
    y = float(x0)
    for state in states:
        y = _step(y, state, coeffs)
    return y


def filter_block(
    data: Sequence[float],
    cutoff: float,
    order: int,
    sample_rate: float,
) -> np.ndarray:
    """Low-pass a whole buffer with zero initial state.

    The second-order recurrence is run ``order / 2`` times in sequence,
    each pass starting from fresh registers.

    Parameters
    ----------
    data : sequence of float
        Input samples.
    cutoff : float
        Cutoff frequency in Hz.
    order : int
        Even filter order (2, 4, 6, ...).
    sample_rate : float
        Sampling frequency in Hz.

    Returns
    -------
    np.ndarray
        Filtered samples, same length as *data*.

    Raises
    ------
    ValueError
        If *order* is odd or non-positive, or cutoff / sample rate are
        invalid.
    """
    validate_filter_params(cutoff, sample_rate, order)
    coeffs = butterworth_coefficients(cutoff, sample_rate)
    out: List[float] = [float(v) for v in data]
    for _ in range(order // 2):
        state = FilterState()
        out = [_step(v, state, coeffs) for v in out]
    return np.asarray(out, dtype=float)


def new_cascade(order: int) -> List[FilterState]:
    """Fresh states for an ``order``-th order cascade."""
    if int(order) != order or order < 2 or order % 2 != 0:
        raise ValueError(f"Filter order must be a positive even integer, got {order}")
    return [FilterState() for _ in range(order // 2)]
