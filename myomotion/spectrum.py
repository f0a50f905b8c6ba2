"""Windowed amplitude spectrum and dominant-frequency extraction.

The dominant-frequency search is biased toward the 0-2 Hz band where
postural sway and repetition cycles live: a 2-5 Hz peak only wins when
its prominence clearly exceeds the low-band choice.

Functions
---------
frequency_spectrum
    Hann-windowed, zero-padded FFT magnitude of a signal.
find_spectral_peaks
    Indices of local maxima in an amplitude spectrum.
peak_prominence
    Window-bounded prominence of one spectral peak.
dominant_frequency
    Two-band dominant frequency search.
frequency_features
    Filter two acceleration axes and extract their spectra.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from .filters import filter_block

logger = logging.getLogger(__name__)


def _next_power_of_two(n: int) -> int:
    return 1 << (int(n) - 1).bit_length() if n > 1 else 1


def _select_samples(
    signal: np.ndarray,
    sample_rate: float,
    time_window: Optional[float],
    discard_seconds: float,
) -> np.ndarray:
    if time_window is not None and time_window > 0:
        n_window = int(round(time_window * sample_rate))
        return signal[-n_window:] if n_window > 0 else signal[:0]

    margin = int(round(discard_seconds * sample_rate))
    if margin > 0 and len(signal) > 2 * margin:
        return signal[margin:len(signal) - margin]
    if margin > 0:
        # Recording shorter than both margins: keep it whole
        logger.debug(
            f"Signal of {len(signal)} samples too short to discard "
            f"{discard_seconds}s at each end, using all samples"
        )
    return signal


def frequency_spectrum(
    signal: Sequence[float],
    sample_rate: float,
    time_window: Optional[float] = None,
    discard_seconds: float = 5.0,
) -> Dict[str, np.ndarray]:
    """Compute the one-sided amplitude spectrum of *signal*.

    Parameters
    ----------
    signal : sequence of float
        Raw or filtered samples.
    sample_rate : float
        Sampling frequency in Hz.
    time_window : float, optional
        If given, analyse only the trailing ``time_window`` seconds.
        Otherwise the whole signal is used minus *discard_seconds* at
        both ends.
    discard_seconds : float, optional
        Transient margin trimmed at each end when no window is given
        (default 5.0).

    Returns
    -------
    dict
        Keys: ``frequencies`` (ascending, 0 to Nyquist), ``amplitudes``
        (magnitudes of bins ``0..N/2``), ``dominant_frequency`` (default
        band settings). Arrays are empty and the frequency 0.0 for an
        empty signal.

    Raises
    ------
    ValueError
        If *sample_rate* is not positive.
    """
    if not sample_rate > 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")

    arr = np.asarray(signal, dtype=float)
    selected = _select_samples(arr, sample_rate, time_window, discard_seconds)
    n = len(selected)
    if n == 0:
        return {"frequencies": np.array([]), "amplitudes": np.array([]),
                "dominant_frequency": 0.0}

    n_fft = _next_power_of_two(n)
    windowed = selected * np.hanning(n)
    padded = np.zeros(n_fft)
    padded[:n] = windowed

    spectrum = np.fft.rfft(padded)
    amplitudes = np.sqrt(spectrum.real ** 2 + spectrum.imag ** 2)
    frequencies = np.arange(len(amplitudes)) * sample_rate / n_fft
    return {
        "frequencies": frequencies,
        "amplitudes": amplitudes,
        "dominant_frequency": dominant_frequency(frequencies, amplitudes),
    }


def find_spectral_peaks(amplitudes: Sequence[float]) -> List[int]:
    """Return indices of bins strictly higher than all their neighbours.

    The DC bin is never a peak.
    """
    amps = np.asarray(amplitudes, dtype=float)
    n = len(amps)
    peaks = []
    for i in range(1, n):
        if amps[i] <= amps[i - 1]:
            continue
        if i + 1 < n and amps[i] <= amps[i + 1]:
            continue
        peaks.append(i)
    return peaks


def peak_prominence(amplitudes: Sequence[float], index: int, window: int = 10) -> float:
    """Amplitude of a peak minus the higher of its left/right minima.

    Minima are searched within *window* bins on each side.
    """
    amps = np.asarray(amplitudes, dtype=float)
    left = amps[max(0, index - window):index]
    right = amps[index + 1:index + 1 + window]
    bases = []
    if len(left):
        bases.append(float(left.min()))
    if len(right):
        bases.append(float(right.min()))
    if not bases:
        return 0.0
    return float(amps[index] - max(bases))


def dominant_frequency(
    frequencies: Sequence[float],
    amplitudes: Sequence[float],
    low_band: float = 2.0,
    high_band: float = 5.0,
    amplitude_margin: float = 0.2,
    prominence_threshold: float = 0.5,
    prominence_window: int = 10,
) -> float:
    """Pick the dominant frequency of a spectrum with a low-band bias.

    In the ``0..low_band`` band the most prominent peak is chosen,
    unless the highest peak there beats it by at least
    *amplitude_margin*. A ``low_band..high_band`` peak replaces that
    choice when its prominence exceeds the chosen amplitude by more
    than *prominence_threshold*. Peaks above *high_band* are never
    considered.

    Parameters
    ----------
    frequencies, amplitudes : sequence of float
        Output of :func:`frequency_spectrum`.
    low_band : float
        Upper edge of the preferred band in Hz (default 2.0).
    high_band : float
        Upper edge of the secondary band in Hz (default 5.0).
    amplitude_margin : float
        Amplitude lead that lets the highest low-band peak override the
        most prominent one (default 0.2).
    prominence_threshold : float
        Margin a high-band peak needs to win (default 0.5).
    prominence_window : int
        Bins searched on each side for prominence minima (default 10).

    Returns
    -------
    float
        Dominant frequency in Hz, 0.0 when no peak lies below *high_band*.
    """
    freqs = np.asarray(frequencies, dtype=float)
    amps = np.asarray(amplitudes, dtype=float)
    if len(freqs) == 0 or len(freqs) != len(amps):
        return 0.0

    peaks = find_spectral_peaks(amps)
    if not peaks:
        return 0.0

    prom = {i: peak_prominence(amps, i, prominence_window) for i in peaks}
    low = [i for i in peaks if freqs[i] <= low_band]
    high = [i for i in peaks if low_band < freqs[i] <= high_band]

    chosen = None
    if low:
        chosen = max(low, key=lambda i: prom[i])
        highest = max(low, key=lambda i: amps[i])
        if amps[highest] - amps[chosen] >= amplitude_margin:
            chosen = highest

    if high:
        best_high = max(high, key=lambda i: prom[i])
        if chosen is None or prom[best_high] - amps[chosen] > prominence_threshold:
            chosen = best_high

    if chosen is None:
        logger.debug(f"No peak below {high_band} Hz")
        return 0.0

    return float(freqs[chosen])


def frequency_features(
    ml: Sequence[float],
    ap: Sequence[float],
    sample_rate: float,
    cutoff: float,
    time_window: Optional[float] = None,
    discard_seconds: float = 5.0,
    order: int = 4,
    **dominant_kwargs,
) -> dict:
    """Low-pass both sway axes and compute their spectra.

    Parameters
    ----------
    ml, ap : sequence of float
        Medio-lateral and antero-posterior acceleration.
    sample_rate : float
        Sampling frequency in Hz.
    cutoff : float
        Low-pass cutoff in Hz applied before the FFT.
    time_window : float, optional
        Trailing window in seconds (real-time analysis).
    discard_seconds : float
        Margin trimmed at each end when no window is given.
    order : int
        Filter order (default 4).
    **dominant_kwargs
        Forwarded to :func:`dominant_frequency`.

    Returns
    -------
    dict
        ``{"ml": {...}, "ap": {...}}``, each with ``frequencies``,
        ``amplitudes`` and ``dominant_frequency``.
    """
    result = {}
    for axis, values in (("ml", ml), ("ap", ap)):
        if len(values) == 0:
            spec = {"frequencies": np.array([]), "amplitudes": np.array([])}
        else:
            filtered = filter_block(values, cutoff, order, sample_rate)
            spec = frequency_spectrum(filtered, sample_rate, time_window, discard_seconds)
        spec["dominant_frequency"] = dominant_frequency(
            spec["frequencies"], spec["amplitudes"], **dominant_kwargs
        )
        result[axis] = spec
    return result
