"""Static balance test from a handheld motion sensor.

``BalanceSession`` consumes device-motion samples one by one. The
sensor is held in landscape against the trunk, so gravity lies on the
x axis; the y axis is medio-lateral (ML) and the z axis is
antero-posterior (AP). A session goes through four stages:

1. orientation check (gravity on +x above ``gravity * gravity_factor``),
2. settling delay (``calibration_delay`` ms of stillness),
3. calibration, repeated ``required_calibration_attempts`` times:
   the last ``calibration_points`` records must have a low standard
   deviation and a low dominant frequency on both axes,
4. baseline definition, after which records feed the analysis.

Each axis is low-passed incrementally by a two-section cascade owned by
the session.

Functions
---------
static_balance_quality
    Excellent / Good / Fair / Poor label from acceleration spread.
classify_sway
    Minimal / Moderate / Severe label per sway axis.
vibration_range
    Low / Moderate / High / Severe vibration label and index.

Classes
-------
BalanceSession
    Calibration state machine and analysis orchestration.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from .config import get_settings
from .cop import cop_stats
from .filters import filter_sample, new_cascade, validate_filter_params
from .spectrum import frequency_features

logger = logging.getLogger(__name__)

_AXES = ("x", "y", "z")


class BalanceSession:
    """Stateful processing of one balance recording.

    Parameters
    ----------
    settings : dict, optional
        Overrides for the ``balance`` config section.
    spectrum_settings : dict, optional
        Overrides for the ``spectrum`` config section.

    Attributes
    ----------
    records : list of dict
        Processed samples kept for analysis. Each record has
        ``timestamp``, ``interval``, ``gravity``, ``acceleration``
        (baseline-corrected, ``{x, y, z}``) and ``filtered``
        (``{ml, ap}``).
    log : str
        Last status message.
    """

    def __init__(self, settings: Optional[dict] = None, spectrum_settings: Optional[dict] = None):
        self.settings = get_settings("balance", settings)
        self.spectrum_settings = get_settings("spectrum", spectrum_settings)
        self.reset()

    def reset(self) -> None:
        """Clear every state, including the filter registers."""
        self.records: List[dict] = []
        self.sample_rate: Optional[float] = None
        self.log = ""
        self.is_orientation_correct = False
        self.is_acquiring = False
        self.is_calibrated = False
        self.is_baseline_defined = False
        self.calibration: Dict[str, Optional[float]] = {
            "std_ml": None, "std_ap": None,
            "dominant_frequency_ml": None, "dominant_frequency_ap": None,
        }
        self.baseline = {
            "acceleration": {"x": 0.0, "y": 0.0, "z": 0.0},
            "filtered": {"ml": 0.0, "ap": 0.0},
        }
        self._measurement_start: Optional[float] = None
        self._candidate_ok = False
        self._attempts = 0
        self._filters = {"ml": new_cascade(4), "ap": new_cascade(4)}

    # ── Stages ────────────────────────────────────────────────────────

    def _check_orientation(self, gravity_x: float) -> bool:
        threshold = self.settings["gravity"] * self.settings["gravity_factor"]
        ok = abs(gravity_x) > threshold and gravity_x > 0
        self.is_orientation_correct = ok
        if not ok:
            self.log = "Position error"
        return ok

    def _acquisition_ready(self, now: float) -> bool:
        if self._measurement_start is None:
            self._measurement_start = now
        if now - self._measurement_start < self.settings["calibration_delay"]:
            self.log = "Hold still..."
            self.is_acquiring = False
            return False
        self.is_acquiring = True
        return True

    def _check_calibration(self) -> bool:
        if self.is_calibrated:
            return True

        n_points = self.settings["calibration_points"]
        if not self._candidate_ok:
            if len(self.records) < n_points:
                self.log = "Calibrating..."
                return False

            window = self.records[-n_points:]
            ml = [r["acceleration"]["y"] for r in window]
            ap = [r["acceleration"]["z"] for r in window]
            std_ml = float(np.std(ml))
            std_ap = float(np.std(ap))
            std_max = self.settings["calibration_std_threshold"]
            if std_ml > std_max or std_ap > std_max:
                self.log = "STD..."
                logger.debug(f"Calibration rejected: std ML={std_ml:.3f}, AP={std_ap:.3f}")
                return False

            features = self._frequency_features(ml, ap, time_window=self.spectrum_settings["time_window"])
            f_ml = features["ml"]["dominant_frequency"]
            f_ap = features["ap"]["dominant_frequency"]
            f_max = self.settings["calibration_dom_freq_threshold"]
            if f_ml > f_max or f_ap > f_max:
                self.log = "Frequency..."
                logger.debug(f"Calibration rejected: dominant ML={f_ml:.2f} Hz, AP={f_ap:.2f} Hz")
                return False

            self._candidate_ok = True
            self.calibration = {
                "std_ml": std_ml, "std_ap": std_ap,
                "dominant_frequency_ml": f_ml, "dominant_frequency_ap": f_ap,
            }
            return False

        self._attempts += 1
        if self._attempts < self.settings["required_calibration_attempts"]:
            logger.info(
                f"Calibration attempt {self._attempts}/"
                f"{self.settings['required_calibration_attempts']} passed, restarting"
            )
            self._measurement_start = None
            self._candidate_ok = False
            self.records = []
            return False

        self.is_calibrated = True
        logger.info("Calibration complete")
        return True

    def _define_baseline(self) -> None:
        if not self.records:
            return
        mean_ml = float(np.mean([r["filtered"]["ml"] for r in self.records]))
        mean_ap = float(np.mean([r["filtered"]["ap"] for r in self.records]))
        self.baseline = {
            "acceleration": {"x": 0.0, "y": mean_ml, "z": mean_ap},
            "filtered": {"ml": mean_ml, "ap": mean_ap},
        }
        self.is_baseline_defined = True
        self.log = "Evaluating..."
        logger.info(f"Baseline defined: ML={mean_ml:.4f}, AP={mean_ap:.4f} m/s2")
        self.records = []

    # ── Public API ────────────────────────────────────────────────────

    def process(self, sample: dict) -> bool:
        """Process one motion sample.

        Parameters
        ----------
        sample : dict
            ``{"acceleration_including_gravity": {x, y, z},
            "acceleration": {x, y, z}, "interval_ms": float,
            "timestamp": float}`` with ``timestamp`` in ms.

        Returns
        -------
        bool
            True when the sample was stored for analysis after the
            baseline was defined.
        """
        inc = sample.get("acceleration_including_gravity") or {}
        exc = sample.get("acceleration") or {}
        no_gravity = {a: float(exc.get(a) or 0.0) for a in _AXES}
        gravity = {a: float(inc.get(a) or 0.0) - no_gravity[a] for a in _AXES}

        if not self._check_orientation(gravity["x"]):
            return False

        now = float(sample.get("timestamp", 0.0))
        if not self._acquisition_ready(now):
            return False

        interval = float(sample.get("interval_ms") or 0.0)
        if interval <= 0:
            logger.warning(f"Ignoring motion sample with interval {interval} ms")
            return False
        cutoff = self.settings["cutoff_frequency"]
        try:
            validate_filter_params(cutoff, 1000.0 / interval)
        except ValueError as err:
            logger.warning(f"Ignoring motion sample with interval {interval} ms: {err}")
            return False
        self.sample_rate = 1000.0 / interval

        base = self.baseline
        filtered_ml = filter_sample(
            no_gravity["y"] - base["filtered"]["ml"], self._filters["ml"], cutoff, self.sample_rate
        )
        filtered_ap = filter_sample(
            no_gravity["z"] - base["filtered"]["ap"], self._filters["ap"], cutoff, self.sample_rate
        )

        self.records.append({
            "timestamp": now,
            "interval": interval,
            "gravity": gravity,
            "acceleration": {a: no_gravity[a] - base["acceleration"][a] for a in _AXES},
            "filtered": {"ml": filtered_ml, "ap": filtered_ap},
        })

        if not self._check_calibration():
            return False
        if not self.is_baseline_defined:
            self._define_baseline()
            return False
        return True

    def _frequency_features(self, ml, ap, time_window=None) -> dict:
        spec = self.spectrum_settings
        return frequency_features(
            ml, ap,
            sample_rate=self.sample_rate,
            cutoff=self.settings["cutoff_frequency"],
            time_window=time_window,
            discard_seconds=spec["discard_seconds"],
            low_band=spec["low_band"],
            high_band=spec["high_band"],
            amplitude_margin=spec["amplitude_margin"],
            prominence_threshold=spec["prominence_threshold"],
            prominence_window=spec["prominence_window"],
        )

    def analyze(self, mode: str = "realtime") -> dict:
        """Frequency and COP analysis of the stored records.

        Parameters
        ----------
        mode : {'realtime', 'post_processing'}
            Real time analyses the trailing spectrum window only and
            skips the ellipse, hull and jerk.

        Returns
        -------
        dict
            Keys: ``mode``, ``sample_rate``, ``calibration``,
            ``frequency`` (per-axis spectra), ``cop`` (COP stats).
            Empty spectra and zero statistics when nothing was recorded.
        """
        if mode not in ("realtime", "post_processing"):
            raise ValueError(f"Unknown analysis mode '{mode}'")

        ml_raw = [r["acceleration"]["y"] for r in self.records]
        ap_raw = [r["acceleration"]["z"] for r in self.records]
        ml = [r["filtered"]["ml"] for r in self.records]
        ap = [r["filtered"]["ap"] for r in self.records]

        if not self.records or not self.sample_rate:
            logger.info("No motion records to analyse")
            empty = {"frequencies": np.array([]), "amplitudes": np.array([]), "dominant_frequency": 0.0}
            return {
                "mode": mode,
                "sample_rate": self.sample_rate,
                "calibration": dict(self.calibration),
                "frequency": {"ml": dict(empty), "ap": dict(empty)},
                "cop": cop_stats([], [], 1.0, 1.0, self.settings["sensor_height"], mode=mode),
            }

        time_window = self.spectrum_settings["time_window"] if mode == "realtime" else None
        frequency = self._frequency_features(ml_raw, ap_raw, time_window=time_window)
        cop = cop_stats(
            ml, ap,
            sample_rate=self.sample_rate,
            cutoff=self.settings["cutoff_frequency"],
            height_cm=self.settings["sensor_height"],
            gravity=self.settings["gravity"],
            mode=mode,
        )
        return {
            "mode": mode,
            "sample_rate": self.sample_rate,
            "calibration": dict(self.calibration),
            "frequency": frequency,
            "cop": cop,
        }

    def stop(self) -> dict:
        """End the recording and return the post-processing analysis."""
        self.is_acquiring = False
        return self.analyze("post_processing")


# ── Acceleration spread classifiers ──────────────────────────────────


def _axis_std(accel_data: Sequence[dict], axis: str) -> float:
    return float(np.std([float(d.get(axis) or 0.0) for d in accel_data]))


def _combined_index(accel_data, use_x, use_y, use_z) -> float:
    used = [a for a, on in zip(_AXES, (use_x, use_y, use_z)) if on]
    total = sum(_axis_std(accel_data, a) ** 2 for a in used)
    return float(np.sqrt(total)) / (len(used) or 1)


def static_balance_quality(
    accel_data: Sequence[dict],
    use_x: bool = True,
    use_y: bool = True,
    use_z: bool = True,
) -> str:
    """Label balance quality from the spread of acceleration.

    The combined index is the norm of the per-axis standard deviations
    divided by the number of active axes: below 0.5 is ``Excellent``,
    below 1 ``Good``, below 1.5 ``Fair``, otherwise ``Poor``.
    ``No data`` for an empty input.
    """
    if len(accel_data) == 0:
        return "No data"
    index = _combined_index(accel_data, use_x, use_y, use_z)
    if index < 0.5:
        return "Excellent"
    if index < 1.0:
        return "Good"
    if index < 1.5:
        return "Fair"
    return "Poor"


def classify_sway(
    accel_data: Sequence[dict],
    minimal_threshold: float = 0.2,
    moderate_threshold: float = 0.5,
) -> Dict[str, str]:
    """Classify lateral (x) and antero-posterior (y) sway.

    Returns
    -------
    dict
        ``{"lateral": label, "anterior_posterior": label}`` with labels
        ``Minimal``, ``Moderate`` or ``Severe`` (``No data`` if empty).
    """
    if len(accel_data) == 0:
        return {"lateral": "No data", "anterior_posterior": "No data"}

    def _label(index):
        if index < minimal_threshold:
            return "Minimal"
        if index < moderate_threshold:
            return "Moderate"
        return "Severe"

    return {
        "lateral": _label(_axis_std(accel_data, "x") / 2.0),
        "anterior_posterior": _label(_axis_std(accel_data, "y") / 2.0),
    }


def vibration_range(
    accel_data: Sequence[dict],
    use_x: bool = True,
    use_y: bool = True,
    use_z: bool = True,
    vibration_threshold: float = 1.0,
) -> dict:
    """Vibration label and combined index of an acceleration series.

    Returns
    -------
    dict
        ``{"range": label, "index": float}``; labels are ``Low``
        (index < 0.5 threshold), ``Moderate`` (< threshold), ``High``
        (< 1.5 threshold) and ``Severe``.
    """
    if len(accel_data) == 0:
        return {"range": "No data", "index": 0.0}
    index = _combined_index(accel_data, use_x, use_y, use_z)
    if index < vibration_threshold * 0.5:
        label = "Low"
    elif index < vibration_threshold:
        label = "Moderate"
    elif index < vibration_threshold * 1.5:
        label = "High"
    else:
        label = "Severe"
    return {"range": label, "index": index}
