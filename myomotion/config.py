"""Settings for the filter, spectrum, balance, force and jump stages.

Each stage reads its own ``DEFAULT_CONFIG`` section through
:func:`get_settings`. Config files (JSON or YAML) only need the
sections and keys they change.

Functions
---------
load_config
    Load analysis config from a JSON or YAML file.
save_config
    Save analysis config to a JSON or YAML file.
get_settings
    One config section merged with caller overrides.

Attributes
----------
DEFAULT_CONFIG : dict
    Default configuration values for all analysis stages.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


DEFAULT_CONFIG = {
    "filter": {
        "cutoff_frequency": 5.0,
        "order": 4,
    },
    "spectrum": {
        "time_window": 4.0,
        "discard_seconds": 5.0,
        "low_band": 2.0,
        "high_band": 5.0,
        "amplitude_margin": 0.2,
        "prominence_threshold": 0.5,
        "prominence_window": 10,
    },
    "balance": {
        "calibration_delay": 6000,
        "calibration_points": 200,
        "calibration_std_threshold": 1.0,
        "calibration_dom_freq_threshold": 2.0,
        "required_calibration_attempts": 2,
        "gravity": 9.81,
        "gravity_factor": 0.8,
        "cutoff_frequency": 5.0,
        "test_duration": 15,
        "sensor_height": 100.0,
    },
    "force": {
        "moving_average_window": 3000,
        "min_avg_amplitude": 0.5,
        "peak_drop_threshold": 0.7,
        "cycles_to_average": 3,
        "cycles_for_analysis": 10,
        "hysteresis": 0.1,
        "duration_change_threshold": 0.05,
        "velocity_drop_threshold": 0.75,
        "variability_threshold": 0.04,
        "min_cycle_duration": 100,
        "min_cycle_amplitude": 0.05,
        "work_load": None,
    },
    "jump": {
        "joint": "knee",
        "side": "right",
        "smoothing_window": 5,
        "takeoff_accumulated_threshold": 20.0,
        "landing_accumulated_threshold": 20.0,
        "min_single_step_change": 5.0,
        "event_search_frames": 60,
        "peak_search_window": 30,
        "similar_angle_tolerance": 5.0,
        "amortization_lookahead": 30,
        "angle_tolerance": 5.0,
        "min_drop_px": 20.0,
        "min_rise_px": 20.0,
        "min_flexion_before": 20.0,
        "min_flexion_after": 20.0,
        "min_angle_delta": 15.0,
        "reject_window": 30,
        "candidate_window": 10,
        "min_separation": 30,
        "gravity": 9.81,
    },
}


def get_settings(section: str, overrides: Optional[dict] = None) -> dict:
    """Return a copy of one ``DEFAULT_CONFIG`` section merged with *overrides*.

    Raises
    ------
    ValueError
        If *section* is not a known config section.
    """
    if section not in DEFAULT_CONFIG:
        raise ValueError(
            f"Unknown config section '{section}'. Available: {list(DEFAULT_CONFIG)}"
        )
    base = copy.deepcopy(DEFAULT_CONFIG[section])
    if not overrides:
        return base
    return _deep_merge(base, overrides)


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in (".yaml", ".yml")


def _require_yaml():
    try:
        import yaml
    except ImportError:
        raise ImportError("PyYAML required for YAML configs: pip install pyyaml")
    return yaml


def load_config(path: Union[str, Path]) -> dict:
    """Read a config file and fill the missing settings from the defaults.

    Only the sections and keys present in the file change; for example
    ``{"force": {"hysteresis": 0.5}}`` keeps every other ``force``
    setting and leaves ``filter``, ``spectrum``, ``balance`` and
    ``jump`` at their defaults.

    Parameters
    ----------
    path : str or Path
        ``.json``, ``.yaml`` or ``.yml`` file.

    Returns
    -------
    dict
        Complete configuration with every ``DEFAULT_CONFIG`` section.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ImportError
        If a YAML file is given and ``pyyaml`` is missing.
    ValueError
        If the top level of the file is not a mapping.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        cfg = _require_yaml().safe_load(f) if _is_yaml(path) else json.load(f)

    if not isinstance(cfg, dict):
        raise ValueError("Config must be a dict")

    merged = _deep_merge(copy.deepcopy(DEFAULT_CONFIG), cfg)
    logger.info(f"Loaded config from {path} (sections: {', '.join(sorted(cfg))})")
    return merged


def save_config(config: dict, path: Union[str, Path]) -> str:
    """Write *config* as JSON, or YAML for a ``.yaml``/``.yml`` path.

    Parent directories are created. Returns the written path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if _is_yaml(path):
        yaml = _require_yaml()
        with open(path, "w") as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    else:
        with open(path, "w") as f:
            json.dump(config, f, indent=2, ensure_ascii=False)

    logger.info(f"Saved config to {path}")
    return str(path)


def _deep_merge(base: dict, override: dict) -> dict:
    """Section-wise merge: nested dicts are merged, other values replaced."""
    result = base.copy()
    for k, v in override.items():
        if isinstance(result.get(k), dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result
