"""JSON result documents for myomotion.

Every analysis result saved to disk is wrapped in a small document
recording the package version, the analysis kind and free-form
metadata, so files produced by the CLI and the library are
self-describing.

Functions
---------
create_result
    Wrap an analysis result in a result document.
save_json
    Save a document to file with numpy type conversion.
load_json
    Load and validate a result document.
"""

import json
import numpy as np
from pathlib import Path
from typing import Any, Optional, Union

RESULT_KINDS = ("spectrum", "cop", "balance", "cycles", "segments", "jump", "sensor")


def _convert_numpy(obj: Any) -> Any:
    """Turn arrays and numpy scalars inside a result into JSON builtins."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, dict):
        return {k: _convert_numpy(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_convert_numpy(v) for v in obj]
    return obj


def create_result(kind: str, result: Any, meta: Optional[dict] = None) -> dict:
    """Wrap *result* in a result document.

    Parameters
    ----------
    kind : str
        One of :data:`RESULT_KINDS`.
    result : any
        Analysis output (dict or list).
    meta : dict, optional
        Free-form metadata (input path, sample rate, settings...).

    Returns
    -------
    dict
        ``{"myomotion_version", "kind", "meta", "result"}``.

    Raises
    ------
    ValueError
        If *kind* is unknown.
    """
    from . import __version__
    if kind not in RESULT_KINDS:
        raise ValueError(f"Unknown result kind '{kind}'. Available: {list(RESULT_KINDS)}")
    return {
        "myomotion_version": __version__,
        "kind": kind,
        "meta": dict(meta or {}),
        "result": result,
    }


def save_json(data: dict, path: Union[str, Path], indent: int = 2) -> None:
    """Write a result document, converting spectra, hulls and other
    numpy values to plain JSON.

    Parameters
    ----------
    data : dict
        Document (or any JSON-compatible dict).
    path : str or Path
        Output file path. Parent directories are created if needed.
    indent : int, optional
        JSON indentation level (default 2).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    converted = _convert_numpy(data)
    with open(path, "w") as f:
        json.dump(converted, f, indent=indent, ensure_ascii=False)


def load_json(path: Union[str, Path]) -> dict:
    """Load and validate a result document.

    Parameters
    ----------
    path : str or Path
        Path to JSON file.

    Returns
    -------
    dict
        Result document.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the JSON content is not a result document.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with open(path) as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError("JSON root must be a dict")

    if "kind" not in data:
        raise ValueError("Missing 'kind' key in JSON")
    if "result" not in data:
        raise ValueError("Missing 'result' key in JSON")

    return data
