"""
Tracking parameters for the nuclei tracker.

Parameters travel through the code as a flat dictionary with UPPERCASE keys.
Defaults live in DEFAULT_PARAMS; a JSON file can override any subset of them.
"""

import json
import logging
from pathlib import Path

from .core.errors import ParameterError

logger = logging.getLogger(__name__)


DEFAULT_PARAMS = {
    # Linkage
    "MAX_DISPLACEMENT": 20.0,  # Max centroid distance (px) for a link
    "GAP_FRAMES": 3,  # Frames searched ahead when no direct successor exists
    # Conditional watershed
    "SEPARATE": 0.8,  # 0 = always split, 1 = never split
    "MAX_BOUNDARY_RATIO": 0.35,  # Boundary length / minor axis of larger object
    "WATERSHED_TOLERANCE": 0.5,  # Height of distance-map maxima used as seeds
    # Detection
    "MIN_NUCLEUS_AREA": 30,
    "BLUR_SIGMA": 1.0,
    "USE_CONDITIONAL_WATERSHED": True,
    # Frame conditioning
    "CLAHE_CLIP_LIMIT": 2.0,
    "CLAHE_TILE_SIZE": 8,
    "TEMPORAL_MAX_WINDOW": 1,
    # Reshaping
    "PIVOT_FILL_VALUE": 0.0,
    # Rupture events
    "RUPTURE_DROP_FRACTION": 0.3,
    "RUPTURE_RECOVERY_FRACTION": 0.9,
    "RUPTURE_BASELINE_FRAMES": 3,
    "RUPTURE_DIRECTION": "drop",
}


def get_default_params() -> dict:
    """Return a fresh copy of the default parameter dictionary."""
    return dict(DEFAULT_PARAMS)


def load_params(path=None, overrides=None) -> dict:
    """
    Build a validated parameter dictionary.

    Args:
        path (str or Path, optional): JSON file with parameter overrides
        overrides (dict, optional): Values applied after the file

    Returns:
        dict: Validated parameters

    Raises:
        ParameterError: If an unknown key or an out-of-range value is given
    """
    params = get_default_params()

    if path is not None:
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            user_params = json.load(f)
        logger.info(f"Loaded {len(user_params)} parameter(s) from {path}")
        params.update(_normalize_keys(user_params))

    if overrides:
        params.update(
            {k: v for k, v in _normalize_keys(overrides).items() if v is not None}
        )

    validate_params(params)
    return params


def _normalize_keys(values):
    normalized = {}
    for key, value in values.items():
        upper = str(key).upper()
        if upper not in DEFAULT_PARAMS:
            raise ParameterError(f"Unknown parameter: {key}")
        normalized[upper] = value
    return normalized


def _number(params, key):
    """Numeric value of `key` (default if absent) as a float."""
    value = params.get(key, DEFAULT_PARAMS[key])
    if isinstance(value, (bool, str)):
        raise ParameterError(f"{key} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ParameterError(f"{key} must be a number, got {value!r}") from e


def validate_params(params: dict) -> None:
    """
    Fail fast on parameters that would break a batch pass.

    Args:
        params (dict): Parameter dictionary

    Raises:
        ParameterError: On the first invalid value found
    """
    maxdisp = _number(params, "MAX_DISPLACEMENT")
    if maxdisp < 0:
        raise ParameterError(f"MAX_DISPLACEMENT must be >= 0, got {maxdisp}")

    gap = _number(params, "GAP_FRAMES")
    if not gap.is_integer() or gap < 1:
        raise ParameterError(f"GAP_FRAMES must be an integer >= 1, got {gap}")

    separate = _number(params, "SEPARATE")
    if not 0.0 <= separate <= 1.0:
        raise ParameterError(f"SEPARATE must be within [0, 1], got {separate}")

    ratio = _number(params, "MAX_BOUNDARY_RATIO")
    if ratio <= 0:
        raise ParameterError(f"MAX_BOUNDARY_RATIO must be > 0, got {ratio}")

    if _number(params, "MIN_NUCLEUS_AREA") < 0:
        raise ParameterError("MIN_NUCLEUS_AREA must be >= 0")

    if _number(params, "BLUR_SIGMA") < 0:
        raise ParameterError("BLUR_SIGMA must be >= 0")

    window = _number(params, "TEMPORAL_MAX_WINDOW")
    if not window.is_integer() or window < 1:
        raise ParameterError(f"TEMPORAL_MAX_WINDOW must be an integer >= 1, got {window}")

    drop = _number(params, "RUPTURE_DROP_FRACTION")
    if not 0.0 < drop < 1.0:
        raise ParameterError(f"RUPTURE_DROP_FRACTION must be within (0, 1), got {drop}")

    recovery = _number(params, "RUPTURE_RECOVERY_FRACTION")
    if not 0.0 < recovery <= 1.0:
        raise ParameterError(
            f"RUPTURE_RECOVERY_FRACTION must be within (0, 1], got {recovery}"
        )

    baseline = _number(params, "RUPTURE_BASELINE_FRAMES")
    if not baseline.is_integer() or baseline < 1:
        raise ParameterError(f"RUPTURE_BASELINE_FRAMES must be an integer >= 1, got {baseline}")

    direction = params.get("RUPTURE_DIRECTION", "drop")
    if direction not in ("drop", "rise"):
        raise ParameterError(f"RUPTURE_DIRECTION must be 'drop' or 'rise', got {direction}")
