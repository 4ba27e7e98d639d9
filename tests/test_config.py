from __future__ import annotations

import json
from pathlib import Path

import pytest

from nuclei_tracker.config import DEFAULT_PARAMS, get_default_params, load_params, validate_params
from nuclei_tracker.core.errors import ParameterError


def test_defaults_are_valid_and_copied() -> None:
    params = get_default_params()
    validate_params(params)
    params["GAP_FRAMES"] = 99
    assert DEFAULT_PARAMS["GAP_FRAMES"] == 3


def test_json_file_and_overrides_are_layered(tmp_path: Path) -> None:
    config = tmp_path / "params.json"
    config.write_text(json.dumps({"max_displacement": 12.5, "GAP_FRAMES": 2}), encoding="utf-8")

    params = load_params(config, overrides={"GAP_FRAMES": 4, "SEPARATE": None})

    assert params["MAX_DISPLACEMENT"] == 12.5
    assert params["GAP_FRAMES"] == 4
    assert params["SEPARATE"] == DEFAULT_PARAMS["SEPARATE"]


def test_unknown_parameter_is_rejected() -> None:
    with pytest.raises(ParameterError):
        load_params(overrides={"MAX_DISP": 5})


@pytest.mark.parametrize(
    "key, value",
    [
        ("SEPARATE", -0.1),
        ("SEPARATE", 1.01),
        ("MAX_DISPLACEMENT", -5.0),
        ("TEMPORAL_MAX_WINDOW", 0),
        ("RUPTURE_DROP_FRACTION", 1.0),
        ("RUPTURE_DIRECTION", "sideways"),
    ],
)
def test_out_of_range_values_fail_fast(key: str, value) -> None:
    with pytest.raises(ParameterError):
        load_params(overrides={key: value})


def test_separate_boundaries_are_accepted() -> None:
    assert load_params(overrides={"SEPARATE": 0})["SEPARATE"] == 0
    assert load_params(overrides={"SEPARATE": 1})["SEPARATE"] == 1


@pytest.mark.parametrize("key", ["MIN_NUCLEUS_AREA", "BLUR_SIGMA", "RUPTURE_BASELINE_FRAMES"])
def test_non_numeric_json_values_are_parameter_errors(tmp_path: Path, key: str) -> None:
    config = tmp_path / "params.json"
    config.write_text(json.dumps({key: "lots"}), encoding="utf-8")

    with pytest.raises(ParameterError):
        load_params(config)


def test_fractional_baseline_frames_rejected() -> None:
    with pytest.raises(ParameterError):
        load_params(overrides={"RUPTURE_BASELINE_FRAMES": 2.5})
