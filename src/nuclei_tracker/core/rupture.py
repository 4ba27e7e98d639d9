"""
Nuclear-envelope rupture events from per-track intensity traces.

A rupture shows up as a transient drop of a nuclear reporter (or a rise of a
cytoplasmic one entering the nucleus) followed by recovery. Events are found
per track against a running median baseline of the preceding observations.
"""

import logging
import re

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

EVENT_COLUMNS = [
    "track_id",
    "channel",
    "start_frame",
    "end_frame",
    "baseline",
    "extreme",
    "amplitude",
    "recovered",
]


def _observed(series: pd.Series, fill_value):
    values = series.to_numpy(dtype=np.float64)
    keep = ~np.isnan(values)
    if fill_value is not None and not np.isnan(fill_value):
        keep &= values != fill_value
    return series.index.to_numpy()[keep], values[keep]


def find_events_in_trace(frames, values, params):
    """
    Scan one trace for rupture events.

    Args:
        frames (np.ndarray): Observed frame numbers, ascending
        values (np.ndarray): Intensities at those frames
        params (dict): RUPTURE_* parameters

    Returns:
        list: Dicts with start_frame, end_frame, baseline, extreme,
        amplitude and recovered
    """
    n_base = int(params.get("RUPTURE_BASELINE_FRAMES", 3))
    drop = float(params.get("RUPTURE_DROP_FRACTION", 0.3))
    recovery = float(params.get("RUPTURE_RECOVERY_FRACTION", 0.9))
    rise = params.get("RUPTURE_DIRECTION", "drop") == "rise"

    events = []
    i = n_base
    while i < len(values):
        baseline = float(np.median(values[i - n_base : i]))
        if baseline <= 0:
            i += 1
            continue

        triggered = values[i] > (1 + drop) * baseline if rise else values[i] < (1 - drop) * baseline
        if not triggered:
            i += 1
            continue

        start = i
        end = i
        recovered = False
        while end + 1 < len(values):
            nxt = values[end + 1]
            if (nxt <= (2 - recovery) * baseline) if rise else (nxt >= recovery * baseline):
                recovered = True
                break
            end += 1

        segment = values[start : end + 1]
        extreme = float(segment.max() if rise else segment.min())
        amplitude = (extreme - baseline) / baseline if rise else (baseline - extreme) / baseline
        events.append(
            {
                "start_frame": int(frames[start]),
                "end_frame": int(frames[end]),
                "baseline": baseline,
                "extreme": extreme,
                "amplitude": float(amplitude),
                "recovered": recovered,
            }
        )
        # Resume after the recovery sample so the next baseline is post-event
        i = end + 1 + n_base if recovered else len(values)

    return events


def detect_rupture_events(pivot: pd.DataFrame, params=None, channel: int = 1) -> pd.DataFrame:
    """
    Detect rupture events on every track of a pivoted matrix.

    Args:
        pivot (pd.DataFrame): Output of pivot_tracks
        params (dict, optional): RUPTURE_* and PIVOT_FILL_VALUE parameters
        channel (int): 1-based channel to analyse

    Returns:
        pd.DataFrame: One row per event (see EVENT_COLUMNS)
    """
    params = params or {}
    fill_value = params.get("PIVOT_FILL_VALUE", 0.0)
    pattern = re.compile(rf"^track_(\d+)_channel_{int(channel)}$")

    rows = []
    for col in pivot.columns:
        match = pattern.match(str(col))
        if not match:
            continue
        frames, values = _observed(pivot[col], fill_value)
        for event in find_events_in_trace(frames, values, params):
            rows.append({"track_id": int(match.group(1)), "channel": int(channel), **event})

    events = pd.DataFrame(rows, columns=EVENT_COLUMNS)
    logger.info(f"Found {len(events)} rupture event(s) in channel {channel}")
    return events
