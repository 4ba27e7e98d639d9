"""
Channel resampling and per-track reshaping.

resample_channels re-measures every region against each channel's image
planes. pivot_tracks turns the per-detection table into one column per
(track, channel) and one row per frame, ready for rupture-event analysis.
"""

import logging
import re

import numpy as np
import pandas as pd

from .detection import measure_mean
from .registry import DetectionRegistry

logger = logging.getLogger(__name__)

_MEAN_COLUMN = re.compile(r"^mean_(\d+)$")


def resample_channels(registry: DetectionRegistry, channels, measure=measure_mean) -> np.ndarray:
    """
    Measure every region's mean intensity in each channel.

    Args:
        registry (DetectionRegistry): Registry whose regions are measured
        channels: Sequence of per-channel stacks, each indexable by
            frame - 1 and yielding a 2D plane (e.g. array of shape C x T x H x W)
        measure (callable): measure(region, image) -> float

    Returns:
        np.ndarray: Means of shape (n_detections, n_channels). The same
        values are written to each detection's channel_means; track ids,
        displacements and frames are left as they were.
    """
    registry.check_consistency()
    n = registry.count()
    n_channels = len(channels)
    means = np.zeros((n, n_channels), dtype=np.float64)

    # Snapshot of the linkage output, restored after the sweep
    cached = [(det.track_id, det.displacement, det.frame) for det in registry]

    for c in range(n_channels):
        planes = channels[c]
        for i, (det, region) in enumerate(zip(registry.detections, registry.regions)):
            if region is None:
                raise ValueError(f"Detection {i} (frame {det.frame}) has no region to measure")
            means[i, c] = measure(region, planes[det.frame - 1])
        logger.debug(f"Channel {c + 1}: measured {n} region(s)")

    for det, (track_id, displacement, frame), row in zip(registry.detections, cached, means):
        det.track_id, det.displacement, det.frame = track_id, displacement, frame
        det.channel_means = [float(v) for v in row]

    logger.info(f"Resampled {n} detection(s) over {n_channels} channel(s)")
    return means


def mean_columns(table: pd.DataFrame):
    """mean_<c> columns of a detection table ordered by channel number."""
    found = []
    for col in table.columns:
        match = _MEAN_COLUMN.match(str(col))
        if match:
            found.append((int(match.group(1)), col))
    return [col for _, col in sorted(found)]


def pivot_tracks(source, fill_value: float = 0.0) -> pd.DataFrame:
    """
    Reshape detections into a per-track, per-frame intensity matrix.

    Args:
        source (DetectionRegistry or pd.DataFrame): Detections with frame,
            track_id and mean_<c> columns
        fill_value (float): Value for (track, frame) pairs without an
            observation. 0.0 assumes intensities are positive; pass
            float("nan") to keep missing samples distinguishable.

    Returns:
        pd.DataFrame: Indexed by frame 1..max(frame), columns
        track_<id>_channel_<c>
    """
    table = source.to_dataframe() if isinstance(source, DetectionRegistry) else source
    if table.empty:
        return pd.DataFrame(index=pd.RangeIndex(1, 1, name="frame"))

    channels = mean_columns(table)
    max_frame = int(table["frame"].max())
    frames = np.arange(1, max_frame + 1)

    linked = table[table["track_id"] > 0]
    duplicates = linked.duplicated(subset=["track_id", "frame"], keep="last")
    if duplicates.any():
        logger.warning(
            f"{int(duplicates.sum())} duplicate (track, frame) observation(s); keeping the last row"
        )
        linked = linked[~duplicates]

    track_ids = sorted(int(t) for t in linked["track_id"].unique())
    columns = [
        f"track_{tid}_channel_{c + 1}" for tid in track_ids for c in range(len(channels))
    ]
    matrix = np.full((len(frames), len(columns)), fill_value, dtype=np.float64)

    col_of_track = {tid: k * len(channels) for k, tid in enumerate(track_ids)}
    for row in linked.itertuples(index=False):
        r = int(row.frame) - 1
        base = col_of_track[int(row.track_id)]
        for c, name in enumerate(channels):
            matrix[r, base + c] = getattr(row, name)

    pivot = pd.DataFrame(matrix, index=pd.Index(frames, name="frame"), columns=columns)
    logger.info(
        f"Pivoted {len(linked)} observation(s) into {len(track_ids)} track(s) x "
        f"{len(channels)} channel(s) x {max_frame} frame(s)"
    )
    return pivot
