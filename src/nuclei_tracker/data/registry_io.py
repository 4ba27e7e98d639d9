"""
Save and restore a detection registry.

Results go to <prefix>_results.csv (one row per detection) and region masks
to <prefix>_regions.npz, keyed by row index so the two files stay correlated.
"""

import logging
from pathlib import Path

import numpy as np
import pandas as pd

from ..core.errors import ConsistencyError
from ..core.geometry import MaskRegion
from ..core.registry import Detection, DetectionRegistry
from ..core.resampling import mean_columns

logger = logging.getLogger(__name__)


def registry_paths(directory, prefix):
    directory = Path(directory)
    return directory / f"{prefix}_results.csv", directory / f"{prefix}_regions.npz"


def save_registry(registry: DetectionRegistry, directory, prefix="nuclei"):
    """
    Write the results table and the region archive.

    Returns:
        tuple: (results_path, regions_path)

    Raises:
        ConsistencyError: If a detection has no region; nothing is written
    """
    registry.check_consistency()
    results_path, regions_path = registry_paths(directory, prefix)
    results_path.parent.mkdir(parents=True, exist_ok=True)

    arrays = {}
    for i, region in enumerate(registry.regions):
        if region is None:
            raise ConsistencyError(f"Detection {i} has no region to archive")
        arrays[f"region_{i:06d}_mask"] = region.mask
        arrays[f"region_{i:06d}_origin"] = np.array(
            [region.frame, region.top, region.left], dtype=np.int64
        )
    registry.to_dataframe().to_csv(results_path, index_label="id")
    np.savez_compressed(regions_path, **arrays)

    logger.info(f"Saved {registry.count()} detection(s) to {results_path} and {regions_path}")
    return results_path, regions_path


def load_registry(directory, prefix="nuclei") -> DetectionRegistry:
    """
    Rebuild a registry from files written by save_registry.

    Raises:
        ConsistencyError: If the archive is missing or its regions do not
            match the table rows one to one
    """
    results_path, regions_path = registry_paths(directory, prefix)
    table = pd.read_csv(results_path, index_col="id")
    channels = mean_columns(table)

    if not regions_path.exists():
        raise ConsistencyError(f"Region archive missing for {results_path}: {regions_path}")

    regions = {}
    with np.load(regions_path) as archive:
        for key in archive.files:
            if not key.endswith("_mask"):
                continue
            index = int(key.split("_")[1])
            frame, top, left = archive[f"region_{index:06d}_origin"]
            regions[index] = MaskRegion(
                frame=int(frame), top=int(top), left=int(left), mask=archive[key]
            )

    extra = sorted(set(regions) - set(range(len(table))))
    if extra:
        raise ConsistencyError(
            f"Region archive references row {extra[-1]} but the table has {len(table)} row(s)"
        )
    missing = sorted(set(range(len(table))) - set(regions))
    if missing:
        raise ConsistencyError(
            f"{len(missing)} row(s) have no region in {regions_path} (first: row {missing[0]})"
        )

    registry = DetectionRegistry()
    for i, row in enumerate(table.itertuples(index=False)):
        means = [float(getattr(row, col)) for col in channels]
        registry.append(
            Detection(
                frame=int(row.frame),
                x=float(row.x),
                y=float(row.y),
                area=float(row.area),
                minor_axis=float(row.minor_axis),
                major_axis=float(row.major_axis),
                channel_means=[m for m in means if not np.isnan(m)],
                track_id=int(row.track_id),
                displacement=float(row.displacement),
            ),
            regions[i],
        )

    registry.check_consistency()
    logger.info(f"Loaded {registry.count()} detection(s) from {results_path}")
    return registry


def save_pivot(pivot: pd.DataFrame, directory, prefix="nuclei"):
    path = Path(directory) / f"{prefix}_tracks.csv"
    path.parent.mkdir(parents=True, exist_ok=True)
    pivot.to_csv(path)
    logger.info(f"Saved track matrix {pivot.shape} to {path}")
    return path
