"""
Detection registry: one row per segmented nucleus per frame.

The registry is the single source of truth shared by linkage, corrections and
resampling within one analysis session. Each Detection owns its region
geometry; the registry also exposes the region set as its own ordered store
(what gets archived next to the results table), and keeps the two in lockstep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from .errors import ConsistencyError

logger = logging.getLogger(__name__)


@dataclass
class Detection:
    """One observed nucleus in one frame."""

    frame: int  # 1-based
    x: float
    y: float
    area: float = 0.0
    minor_axis: float = 0.0
    major_axis: float = 0.0
    channel_means: List[float] = field(default_factory=list)
    track_id: int = 0  # 0 = unassigned
    displacement: float = 0.0
    geometry: Optional[object] = None


class DetectionRegistry:
    """
    Ordered detection rows plus the matching region store.

    Index i of `detections` and index i of `regions` always describe the
    same object. Deleting a row compacts both stores, so any index held by a
    caller is stale after a delete.
    """

    def __init__(self):
        self.detections: List[Detection] = []
        self.regions: List[object] = []

    # ------------------------------------------------------------------
    # Invariant
    # ------------------------------------------------------------------
    def _check_counts(self) -> None:
        n_rows, n_regions = len(self.detections), len(self.regions)
        if n_rows != n_regions:
            raise ConsistencyError(
                f"Registry holds {n_rows} detection(s) but {n_regions} region(s)"
            )

    def check_consistency(self) -> None:
        """
        Verify the detection rows and region store are in lockstep.

        Raises:
            ConsistencyError: On a count mismatch or a row whose region is
                not the one stored at the same index
        """
        self._check_counts()
        for i, (det, region) in enumerate(zip(self.detections, self.regions)):
            if det.geometry is not region:
                raise ConsistencyError(f"Region at index {i} does not belong to detection {i}")

    def count(self) -> int:
        self._check_counts()
        return len(self.detections)

    def __len__(self):
        return self.count()

    def __getitem__(self, index) -> Detection:
        return self.detections[index]

    def __iter__(self):
        return iter(self.detections)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def append(self, detection: Detection, geometry=None) -> int:
        """
        Append a detection and its region at the same index.

        Args:
            detection (Detection): Row to append
            geometry (optional): Region geometry; replaces detection.geometry

        Returns:
            int: Index of the new row
        """
        self._check_counts()
        if geometry is not None:
            detection.geometry = geometry
        self.detections.append(detection)
        self.regions.append(detection.geometry)
        return len(self.detections) - 1

    def extend(self, detections: Iterable[Detection]) -> None:
        for det in detections:
            self.append(det)

    def delete_at(self, index: int) -> Detection:
        """Remove row `index` and its region; later rows shift down by one."""
        self._check_counts()
        if not -len(self.detections) <= index < len(self.detections):
            raise IndexError(f"Detection index {index} out of range")
        det = self.detections.pop(index)
        self.regions.pop(index)
        return det

    def delete_indices(self, indices: Iterable[int]) -> int:
        """Delete several rows, highest index first. Returns rows removed."""
        removed = 0
        for index in sorted(set(indices), reverse=True):
            self.delete_at(index)
            removed += 1
        return removed

    def reset(self) -> None:
        """Drop every row and region before a new analysis pass."""
        self.detections.clear()
        self.regions.clear()

    def reset_tracks(self) -> None:
        for det in self.detections:
            det.track_id = 0
            det.displacement = 0.0

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    def frames(self) -> List[int]:
        return sorted({det.frame for det in self.detections})

    def max_frame(self) -> int:
        return max((det.frame for det in self.detections), default=0)

    def indices_in_frame(self, frame: int) -> List[int]:
        return [i for i, det in enumerate(self.detections) if det.frame == frame]

    def frame_index(self) -> Dict[int, List[int]]:
        """Map frame -> row indices in table order."""
        index: Dict[int, List[int]] = {}
        for i, det in enumerate(self.detections):
            index.setdefault(det.frame, []).append(i)
        return index

    def track_ids(self) -> List[int]:
        return sorted({det.track_id for det in self.detections if det.track_id > 0})

    def track(self, track_id: int) -> List[int]:
        """Row indices of one track ordered by frame (table order on ties)."""
        rows = [i for i, det in enumerate(self.detections) if det.track_id == track_id]
        return sorted(rows, key=lambda i: self.detections[i].frame)

    def n_channels(self) -> int:
        return max((len(det.channel_means) for det in self.detections), default=0)

    def centroids(self) -> np.ndarray:
        if not self.detections:
            return np.zeros((0, 2), dtype=np.float64)
        return np.array([(det.x, det.y) for det in self.detections], dtype=np.float64)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per detection; channel means as mean_1..mean_C columns."""
        n_channels = self.n_channels()
        columns = ["frame", "x", "y", "area", "minor_axis", "major_axis", "track_id", "displacement"]
        columns += [f"mean_{c + 1}" for c in range(n_channels)]

        rows = []
        for det in self.detections:
            row = [
                det.frame,
                det.x,
                det.y,
                det.area,
                det.minor_axis,
                det.major_axis,
                det.track_id,
                det.displacement,
            ]
            means = list(det.channel_means) + [np.nan] * (n_channels - len(det.channel_means))
            rows.append(row + means)

        df = pd.DataFrame(rows, columns=columns)
        return df.astype({"frame": int, "track_id": int})
