"""
Region geometry owned by each detection.

The registry and the linker treat geometry as opaque. Only the correction
state machine (to duplicate a region into another frame), the measurement
provider and persistence look inside it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Tuple

import numpy as np


class RegionGeometry(Protocol):
    """Interface a detector's region type must offer the core."""

    frame: int

    def with_frame(self, frame: int) -> "RegionGeometry":
        """Return a copy of the region placed on another frame."""
        ...


@dataclass
class MaskRegion:
    """
    Binary region cropped to its bounding box.

    Attributes:
        frame (int): 1-based frame the region lives on
        top (int): Row of the bounding box origin
        left (int): Column of the bounding box origin
        mask (np.ndarray): Boolean crop, True inside the region
    """

    frame: int
    top: int
    left: int
    mask: np.ndarray

    def __post_init__(self):
        self.mask = np.asarray(self.mask, dtype=bool)

    @property
    def area(self) -> int:
        return int(self.mask.sum())

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        """(min_row, min_col, max_row, max_col) with exclusive maxima."""
        h, w = self.mask.shape
        return self.top, self.left, self.top + h, self.left + w

    def with_frame(self, frame: int) -> "MaskRegion":
        return MaskRegion(frame=frame, top=self.top, left=self.left, mask=self.mask.copy())

