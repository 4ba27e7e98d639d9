"""
Conditional watershed for touching nuclei.

A distance-transform watershed splits every fused blob it can. Each boundary
line it introduces is then kept only if the reference intensity dips along it
and the line is short compared to the objects it separates. Rejected lines
are merged back, so only plausible nucleus/nucleus contacts stay separated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
from scipy import ndimage as ndi
from skimage.measure import regionprops
from skimage.morphology import h_maxima
from skimage.segmentation import watershed

from .errors import ParameterError

logger = logging.getLogger(__name__)

_FULL_CONNECTIVITY = np.ones((3, 3), dtype=bool)


@dataclass
class BoundaryDecision:
    """Evaluation of one candidate boundary line."""

    line_label: int
    labels: Tuple[int, int]  # Watershed objects on either side
    length: int  # Pixels on the line
    median_ratio: float
    length_ratio: float
    accepted: bool


def unconditional_split(mask: np.ndarray, tolerance: float = 0.5) -> np.ndarray:
    """
    Split fused objects with a distance-transform watershed.

    Args:
        mask (np.ndarray): Binary object mask
        tolerance (float): Minimum height of a distance-map maximum to seed
            its own object

    Returns:
        np.ndarray: Label image; boundary lines are 0 inside the mask
    """
    mask = np.asarray(mask, dtype=bool)
    if not mask.any():
        return np.zeros(mask.shape, dtype=np.int32)

    distance = ndi.distance_transform_edt(mask)
    peaks = h_maxima(distance, tolerance) > 0
    markers, _ = ndi.label(peaks & mask, structure=_FULL_CONNECTIVITY)
    return watershed(-distance, markers, mask=mask, watershed_line=True).astype(np.int32)


class ConditionalWatershed:
    """
    Keeps watershed separations that look like real nucleus contacts.

    Args:
        params (dict): Uses SEPARATE, MAX_BOUNDARY_RATIO and WATERSHED_TOLERANCE
    """

    def __init__(self, params):
        self.separate = float(params.get("SEPARATE", 0.8))
        self.max_boundary_ratio = float(params.get("MAX_BOUNDARY_RATIO", 0.35))
        self.tolerance = float(params.get("WATERSHED_TOLERANCE", 0.5))
        if not 0.0 <= self.separate <= 1.0:
            raise ParameterError(f"SEPARATE must be within [0, 1], got {self.separate}")

    def apply(self, mask: np.ndarray, reference: np.ndarray) -> np.ndarray:
        """
        Split touching objects in `mask` where the split is supported.

        Args:
            mask (np.ndarray): Binary mask of candidate objects
            reference (np.ndarray): Intensity image before enhancement, same shape

        Returns:
            np.ndarray: Boolean mask with accepted boundary lines cleared
        """
        mask = np.asarray(mask, dtype=bool)
        if self.separate >= 1.0:
            return mask.copy()

        split_labels = unconditional_split(mask, self.tolerance)
        if self.separate <= 0.0:
            return split_labels > 0

        result = mask.copy()
        for decision, line in self._iter_boundaries(mask, reference, split_labels):
            if decision.accepted:
                result[line] = False
        return result

    def evaluate_boundaries(self, mask: np.ndarray, reference: np.ndarray) -> List[BoundaryDecision]:
        """Score every boundary line the unconditional split would draw."""
        mask = np.asarray(mask, dtype=bool)
        split_labels = unconditional_split(mask, self.tolerance)
        return [decision for decision, _ in self._iter_boundaries(mask, reference, split_labels)]

    def _iter_boundaries(self, mask, reference, split_labels):
        reference = np.asarray(reference, dtype=np.float64)
        if reference.shape != mask.shape:
            raise ValueError(f"Reference shape {reference.shape} does not match mask {mask.shape}")

        boundary = mask & (split_labels == 0)
        lines, n_lines = ndi.label(boundary, structure=_FULL_CONNECTIVITY)
        if n_lines == 0:
            return

        props = {p.label: p for p in regionprops(split_labels)}
        n_accepted = 0

        for line_label in range(1, n_lines + 1):
            line = lines == line_label
            sides = self._adjacent_labels(line, split_labels)
            if len(sides) < 2:
                # Dead-end line touching only one object: nothing to separate
                continue
            a, b = sides

            line_median = float(np.median(reference[line]))
            side_median = min(
                float(np.median(reference[split_labels == a])),
                float(np.median(reference[split_labels == b])),
            )
            median_ratio = line_median / side_median if side_median > 0 else np.inf

            larger = a if props[a].area >= props[b].area else b
            minor_axis = float(props[larger].axis_minor_length)
            length = int(line.sum())
            length_ratio = length / minor_axis if minor_axis > 0 else np.inf

            accepted = median_ratio < self.separate and length_ratio < self.max_boundary_ratio
            n_accepted += int(accepted)
            logger.debug(
                f"Boundary {line_label} between {a} and {b}: median ratio {median_ratio:.3f}, "
                f"length ratio {length_ratio:.3f} -> {'split' if accepted else 'merge'}"
            )
            yield BoundaryDecision(
                line_label=line_label,
                labels=(a, b),
                length=length,
                median_ratio=median_ratio,
                length_ratio=length_ratio,
                accepted=accepted,
            ), line

        logger.debug(f"Conditional watershed kept {n_accepted} of {n_lines} boundary line(s)")

    @staticmethod
    def _adjacent_labels(line, split_labels):
        ring = ndi.binary_dilation(line, structure=_FULL_CONNECTIVITY) & ~line
        touching = split_labels[ring]
        touching = touching[touching > 0]
        if touching.size == 0:
            return []
        labels, counts = np.unique(touching, return_counts=True)
        order = np.argsort(-counts, kind="stable")
        return [int(labels[i]) for i in order[:2]]
