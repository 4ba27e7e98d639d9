"""
Temporal linkage of nucleus detections into tracks.

A single forward pass over the registry in table order. Each detection looks
for its nearest successor in the next frame, bridging up to GAP_FRAMES frames
when the next frame has nothing within MAX_DISPLACEMENT. Collisions (two
detections claiming the same successor) are resolved in favour of the
shortest link seen so far. The policy is greedy and order dependent on
purpose; the matching step is pluggable so a global assignment can replace it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

import numpy as np

from .registry import DetectionRegistry

logger = logging.getLogger(__name__)


def find_nearest(
    registry: DetectionRegistry,
    x: float,
    y: float,
    frame: int,
    max_distance: float = np.inf,
    candidates: Optional[List[int]] = None,
) -> Optional[Tuple[int, float]]:
    """
    Find the detection in `frame` closest to (x, y).

    Args:
        registry (DetectionRegistry): Registry to search
        x (float): Query x coordinate
        y (float): Query y coordinate
        frame (int): Frame to search in
        max_distance (float): Candidates farther than this are ignored
        candidates (list, optional): Row indices to restrict the search to

    Returns:
        tuple: (row_index, distance) of the nearest detection, or None if no
        detection of that frame lies within max_distance. Ties go to the
        earliest row in table order.
    """
    if candidates is None:
        candidates = registry.indices_in_frame(frame)
    else:
        candidates = [i for i in candidates if registry[i].frame == frame]
    if not candidates:
        return None

    pts = np.array([(registry[i].x, registry[i].y) for i in candidates], dtype=np.float64)
    return _nearest_within(pts, np.array([x, y], dtype=np.float64), candidates, max_distance)


def _nearest_within(points, query, indices, max_distance):
    dists = np.sqrt(((points - query) ** 2).sum(axis=1))
    best = int(np.argmin(dists))  # argmin keeps the first minimum
    if dists[best] > max_distance:
        return None
    return indices[best], float(dists[best])


class MatchingStrategy(Protocol):
    """Chooses the successor of one detection during the linkage pass."""

    def find_successor(
        self,
        index: int,
        centroids: np.ndarray,
        frames: Dict[int, List[int]],
        frame: int,
        last_frame: int,
    ) -> Optional[Tuple[int, float]]:
        ...


class GreedyNearestStrategy:
    """
    Nearest neighbour within max_displacement, searching up to `gap` frames
    ahead and stopping at the first frame that yields any candidate.
    """

    def __init__(self, max_displacement: float, gap: int):
        self.max_displacement = float(max_displacement)
        self.gap = int(gap)

    def find_successor(self, index, centroids, frames, frame, last_frame):
        query = centroids[index]
        for step in range(1, self.gap + 1):
            target = frame + step
            if target > last_frame:
                break
            rows = frames.get(target)
            if not rows:
                continue
            hit = _nearest_within(centroids[rows], query, rows, self.max_displacement)
            if hit is not None:
                return hit
        return None


@dataclass
class LinkageResult:
    """Summary of one linkage pass."""

    n_tracks: int = 0  # Track ids minted during the pass
    n_links: int = 0  # Successors claimed by a free detection
    n_relinked: int = 0  # Successors taken over by a shorter link
    n_discarded: int = 0  # Attempts lost to an equal or shorter existing link
    n_terminated: int = 0  # Detections with no successor within reach


class TrackLinker:
    """
    Assigns track ids and displacements to every detection of a registry.

    Args:
        params (dict): Uses MAX_DISPLACEMENT and GAP_FRAMES
        strategy (MatchingStrategy, optional): Successor search; defaults to
            GreedyNearestStrategy built from params
    """

    def __init__(self, params, strategy: Optional[MatchingStrategy] = None):
        self.params = params
        self.max_displacement = float(params["MAX_DISPLACEMENT"])
        self.gap = int(params["GAP_FRAMES"])
        self.strategy = strategy or GreedyNearestStrategy(self.max_displacement, self.gap)

    def link(self, registry: DetectionRegistry, reset: bool = True) -> LinkageResult:
        """
        Run the forward linkage pass.

        Args:
            registry (DetectionRegistry): Registry mutated in place
            reset (bool): Clear existing track ids first. With reset=False,
                rows that already carry a track id keep it and new ids continue
                after the largest one present.

        Returns:
            LinkageResult: Pass statistics
        """
        registry.check_consistency()
        if reset:
            registry.reset_tracks()

        result = LinkageResult()
        n = registry.count()
        if n == 0:
            logger.info("Linkage skipped: registry is empty")
            return result

        detections = registry.detections
        centroids = registry.centroids()
        frames = registry.frame_index()
        last_frame = max(frames)
        next_id = max((det.track_id for det in detections), default=0) + 1

        for j in range(n):
            det = detections[j]
            if det.track_id == 0:
                det.track_id = next_id
                det.displacement = 0.0
                next_id += 1
                result.n_tracks += 1

            if det.frame >= last_frame:
                continue

            hit = self.strategy.find_successor(j, centroids, frames, det.frame, last_frame)
            if hit is None:
                result.n_terminated += 1
                continue

            k, dist = hit
            succ = detections[k]
            if succ.track_id == 0:
                succ.track_id = det.track_id
                succ.displacement = dist
                result.n_links += 1
            elif succ.track_id != det.track_id and succ.displacement > dist:
                logger.debug(
                    f"Row {k} (frame {succ.frame}) relinked from track {succ.track_id} "
                    f"to {det.track_id}: {dist:.2f} < {succ.displacement:.2f}"
                )
                succ.track_id = det.track_id
                succ.displacement = dist
                result.n_relinked += 1
            else:
                result.n_discarded += 1

        logger.info(
            f"Linkage: {n} detections, {result.n_tracks} new tracks, "
            f"{result.n_links} links, {result.n_relinked} relinked, "
            f"{result.n_discarded} discarded (maxdisp={self.max_displacement}, gap={self.gap})"
        )
        return result
