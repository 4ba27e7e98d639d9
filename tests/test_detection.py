from __future__ import annotations

import numpy as np
import pytest

from nuclei_tracker.config import get_default_params
from nuclei_tracker.core.detection import NucleusDetector, measure_region
from nuclei_tracker.core.geometry import MaskRegion
from nuclei_tracker.core.linkage import TrackLinker
from nuclei_tracker.core.registry import DetectionRegistry


def _blob_frame(centers, shape=(64, 96), sigma=5.0, amplitude=200.0) -> np.ndarray:
    rr, cc = np.mgrid[: shape[0], : shape[1]]
    frame = np.full(shape, 5.0, dtype=np.float32)
    for r, c in centers:
        frame += amplitude * np.exp(-((rr - r) ** 2 + (cc - c) ** 2) / (2 * sigma**2))
    return frame


def test_measure_region_reports_image_coordinates() -> None:
    image = np.zeros((30, 30), dtype=np.float32)
    image[10:15, 20:25] = 8.0
    region = MaskRegion(frame=1, top=10, left=20, mask=np.ones((5, 5), dtype=bool))

    m = measure_region(region, image)

    assert m.area == 25.0
    assert (m.x, m.y) == (pytest.approx(22.0), pytest.approx(12.0))
    assert m.mean == pytest.approx(8.0)
    assert m.minor_axis == pytest.approx(m.major_axis)


def test_detect_finds_separated_nuclei_in_label_order() -> None:
    detector = NucleusDetector(get_default_params())

    regions = detector.detect(_blob_frame([(20, 20), (40, 70)]), frame=3)

    assert len(regions) == 2
    assert all(r.frame == 3 for r in regions)
    assert all(r.area >= 30 for r in regions)
    assert regions[0].top < regions[1].top


def test_flat_frame_has_no_nuclei() -> None:
    detector = NucleusDetector(get_default_params())
    assert detector.detect(np.full((32, 32), 7.0), frame=1) == []


def test_populate_fills_registry_frame_by_frame_and_links() -> None:
    stack = np.stack([_blob_frame([(20, 20 + 2 * t), (44, 70 - 2 * t)]) for t in range(3)])
    registry = DetectionRegistry()

    n_added = NucleusDetector(get_default_params()).populate(registry, stack)

    assert n_added == 6
    assert [d.frame for d in registry] == [1, 1, 2, 2, 3, 3]
    registry.check_consistency()

    TrackLinker({"MAX_DISPLACEMENT": 10.0, "GAP_FRAMES": 2}).link(registry)
    assert [d.track_id for d in registry] == [1, 2, 1, 2, 1, 2]
    assert registry[2].x == pytest.approx(22.0, abs=0.5)
