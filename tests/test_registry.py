from __future__ import annotations

import numpy as np
import pytest

from nuclei_tracker.core.errors import ConsistencyError
from nuclei_tracker.core.geometry import MaskRegion
from nuclei_tracker.core.registry import Detection, DetectionRegistry


def _region(frame: int) -> MaskRegion:
    return MaskRegion(frame=frame, top=0, left=0, mask=np.ones((3, 3), dtype=bool))


def test_append_keeps_rows_and_regions_at_matching_indices() -> None:
    registry = DetectionRegistry()
    regions = [_region(1), _region(1), _region(2)]
    for i, region in enumerate(regions):
        index = registry.append(Detection(frame=region.frame, x=i, y=0.0), region)
        assert index == i

    assert registry.count() == 3
    assert len(registry.regions) == 3
    for i, region in enumerate(regions):
        assert registry[i].geometry is region
        assert registry.regions[i] is region
    registry.check_consistency()


def test_delete_compacts_both_stores() -> None:
    registry = DetectionRegistry()
    for i in range(4):
        registry.append(Detection(frame=1, x=float(i), y=0.0), _region(1))
    third = registry.regions[2]

    removed = registry.delete_at(1)

    assert removed.x == 1.0
    assert registry.count() == 3
    assert [d.x for d in registry] == [0.0, 2.0, 3.0]
    assert registry.regions[1] is third
    registry.check_consistency()


def test_batch_delete_runs_highest_index_first() -> None:
    registry = DetectionRegistry()
    for i in range(6):
        registry.append(Detection(frame=1 + i // 2, x=float(i), y=0.0), _region(1 + i // 2))

    assert registry.delete_indices([1, 4, 1, 5]) == 3
    assert [d.x for d in registry] == [0.0, 2.0, 3.0]
    registry.check_consistency()


def test_invariant_holds_after_every_mutation() -> None:
    rng = np.random.default_rng(7)
    registry = DetectionRegistry()
    for step in range(60):
        if registry.detections and rng.random() < 0.4:
            registry.delete_at(int(rng.integers(len(registry.detections))))
        else:
            registry.append(Detection(frame=1, x=float(step), y=0.0), _region(1))
        assert len(registry.detections) == len(registry.regions)
        registry.check_consistency()


def test_forced_count_mismatch_raises() -> None:
    registry = DetectionRegistry()
    registry.append(Detection(frame=1, x=0.0, y=0.0), _region(1))
    registry.regions.append(_region(1))

    with pytest.raises(ConsistencyError):
        registry.count()
    with pytest.raises(ConsistencyError):
        registry.append(Detection(frame=1, x=1.0, y=0.0), _region(1))
    with pytest.raises(ConsistencyError):
        registry.delete_at(0)


def test_swapped_region_is_detected() -> None:
    registry = DetectionRegistry()
    registry.append(Detection(frame=1, x=0.0, y=0.0), _region(1))
    registry.append(Detection(frame=1, x=5.0, y=0.0), _region(1))
    registry.regions.reverse()

    with pytest.raises(ConsistencyError):
        registry.check_consistency()


def test_reset_and_track_views() -> None:
    registry = DetectionRegistry()
    registry.append(Detection(frame=2, x=0.0, y=0.0, track_id=4), _region(2))
    registry.append(Detection(frame=1, x=1.0, y=0.0, track_id=4), _region(1))
    registry.append(Detection(frame=1, x=9.0, y=0.0, track_id=1), _region(1))

    assert registry.track_ids() == [1, 4]
    assert registry.track(4) == [1, 0]
    assert registry.frames() == [1, 2]
    assert registry.max_frame() == 2
    assert registry.frame_index() == {2: [0], 1: [1, 2]}

    registry.reset_tracks()
    assert all(d.track_id == 0 and d.displacement == 0.0 for d in registry)

    registry.reset()
    assert registry.count() == 0
    assert registry.regions == []


def test_to_dataframe_pads_missing_channel_means() -> None:
    registry = DetectionRegistry()
    registry.append(Detection(frame=1, x=0.0, y=0.0, channel_means=[10.0, 20.0], track_id=1))
    registry.append(Detection(frame=2, x=1.0, y=0.0, channel_means=[11.0], track_id=1))

    df = registry.to_dataframe()

    assert list(df.columns[-2:]) == ["mean_1", "mean_2"]
    assert df.loc[0, "mean_2"] == 20.0
    assert np.isnan(df.loc[1, "mean_2"])
    assert df["track_id"].tolist() == [1, 1]
