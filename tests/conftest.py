import sys
from pathlib import Path

import numpy as np
import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"

# Import the package from src/ without requiring an editable install
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


def square_region(frame: int, x: float, y: float, half: int = 2):
    """Square MaskRegion centred on (x, y)."""
    from nuclei_tracker.core.geometry import MaskRegion

    size = 2 * half + 1
    return MaskRegion(
        frame=frame,
        top=int(round(y)) - half,
        left=int(round(x)) - half,
        mask=np.ones((size, size), dtype=bool),
    )


@pytest.fixture
def make_registry():
    """Build a registry from (frame, x, y[, track_id]) tuples in table order."""
    from nuclei_tracker.core.registry import Detection, DetectionRegistry

    def _make(points, with_regions=True):
        registry = DetectionRegistry()
        for point in points:
            frame, x, y = point[:3]
            track_id = point[3] if len(point) > 3 else 0
            region = square_region(frame, x, y) if with_regions else None
            registry.append(
                Detection(frame=frame, x=float(x), y=float(y), area=25.0, track_id=track_id),
                region,
            )
        return registry

    return _make
