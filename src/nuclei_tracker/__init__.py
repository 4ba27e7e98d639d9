"""
Nuclei Tracker Package

Links per-frame detections of cell nuclei in time-lapse microscopy into
tracks, supports manual correction of linkage errors, and reshapes per-nucleus
intensities into per-track time series for detecting nuclear-envelope
rupture events.

Key Features:
- Threshold-based nucleus detection with a conditional watershed that only
  keeps splits backed by an intensity dip and a short boundary
- Greedy nearest-neighbour linkage with gap bridging and shortest-link
  collision resolution
- Cursor-driven corrections: delete, relabel or extend a track over a chosen
  temporal extent
- Multi-channel resampling and a per-track, per-frame intensity matrix
- Rupture-event detection on the resulting traces
"""

__version__ = "1.0.0"

from .app.launcher import main, parse_arguments, setup_logging
from .core.registry import Detection, DetectionRegistry
from .core.linkage import TrackLinker

__all__ = ["main", "parse_arguments", "setup_logging", "Detection", "DetectionRegistry", "TrackLinker"]
