"""
Core tracking components for the nuclei tracker.

This package contains the detection registry, the temporal linkage engine,
the conditional watershed, the correction state machine and the
resampling/reshaping steps that turn detections into per-track traces.
"""
from .errors import ConsistencyError, EmptyStateError, ParameterError, TrackerError
from .geometry import MaskRegion
from .registry import Detection, DetectionRegistry
from .linkage import GreedyNearestStrategy, LinkageResult, TrackLinker, find_nearest
from .separation import ConditionalWatershed
from .correction import Command, CommandKind, CorrectionStateMachine, CursorEvent, Direction, Extent
from .detection import NucleusDetector, measure_region
from .resampling import pivot_tracks, resample_channels
from .rupture import detect_rupture_events


__all__ = [
    "Command",
    "CommandKind",
    "ConditionalWatershed",
    "ConsistencyError",
    "CorrectionStateMachine",
    "CursorEvent",
    "Detection",
    "DetectionRegistry",
    "Direction",
    "EmptyStateError",
    "Extent",
    "GreedyNearestStrategy",
    "LinkageResult",
    "MaskRegion",
    "NucleusDetector",
    "ParameterError",
    "TrackLinker",
    "TrackerError",
    "detect_rupture_events",
    "find_nearest",
    "measure_region",
    "pivot_tracks",
    "resample_channels",
]
