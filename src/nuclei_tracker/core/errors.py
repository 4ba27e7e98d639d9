"""
Error taxonomy for the nuclei tracker.

A missing successor during linkage is not represented here: the nearest
neighbour search simply returns None and the track ends at that frame.
"""


class TrackerError(Exception):
    """Base class for all tracker errors."""


class ConsistencyError(TrackerError):
    """Detection rows and region geometries are out of sync.

    Fatal: every by-index lookup between the two stores is wrong once this
    happens, so callers must not recover from it.
    """


class EmptyStateError(TrackerError):
    """An action was requested with nothing to act on."""


class ParameterError(TrackerError, ValueError):
    """A configuration parameter is outside its valid range."""
