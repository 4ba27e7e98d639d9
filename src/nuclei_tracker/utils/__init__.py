"""
Utility modules for the nuclei tracker.

Frame conditioning filters applied before detection.
"""

from .image_processing import (
    condition_stack,
    enhance_local_contrast,
    gaussian_blur,
    temporal_max_filter,
    to_uint8,
)

__all__ = [
    "condition_stack",
    "enhance_local_contrast",
    "gaussian_blur",
    "temporal_max_filter",
    "to_uint8",
]
