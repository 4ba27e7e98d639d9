"""
Frame conditioning applied before nucleus detection.

These filters only prepare pixels for thresholding; measurements are always
taken on the unconditioned frames.
"""

import cv2
import numpy as np
from scipy import ndimage as ndi


def to_uint8(image, low_percentile=0.5, high_percentile=99.5):
    """
    Rescale an image to 8 bits between two intensity percentiles.

    Args:
        image (np.ndarray): Input image of any numeric dtype
        low_percentile (float): Percentile mapped to 0
        high_percentile (float): Percentile mapped to 255

    Returns:
        np.ndarray: uint8 image
    """
    img = np.asarray(image, dtype=np.float32)
    lo, hi = np.percentile(img, [low_percentile, high_percentile])
    if hi <= lo:
        return np.zeros(img.shape, dtype=np.uint8)
    scaled = (img - lo) * (255.0 / (hi - lo))
    return np.clip(scaled, 0, 255).astype(np.uint8)


def enhance_local_contrast(image, clip_limit=2.0, tile_size=8):
    """
    Contrast-limited adaptive histogram equalisation (CLAHE).

    Evens out nuclei of different brightness so a single global threshold
    catches dim and bright nuclei alike.
    """
    clahe = cv2.createCLAHE(clipLimit=float(clip_limit), tileGridSize=(int(tile_size), int(tile_size)))
    return clahe.apply(to_uint8(image))


def gaussian_blur(image, sigma):
    if sigma <= 0:
        return np.asarray(image)
    return cv2.GaussianBlur(np.asarray(image, dtype=np.float32), (0, 0), float(sigma))


def temporal_max_filter(stack, window):
    """
    Running maximum over `window` consecutive frames, clipped at the ends.
    Fills in nuclei that blink out for a frame. Even windows reach one frame
    further back than forward.

    Args:
        stack (np.ndarray): Frames stacked along axis 0
        window (int): Number of frames in the window

    Returns:
        np.ndarray: Filtered stack with the same shape and dtype
    """
    stack = np.asarray(stack)
    if window <= 1:
        return stack.copy()
    return ndi.maximum_filter1d(stack, size=int(window), axis=0, mode="nearest")


def condition_stack(stack, params):
    """Apply temporal max filtering then CLAHE to every frame."""
    filtered = temporal_max_filter(stack, int(params.get("TEMPORAL_MAX_WINDOW", 1)))
    return np.stack(
        [
            enhance_local_contrast(
                frame,
                clip_limit=params.get("CLAHE_CLIP_LIMIT", 2.0),
                tile_size=params.get("CLAHE_TILE_SIZE", 8),
            )
            for frame in filtered
        ]
    )
