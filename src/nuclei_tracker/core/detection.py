"""
Classical nucleus detection and region measurement.

The detector thresholds a conditioned frame, optionally separates touching
nuclei with the conditional watershed, and returns one MaskRegion per nucleus
in label order. measure_region is the measurement provider shared by the
detector and the channel resampler.
"""

import logging
from dataclasses import dataclass

import numpy as np
from scipy import ndimage as ndi
from skimage.filters import threshold_otsu
from skimage.measure import label, regionprops

from ..utils.image_processing import gaussian_blur
from .geometry import MaskRegion
from .registry import Detection, DetectionRegistry
from .separation import ConditionalWatershed

logger = logging.getLogger(__name__)


@dataclass
class RegionMeasurement:
    area: float
    x: float
    y: float
    minor_axis: float
    major_axis: float
    mean: float


def _crop(region: MaskRegion, image: np.ndarray):
    """Image crop under the region's bounding box plus the matching mask."""
    r0, c0, r1, c1 = region.bbox
    h, w = image.shape[:2]
    rr0, cc0, rr1, cc1 = max(r0, 0), max(c0, 0), min(r1, h), min(c1, w)
    if rr1 <= rr0 or cc1 <= cc0:
        raise ValueError(f"Region on frame {region.frame} lies outside the image")
    crop = image[rr0:rr1, cc0:cc1]
    mask = region.mask[rr0 - r0 : rr1 - r0, cc0 - c0 : cc1 - c0]
    return crop, mask, rr0, cc0


def measure_mean(region: MaskRegion, image: np.ndarray) -> float:
    """Mean intensity of `image` under the region."""
    crop, mask, _, _ = _crop(region, image)
    if not mask.any():
        return 0.0
    return float(crop[mask].mean())


def measure_region(region: MaskRegion, image: np.ndarray) -> RegionMeasurement:
    """
    Measure area, centroid, ellipse axes and mean intensity of one region.

    Args:
        region (MaskRegion): Region to measure
        image (np.ndarray): 2D intensity image of the region's frame

    Returns:
        RegionMeasurement: Centroid in image coordinates (x = column, y = row)
    """
    crop, mask, top, left = _crop(region, image)
    props = regionprops(mask.astype(np.uint8), intensity_image=crop.astype(np.float64))
    if not props:
        raise ValueError(f"Region on frame {region.frame} has no pixels inside the image")
    p = props[0]
    cy, cx = p.centroid
    return RegionMeasurement(
        area=float(p.area),
        x=float(cx + left),
        y=float(cy + top),
        minor_axis=float(p.axis_minor_length),
        major_axis=float(p.axis_major_length),
        mean=float(p.intensity_mean),
    )


class NucleusDetector:
    """
    Threshold-based nucleus detector.

    Args:
        params (dict): Uses BLUR_SIGMA, MIN_NUCLEUS_AREA,
            USE_CONDITIONAL_WATERSHED and the watershed parameters
    """

    def __init__(self, params):
        self.params = params
        self.splitter = ConditionalWatershed(params)

    def segment(self, image: np.ndarray, reference: np.ndarray = None) -> np.ndarray:
        """
        Foreground mask of one conditioned frame.

        Args:
            image (np.ndarray): Conditioned frame used for thresholding
            reference (np.ndarray, optional): Unenhanced frame for the
                separation heuristic; defaults to `image`

        Returns:
            np.ndarray: Boolean mask
        """
        img = np.asarray(image, dtype=np.float32)
        if img.max() == img.min():
            return np.zeros(img.shape, dtype=bool)

        img = gaussian_blur(img, float(self.params.get("BLUR_SIGMA", 1.0)))

        mask = img > threshold_otsu(img)
        mask = ndi.binary_fill_holes(mask)

        if self.params.get("USE_CONDITIONAL_WATERSHED", True):
            mask = self.splitter.apply(mask, image if reference is None else reference)
        return mask

    def detect(self, image: np.ndarray, frame: int, reference: np.ndarray = None):
        """
        Detect nuclei in one frame.

        Returns:
            list: MaskRegion objects in label order, each with area
            >= MIN_NUCLEUS_AREA
        """
        mask = self.segment(image, reference)
        labels = label(mask, connectivity=1)
        min_area = self.params.get("MIN_NUCLEUS_AREA", 0)

        regions = []
        for p in regionprops(labels):
            if p.area < min_area:
                continue
            min_row, min_col, _, _ = p.bbox
            regions.append(MaskRegion(frame=frame, top=min_row, left=min_col, mask=p.image.copy()))

        logger.debug(f"Frame {frame}: {len(regions)} nuclei (of {labels.max()} components)")
        return regions

    def populate(self, registry: DetectionRegistry, stack, reference_stack=None) -> int:
        """
        Run detection on every frame of `stack` and fill the registry.

        Frames are numbered from 1; detections of frame t are appended before
        those of frame t + 1.

        Returns:
            int: Number of detections appended
        """
        n_added = 0
        for t, image in enumerate(stack, start=1):
            reference = reference_stack[t - 1] if reference_stack is not None else None
            for region in self.detect(image, t, reference):
                m = measure_region(region, image if reference is None else reference)
                registry.append(
                    Detection(
                        frame=t,
                        x=m.x,
                        y=m.y,
                        area=m.area,
                        minor_axis=m.minor_axis,
                        major_axis=m.major_axis,
                    ),
                    region,
                )
                n_added += 1

        logger.info(f"Detection pass: {n_added} nuclei over {len(stack)} frame(s)")
        return n_added
