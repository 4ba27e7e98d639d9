"""
Tests for frame conditioning filters.

Tests cover:
- Percentile rescaling to 8 bits
- CLAHE output type and range
- Temporal max filtering window handling
- Whole-stack conditioning
"""

import numpy as np

from nuclei_tracker.utils.image_processing import (
    condition_stack,
    enhance_local_contrast,
    gaussian_blur,
    temporal_max_filter,
    to_uint8,
)


class TestToUint8:
    """Test suite for to_uint8."""

    def test_full_range_mapping(self):
        """A linear ramp maps onto 0..255."""
        img = np.linspace(100, 4000, 64 * 64, dtype=np.float32).reshape(64, 64)
        result = to_uint8(img, 0, 100)
        assert result.dtype == np.uint8
        assert result.min() == 0
        assert result.max() == 255

    def test_constant_image(self):
        """Constant images have no range to stretch."""
        result = to_uint8(np.full((10, 10), 42.0))
        assert not result.any()


class TestEnhanceLocalContrast:
    """Test suite for CLAHE enhancement."""

    def test_shape_and_dtype(self):
        img = np.random.default_rng(0).integers(0, 4096, (64, 64)).astype(np.uint16)
        result = enhance_local_contrast(img, clip_limit=2.0, tile_size=8)
        assert result.shape == img.shape
        assert result.dtype == np.uint8


class TestTemporalMaxFilter:
    """Test suite for temporal_max_filter."""

    def test_window_one_is_identity(self):
        stack = np.arange(24, dtype=np.float32).reshape(3, 2, 4)
        np.testing.assert_array_equal(temporal_max_filter(stack, 1), stack)

    def test_blinking_nucleus_is_filled(self):
        """A pixel missing in a single frame is restored by a 3-frame window."""
        stack = np.zeros((5, 4, 4), dtype=np.uint8)
        stack[[0, 1, 3, 4], 2, 2] = 200
        result = temporal_max_filter(stack, 3)
        assert (result[:, 2, 2] == 200).all()
        assert result.dtype == np.uint8

    def test_window_clipped_at_ends(self):
        stack = np.zeros((4, 1, 1), dtype=np.float32)
        stack[3, 0, 0] = 1.0
        result = temporal_max_filter(stack, 3)
        assert result[:, 0, 0].tolist() == [0.0, 0.0, 1.0, 1.0]


def test_gaussian_blur_zero_sigma_passthrough():
    img = np.random.default_rng(1).random((8, 8)).astype(np.float32)
    np.testing.assert_array_equal(gaussian_blur(img, 0), img)


def test_condition_stack_returns_uint8_frames():
    stack = np.random.default_rng(2).integers(0, 1000, (3, 32, 32)).astype(np.uint16)
    params = {"TEMPORAL_MAX_WINDOW": 3, "CLAHE_CLIP_LIMIT": 2.0, "CLAHE_TILE_SIZE": 4}
    result = condition_stack(stack, params)
    assert result.shape == stack.shape
    assert result.dtype == np.uint8


def test_even_window_reaches_back_one_extra_frame():
    stack = np.zeros((4, 1, 1), dtype=np.float32)
    stack[1, 0, 0] = 1.0
    result = temporal_max_filter(stack, 2)
    assert result[:, 0, 0].tolist() == [0.0, 1.0, 1.0, 0.0]
