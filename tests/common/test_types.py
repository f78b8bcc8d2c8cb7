"""
Unit tests for common types.
"""

import numpy as np
import pytest

from src.common.types import ImageBuffer, NormalizedBBox


class TestNormalizedBBox:
    """Tests for NormalizedBBox."""

    def test_to_pixels(self):
        """Test conversion to a pixel rectangle."""
        box = NormalizedBBox(x1=0.25, y1=0.5, x2=0.75, y2=1.0)

        assert box.to_pixels(200, 100) == (50, 50, 100, 50)

    def test_from_list(self):
        """Test construction from a list."""
        box = NormalizedBBox.from_list([0, 0, 1, 1])

        assert box.to_list() == [0.0, 0.0, 1.0, 1.0]

    def test_numpy_scalars_accepted(self):
        """Test that numpy floats from model output are accepted."""
        box = NormalizedBBox(
            x1=np.float32(0.1), y1=np.float32(0.1), x2=np.float32(0.9), y2=np.float32(0.9)
        )

        assert isinstance(box.x1, float)

    def test_inverted_box_rejected(self):
        """Test that x1 >= x2 is rejected."""
        with pytest.raises(ValueError, match="x1"):
            NormalizedBBox(x1=0.6, y1=0.1, x2=0.4, y2=0.9)

    def test_out_of_range_rejected(self):
        """Test that coordinates outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            NormalizedBBox(x1=0.0, y1=0.0, x2=1.2, y2=1.0)

    def test_from_list_wrong_length(self):
        """Test that short lists are rejected."""
        with pytest.raises(ValueError, match="4 elements"):
            NormalizedBBox.from_list([0.0, 0.0, 1.0])


class TestImageBuffer:
    """Tests for ImageBuffer."""

    def test_size(self):
        """Test width/height accessors."""
        buffer = ImageBuffer(data=np.zeros((30, 40, 3), dtype=np.uint8))

        assert buffer.size == (40, 30)

    def test_float_rejected(self):
        """Test that non-uint8 data is rejected."""
        with pytest.raises(ValueError, match="uint8"):
            ImageBuffer(data=np.zeros((30, 40), dtype=np.float32))

    def test_bad_channel_count(self):
        """Test that 2-channel images are rejected."""
        with pytest.raises(ValueError, match="channels"):
            ImageBuffer(data=np.zeros((30, 40, 2), dtype=np.uint8))
