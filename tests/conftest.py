"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules.
"""

import pytest


@pytest.fixture
def empty_mask():
    """Fixture providing a 320x320 mask with no foreground."""
    import numpy as np

    return np.zeros((320, 320), dtype=np.float32)


@pytest.fixture
def rectangle_mask():
    """Fixture providing a mask with one 200x240 axis-aligned rectangle."""
    import numpy as np

    mask = np.zeros((320, 320), dtype=np.float32)
    mask[40:280, 60:260] = 0.9  # width 200, height 240

    return mask, 200.0 * 240.0


@pytest.fixture
def make_rectangle_mask():
    """Factory for masks holding one rectangle (x, y, width, height)."""
    import numpy as np

    def _make(x, y, width, height, shape=(320, 320), value=0.9):
        mask = np.zeros(shape, dtype=np.float32)
        mask[y : y + height, x : x + width] = value
        return mask

    return _make


@pytest.fixture
def page_image():
    """
    Fixture providing a 1800x2400 white capture with a black block.

    The block covers x in [450, 1350) and y in [600, 1800), i.e. the middle
    half of the frame on both axes.
    """
    import numpy as np

    image = np.full((2400, 1800, 3), 255, dtype=np.uint8)
    image[600:1800, 450:1350] = 0

    return image


@pytest.fixture
def fast_config():
    """Fixture providing default config with a 3-frame lock requirement."""
    from src.scanner.types import ScannerConfig

    config = ScannerConfig.default()
    config.stability.required_stable_frames = 3

    return config
