"""
Mask Utilities

Helpers for the probability masks produced by the segmentation model:
shape validation, binarization, nearest-neighbour scaling and smoothing.
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from src.scanner.types import InputShapeMismatchError

logger = logging.getLogger(__name__)

# Gaussian sigma and re-threshold used when smoothing a binary mask
SMOOTHING_SIGMA = 2.0
SMOOTHING_THRESHOLD = 0.9


def validate_mask(
    mask: np.ndarray, expected_size: Optional[Tuple[int, int]] = None
) -> Tuple[int, int]:
    """
    Check that a mask is a non-empty 2-D grid.

    Args:
        mask: Probability mask, shape (height, width).
        expected_size: Optional (width, height) the model is known to produce.

    Returns:
        Mask size as (width, height).

    Raises:
        InputShapeMismatchError: If the mask is not 2-D, is empty, or does not
            match expected_size.
    """
    if not isinstance(mask, np.ndarray):
        raise InputShapeMismatchError(f"Expected numpy.ndarray mask, got {type(mask)}")

    if mask.ndim != 2 or mask.size == 0:
        raise InputShapeMismatchError(
            f"Expected a non-empty 2D mask (height, width), got shape {mask.shape}"
        )

    size = (int(mask.shape[1]), int(mask.shape[0]))
    if expected_size is not None and size != tuple(expected_size):
        raise InputShapeMismatchError(
            f"Mask size {size[0]}x{size[1]} does not match model output "
            f"{expected_size[0]}x{expected_size[1]}"
        )

    return size


def binarize_mask(mask: np.ndarray, threshold: float = 0.5) -> np.ndarray:
    """
    Binarize a probability mask.

    Args:
        mask: Probability mask in [0, 1], shape (height, width).
        threshold: Values strictly greater than this are foreground.

    Returns:
        uint8 mask with foreground 255 and background 0 (new array).
    """
    return np.where(mask > threshold, 255, 0).astype(np.uint8)


def scale_mask(mask: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Resize a probability mask with nearest-neighbour sampling.

    Nearest sampling keeps probabilities unblended so the 0.5 boundary
    does not move.

    Args:
        mask: Probability mask, shape (height, width).
        width: Target width in pixels.
        height: Target height in pixels.

    Returns:
        Scaled float32 mask of shape (height, width).

    Raises:
        InputShapeMismatchError: If the mask or target size is invalid.
    """
    validate_mask(mask)
    if width < 1 or height < 1:
        raise InputShapeMismatchError(f"Invalid target size {width}x{height}")

    if mask.shape == (height, width):
        return mask.astype(np.float32, copy=True)

    return cv2.resize(
        mask.astype(np.float32), (width, height), interpolation=cv2.INTER_NEAREST
    )


def smooth_mask(mask: np.ndarray, kernel: int, threshold: float = 0.5) -> np.ndarray:
    """
    Smooth ragged mask edges.

    The mask is binarized, blurred with a Gaussian (sigma 2) and thresholded
    again at 0.9, which trims thin protrusions and one-pixel noise along the
    boundary before contour tracing.

    Args:
        mask: Probability mask, shape (height, width).
        kernel: Odd Gaussian kernel size.
        threshold: Binarization threshold applied before blurring.

    Returns:
        float32 mask containing only 0.0 and 1.0.
    """
    if kernel < 1 or kernel % 2 == 0:
        raise ValueError(f"Smoothing kernel must be a positive odd number, got {kernel}")

    binary = (mask > threshold).astype(np.float32)
    blurred = cv2.GaussianBlur(
        binary, (kernel, kernel), SMOOTHING_SIGMA, borderType=cv2.BORDER_REPLICATE
    )
    smoothed = (blurred > SMOOTHING_THRESHOLD).astype(np.float32)

    logger.debug(
        f"Smoothed mask: {int(binary.sum())} -> {int(smoothed.sum())} foreground pixels"
    )
    return smoothed
