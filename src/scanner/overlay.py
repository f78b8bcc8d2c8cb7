"""
Feedback overlay rendering.

Paints segmentation masks and the accepted quadrilateral onto a transparent
RGBA canvas for display on top of the camera preview.
"""

import logging
from typing import List, Optional, Tuple

import cv2
import numpy as np

from src.scanner.mask_utils import scale_mask
from src.scanner.types import DetectionResult, OverlayConfig

logger = logging.getLogger(__name__)


def render_overlay(
    detections: List[DetectionResult],
    quad_corners: Optional[np.ndarray] = None,
    locked: bool = False,
    config: Optional[OverlayConfig] = None,
    threshold: float = 0.5,
    display_size: Optional[Tuple[int, int]] = None,
) -> np.ndarray:
    """
    Render masks and the detected quad as an RGBA image.

    Mask pixels above the threshold get the tracking colour (or the locked
    colour once the document is locked) at the configured alpha. The quad is
    stroked opaque in the same colour.

    Args:
        detections: Instances for this frame; all masks share one size.
        quad_corners: Accepted quad in mask coordinates, shape (4, 2).
        locked: Whether the stability tracker is locked.
        config: Colours, alpha and stroke width (defaults if None).
        threshold: Foreground threshold for mask painting.
        display_size: Optional output (width, height); masks and corners are
            rescaled to it.

    Returns:
        uint8 RGBA image of shape (height, width, 4). A 1x1 transparent image
        when there are no detections.
    """
    config = config or OverlayConfig()
    if not detections:
        return np.zeros((1, 1, 4), dtype=np.uint8)

    mask_h, mask_w = detections[0].mask.shape[:2]
    width, height = display_size or (mask_w, mask_h)
    color = config.locked_color if locked else config.tracking_color

    canvas = np.zeros((height, width, 4), dtype=np.uint8)
    fill = np.array([*color, config.alpha], dtype=np.uint8)

    for detection in detections:
        mask = detection.mask
        if (width, height) != (mask_w, mask_h):
            mask = scale_mask(mask, width, height)
        canvas[mask > threshold] = fill

    if quad_corners is not None:
        pts = np.asarray(quad_corners, dtype=np.float64)
        pts = pts * np.array([width / mask_w, height / mask_h])
        cv2.polylines(
            canvas,
            [np.round(pts).astype(np.int32).reshape(-1, 1, 2)],
            True,
            (*color, 255),
            thickness=config.stroke_width,
            lineType=cv2.LINE_AA,
        )

    return canvas
