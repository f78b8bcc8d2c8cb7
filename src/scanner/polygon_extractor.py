"""
Quadrilateral extraction from segmentation masks.

Finds the outer contours of the foreground region, simplifies them with
Douglas-Peucker and accepts the largest contour that collapses to exactly
four vertices. Shapes that simplify to 3 or 5+ vertices are not documents
and are rejected, never approximated further.
"""

import logging
from typing import List, Optional

import cv2
import numpy as np

from src.scanner.mask_utils import binarize_mask, smooth_mask, validate_mask
from src.scanner.types import ExtractionConfig, ValidatedQuad

logger = logging.getLogger(__name__)

QUAD_VERTEX_COUNT = 4


def find_external_contours(binary: np.ndarray) -> List[np.ndarray]:
    """
    Find outer boundaries of connected foreground regions.

    Holes inside a region are ignored.

    Args:
        binary: uint8 mask (foreground 255).

    Returns:
        Contours sorted by enclosed area, largest first. Each contour has
        OpenCV shape (N, 1, 2) int32.
    """
    contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    return sorted(contours, key=cv2.contourArea, reverse=True)


def simplify_contour(contour: np.ndarray, epsilon_ratio: float = 0.02) -> np.ndarray:
    """
    Simplify a closed contour with a perimeter-relative tolerance.

    Args:
        contour: OpenCV contour, shape (N, 1, 2).
        epsilon_ratio: Tolerance as a fraction of the closed perimeter.

    Returns:
        Simplified polygon vertices, shape (M, 2) float32.
    """
    perimeter = cv2.arcLength(contour, True)
    approx = cv2.approxPolyDP(contour, epsilon_ratio * perimeter, True)
    return approx.reshape(-1, 2).astype(np.float32)


def extract_quad(
    mask: np.ndarray, config: Optional[ExtractionConfig] = None
) -> Optional[ValidatedQuad]:
    """
    Extract the largest document-shaped quadrilateral from a probability mask.

    Contours are examined in descending area order. The first one whose area
    reaches the minimum and whose simplification has exactly 4 vertices is
    returned; smaller contours are not examined.

    Args:
        mask: Probability mask in [0, 1], shape (height, width). Not modified.
        config: Extraction thresholds (defaults if None).

    Returns:
        ValidatedQuad with corners in contour order and the area of the
        simplified 4-gon, or None if no quad was found.

    Raises:
        InputShapeMismatchError: If mask is not a 2-D grid of the configured
            model mask size.

    Example:
        >>> quad = extract_quad(mask)
        >>> if quad is not None:
        ...     print(quad.corners, quad.area)
    """
    config = config or ExtractionConfig()
    validate_mask(mask, config.mask_size)

    if config.smoothing_kernel:
        mask = smooth_mask(mask, config.smoothing_kernel, config.binarize_threshold)

    binary = binarize_mask(mask, config.binarize_threshold)
    contours = find_external_contours(binary)

    if not contours:
        logger.debug("No foreground contours in mask")
        return None

    for contour in contours:
        contour_area = cv2.contourArea(contour)
        if contour_area < config.min_contour_area:
            # Sorted by area, nothing smaller can pass
            logger.debug(
                f"Contour area {contour_area:.0f} below minimum "
                f"{config.min_contour_area:.0f}, stopping"
            )
            break

        polygon = simplify_contour(contour, config.approx_epsilon_ratio)
        if len(polygon) != QUAD_VERTEX_COUNT:
            logger.debug(
                f"Contour (area {contour_area:.0f}) simplified to "
                f"{len(polygon)} vertices, skipping"
            )
            continue

        quad_area = float(cv2.contourArea(polygon))
        logger.debug(f"Quad found: area={quad_area:.1f}, corners={polygon.tolist()}")
        return ValidatedQuad(
            corners=polygon,
            area=quad_area,
            contour=contour.reshape(-1, 2).astype(np.int32),
        )

    return None


class PolygonExtractor:
    """
    Stateless quadrilateral extractor bound to one configuration.

    Example:
        >>> extractor = PolygonExtractor()
        >>> quad = extractor.extract(mask)
    """

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config or ExtractionConfig()

    def extract(self, mask: np.ndarray) -> Optional[ValidatedQuad]:
        """Extract at most one quad from the mask. See extract_quad."""
        return extract_quad(mask, self.config)
