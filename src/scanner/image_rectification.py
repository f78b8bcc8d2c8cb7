"""
Image Rectification Utilities

Maps document corners found on the low-resolution mask into the
high-resolution capture, orders them, and warps the enclosed region into a
fixed-size portrait page.
"""

import logging
from typing import Optional, Sequence, Tuple, Union

import cv2
import numpy as np
from pydantic import ValidationError

from src.common.types import ImageBuffer, NormalizedBBox
from src.scanner.types import (
    DegenerateGeometryError,
    InputShapeMismatchError,
    RectificationConfig,
)

logger = logging.getLogger(__name__)

INTERPOLATION_FLAGS = {
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "nearest": cv2.INTER_NEAREST,
    "area": cv2.INTER_AREA,
    "lanczos": cv2.INTER_LANCZOS4,
}

# Slack for corners given as floats on the mask boundary
CORNER_BOUNDS_TOLERANCE = 1e-3


def _as_corner_array(corners: Union[np.ndarray, list]) -> np.ndarray:
    pts = np.array(corners, dtype=np.float32)
    if pts.shape != (4, 2):
        raise InputShapeMismatchError(
            f"Expected exactly 4 points with shape (4, 2), got shape {pts.shape}"
        )
    if not np.all(np.isfinite(pts)):
        raise InputShapeMismatchError(f"Corner coordinates must be finite: {pts.tolist()}")
    return pts


def validate_image(image: np.ndarray) -> ImageBuffer:
    """
    Validate the capture image.

    Raises:
        InputShapeMismatchError: If the image is not a non-empty uint8 array.
    """
    try:
        return ImageBuffer(data=image)
    except ValidationError as e:
        raise InputShapeMismatchError(f"Invalid capture image: {e}") from e


def scale_corners(
    corners: Union[np.ndarray, list],
    mask_size: Tuple[int, int],
    image_size: Tuple[int, int],
) -> np.ndarray:
    """
    Rescale corners from mask space into image space, per axis.

    Args:
        corners: 4 points [x, y] in mask coordinates.
        mask_size: Mask (width, height) the corners were found on.
        image_size: Target image (width, height).

    Returns:
        float32 array of shape (4, 2) in image coordinates, input order kept.

    Raises:
        InputShapeMismatchError: If sizes are not positive, corners are not
            4 finite points, or a corner lies outside the mask space.

    Example:
        >>> scale_corners([[0, 0], [450, 0], [450, 600], [0, 600]],
        ...               (450, 600), (1800, 2400))[2]
        array([1800., 2400.], dtype=float32)
    """
    pts = _as_corner_array(corners)
    mask_w, mask_h = mask_size
    image_w, image_h = image_size

    if mask_w <= 0 or mask_h <= 0:
        raise InputShapeMismatchError(f"Invalid mask space size {mask_w}x{mask_h}")
    if image_w <= 0 or image_h <= 0:
        raise InputShapeMismatchError(f"Invalid image size {image_w}x{image_h}")

    tol = CORNER_BOUNDS_TOLERANCE
    outside = (
        (pts[:, 0] < -tol)
        | (pts[:, 0] > mask_w + tol)
        | (pts[:, 1] < -tol)
        | (pts[:, 1] > mask_h + tol)
    )
    if np.any(outside):
        raise InputShapeMismatchError(
            f"Corners {pts[outside].tolist()} lie outside the "
            f"{mask_w}x{mask_h} mask space they were given in"
        )

    scale = np.array([image_w / mask_w, image_h / mask_h], dtype=np.float64)
    return (pts.astype(np.float64) * scale).astype(np.float32)


def order_corners(pts: Union[np.ndarray, list], method: str = "y_sort") -> np.ndarray:
    """
    Order 4 points as Top-Left, Top-Right, Bottom-Right, Bottom-Left.

    Contour tracing does not guarantee a stable winding or starting vertex,
    so corners are canonicalized before the homography is computed.

    Methods:
    - "y_sort": the two smallest-y points form the top pair (sorted by x
      ascending: TL, TR), the other two the bottom pair (sorted by x
      descending: BR, BL). Ambiguous for quads rotated near 45 degrees.
    - "centroid": points sorted by angle around their centroid (clockwise
      in image coordinates), starting at the point with the smallest x + y.

    Args:
        pts: Array of 4 points with shape (4, 2) or list of [x, y] coordinates.
        method: "y_sort" or "centroid".

    Returns:
        Ordered float32 array of shape (4, 2).

    Raises:
        InputShapeMismatchError: If input does not contain exactly 4 points.
        ValueError: If method is unknown.
    """
    pts = _as_corner_array(pts)

    if method == "y_sort":
        by_y = pts[np.argsort(pts[:, 1], kind="stable")]
        top, bottom = by_y[:2], by_y[2:]
        top = top[np.argsort(top[:, 0], kind="stable")]
        bottom = bottom[np.argsort(-bottom[:, 0], kind="stable")]
        rect = np.vstack([top, bottom])
    elif method == "centroid":
        center = pts.mean(axis=0)
        angles = np.arctan2(pts[:, 1] - center[1], pts[:, 0] - center[0])
        clockwise = pts[np.argsort(angles, kind="stable")]
        start = int(np.argmin(clockwise.sum(axis=1)))
        rect = np.roll(clockwise, -start, axis=0)
    else:
        raise ValueError(f"Unknown corner ordering method: {method}")

    logger.debug(
        f"Ordered points: TL={rect[0]}, TR={rect[1]}, BR={rect[2]}, BL={rect[3]}"
    )
    return rect.astype(np.float32)


def check_quad_geometry(rect: np.ndarray, min_corner_sine: float = 0.01) -> None:
    """
    Reject ordered quads that cannot be warped meaningfully.

    For each consecutive edge pair (P1->P2, P2->P3) the normalized 2D cross
    product is the sine of the turn angle at P2. A convex quad traversed in
    order has all sines with the same sign; a sine near zero means three
    corners are (nearly) collinear.

    Args:
        rect: Ordered points [TL, TR, BR, BL] with shape (4, 2).
        min_corner_sine: Minimum |sine| of the turn at every corner.

    Raises:
        DegenerateGeometryError: On coincident corners, collinear corners or
            a concave / self-intersecting ordering.
    """
    sines = []
    for i in range(4):
        p1 = rect[i].astype(np.float64)
        p2 = rect[(i + 1) % 4].astype(np.float64)
        p3 = rect[(i + 2) % 4].astype(np.float64)

        v1 = p2 - p1
        v2 = p3 - p2
        norm = np.linalg.norm(v1) * np.linalg.norm(v2)
        if norm < 1e-9:
            raise DegenerateGeometryError(f"Coincident corners: {rect.tolist()}")

        sines.append(float((v1[0] * v2[1] - v1[1] * v2[0]) / norm))

    if min(abs(s) for s in sines) < min_corner_sine:
        raise DegenerateGeometryError(
            f"Collinear corners (turn sines {[round(s, 4) for s in sines]})"
        )

    if not (all(s > 0 for s in sines) or all(s < 0 for s in sines)):
        raise DegenerateGeometryError(
            f"Corners do not form a convex quadrilateral (turn sines "
            f"{[round(s, 4) for s in sines]})"
        )


def compute_homography(
    rect: np.ndarray, width: int, height: int, min_determinant: float = 1e-9
) -> np.ndarray:
    """
    Compute the projective transform from ordered corners to the output page.

    Args:
        rect: Ordered source corners [TL, TR, BR, BL], shape (4, 2).
        width: Output width in pixels.
        height: Output height in pixels.
        min_determinant: Smallest acceptable |det(M)|.

    Returns:
        3x3 perspective matrix.

    Raises:
        DegenerateGeometryError: If the transform is singular or non-finite.
    """
    dst = np.array(
        [
            [0, 0],  # Top-Left
            [width - 1, 0],  # Top-Right
            [width - 1, height - 1],  # Bottom-Right
            [0, height - 1],  # Bottom-Left
        ],
        dtype=np.float32,
    )

    try:
        M = cv2.getPerspectiveTransform(rect.astype(np.float32), dst)
    except cv2.error as e:
        raise DegenerateGeometryError(f"Perspective transform failed: {e}") from e

    det = float(np.linalg.det(M))
    if not np.all(np.isfinite(M)) or abs(det) < min_determinant:
        raise DegenerateGeometryError(f"Near-singular perspective transform (det={det:.3e})")

    return M


def map_and_order_corners(
    corners: Union[np.ndarray, list],
    mask_size: Tuple[int, int],
    image_size: Tuple[int, int],
    method: str = "y_sort",
) -> np.ndarray:
    """Scale mask-space corners to image space and order them [TL, TR, BR, BL]."""
    return order_corners(scale_corners(corners, mask_size, image_size), method)


def warp_to_page(
    image: np.ndarray, rect: np.ndarray, config: Optional[RectificationConfig] = None
) -> np.ndarray:
    """
    Warp an ordered image-space quad into the canonical page.

    Raises:
        DegenerateGeometryError: If the quad or its transform is degenerate.
    """
    config = config or RectificationConfig()
    check_quad_geometry(rect, config.min_corner_sine)
    M = compute_homography(
        rect, config.output_width, config.output_height, config.min_determinant
    )

    return cv2.warpPerspective(
        image,
        M,
        (config.output_width, config.output_height),
        flags=INTERPOLATION_FLAGS[config.warp_interpolation],
    )


def rectify_document(
    image: np.ndarray,
    corners: Union[np.ndarray, list],
    mask_size: Tuple[int, int],
    config: Optional[RectificationConfig] = None,
) -> np.ndarray:
    """
    Flatten the document region of a high-resolution capture.

    The output size is fixed by configuration (default 1200x1650 portrait)
    regardless of the detected quad's aspect ratio.

    Args:
        image: Capture as numpy array (H, W, C) or (H, W), uint8.
        corners: 4 corner points in mask coordinates, any order.
        mask_size: Mask (width, height) the corners were detected on.
        config: Rectification options (defaults if None).

    Returns:
        Rectified page of shape (output_height, output_width[, C]).

    Raises:
        InputShapeMismatchError: If image, corners or mask size are invalid.
        DegenerateGeometryError: If the corners cannot define a homography.

    Example:
        >>> page = rectify_document(capture, quad.corners, (160, 160))
        >>> page.shape[:2]
        (1650, 1200)
    """
    config = config or RectificationConfig()
    buffer = validate_image(image)
    rect = map_and_order_corners(corners, mask_size, buffer.size, config.corner_ordering)
    return warp_to_page(image, rect, config)


def crop_to_box(image: np.ndarray, box: NormalizedBBox) -> np.ndarray:
    """
    Crop the capture to a normalized detection box.

    Args:
        image: Capture image.
        box: Bounding box in 0-1 coordinates.

    Returns:
        Copy of the boxed region.

    Raises:
        InputShapeMismatchError: If the image is invalid.
        DegenerateGeometryError: If the box covers less than one pixel.
    """
    buffer = validate_image(image)
    left, top, width, height = box.to_pixels(buffer.width, buffer.height)
    if width < 1 or height < 1:
        raise DegenerateGeometryError(f"Box {box.to_list()} is empty at this resolution")

    logger.debug(f"Cropping box: left={left}, top={top}, size={width}x{height}")
    return image[top : top + height, left : left + width].copy()


def as_mask_size(size: Sequence[int]) -> Tuple[int, int]:
    """Normalize a (width, height) pair to ints."""
    if len(size) != 2:
        raise InputShapeMismatchError(f"Expected (width, height), got {size}")
    return (int(size[0]), int(size[1]))
