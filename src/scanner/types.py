"""
Data types and structures for the Scanner module.

Provides type-safe containers for configuration, per-frame detections,
tracker state and rectification results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from src.common.types import NormalizedBBox


class DegenerateGeometryError(ValueError):
    """Corners are collinear, zero-area or produce a singular transform."""


class InputShapeMismatchError(ValueError):
    """Mask, corner or image dimensions violate the caller contract."""


class LockTransition(Enum):
    """Outcome of one stability update."""

    STILL_UNLOCKED = "Still Unlocked"  # No stable run in progress
    STILL_TRACKING = "Still Tracking"  # Counting stable frames
    JUST_LOCKED = "Just Locked"  # Required stable frames reached this frame
    STILL_LOCKED = "Still Locked"
    RESET = "Reset"  # A stable run (or lock) was lost this frame


class RectificationStatus(Enum):
    """Rectification outcomes."""

    RECTIFIED = "RECTIFIED"
    CROPPED = "CROPPED"  # Fell back to the detection box crop
    FAILED = "FAILED"


class FailureReason(Enum):
    """Specific reasons for a failed rectification."""

    DEGENERATE_GEOMETRY = "Degenerate Geometry"
    NONE = "None"


@dataclass
class ExtractionConfig:
    """Configuration for quadrilateral extraction."""

    binarize_threshold: float = 0.5
    min_contour_area: float = 2000.0  # mask pixels^2
    approx_epsilon_ratio: float = 0.02  # fraction of contour perimeter
    smoothing_kernel: int = 0  # 0 disables mask smoothing
    mask_size: Optional[Tuple[int, int]] = None  # expected model mask (w, h)


@dataclass
class StabilityConfig:
    """Configuration for lock hysteresis."""

    area_threshold: float = 0.10  # relative area change tolerated per frame
    required_stable_frames: int = 15


@dataclass
class RectificationConfig:
    """Configuration for perspective rectification."""

    output_width: int = 1200
    output_height: int = 1650
    corner_ordering: str = "y_sort"
    warp_interpolation: str = "linear"
    min_determinant: float = 1e-9
    min_corner_sine: float = 0.01
    fallback_to_box_crop: bool = False


@dataclass
class OverlayConfig:
    """Configuration for the feedback overlay."""

    alpha: int = 100
    tracking_color: Tuple[int, int, int] = (255, 152, 0)  # RGB orange
    locked_color: Tuple[int, int, int] = (76, 175, 80)  # RGB green
    stroke_width: int = 10


@dataclass
class ScannerConfig:
    """Complete scanner module configuration."""

    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    stability: StabilityConfig = field(default_factory=StabilityConfig)
    rectification: RectificationConfig = field(default_factory=RectificationConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)

    @classmethod
    def default(cls) -> "ScannerConfig":
        """Built-in defaults, without reading config.yaml."""
        return cls()


@dataclass
class DetectionResult:
    """
    One instance reported by the segmentation model.

    Attributes:
        box: Instance bounding box in normalized 0-1 coordinates.
        mask: Per-pixel foreground probability, shape (height, width).
    """

    box: NormalizedBBox
    mask: np.ndarray


@dataclass
class ValidatedQuad:
    """
    A contour that simplified to exactly four vertices.

    Attributes:
        corners: Simplified vertices, shape (4, 2) float32, contour order.
        area: Area enclosed by the simplified 4-gon (mask pixels^2).
        contour: Raw outer contour the quad came from, shape (N, 2) int32.
    """

    corners: np.ndarray
    area: float
    contour: np.ndarray


@dataclass
class DetectionState:
    """
    Per-frame detection summary.

    Attributes:
        overlay: RGBA feedback image at mask resolution.
        quad_found: Whether a valid quadrilateral was found this frame.
        area: Area of the best quad (0.0 if none).
        corners: Best quad corners in mask space, None if not found.
        box: Bounding box of the instance that produced the quad.
        mask_size: Mask space (width, height) the corners refer to.
    """

    overlay: np.ndarray
    quad_found: bool
    area: float
    corners: Optional[np.ndarray] = None
    box: Optional[NormalizedBBox] = None
    mask_size: Optional[Tuple[int, int]] = None


@dataclass(frozen=True)
class StabilityState:
    """Consecutive stable frame count, last observed area and lock flag."""

    stable_frames: int = 0
    last_area: float = 0.0
    locked: bool = False


@dataclass
class FrameOutcome:
    """Detection summary plus the lock transition it caused."""

    detection: DetectionState
    transition: LockTransition
    stability: StabilityState

    @property
    def should_capture(self) -> bool:
        """True on the frame the document locks."""
        return self.transition == LockTransition.JUST_LOCKED


@dataclass
class RectificationResult:
    """
    Output from the rectification stage.

    Attributes:
        status: RECTIFIED, CROPPED or FAILED.
        image: The flattened page (None if failed).
        failure_reason: Why rectification failed, NONE otherwise.
        source_corners: Corners mapped to capture space in [TL, TR, BR, BL]
            order (None if the failure happened before ordering).
        message: Diagnostic detail for failures.
    """

    status: RectificationStatus
    image: Optional[np.ndarray]
    failure_reason: FailureReason = FailureReason.NONE
    source_corners: Optional[np.ndarray] = None
    message: str = ""

    def is_success(self) -> bool:
        """Check if an output image was produced."""
        return self.status != RectificationStatus.FAILED

    def get_error_message(self) -> str:
        """Get human-readable error message."""
        if self.status == RectificationStatus.RECTIFIED:
            return "Document rectified"
        if self.status == RectificationStatus.CROPPED:
            return f"Rectification failed, used box crop: {self.message}"
        return f"Rejected: {self.failure_reason.value} ({self.message})"
