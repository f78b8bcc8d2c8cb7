"""
Document Scanner Core

Finds a document-shaped quadrilateral in per-frame segmentation masks,
waits until it is geometrically stable, then flattens the matching region of
a high-resolution capture into a fixed-size page.

Pipeline stages:
1. Quad extraction (contour tracing + 4-vertex simplification)
2. Stability tracking (lock after N consecutive frames of steady area)
3. Perspective rectification (mask space -> capture space -> canonical page)
"""

from src.scanner.config_loader import load_config
from src.scanner.image_rectification import (
    crop_to_box,
    order_corners,
    rectify_document,
    scale_corners,
)
from src.scanner.polygon_extractor import PolygonExtractor, extract_quad
from src.scanner.processor import (
    DocumentRectifier,
    FrameProcessor,
    ScanSession,
    rectify_capture,
)
from src.scanner.stability_tracker import StabilityTracker, update_stability
from src.scanner.types import (
    DegenerateGeometryError,
    DetectionResult,
    DetectionState,
    FrameOutcome,
    InputShapeMismatchError,
    LockTransition,
    RectificationResult,
    RectificationStatus,
    ScannerConfig,
    StabilityState,
    ValidatedQuad,
)

__all__ = [
    "ScanSession",
    "FrameProcessor",
    "DocumentRectifier",
    "rectify_capture",
    "load_config",
    "PolygonExtractor",
    "extract_quad",
    "StabilityTracker",
    "update_stability",
    "rectify_document",
    "scale_corners",
    "order_corners",
    "crop_to_box",
    "DegenerateGeometryError",
    "DetectionResult",
    "DetectionState",
    "FrameOutcome",
    "InputShapeMismatchError",
    "LockTransition",
    "RectificationResult",
    "RectificationStatus",
    "ScannerConfig",
    "StabilityState",
    "ValidatedQuad",
]
