"""
Main processor for the Scanner module.

Orchestrates the per-frame pipeline:
1. Quad extraction on every instance mask (best quad wins)
2. Overlay rendering
3. Stability update (lock hysteresis)
4. Rectification of the high-resolution capture once locked

Frames are processed synchronously, one call per frame, in temporal order.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from src.common.types import NormalizedBBox
from src.scanner.config_loader import load_config
from src.scanner.image_rectification import (
    as_mask_size,
    crop_to_box,
    map_and_order_corners,
    validate_image,
    warp_to_page,
)
from src.scanner.mask_utils import validate_mask
from src.scanner.overlay import render_overlay
from src.scanner.polygon_extractor import PolygonExtractor
from src.scanner.stability_tracker import StabilityTracker
from src.scanner.types import (
    DegenerateGeometryError,
    DetectionResult,
    DetectionState,
    FailureReason,
    FrameOutcome,
    InputShapeMismatchError,
    LockTransition,
    RectificationResult,
    RectificationStatus,
    ScannerConfig,
)

logger = logging.getLogger(__name__)


def _resolve_config(
    config: Optional[ScannerConfig], config_path: Optional[Path]
) -> ScannerConfig:
    if config is not None:
        return config
    return load_config(config_path) if config_path else load_config()


class FrameProcessor:
    """
    Turns one frame's instance masks into a DetectionState.

    Each mask yields at most one quad; across masks the largest quad is
    reported. The processor holds no per-frame state.

    Example:
        >>> processor = FrameProcessor()
        >>> state = processor.process(detections)
        >>> state.quad_found, state.area
        (True, 12034.5)
    """

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        config_path: Optional[Path] = None,
    ):
        """
        Initialize the frame processor.

        Args:
            config: Pre-loaded configuration object. If None, will load from file.
            config_path: Path to config file. If None, uses default location.
        """
        self.config = _resolve_config(config, config_path)
        self.extractor = PolygonExtractor(self.config.extraction)

    def process(
        self, detections: List[DetectionResult], locked: bool = False
    ) -> DetectionState:
        """
        Extract the best quad from a frame's detections.

        Args:
            detections: Instances reported by the model for this frame.
            locked: Current lock state, selects the overlay colour.

        Returns:
            DetectionState for the frame.

        Raises:
            InputShapeMismatchError: If masks are malformed or differ in size.
        """
        if not detections:
            return DetectionState(
                overlay=render_overlay([], config=self.config.overlay),
                quad_found=False,
                area=0.0,
            )

        mask_size = validate_mask(detections[0].mask, self.config.extraction.mask_size)
        best_quad = None
        best_box: Optional[NormalizedBBox] = None

        for detection in detections:
            if validate_mask(detection.mask) != mask_size:
                raise InputShapeMismatchError(
                    f"All masks in a frame must share one size: expected "
                    f"{mask_size}, got {detection.mask.shape[::-1]}"
                )

            quad = self.extractor.extract(detection.mask)
            if quad is not None and (best_quad is None or quad.area > best_quad.area):
                best_quad = quad
                best_box = detection.box

        overlay = render_overlay(
            detections,
            best_quad.corners if best_quad is not None else None,
            locked=locked,
            config=self.config.overlay,
            threshold=self.config.extraction.binarize_threshold,
        )

        if best_quad is None:
            return DetectionState(
                overlay=overlay, quad_found=False, area=0.0, mask_size=mask_size
            )

        return DetectionState(
            overlay=overlay,
            quad_found=True,
            area=best_quad.area,
            corners=best_quad.corners,
            box=best_box,
            mask_size=mask_size,
        )


class DocumentRectifier:
    """
    Rectification stage with result reporting.

    Degenerate geometry is a normal, recoverable outcome (the caller tries
    again on the next stable frame) and is reported as a FAILED result.
    Contract violations (bad image, corners or sizes) propagate.

    Example:
        >>> rectifier = DocumentRectifier()
        >>> result = rectifier.process(capture, corners, (160, 160))
        >>> if result.is_success():
        ...     cv2.imwrite("page.jpg", result.image)
    """

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        config_path: Optional[Path] = None,
    ):
        """
        Initialize the document rectifier.

        Args:
            config: Pre-loaded configuration object. If None, will load from file.
            config_path: Path to config file. If None, uses default location.
        """
        self.config = _resolve_config(config, config_path)

    def process(
        self,
        image: np.ndarray,
        corners: Union[np.ndarray, list],
        mask_size: Tuple[int, int],
        box: Optional[NormalizedBBox] = None,
    ) -> RectificationResult:
        """
        Rectify the document region of a capture.

        Args:
            image: High-resolution capture.
            corners: 4 corners in mask coordinates.
            mask_size: Mask (width, height) the corners refer to.
            box: Detection box, used when box-crop fallback is enabled.

        Returns:
            RectificationResult.

        Raises:
            InputShapeMismatchError: On caller contract violations.
        """
        rect_config = self.config.rectification
        buffer = validate_image(image)
        rect = map_and_order_corners(
            corners, as_mask_size(mask_size), buffer.size, rect_config.corner_ordering
        )

        try:
            page = warp_to_page(image, rect, rect_config)
        except DegenerateGeometryError as e:
            logger.warning(f"Rectification failed: {e}")
            return self._fallback(image, box, rect, str(e))

        logger.info(
            f"Rectified {buffer.width}x{buffer.height} capture to "
            f"{rect_config.output_width}x{rect_config.output_height} page"
        )
        return RectificationResult(
            status=RectificationStatus.RECTIFIED, image=page, source_corners=rect
        )

    def _fallback(
        self,
        image: np.ndarray,
        box: Optional[NormalizedBBox],
        rect: np.ndarray,
        message: str,
    ) -> RectificationResult:
        if self.config.rectification.fallback_to_box_crop and box is not None:
            try:
                cropped = crop_to_box(image, box)
            except DegenerateGeometryError as e:
                logger.warning(f"Box crop fallback failed: {e}")
            else:
                logger.info(f"Using box crop fallback ({cropped.shape[1]}x{cropped.shape[0]})")
                return RectificationResult(
                    status=RectificationStatus.CROPPED,
                    image=cropped,
                    source_corners=rect,
                    message=message,
                )

        return RectificationResult(
            status=RectificationStatus.FAILED,
            image=None,
            failure_reason=FailureReason.DEGENERATE_GEOMETRY,
            source_corners=rect,
            message=message,
        )


class ScanSession:
    """
    Single owner of the scanning state for one camera stream.

    Runs extraction and the stability update for each frame and remembers
    the corners of the frame that locked. While that capture is pending,
    frames are still rendered but no longer feed the tracker. capture()
    rectifies the high-resolution image and resets the session so tracking
    resumes.

    All state changes happen under one lock, so frames may be delivered from
    a worker thread while capture()/reset() are called from another. Frames
    must still arrive in temporal order.

    Example:
        >>> session = ScanSession()
        >>> for detections in frames:
        ...     outcome = session.process_frame(detections)
        ...     if outcome.should_capture:
        ...         result = session.capture(camera.take_picture())
        ...         break
    """

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        config_path: Optional[Path] = None,
    ):
        """
        Initialize the scan session.

        Args:
            config: Pre-loaded configuration object. If None, will load from file.
            config_path: Path to config file. If None, uses default location.
        """
        self.config = _resolve_config(config, config_path)
        self.frame_processor = FrameProcessor(self.config)
        self.rectifier = DocumentRectifier(config=self.config)
        self._tracker = StabilityTracker(self.config.stability)
        self._lock = threading.Lock()
        self._locked_state: Optional[DetectionState] = None

    @property
    def capture_pending(self) -> bool:
        with self._lock:
            return self._locked_state is not None

    @property
    def locked_corners(self) -> Optional[np.ndarray]:
        """Mask-space corners of the frame that locked, if a capture is pending."""
        with self._lock:
            if self._locked_state is None:
                return None
            return self._locked_state.corners.copy()

    def process_frame(self, detections: List[DetectionResult]) -> FrameOutcome:
        """
        Process one frame and update the lock state.

        Args:
            detections: Instances reported by the model for this frame.

        Returns:
            FrameOutcome; should_capture is True on the locking frame.
        """
        with self._lock:
            detection = self.frame_processor.process(
                detections, locked=self._tracker.is_locked
            )

            if self._locked_state is not None:
                return FrameOutcome(
                    detection=detection,
                    transition=LockTransition.STILL_LOCKED,
                    stability=self._tracker.state,
                )

            transition = self._tracker.update(detection.quad_found, detection.area)
            if transition == LockTransition.JUST_LOCKED:
                self._locked_state = detection

            return FrameOutcome(
                detection=detection,
                transition=transition,
                stability=self._tracker.state,
            )

    def capture(self, image: np.ndarray) -> RectificationResult:
        """
        Rectify a high-resolution capture using the locked corners.

        The session is reset afterwards whatever the outcome.

        Raises:
            ValueError: If no capture is pending.
            InputShapeMismatchError: If the image is invalid.
        """
        with self._lock:
            if self._locked_state is None:
                raise ValueError("No locked document to capture; wait for JUST_LOCKED")
            locked = self._locked_state

            logger.info("=" * 60)
            logger.info("Capturing locked document")
            logger.info("=" * 60)

            try:
                return self.rectifier.process(
                    image, locked.corners, locked.mask_size, box=locked.box
                )
            finally:
                self._reset_unlocked()

    def reset(self) -> None:
        """Restart scanning from scratch."""
        with self._lock:
            self._reset_unlocked()
        logger.info("Scanner ready")

    def _reset_unlocked(self) -> None:
        self._tracker.reset()
        self._locked_state = None


def rectify_capture(
    image: np.ndarray,
    corners: Union[np.ndarray, list],
    mask_size: Tuple[int, int],
    config: Optional[ScannerConfig] = None,
) -> RectificationResult:
    """
    Convenience function for one-shot rectification.

    Example:
        >>> result = rectify_capture(capture, corners, (160, 160))
        >>> if result.is_success():
        ...     save(result.image)
    """
    rectifier = DocumentRectifier(config=config)
    return rectifier.process(image, corners, mask_size)
