"""
Integration tests for the scanner processor.
"""

import threading

import numpy as np
import pytest
import yaml

from src.common.types import NormalizedBBox
from src.scanner.config_loader import DEFAULT_CONFIG_PATH
from src.scanner.processor import (
    DocumentRectifier,
    FrameProcessor,
    ScanSession,
    rectify_capture,
)
from src.scanner.types import (
    DetectionResult,
    FailureReason,
    InputShapeMismatchError,
    LockTransition,
    RectificationStatus,
    ScannerConfig,
    StabilityState,
)

FULL_BOX = NormalizedBBox(x1=0.0, y1=0.0, x2=1.0, y2=1.0)


@pytest.fixture
def document_frame(rectangle_mask):
    """One frame with a single document-shaped instance."""
    mask, _ = rectangle_mask
    return [DetectionResult(box=FULL_BOX, mask=mask)]


@pytest.fixture
def capture_image():
    """High-resolution capture, 4x the 320x320 mask."""
    image = np.full((1280, 1280, 3), 255, dtype=np.uint8)
    image[160:1120, 240:1040] = 30  # document region of the rectangle mask
    return image


class TestFrameProcessor:
    """Tests for FrameProcessor class."""

    def test_no_detections(self):
        """Test that an empty frame reports no quad."""
        state = FrameProcessor().process([])

        assert not state.quad_found
        assert state.area == 0.0
        assert state.corners is None
        assert state.overlay.shape == (1, 1, 4)

    def test_default_config_loaded(self):
        """Test that the packaged config is used by default."""
        processor = FrameProcessor()

        assert processor.config.extraction.min_contour_area == 2000.0

    def test_config_path(self, document_frame, tmp_path):
        """Test that a config file passed by path drives extraction."""
        with open(DEFAULT_CONFIG_PATH, "r") as f:
            data = yaml.safe_load(f)
        data["extraction"]["min_contour_area"] = 100000.0
        config_path = tmp_path / "scanner.yaml"
        with open(config_path, "w") as f:
            yaml.dump(data, f)

        state = FrameProcessor(config_path=config_path).process(document_frame)

        assert not state.quad_found

    def test_single_document(self, document_frame):
        """Test that the document quad is reported with its metadata."""
        state = FrameProcessor().process(document_frame)

        assert state.quad_found
        assert state.area == pytest.approx(48000.0, rel=0.02)
        assert state.corners.shape == (4, 2)
        assert state.box == FULL_BOX
        assert state.mask_size == (320, 320)
        assert state.overlay.shape == (320, 320, 4)

    def test_no_quad_in_masks(self, empty_mask):
        """Test that masks without documents report no quad."""
        state = FrameProcessor().process([DetectionResult(box=FULL_BOX, mask=empty_mask)])

        assert not state.quad_found
        assert state.area == 0.0
        assert state.mask_size == (320, 320)

    def test_best_quad_across_masks(self, make_rectangle_mask):
        """Test that the largest quad across instances wins."""
        small_box = NormalizedBBox(x1=0.0, y1=0.0, x2=0.5, y2=0.5)
        large_box = NormalizedBBox(x1=0.3, y1=0.3, x2=1.0, y2=1.0)
        detections = [
            DetectionResult(box=small_box, mask=make_rectangle_mask(10, 10, 80, 80)),
            DetectionResult(box=large_box, mask=make_rectangle_mask(100, 100, 200, 180)),
        ]

        state = FrameProcessor().process(detections)

        assert state.area == pytest.approx(200 * 180, rel=0.02)
        assert state.box == large_box

    def test_mixed_mask_sizes_raise(self, rectangle_mask):
        """Test that masks of different sizes in one frame are rejected."""
        mask, _ = rectangle_mask
        detections = [
            DetectionResult(box=FULL_BOX, mask=mask),
            DetectionResult(box=FULL_BOX, mask=np.zeros((160, 160), dtype=np.float32)),
        ]

        with pytest.raises(InputShapeMismatchError, match="share one size"):
            FrameProcessor().process(detections)


class TestDocumentRectifier:
    """Tests for DocumentRectifier class."""

    def test_rectified_result(self, page_image):
        """Test a successful rectification result."""
        result = DocumentRectifier(config=ScannerConfig.default()).process(
            page_image, [[0, 0], [450, 0], [450, 600], [0, 600]], (450, 600)
        )

        assert result.is_success()
        assert result.status == RectificationStatus.RECTIFIED
        assert result.image.shape == (1650, 1200, 3)
        np.testing.assert_array_almost_equal(
            result.source_corners, [[0, 0], [1800, 0], [1800, 2400], [0, 2400]]
        )
        assert result.get_error_message() == "Document rectified"

    def test_degenerate_reported_as_failure(self, page_image):
        """Test that collinear corners give a FAILED result, not an exception."""
        result = DocumentRectifier(config=ScannerConfig.default()).process(
            page_image, [[0, 0], [100, 100], [200, 200], [300, 300]], (450, 600)
        )

        assert not result.is_success()
        assert result.status == RectificationStatus.FAILED
        assert result.failure_reason == FailureReason.DEGENERATE_GEOMETRY
        assert result.image is None
        assert "Degenerate Geometry" in result.get_error_message()

    def test_box_crop_fallback(self, page_image):
        """Test that the box crop is used when enabled."""
        config = ScannerConfig.default()
        config.rectification.fallback_to_box_crop = True
        box = NormalizedBBox(x1=0.25, y1=0.25, x2=0.75, y2=0.75)

        result = DocumentRectifier(config=config).process(
            page_image, [[0, 0], [100, 100], [200, 200], [300, 300]], (450, 600), box=box
        )

        assert result.status == RectificationStatus.CROPPED
        assert result.image.shape == (1200, 900, 3)
        assert result.image.max() == 0

    def test_contract_violation_propagates(self):
        """Test that invalid images are raised, not reported."""
        with pytest.raises(InputShapeMismatchError):
            DocumentRectifier(config=ScannerConfig.default()).process(
                np.zeros((10, 10), dtype=np.float64), [[0, 0], [1, 0], [1, 1], [0, 1]], (2, 2)
            )

    def test_corners_outside_mask_propagate(self, page_image):
        """Test that mask-space mismatches are raised, not reported as FAILED."""
        with pytest.raises(InputShapeMismatchError, match="outside"):
            DocumentRectifier(config=ScannerConfig.default()).process(
                page_image, [[0, 0], [900, 0], [900, 1200], [0, 1200]], (450, 600)
            )

    def test_rectify_capture_default_config(self, page_image):
        """Test the one-shot helper with the packaged configuration."""
        result = rectify_capture(
            page_image, [[0, 0], [450, 0], [450, 600], [0, 600]], (450, 600)
        )

        assert result.status == RectificationStatus.RECTIFIED


class TestScanSession:
    """Tests for ScanSession class."""

    def test_default_config_loaded(self):
        """Test that the packaged config is used by default."""
        session = ScanSession()

        assert session.config.stability.required_stable_frames == 15

    def test_locks_after_required_frames(self, fast_config, document_frame):
        """Test the tracking -> locked sequence."""
        session = ScanSession(config=fast_config)

        transitions = [session.process_frame(document_frame).transition for _ in range(3)]

        assert transitions == [
            LockTransition.STILL_TRACKING,
            LockTransition.STILL_TRACKING,
            LockTransition.JUST_LOCKED,
        ]
        assert session.capture_pending
        assert session.locked_corners.shape == (4, 2)

    def test_should_capture_only_on_lock(self, fast_config, document_frame):
        """Test that should_capture fires once."""
        session = ScanSession(config=fast_config)

        flags = [session.process_frame(document_frame).should_capture for _ in range(5)]

        assert flags == [False, False, True, False, False]

    def test_pending_capture_freezes_tracker(self, fast_config, document_frame, empty_mask):
        """Test that frames after the lock do not feed the tracker."""
        session = ScanSession(config=fast_config)
        for _ in range(3):
            session.process_frame(document_frame)
        locked = session.locked_corners.copy()

        outcome = session.process_frame([DetectionResult(box=FULL_BOX, mask=empty_mask)])

        assert outcome.transition == LockTransition.STILL_LOCKED
        assert outcome.stability.locked
        np.testing.assert_array_equal(session.locked_corners, locked)

    def test_locked_corners_is_a_copy(self, fast_config, document_frame):
        """Test that editing the returned corners does not change the capture."""
        session = ScanSession(config=fast_config)
        for _ in range(3):
            session.process_frame(document_frame)
        expected = session.locked_corners.copy()

        corners = session.locked_corners
        corners[:] = 0

        np.testing.assert_array_equal(session.locked_corners, expected)

    def test_locked_overlay_colour(self, fast_config, document_frame):
        """Test that the overlay switches to the locked colour."""
        session = ScanSession(config=fast_config)
        for _ in range(3):
            session.process_frame(document_frame)

        overlay = session.process_frame(document_frame).detection.overlay

        np.testing.assert_array_equal(overlay[160, 160], [76, 175, 80, 100])

    def test_capture_rectifies_and_resets(self, fast_config, document_frame, capture_image):
        """Test capture output and that tracking restarts afterwards."""
        session = ScanSession(config=fast_config)
        for _ in range(3):
            session.process_frame(document_frame)

        result = session.capture(capture_image)

        assert result.status == RectificationStatus.RECTIFIED
        assert result.image.shape == (1650, 1200, 3)
        assert result.image[100:-100, 100:-100].max() == 30
        assert not session.capture_pending
        assert session.locked_corners is None

        outcome = session.process_frame(document_frame)
        assert outcome.transition == LockTransition.STILL_TRACKING
        assert outcome.stability.stable_frames == 1

    def test_capture_without_lock_raises(self, fast_config, capture_image):
        """Test that capture requires a pending lock."""
        session = ScanSession(config=fast_config)

        with pytest.raises(ValueError, match="No locked document"):
            session.capture(capture_image)

    def test_invalid_capture_still_resets(self, fast_config, document_frame):
        """Test that the session resets even when capture raises."""
        session = ScanSession(config=fast_config)
        for _ in range(3):
            session.process_frame(document_frame)

        with pytest.raises(InputShapeMismatchError):
            session.capture(np.zeros((0, 0, 3), dtype=np.uint8))

        assert not session.capture_pending

    def test_reset(self, fast_config, document_frame):
        """Test that reset returns to a fresh session."""
        session = ScanSession(config=fast_config)
        for _ in range(3):
            session.process_frame(document_frame)

        session.reset()

        assert not session.capture_pending
        outcome = session.process_frame(document_frame)
        assert outcome.stability == StabilityState(1, outcome.detection.area, False)

    def test_frames_from_worker_thread(self, fast_config, document_frame):
        """Test frames delivered from a worker thread while reading state."""
        session = ScanSession(config=fast_config)
        outcomes = []

        def worker():
            for _ in range(4):
                outcomes.append(session.process_frame(document_frame))

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert [o.transition for o in outcomes][2:] == [
            LockTransition.JUST_LOCKED,
            LockTransition.STILL_LOCKED,
        ]
        assert session.capture_pending
