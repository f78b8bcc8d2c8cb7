"""
Offline Scanner Replay.

Replays a sequence of saved segmentation masks through the scanner, and when
the document locks, rectifies a high-resolution capture of the same scene.

Each mask file is a .npy array: (H, W) for a single instance or (N, H, W)
for N instances in one frame. Files are replayed in name order.

Usage:
    python scripts/scan_offline.py \
        --masks data/frames/masks \
        --image data/frames/capture.jpg \
        --output outputs/page.jpg

    # Custom config and a plot of the locking frame
    python scripts/scan_offline.py --masks ... --image ... --output ... \
        --config my_scanner.yaml --plot
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

import cv2
import numpy as np

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.common.types import NormalizedBBox  # noqa: E402
from src.scanner import DetectionResult, ScanSession  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

FULL_FRAME_BOX = NormalizedBBox(x1=0.0, y1=0.0, x2=1.0, y2=1.0)


def load_frame(mask_path: Path) -> List[DetectionResult]:
    """Load one frame's masks as detections covering the full frame."""
    masks = np.load(mask_path)
    if masks.ndim == 2:
        masks = masks[np.newaxis]
    return [DetectionResult(box=FULL_FRAME_BOX, mask=mask) for mask in masks]


def main() -> int:
    """Main entry point for offline replay."""
    parser = argparse.ArgumentParser(
        description="Replay saved masks through the document scanner",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--masks", type=Path, required=True, help="Directory of .npy masks")
    parser.add_argument("--image", type=Path, required=True, help="High-resolution capture")
    parser.add_argument("--output", type=Path, required=True, help="Rectified page path")
    parser.add_argument("--config", type=Path, default=None, help="Scanner config YAML")
    parser.add_argument("--plot", action="store_true", help="Plot the locking frame")

    args = parser.parse_args()

    mask_paths = sorted(args.masks.glob("*.npy"))
    if not mask_paths:
        logger.error(f"No .npy masks found in {args.masks}")
        return 1

    session = ScanSession(config_path=args.config)

    locked_outcome = None
    for mask_path in mask_paths:
        outcome = session.process_frame(load_frame(mask_path))
        logger.debug(f"{mask_path.name}: {outcome.transition.value}")
        if outcome.should_capture:
            logger.info(f"Document locked at {mask_path.name}")
            locked_outcome = outcome
            break

    if locked_outcome is None:
        logger.error(f"Document never locked over {len(mask_paths)} frames")
        return 1

    if args.plot:
        from src.utils.visualization import plot_detection_state

        plot_detection_state(locked_outcome.detection)

    image = cv2.imread(str(args.image))
    if image is None:
        logger.error(f"Could not read capture image: {args.image}")
        return 1

    result = session.capture(image)
    if not result.is_success():
        logger.error(result.get_error_message())
        return 1

    args.output.parent.mkdir(parents=True, exist_ok=True)
    cv2.imwrite(str(args.output), result.image)
    logger.info(f"Saved {result.status.value.lower()} page to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
