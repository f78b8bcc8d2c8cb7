"""
Configuration loader for the Scanner module.

Loads and validates configuration from config.yaml file.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from src.scanner.types import (
    ExtractionConfig,
    OverlayConfig,
    RectificationConfig,
    ScannerConfig,
    StabilityConfig,
)

logger = logging.getLogger(__name__)

# Default configuration path (relative to this file)
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

VALID_INTERPOLATIONS = ["linear", "cubic", "nearest", "area", "lanczos"]
VALID_CORNER_ORDERINGS = ["y_sort", "centroid"]


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> ScannerConfig:
    """
    Load scanner configuration from YAML file.

    Args:
        config_path: Path to the configuration YAML file.

    Returns:
        Validated ScannerConfig object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config is invalid or missing required fields.

    Example:
        >>> config = load_config()
        >>> print(config.stability.required_stable_frames)
        15
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.debug(f"Loading scanner config from {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    try:
        config = _parse_config(raw_config)
        _validate_config(config)
        logger.info("Successfully loaded scanner configuration")
        return config
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration file: {e}") from e


def _parse_size(raw: Optional[list]) -> Optional[Tuple[int, int]]:
    if raw is None:
        return None
    if len(raw) != 2:
        raise ValueError(f"mask_size must be [width, height], got {raw}")
    return (int(raw[0]), int(raw[1]))


def _parse_color(raw: list) -> Tuple[int, int, int]:
    if len(raw) != 3:
        raise ValueError(f"Colors must be [r, g, b], got {raw}")
    return (int(raw[0]), int(raw[1]), int(raw[2]))


def _parse_config(raw: Dict[str, Any]) -> ScannerConfig:
    """Parse raw dictionary into structured config objects."""
    extraction = raw["extraction"]
    stability = raw["stability"]
    rectification = raw["rectification"]
    overlay = raw["overlay"]

    return ScannerConfig(
        extraction=ExtractionConfig(
            binarize_threshold=float(extraction["binarize_threshold"]),
            min_contour_area=float(extraction["min_contour_area"]),
            approx_epsilon_ratio=float(extraction["approx_epsilon_ratio"]),
            smoothing_kernel=int(extraction["smoothing_kernel"]),
            mask_size=_parse_size(extraction.get("mask_size")),
        ),
        stability=StabilityConfig(
            area_threshold=float(stability["area_threshold"]),
            required_stable_frames=int(stability["required_stable_frames"]),
        ),
        rectification=RectificationConfig(
            output_width=int(rectification["output_width"]),
            output_height=int(rectification["output_height"]),
            corner_ordering=str(rectification["corner_ordering"]),
            warp_interpolation=str(rectification["warp_interpolation"]),
            min_determinant=float(rectification["min_determinant"]),
            min_corner_sine=float(rectification["min_corner_sine"]),
            fallback_to_box_crop=bool(rectification["fallback_to_box_crop"]),
        ),
        overlay=OverlayConfig(
            alpha=int(overlay["alpha"]),
            tracking_color=_parse_color(overlay["tracking_color"]),
            locked_color=_parse_color(overlay["locked_color"]),
            stroke_width=int(overlay["stroke_width"]),
        ),
    )


def _validate_config(config: ScannerConfig) -> None:
    """
    Validate configuration values for logical consistency.

    Raises:
        ValueError: If any configuration value is invalid.
    """
    extraction = config.extraction
    if not 0.0 < extraction.binarize_threshold < 1.0:
        raise ValueError("binarize_threshold must be in (0, 1)")

    if extraction.min_contour_area < 0:
        raise ValueError("min_contour_area cannot be negative")

    if not 0.0 < extraction.approx_epsilon_ratio < 1.0:
        raise ValueError("approx_epsilon_ratio must be in (0, 1)")

    # cv2.GaussianBlur needs an odd kernel
    if extraction.smoothing_kernel < 0 or (
        extraction.smoothing_kernel and extraction.smoothing_kernel % 2 == 0
    ):
        raise ValueError("smoothing_kernel must be 0 or a positive odd number")

    if extraction.mask_size is not None and min(extraction.mask_size) < 1:
        raise ValueError(f"mask_size must be positive, got {extraction.mask_size}")

    if not 0.0 <= config.stability.area_threshold < 1.0:
        raise ValueError("area_threshold must be in [0, 1)")

    if config.stability.required_stable_frames < 1:
        raise ValueError("required_stable_frames must be at least 1")

    rect = config.rectification
    if rect.output_width < 1 or rect.output_height < 1:
        raise ValueError(
            f"Output size must be positive, got {rect.output_width}x{rect.output_height}"
        )

    if rect.warp_interpolation not in VALID_INTERPOLATIONS:
        raise ValueError(
            f"Invalid warp_interpolation: {rect.warp_interpolation}. "
            f"Must be one of {VALID_INTERPOLATIONS}"
        )

    if rect.corner_ordering not in VALID_CORNER_ORDERINGS:
        raise ValueError(
            f"Invalid corner_ordering: {rect.corner_ordering}. "
            f"Must be one of {VALID_CORNER_ORDERINGS}"
        )

    if rect.min_determinant < 0:
        raise ValueError("min_determinant cannot be negative")

    if not 0.0 <= rect.min_corner_sine < 1.0:
        raise ValueError("min_corner_sine must be in [0, 1)")

    overlay = config.overlay
    if not 0 <= overlay.alpha <= 255:
        raise ValueError("overlay alpha must be in [0, 255]")

    for name, color in (
        ("tracking_color", overlay.tracking_color),
        ("locked_color", overlay.locked_color),
    ):
        if any(not 0 <= c <= 255 for c in color):
            raise ValueError(f"{name} components must be in [0, 255], got {color}")

    if overlay.stroke_width < 1:
        raise ValueError("stroke_width must be at least 1")

    logger.debug("Configuration validation passed")
