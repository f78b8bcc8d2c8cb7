"""
Common type definitions for the document scanner.

This module provides Pydantic-based type definitions for data structures
shared across the scanner: captured images and normalized detection boxes.

These types provide:
- Type validation and conversion
- Consistent interfaces between inference output and the scanner core
- Helper methods for converting to pixel space
"""

from typing import Tuple, Union

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator


class ImageBuffer(BaseModel):
    """
    Type-safe wrapper for image arrays (numpy.ndarray).

    Used to validate the high-resolution capture before rectification. Images
    must be non-empty uint8 arrays, grayscale (H, W) or color (H, W, C) with
    1, 3 or 4 channels.

    Attributes:
        data: The underlying numpy array containing image data.

    Example:
        >>> image = cv2.imread("page.jpg")
        >>> buffer = ImageBuffer(data=image)
        >>> print(buffer.width, buffer.height)  # 3024, 4032
    """

    data: np.ndarray = Field(..., description="Image data as numpy array")

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("data")
    @classmethod
    def _validate_image(cls, v: np.ndarray) -> np.ndarray:
        """
        Validate that the numpy array is a valid image.

        Raises:
            ValueError: If array is not a valid image format.
        """
        if not isinstance(v, np.ndarray):
            raise ValueError(f"Expected numpy.ndarray, got {type(v)}")

        if v.size == 0:
            raise ValueError("Image array is empty")

        if len(v.shape) not in (2, 3):
            raise ValueError(
                f"Expected 2D (grayscale) or 3D (color) image, got shape {v.shape}"
            )

        if len(v.shape) == 3 and v.shape[2] not in (1, 3, 4):
            raise ValueError(
                f"Expected 1, 3, or 4 channels for color image, got {v.shape[2]}"
            )

        if v.dtype != np.uint8:
            raise ValueError(
                f"Expected uint8 dtype for image, got {v.dtype}. "
                "Images should be in range [0, 255]"
            )

        return v

    @property
    def height(self) -> int:
        """Get image height in pixels."""
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        """Get image width in pixels."""
        return int(self.data.shape[1])

    @property
    def size(self) -> Tuple[int, int]:
        """Get image size as (width, height)."""
        return (self.width, self.height)

    def __repr__(self) -> str:
        return f"ImageBuffer(shape={self.data.shape}, dtype={self.data.dtype})"


class NormalizedBBox(BaseModel):
    """
    Bounding box in normalized image coordinates [x1, y1, x2, y2].

    Inference providers report instance boxes relative to the frame size
    (0.0 to 1.0) so the same box can be applied to the low-resolution
    analysis frame and to the full-resolution capture.

    Example:
        >>> box = NormalizedBBox(x1=0.1, y1=0.2, x2=0.9, y2=0.8)
        >>> box.to_pixels(1000, 500)
        (100, 100, 800, 300)
    """

    x1: float = Field(..., ge=0.0, le=1.0, description="Left edge")
    y1: float = Field(..., ge=0.0, le=1.0, description="Top edge")
    x2: float = Field(..., ge=0.0, le=1.0, description="Right edge")
    y2: float = Field(..., ge=0.0, le=1.0, description="Bottom edge")

    @field_validator("x1", "y1", "x2", "y2", mode="before")
    @classmethod
    def _convert_to_float(cls, v: Union[int, float]) -> float:
        if isinstance(v, (int, float, np.floating, np.integer)):
            return float(v)
        raise ValueError(f"Coordinate must be numeric, got {type(v)}")

    @model_validator(mode="after")
    def _validate_bbox(self) -> "NormalizedBBox":
        if self.x1 >= self.x2:
            raise ValueError(f"Invalid bbox: x1 ({self.x1}) must be < x2 ({self.x2})")
        if self.y1 >= self.y2:
            raise ValueError(f"Invalid bbox: y1 ({self.y1}) must be < y2 ({self.y2})")
        return self

    @classmethod
    def from_list(cls, coords: list) -> "NormalizedBBox":
        """
        Create box from list [x1, y1, x2, y2].

        Raises:
            ValueError: If list does not contain exactly 4 elements.
        """
        if len(coords) != 4:
            raise ValueError(f"Expected list with 4 elements, got {len(coords)}")
        return cls(x1=coords[0], y1=coords[1], x2=coords[2], y2=coords[3])

    def to_pixels(self, width: int, height: int) -> Tuple[int, int, int, int]:
        """
        Convert to a pixel rectangle clamped to an image of the given size.

        Args:
            width: Image width in pixels.
            height: Image height in pixels.

        Returns:
            Tuple (left, top, crop_width, crop_height).
        """
        left = max(int(self.x1 * width), 0)
        top = max(int(self.y1 * height), 0)
        crop_width = min(int((self.x2 - self.x1) * width), width - left)
        crop_height = min(int((self.y2 - self.y1) * height), height - top)
        return (left, top, crop_width, crop_height)

    def to_list(self) -> list:
        return [self.x1, self.y1, self.x2, self.y2]
