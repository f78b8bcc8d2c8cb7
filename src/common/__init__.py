"""
Common types shared across the scanner modules.

Provides standardized data types for the boundary between inference output
and the scanner core.
"""

from src.common.types import ImageBuffer, NormalizedBBox

__all__ = ["ImageBuffer", "NormalizedBBox"]
