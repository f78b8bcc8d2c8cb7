"""
Shared Utilities

Plotting helpers for inspecting scanner output.
"""

from src.utils.visualization import plot_detection_state, plot_rectified_page

__all__ = [
    "plot_detection_state",
    "plot_rectified_page",
]
