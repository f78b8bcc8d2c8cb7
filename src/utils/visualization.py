"""
Visualization Utilities

Functions for plotting scanner detections and rectified pages.
"""

from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from src.scanner.types import DetectionState

CORNER_LABELS = ["TL", "TR", "BR", "BL"]


def plot_detection_state(
    state: DetectionState,
    background: Optional[np.ndarray] = None,
    save_path: Optional[Path] = None,
    show: bool = True,
):
    """
    Plot a frame's overlay with the detected quad corners.

    Args:
        state: Detection summary for the frame
        background: Optional RGB frame drawn under the overlay
        save_path: Optional path to save figure
        show: Display the figure interactively
    """
    fig, ax = plt.subplots(1, 1, figsize=(8, 8))

    if background is not None:
        ax.imshow(background)
    ax.imshow(state.overlay)

    if state.corners is not None:
        for label, (x, y) in zip(CORNER_LABELS, state.corners):
            ax.plot(x, y, 'ro', markersize=6)
            ax.text(x + 3, y + 3, label, color='red', fontsize=10, weight='bold')

    title = f"area={state.area:.0f}" if state.quad_found else "no quad"
    ax.set_title(title)
    ax.axis('off')

    if save_path:
        plt.savefig(save_path, bbox_inches='tight', dpi=150)
    if show:
        plt.show()
    return fig


def plot_rectified_page(
    page: np.ndarray,
    save_path: Optional[Path] = None,
    show: bool = True,
):
    """
    Plot a rectified page.

    Args:
        page: Rectified image (RGB or grayscale)
        save_path: Optional path to save figure
        show: Display the figure interactively
    """
    fig, ax = plt.subplots(1, 1, figsize=(6, 8))
    ax.imshow(page, cmap='gray' if page.ndim == 2 else None)
    ax.set_title(f"{page.shape[1]}x{page.shape[0]}")
    ax.axis('off')

    if save_path:
        plt.savefig(save_path, bbox_inches='tight', dpi=150)
    if show:
        plt.show()
    return fig
