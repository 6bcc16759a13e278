"""
visualization.py - Consolidated matplotlib plotting helpers.

All plot functions follow a consistent style and return the Figure so
callers can save or display it as needed.
"""

import logging
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from dicom_pixels.models import WINDOW_PRESETS, Histogram, SampleBuffer, ThumbnailResult
from dicom_pixels.windowing import apply_window_level

logger = logging.getLogger(__name__)

# Consistent figure style across all plots
plt.rcParams.update({"figure.dpi": 100, "axes.titlesize": 11})


def plot_display_buffer(
    pixels: np.ndarray,
    width: int,
    height: int,
    title: str = "CT Slice",
) -> plt.Figure:
    """
    Show a windowed display buffer as a grayscale image.

    Parameters
    ----------
    pixels : np.ndarray
        ``width * height`` display bytes.
    width, height : int
        Frame dimensions.
    title : str
        Plot title.

    Returns
    -------
    plt.Figure
    """
    fig, ax = plt.subplots(figsize=(6, 6))
    ax.imshow(np.asarray(pixels).reshape(height, width), cmap="gray", vmin=0, vmax=255)
    ax.set_title(title)
    ax.axis("off")
    return fig


def plot_histogram(histogram: Histogram, title: str = "Intensity Histogram") -> plt.Figure:
    """
    Bar chart of a 256-bin histogram with the occupied range and peak marked.

    Returns
    -------
    plt.Figure
    """
    fig, ax = plt.subplots(figsize=(8, 4))
    ax.bar(np.arange(histogram.bin_count), histogram.bins, width=1.0, color="0.3")

    if histogram.total_samples > 0:
        ax.axvline(histogram.min_value, color="tab:blue", linestyle="--", label=f"min={histogram.min_value}")
        ax.axvline(histogram.max_value, color="tab:red", linestyle="--", label=f"max={histogram.max_value}")
        ax.axvline(
            histogram.peak_index, color="tab:orange",
            label=f"peak={histogram.peak_index} ({histogram.peak_value})",
        )
        ax.legend()

    ax.set_xlim(0, histogram.bin_count - 1)
    ax.set_title(f"{title}\n{histogram.total_samples} samples")
    ax.set_xlabel("Bin")
    ax.set_ylabel("Count")
    fig.tight_layout()
    return fig


def plot_thumbnail_strip(
    thumbnails: Sequence[ThumbnailResult],
    columns: int = 8,
) -> plt.Figure:
    """
    Grid of thumbnails, labelled by display number; placeholders say so.

    Returns
    -------
    plt.Figure
    """
    count = max(1, len(thumbnails))
    columns = max(1, min(columns, count))
    rows = -(-count // columns)
    fig, axes = plt.subplots(rows, columns, figsize=(1.5 * columns, 1.7 * rows), squeeze=False)

    for ax in axes.ravel():
        ax.axis("off")

    for ax, thumb in zip(axes.ravel(), thumbnails):
        ax.imshow(thumb.pixels.reshape(thumb.height, thumb.width), cmap="gray", vmin=0, vmax=255)
        label = thumb.label or str(thumb.display_number)
        ax.set_title(f"{label} (failed)" if thumb.is_placeholder else label, fontsize=8)

    fig.tight_layout()
    return fig


def plot_preset_comparison(
    buffer: SampleBuffer,
    presets: Optional[Sequence[str]] = None,
) -> plt.Figure:
    """
    Show the same slice through several window presets side by side.

    Parameters
    ----------
    buffer : SampleBuffer
        Decoded frame.
    presets : sequence of str, optional
        Names from WINDOW_PRESETS.  Defaults to every CT preset.

    Returns
    -------
    plt.Figure
    """
    if presets is None:
        presets = [name for name in WINDOW_PRESETS if name.startswith("ct_")]
    fig, axes = plt.subplots(1, len(presets), figsize=(4 * len(presets), 4), squeeze=False)

    for ax, preset in zip(axes[0], presets):
        window = WINDOW_PRESETS[preset]
        display = apply_window_level(buffer, window)
        ax.imshow(display.reshape(buffer.height, buffer.width), cmap="gray", vmin=0, vmax=255)
        ax.set_title(f"{preset.replace('_', ' ').upper()}\n(W={window.width:g}, C={window.center:g})")
        ax.axis("off")

    fig.suptitle("Windowed Views (same slice)", y=1.02)
    fig.tight_layout()
    return fig
