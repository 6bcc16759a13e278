"""
windowing.py - Rescale and window/level mapping to 8-bit grayscale.

WHY THIS MATTERS
----------------
Raw CT pixel values are stored as integers that encode tissue density on the
Hounsfield Unit (HU) scale.  The conversion formula is:

    HU = pixel_value * RescaleSlope + RescaleIntercept

Radiologists view CT scans through *windows*: a centre and width that
maps a clinically relevant HU range to the full 0-255 display range.

    value <= center - width/2            -> 0
    value >= center + width/2            -> 255
    otherwise   floor((value - min) * 255 / width), clamped to [0, 255]

Both ends are closed, so a value sitting exactly on a window edge clamps.
The fractional part is truncated rather than rounded; the exact byte
values matter to the histogram and thumbnail stages downstream.

EXECUTION
---------
Frames below ``processing.parallel_threshold`` pixels (512 x 512 by
default) are mapped on the calling thread.  Larger frames are split into
one contiguous range per worker; every worker writes a disjoint slice of a
pooled output buffer, so no locking is needed until the final join.

References
----------
- DICOM PS3.3, attribute (0028,1050)/(0028,1051): WindowCenter/WindowWidth
- DICOM PS3.3, attribute (0028,1052)/(0028,1053): RescaleIntercept/RescaleSlope
"""

import logging
import time
from typing import Optional

import numpy as np

from dicom_pixels.buffer_pool import DEFAULT_POOL, BufferPool
from dicom_pixels.models import SampleBuffer, WindowLevel
from dicom_pixels.parallel import partition, resolve_chunks, run_partitioned

logger = logging.getLogger(__name__)


def to_hounsfield(
    pixel_array: np.ndarray,
    slope: float = 1.0,
    intercept: float = 0.0,
) -> np.ndarray:
    """
    Convert raw stored pixel values to physical units (HU for CT).

    Parameters
    ----------
    pixel_array : np.ndarray
        Native sample values.
    slope : float
        RescaleSlope from the DICOM header (default 1.0).
    intercept : float
        RescaleIntercept from the DICOM header (default 0.0).

    Returns
    -------
    np.ndarray
        Float64 array of physical values, same shape as *pixel_array*.
    """
    return pixel_array.astype(np.float64) * slope + intercept


def window_to_bytes(values: np.ndarray, window: WindowLevel) -> np.ndarray:
    """
    Map physical values through *window* to display bytes.

    Parameters
    ----------
    values : np.ndarray
        Physical (rescaled) values.
    window : WindowLevel
        Display window; its width must be positive.

    Returns
    -------
    np.ndarray
        ``np.uint8`` array, same shape as *values*.

    Raises
    ------
    InvalidWindowError
        If ``window.width <= 0``.
    """
    window.validate()
    lower = window.window_min
    upper = window.window_max
    scale = 255.0 / window.width

    scaled = np.floor((values - lower) * scale)
    np.clip(scaled, 0.0, 255.0, out=scaled)
    scaled[values <= lower] = 0.0
    scaled[values >= upper] = 255.0
    return scaled.astype(np.uint8)


def apply_window_level(
    buffer: SampleBuffer,
    window: WindowLevel,
    *,
    chunks: Optional[int] = None,
    workers: Optional[int] = None,
    threshold: Optional[int] = None,
    pool: Optional[BufferPool] = None,
) -> np.ndarray:
    """
    Transform a decoded frame into a display buffer.

    Parameters
    ----------
    buffer : SampleBuffer
        Decoded 8- or 16-bit frame.
    window : WindowLevel
        Display window to apply.
    chunks : int, optional
        Force the number of ranges.  1 is the sequential path.  Defaults
        to the size-based choice described in the module docstring.
    workers : int, optional
        Worker thread cap.  Defaults to ``processing.max_workers``.
    threshold : int, optional
        Pixel count at which the parallel path kicks in.
    pool : BufferPool, optional
        Scratch-buffer pool.  Defaults to the module-wide pool.

    Returns
    -------
    np.ndarray
        ``np.uint8`` array of exactly ``width * height`` bytes, row-major.

    Raises
    ------
    InvalidBufferError
        If the sample bytes do not match the declared dimensions.
    InvalidWindowError
        If the window width is not positive.
    """
    samples = buffer.samples()
    window.validate()
    pool = pool or DEFAULT_POOL

    total = buffer.pixel_count
    if total == 0:
        return np.zeros(0, dtype=np.uint8)

    slope = buffer.rescale_slope
    intercept = buffer.rescale_intercept
    ranges = partition(total, resolve_chunks(total, chunks, threshold, workers))

    start_time = time.perf_counter()
    with pool.acquire(total) as scratch:
        def fill(start: int, end: int) -> None:
            physical = to_hounsfield(samples[start:end], slope, intercept)
            scratch[start:end] = window_to_bytes(physical, window)

        run_partitioned(fill, ranges, workers)
        result = scratch[:total].copy()

    logger.debug(
        "Windowed %dx%d frame (W=%.1f, C=%.1f) in %d range(s), %.1f ms",
        buffer.width, buffer.height, window.width, window.center,
        len(ranges), (time.perf_counter() - start_time) * 1000.0,
    )
    return result
