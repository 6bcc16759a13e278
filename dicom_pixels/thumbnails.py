"""
thumbnails.py - Nearest-neighbour thumbnails for the slice navigator.

Each slice is loaded, windowed with its own header window and shrunk to a
``size x size`` square by picking the nearest source pixel; there is no
interpolation.  Thumbnails are for scrubbing through a series, not for
reading it.

A batch processes many files on a bounded thread pool.  A file that fails
to load or window becomes an all-zero placeholder at its own index and the
rest of the batch carries on.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

import numpy as np

from dicom_pixels.config import CONFIG, worker_count
from dicom_pixels.dicom_io import DicomFileSource, PixelSource
from dicom_pixels.errors import BatchCancelledError, InvalidBufferError
from dicom_pixels.models import ThumbnailResult
from dicom_pixels.windowing import apply_window_level

logger = logging.getLogger(__name__)


def downsample(
    source: np.ndarray,
    src_width: int,
    src_height: int,
    target_size: int,
) -> np.ndarray:
    """
    Resample a display buffer to ``target_size x target_size`` bytes.

    Target pixel ``(x, y)`` copies source pixel
    ``(floor(x * src_width / target_size), floor(y * src_height / target_size))``,
    clamped to the source bounds.

    Raises
    ------
    InvalidBufferError
        If the dimensions are not positive or do not match ``len(source)``.
    """
    if src_width <= 0 or src_height <= 0 or target_size <= 0:
        raise InvalidBufferError(
            f"Cannot downsample {src_width}x{src_height} to {target_size}x{target_size}."
        )
    source = np.asarray(source, dtype=np.uint8).ravel()
    if source.shape[0] != src_width * src_height:
        raise InvalidBufferError(
            f"Display buffer holds {source.shape[0]} bytes, "
            f"expected {src_width * src_height} for {src_width}x{src_height}."
        )

    scale_x = src_width / target_size
    scale_y = src_height / target_size
    steps = np.arange(target_size, dtype=np.float64)
    src_x = np.minimum(np.floor(steps * scale_x).astype(np.intp), src_width - 1)
    src_y = np.minimum(np.floor(steps * scale_y).astype(np.intp), src_height - 1)

    image = source.reshape(src_height, src_width)
    return image[src_y[:, None], src_x[None, :]].ravel()


def generate_thumbnail(
    file_path: str,
    index: int,
    target_size: Optional[int] = None,
    source: Optional[PixelSource] = None,
) -> ThumbnailResult:
    """
    Load, window and downsample one file.

    Any failure is logged and turned into ``ThumbnailResult.empty``.
    """
    target_size = target_size or CONFIG["thumbnails"]["size"]
    source = source or DicomFileSource()
    try:
        buffer = source.load_sample_buffer(file_path)
        window = source.default_window_level(file_path)
        display = apply_window_level(buffer, window)
        pixels = downsample(display, buffer.width, buffer.height, target_size)
    except Exception as exc:
        logger.warning("Thumbnail %d (%s) failed: %s", index, file_path, exc)
        return ThumbnailResult.empty(index, target_size)

    return ThumbnailResult(index, pixels, target_size, target_size)


class _ProgressCounter:
    """Completed-item counter shared by the batch workers."""

    def __init__(self, callback: Optional[Callable[[int], None]]):
        self._callback = callback
        self._count = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._count += 1
            current = self._count
        if self._callback is not None:
            self._callback(current)
        return current


def generate_thumbnails(
    file_paths: Sequence[str],
    target_size: Optional[int] = None,
    on_progress: Optional[Callable[[int], None]] = None,
    *,
    source: Optional[PixelSource] = None,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> list[ThumbnailResult]:
    """
    Build thumbnails for *file_paths*, index-aligned with the input.

    Parameters
    ----------
    file_paths : sequence of str
        Slices in navigator order.
    target_size : int, optional
        Edge length in pixels.  Defaults to ``thumbnails.size``.
    on_progress : callable, optional
        Called with the number of completed items after each item
        finishes.  Calls may come from any worker thread.
    source : PixelSource, optional
        Loader for sample buffers and header windows.  Defaults to
        ``DicomFileSource``.
    max_workers : int, optional
        Thread cap.  Defaults to ``processing.max_workers``.
    cancel_event : threading.Event, optional
        Checked before each item starts.

    Returns
    -------
    list[ThumbnailResult]
        One entry per path.  Failed items are all-zero placeholders.

    Raises
    ------
    BatchCancelledError
        If *cancel_event* was set before every item had started.
    """
    target_size = target_size or CONFIG["thumbnails"]["size"]
    source = source or DicomFileSource()
    if not file_paths:
        return []
    results: list[Optional[ThumbnailResult]] = [None] * len(file_paths)

    progress = _ProgressCounter(on_progress)
    cancelled = threading.Event()

    def work(index: int) -> None:
        if cancel_event is not None and cancel_event.is_set():
            cancelled.set()
            return
        results[index] = generate_thumbnail(file_paths[index], index, target_size, source)
        progress.increment()

    workers = min(worker_count(max_workers), len(file_paths))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        for future in [executor.submit(work, i) for i in range(len(file_paths))]:
            future.result()

    if cancelled.is_set():
        done = sum(r is not None for r in results)
        raise BatchCancelledError(
            f"Thumbnail batch cancelled after {done} of {len(file_paths)} item(s)."
        )

    failed = sum(r.is_placeholder for r in results)
    logger.info(
        "Generated %d thumbnail(s) at %dpx, %d placeholder(s).",
        len(results), target_size, failed,
    )
    return results
