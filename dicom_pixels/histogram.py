"""
histogram.py - 256-bin intensity histograms for display and native buffers.

Display buffers and 8-bit frames bin each byte directly.  16-bit frames are
first shifted into the unsigned range (signed samples get +32768), binned
into 65536 raw bins, then folded down to 256 by dropping the low 8 bits.

Large inputs are split across workers.  Each worker counts into its own
private bin array; the arrays are summed only after every worker has
returned, so the counting loop never touches shared state.
"""

import logging
from typing import Optional, Union

import numpy as np

from dicom_pixels.models import HISTOGRAM_BINS, Histogram, SampleBuffer
from dicom_pixels.parallel import partition, resolve_chunks, run_partitioned

logger = logging.getLogger(__name__)

_RAW_16BIT_BINS = 65536


def _count(values: np.ndarray, bin_count: int, chunks, workers, threshold) -> np.ndarray:
    """Thread-local bincount per range, merged after the join."""
    total = values.shape[0]
    ranges = partition(total, resolve_chunks(total, chunks, threshold, workers))

    def count_range(start: int, end: int) -> np.ndarray:
        return np.bincount(values[start:end], minlength=bin_count)

    partials = run_partitioned(count_range, ranges, workers)
    merged = np.zeros(bin_count, dtype=np.int64)
    for local in partials:
        merged += local
    logger.debug("Merged %d partial histogram(s) of %d bins.", len(partials), bin_count)
    return merged


def summarize_bins(bins: np.ndarray, total_samples: int) -> Histogram:
    """
    Build a Histogram record from final bin counts.

    ``min_value``/``max_value`` are the first and last non-empty bins and the
    peak is the largest bin, first occurrence on ties.  All-zero bins give
    the empty-histogram defaults.
    """
    bins = np.asarray(bins)
    occupied = np.flatnonzero(bins)
    if occupied.size == 0:
        return Histogram.empty(bins.shape[0])

    peak_index = int(np.argmax(bins))
    return Histogram(
        bins=bins.astype(np.uint32),
        bin_count=bins.shape[0],
        min_value=int(occupied[0]),
        max_value=int(occupied[-1]),
        peak_value=int(bins[peak_index]),
        peak_index=peak_index,
        total_samples=int(total_samples),
    )


def display_histogram(
    pixels: Optional[Union[np.ndarray, bytes, bytearray]],
    *,
    chunks: Optional[int] = None,
    workers: Optional[int] = None,
    threshold: Optional[int] = None,
) -> Histogram:
    """
    Histogram of an 8-bit display buffer.

    Parameters
    ----------
    pixels : np.ndarray or bytes, optional
        One byte per pixel.  ``None`` or an empty buffer yields
        ``Histogram.empty()``.
    chunks, workers, threshold : int, optional
        Execution overrides; see ``parallel.resolve_chunks``.

    Returns
    -------
    Histogram
    """
    if pixels is None or len(pixels) == 0:
        return Histogram.empty()

    if isinstance(pixels, (bytes, bytearray, memoryview)):
        values = np.frombuffer(pixels, dtype=np.uint8)
    else:
        values = np.asarray(pixels, dtype=np.uint8).ravel()

    bins = _count(values, HISTOGRAM_BINS, chunks, workers, threshold)
    return summarize_bins(bins, values.shape[0])


def sample_histogram(
    buffer: Optional[SampleBuffer],
    *,
    chunks: Optional[int] = None,
    workers: Optional[int] = None,
    threshold: Optional[int] = None,
) -> Histogram:
    """
    Histogram of a frame's native samples, always reduced to 256 bins.

    Raises
    ------
    InvalidBufferError
        If the sample bytes do not match the declared dimensions.
    """
    if buffer is None or buffer.pixel_count == 0:
        return Histogram.empty()

    samples = buffer.samples()
    if buffer.bits_allocated == 8:
        return display_histogram(samples, chunks=chunks, workers=workers, threshold=threshold)

    if buffer.is_signed:
        values = (samples.astype(np.int32) + 32768).astype(np.uint16)
    else:
        values = samples
    raw_bins = _count(values, _RAW_16BIT_BINS, chunks, workers, threshold)
    # Bin i of the 65536 lands in output bin i >> 8
    bins = raw_bins.reshape(HISTOGRAM_BINS, _RAW_16BIT_BINS // HISTOGRAM_BINS).sum(axis=1)
    return summarize_bins(bins, buffer.pixel_count)


def compute_histogram(
    source: Optional[Union[SampleBuffer, np.ndarray, bytes, bytearray]],
    **kwargs,
) -> Histogram:
    """Dispatch to the native-sample or display-buffer histogram."""
    if isinstance(source, SampleBuffer):
        return sample_histogram(source, **kwargs)
    return display_histogram(source, **kwargs)
