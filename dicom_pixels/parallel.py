"""
parallel.py - Fork-join helpers shared by the windowing and histogram engines.

Work over ``[0, n)`` is split into contiguous, non-overlapping ranges of
``ceil(n / chunks)`` items (the last range truncated to ``n``).  Each range
is handed to one worker thread; the caller blocks until every worker has
finished and receives the per-range results in range order.

Workers are threads rather than processes: the per-range kernels are
vectorised numpy calls, which release the GIL while they run.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, TypeVar

from dicom_pixels.config import CONFIG, worker_count

logger = logging.getLogger(__name__)

T = TypeVar("T")


def partition(total: int, chunks: int) -> list[tuple[int, int]]:
    """
    Split ``[0, total)`` into at most *chunks* contiguous ``(start, end)`` ranges.

    >>> partition(10, 4)
    [(0, 3), (3, 6), (6, 9), (9, 10)]
    """
    if total <= 0:
        return []
    chunks = max(1, min(int(chunks), total))
    size = -(-total // chunks)  # ceil division
    return [(start, min(start + size, total)) for start in range(0, total, size)]


def resolve_chunks(
    total: int,
    chunks: Optional[int] = None,
    threshold: Optional[int] = None,
    workers: Optional[int] = None,
) -> int:
    """
    Decide how many ranges to split *total* items into.

    An explicit *chunks* wins.  Otherwise inputs below *threshold* run as a
    single range and larger inputs get one range per worker.
    """
    if chunks is not None:
        return max(1, int(chunks))
    if threshold is None:
        threshold = CONFIG["processing"]["parallel_threshold"]
    if total < threshold:
        return 1
    return worker_count(workers)


def run_partitioned(
    fn: Callable[[int, int], T],
    ranges: list[tuple[int, int]],
    workers: Optional[int] = None,
) -> list[T]:
    """
    Call ``fn(start, end)`` for every range and join before returning.

    A single range runs on the calling thread.  An exception raised by any
    worker propagates to the caller once all workers have stopped.
    """
    if len(ranges) <= 1:
        return [fn(start, end) for start, end in ranges]

    max_workers = min(worker_count(workers), len(ranges))
    logger.debug("Dispatching %d ranges to %d worker(s).", len(ranges), max_workers)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(fn, start, end) for start, end in ranges]
        return [future.result() for future in futures]
