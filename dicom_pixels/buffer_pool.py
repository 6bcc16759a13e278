"""
buffer_pool.py - Reusable scratch buffers for the windowing engine.

Buffers are bucketed by size class (the next power of two at or above the
requested length) so a viewer that re-windows the same series over and
over keeps reusing the same few arrays instead of allocating one per call.

Acquisition is scoped: ``with pool.acquire(n) as buf`` hands out a buffer
that belongs to the caller until the block exits, and the buffer goes
back to the pool on every exit path, including exceptions.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

import numpy as np

logger = logging.getLogger(__name__)


def _size_class(length: int) -> int:
    return 1 << max(0, int(length) - 1).bit_length()


class BufferPool:
    """Thread-safe free list of ``np.uint8`` buffers keyed by size class."""

    def __init__(self, max_per_class: int = 4):
        self.max_per_class = max_per_class
        self._free: dict[int, list[np.ndarray]] = {}
        self._lock = threading.Lock()

    def rent(self, length: int) -> np.ndarray:
        """Return a buffer of at least *length* bytes.  Contents are undefined."""
        size = _size_class(length)
        with self._lock:
            bucket = self._free.get(size)
            if bucket:
                return bucket.pop()
        logger.debug("Allocating %d-byte buffer for a %d-byte request.", size, length)
        return np.empty(size, dtype=np.uint8)

    def give_back(self, buffer: np.ndarray) -> None:
        """Return a rented buffer.  Surplus buffers are dropped."""
        size = buffer.shape[0]
        if size != _size_class(size):
            raise ValueError(f"Buffer of length {size} was not rented from this pool.")
        with self._lock:
            bucket = self._free.setdefault(size, [])
            if len(bucket) < self.max_per_class:
                bucket.append(buffer)

    @contextmanager
    def acquire(self, length: int) -> Iterator[np.ndarray]:
        """Rent a buffer for the duration of the ``with`` block."""
        buffer = self.rent(length)
        try:
            yield buffer
        finally:
            self.give_back(buffer)

    def pooled_count(self) -> int:
        with self._lock:
            return sum(len(bucket) for bucket in self._free.values())

    def clear(self) -> None:
        with self._lock:
            self._free.clear()


# Shared pool for the windowing engine; tests may pass their own instance.
DEFAULT_POOL = BufferPool()
