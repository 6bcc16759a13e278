"""
models.py - Data records passed between the pipeline stages.

SampleBuffer  -> one decoded DICOM frame plus its interpretation metadata
WindowLevel   -> the (width, center) pair that maps physical values to 0-255
Histogram     -> 256-bin intensity summary
ThumbnailResult -> one downsampled slice for the slice navigator

Display buffers are plain 1-D ``np.uint8`` arrays of length width*height;
they carry no metadata of their own.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from dicom_pixels.errors import InvalidBufferError, InvalidWindowError

logger = logging.getLogger(__name__)

HISTOGRAM_BINS = 256

# Little-endian, as stored in uncompressed DICOM pixel data
_SAMPLE_DTYPES: dict[tuple[int, bool], str] = {
    (8, False): "u1",
    (8, True): "u1",
    (16, False): "<u2",
    (16, True): "<i2",
}


@dataclass(frozen=True)
class SampleBuffer:
    """One decoded, uncompressed, single-channel DICOM frame."""
    width: int
    height: int
    bits_allocated: int
    bits_stored: int
    is_signed: bool
    rescale_slope: float
    rescale_intercept: float
    raw_samples: bytes = field(repr=False)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def bytes_per_sample(self) -> int:
        return self.bits_allocated // 8

    @classmethod
    def empty(cls) -> "SampleBuffer":
        return cls(0, 0, 8, 8, False, 1.0, 0.0, b"")

    def validate(self) -> None:
        """
        Check the length invariant before anything indexes the samples.

        Raises
        ------
        InvalidBufferError
            If the bit depth is not 8 or 16, a dimension is negative, or
            ``len(raw_samples) != pixel_count * bytes_per_sample``.
        """
        if self.bits_allocated not in (8, 16):
            raise InvalidBufferError(
                f"Unsupported BitsAllocated={self.bits_allocated}; expected 8 or 16."
            )
        if self.width < 0 or self.height < 0:
            raise InvalidBufferError(
                f"Negative dimensions {self.width}x{self.height}."
            )
        expected = self.pixel_count * self.bytes_per_sample
        actual = len(self.raw_samples) if self.raw_samples is not None else 0
        if actual != expected:
            raise InvalidBufferError(
                f"Sample buffer holds {actual} bytes but {self.width}x{self.height} "
                f"at {self.bits_allocated} bits needs {expected}."
            )

    def samples(self) -> np.ndarray:
        """Validated, zero-copy numpy view of the native sample values."""
        self.validate()
        dtype = _SAMPLE_DTYPES[(self.bits_allocated, self.is_signed)]
        return np.frombuffer(self.raw_samples, dtype=dtype, count=self.pixel_count)


@dataclass(frozen=True)
class WindowLevel:
    """Display window: *width* of the visible range around *center*."""
    width: float
    center: float

    @property
    def window_min(self) -> float:
        return self.center - self.width / 2.0

    @property
    def window_max(self) -> float:
        return self.center + self.width / 2.0

    @classmethod
    def from_min_max(cls, lower: float, upper: float) -> "WindowLevel":
        return cls(width=upper - lower, center=(upper + lower) / 2.0)

    def validate(self) -> None:
        if not self.width > 0:
            raise InvalidWindowError(
                f"Window width must be > 0, got width={self.width}."
            )


# ---------------------------------------------------------------------------
# Window presets (width, center) commonly used in radiology
# ---------------------------------------------------------------------------
WindowLevel.CT_ABDOMEN = WindowLevel(400.0, 40.0)
WindowLevel.CT_LUNG = WindowLevel(1500.0, -600.0)
WindowLevel.CT_BONE = WindowLevel(2000.0, 500.0)
WindowLevel.CT_BRAIN = WindowLevel(80.0, 40.0)
WindowLevel.CT_LIVER = WindowLevel(150.0, 30.0)
WindowLevel.CT_MEDIASTINUM = WindowLevel(350.0, 50.0)
WindowLevel.MR_DEFAULT = WindowLevel(800.0, 400.0)
WindowLevel.MR_T1 = WindowLevel(600.0, 300.0)
WindowLevel.MR_T2 = WindowLevel(1000.0, 500.0)
WindowLevel.DEFAULT = WindowLevel(400.0, 40.0)

WINDOW_PRESETS: dict[str, WindowLevel] = {
    "ct_abdomen": WindowLevel.CT_ABDOMEN,
    "ct_lung": WindowLevel.CT_LUNG,
    "ct_bone": WindowLevel.CT_BONE,
    "ct_brain": WindowLevel.CT_BRAIN,
    "ct_liver": WindowLevel.CT_LIVER,
    "ct_mediastinum": WindowLevel.CT_MEDIASTINUM,
    "mr_default": WindowLevel.MR_DEFAULT,
    "mr_t1": WindowLevel.MR_T1,
    "mr_t2": WindowLevel.MR_T2,
}


def get_preset(name: str) -> WindowLevel:
    """Look up a named preset, e.g. ``get_preset("ct_lung")``."""
    try:
        return WINDOW_PRESETS[name]
    except KeyError:
        raise ValueError(
            f"Unknown preset '{name}'. "
            f"Choose from: {list(WINDOW_PRESETS.keys())}"
        ) from None


@dataclass
class Histogram:
    """Intensity distribution reduced to a fixed number of bins."""
    bins: np.ndarray
    bin_count: int
    min_value: int
    max_value: int
    peak_value: int
    peak_index: int
    total_samples: int

    @classmethod
    def empty(cls, bin_count: int = HISTOGRAM_BINS) -> "Histogram":
        return cls(
            bins=np.zeros(bin_count, dtype=np.uint32),
            bin_count=bin_count,
            min_value=0,
            max_value=bin_count - 1,
            peak_value=0,
            peak_index=0,
            total_samples=0,
        )

    def normalized_bins(self) -> np.ndarray:
        """Bin counts scaled to [0, 1] by the peak count."""
        if self.peak_value == 0:
            return np.zeros(self.bin_count, dtype=np.float64)
        return self.bins.astype(np.float64) / self.peak_value


@dataclass
class ThumbnailResult:
    """One downsampled slice; ``pixels`` is size*size bytes, row-major."""
    index: int
    pixels: np.ndarray
    width: int
    height: int
    label: Optional[str] = None
    is_placeholder: bool = False

    @property
    def display_number(self) -> int:
        return self.index + 1

    @classmethod
    def empty(cls, index: int, size: int, label: Optional[str] = None) -> "ThumbnailResult":
        """All-zero placeholder used when a slice fails to load."""
        return cls(
            index=index,
            pixels=np.zeros(size * size, dtype=np.uint8),
            width=size,
            height=size,
            label=label,
            is_placeholder=True,
        )
