"""
dicom_io.py - pydicom-backed loader that feeds the pixel pipeline.

The engines only ever see SampleBuffer and WindowLevel values.  This
module is the one place that knows about DICOM tags: it reads the image
pixel module attributes and the first frame of uncompressed PixelData,
and the default display window from the VOI LUT attributes.

Compressed transfer syntaxes, multi-channel images and multi-frame
decoding are outside what the pipeline handles; such files raise
DecodeFailure.
"""

import logging
import os
from typing import Optional, Protocol

import pydicom
from pydicom.dataset import Dataset

from dicom_pixels.config import CONFIG
from dicom_pixels.errors import DecodeFailure
from dicom_pixels.models import SampleBuffer, WindowLevel, get_preset

logger = logging.getLogger(__name__)


class PixelSource(Protocol):
    """What the thumbnail batch needs from a loader."""

    def load_sample_buffer(self, path: str) -> SampleBuffer: ...

    def default_window_level(self, path: str) -> WindowLevel: ...


def _first_value(value) -> float:
    # WindowCenter/Width can be a MultiValue list; take the first element
    if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
        return float(value)
    return float(list(value)[0])


def sample_buffer_from_dataset(ds: Dataset) -> SampleBuffer:
    """
    Extract the first frame of an already-loaded dataset.

    Raises
    ------
    DecodeFailure
        If the dataset has no PixelData, uses a compressed transfer syntax
        or stores more than one sample per pixel.
    """
    if "PixelData" not in ds:
        raise DecodeFailure("Dataset has no PixelData element.")

    file_meta = getattr(ds, "file_meta", None)
    transfer_syntax = getattr(file_meta, "TransferSyntaxUID", None) if file_meta else None
    if transfer_syntax is not None and transfer_syntax.is_compressed:
        raise DecodeFailure(f"Compressed transfer syntax {transfer_syntax.name} is not supported.")

    samples_per_pixel = int(getattr(ds, "SamplesPerPixel", 1))
    if samples_per_pixel != 1:
        raise DecodeFailure(f"Only single-channel images are supported, got {samples_per_pixel}.")

    rows = int(getattr(ds, "Rows", 0))
    columns = int(getattr(ds, "Columns", 0))
    bits_allocated = int(getattr(ds, "BitsAllocated", 16))
    bits_stored = int(getattr(ds, "BitsStored", 12))
    pixel_representation = int(getattr(ds, "PixelRepresentation", 0))
    slope = float(getattr(ds, "RescaleSlope", 1.0))
    intercept = float(getattr(ds, "RescaleIntercept", 0.0))

    frame_bytes = rows * columns * (bits_allocated // 8)
    raw = bytes(ds.PixelData)[:frame_bytes]

    return SampleBuffer(
        width=columns,
        height=rows,
        bits_allocated=bits_allocated,
        bits_stored=bits_stored,
        is_signed=pixel_representation == 1,
        rescale_slope=slope,
        rescale_intercept=intercept,
        raw_samples=raw,
    )


def window_level_from_dataset(ds: Dataset) -> WindowLevel:
    """
    Read WindowWidth/WindowCenter, falling back to the configured default.
    """
    dicom_wc = getattr(ds, "WindowCenter", None)
    dicom_ww = getattr(ds, "WindowWidth", None)
    if dicom_wc is not None and dicom_ww is not None:
        window = WindowLevel(width=_first_value(dicom_ww), center=_first_value(dicom_wc))
        if window.width > 0:
            return window
        logger.warning("Header window width %.1f is not positive; using default.", window.width)
    else:
        logger.debug("No window parameters in header; using default.")

    return WindowLevel(
        width=float(CONFIG["window"]["default_width"]),
        center=float(CONFIG["window"]["default_center"]),
    )


def resolve_window(
    ds: Dataset,
    preset: Optional[str] = None,
    window: Optional[WindowLevel] = None,
) -> WindowLevel:
    """
    Pick the window for a dataset.

    Priority:
    1. Explicit *window*.
    2. Named *preset* from WINDOW_PRESETS.
    3. Values embedded in the DICOM header (WindowCenter / WindowWidth).
    4. The configured default window.
    """
    if window is not None:
        return window
    if preset is not None:
        return get_preset(preset)
    return window_level_from_dataset(ds)


def read_dataset(path: str) -> Dataset:
    """dcmread that reports any parse failure as DecodeFailure."""
    try:
        return pydicom.dcmread(path)
    except Exception as exc:
        raise DecodeFailure(f"Could not read DICOM file {path}: {exc}") from exc


class DicomFileSource:
    """Loads SampleBuffers and header windows from DICOM files on disk."""

    def load_sample_buffer(self, path: str) -> SampleBuffer:
        return sample_buffer_from_dataset(read_dataset(path))

    def default_window_level(self, path: str) -> WindowLevel:
        return window_level_from_dataset(read_dataset(path))

    def is_valid_image(self, path: str) -> bool:
        if not os.path.isfile(path):
            return False
        try:
            ds = pydicom.dcmread(path)
        except Exception as exc:
            logger.debug("%s is not a readable DICOM file: %s", path, exc)
            return False
        return "PixelData" in ds
