"""Tests for dicom_pixels/dicom_io.py."""

import numpy as np
import pydicom
import pytest
from pydicom.dataset import Dataset, FileDataset
from pydicom.uid import ExplicitVRLittleEndian, JPEGBaseline8Bit

from dicom_pixels.dicom_io import (
    DicomFileSource,
    resolve_window,
    sample_buffer_from_dataset,
    window_level_from_dataset,
)
from dicom_pixels.errors import DecodeFailure
from dicom_pixels.models import WindowLevel


def _make_ds(pixels: np.ndarray, signed: bool = False, **kwargs) -> FileDataset:
    """Build a minimal in-memory CT dataset holding *pixels*."""
    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = pydicom.uid.UID("1.2.840.10008.5.1.4.1.1.2")
    file_meta.MediaStorageSOPInstanceUID = pydicom.uid.generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(filename_or_obj=None, dataset={}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.Modality = "CT"
    ds.Rows, ds.Columns = pixels.shape
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.PixelRepresentation = 1 if signed else 0
    ds.BitsAllocated = 16
    ds.BitsStored = 12
    ds.HighBit = 11
    ds.PixelData = pixels.astype(np.int16 if signed else np.uint16).tobytes()

    for key, value in kwargs.items():
        setattr(ds, key, value)
    return ds


class TestSampleBufferFromDataset:
    def test_reads_pixel_module(self):
        pixels = np.array([[-1000, 0], [40, 1000]])
        ds = _make_ds(pixels, signed=True, RescaleSlope=1.0, RescaleIntercept=-1024.0)
        buf = sample_buffer_from_dataset(ds)
        assert (buf.width, buf.height) == (2, 2)
        assert buf.bits_allocated == 16
        assert buf.bits_stored == 12
        assert buf.is_signed
        assert buf.rescale_intercept == -1024.0
        np.testing.assert_array_equal(buf.samples(), pixels.ravel())

    def test_missing_rescale_uses_defaults(self):
        buf = sample_buffer_from_dataset(_make_ds(np.zeros((2, 3))))
        assert buf.rescale_slope == 1.0
        assert buf.rescale_intercept == 0.0
        assert (buf.width, buf.height) == (3, 2)

    def test_only_first_frame_is_taken(self):
        ds = _make_ds(np.zeros((2, 2)))
        ds.PixelData = np.arange(8, dtype=np.uint16).tobytes()
        buf = sample_buffer_from_dataset(ds)
        np.testing.assert_array_equal(buf.samples(), [0, 1, 2, 3])

    def test_no_pixel_data(self):
        ds = Dataset()
        ds.Rows = 2
        with pytest.raises(DecodeFailure):
            sample_buffer_from_dataset(ds)

    def test_colour_image_rejected(self):
        ds = _make_ds(np.zeros((2, 2)), SamplesPerPixel=3)
        with pytest.raises(DecodeFailure, match="single-channel"):
            sample_buffer_from_dataset(ds)

    def test_compressed_transfer_syntax_rejected(self):
        ds = _make_ds(np.zeros((2, 2)))
        ds.file_meta.TransferSyntaxUID = JPEGBaseline8Bit
        with pytest.raises(DecodeFailure, match="Compressed"):
            sample_buffer_from_dataset(ds)


class TestWindowLevelFromDataset:
    def test_header_window(self):
        ds = _make_ds(np.zeros((2, 2)), WindowCenter=40.0, WindowWidth=400.0)
        assert window_level_from_dataset(ds) == WindowLevel(400.0, 40.0)

    def test_multi_valued_header_takes_first(self):
        ds = _make_ds(np.zeros((2, 2)), WindowCenter=[40.0, 300.0], WindowWidth=[80.0, 1500.0])
        assert window_level_from_dataset(ds) == WindowLevel(80.0, 40.0)

    def test_missing_header_uses_default(self):
        assert window_level_from_dataset(_make_ds(np.zeros((2, 2)))) == WindowLevel(400.0, 40.0)

    def test_zero_width_header_uses_default(self):
        ds = _make_ds(np.zeros((2, 2)), WindowCenter=40.0, WindowWidth=0.0)
        assert window_level_from_dataset(ds) == WindowLevel(400.0, 40.0)


class TestResolveWindow:
    def test_explicit_window_wins(self):
        ds = _make_ds(np.zeros((2, 2)), WindowCenter=40.0, WindowWidth=80.0)
        window = WindowLevel(10.0, 5.0)
        assert resolve_window(ds, preset="ct_lung", window=window) is window

    def test_preset_beats_header(self):
        ds = _make_ds(np.zeros((2, 2)), WindowCenter=40.0, WindowWidth=80.0)
        assert resolve_window(ds, preset="ct_lung") == WindowLevel.CT_LUNG

    def test_unknown_preset_raises(self):
        with pytest.raises(ValueError, match="Unknown preset"):
            resolve_window(_make_ds(np.zeros((2, 2))), preset="invalid_preset")


class TestDicomFileSource:
    def test_round_trip_through_disk(self, tmp_path):
        path = str(tmp_path / "slice.dcm")
        ds = _make_ds(np.array([[1, 2], [3, 4]]), WindowCenter=50.0, WindowWidth=100.0)
        ds.save_as(path)

        source = DicomFileSource()
        buf = source.load_sample_buffer(path)
        np.testing.assert_array_equal(buf.samples(), [1, 2, 3, 4])
        assert source.default_window_level(path) == WindowLevel(100.0, 50.0)
        assert source.is_valid_image(path)

    def test_garbage_file_raises_decode_failure(self, tmp_path):
        path = tmp_path / "junk.dcm"
        path.write_bytes(b"\x00\x01 definitely not DICOM")
        with pytest.raises(DecodeFailure):
            DicomFileSource().load_sample_buffer(str(path))
        assert not DicomFileSource().is_valid_image(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(DecodeFailure):
            DicomFileSource().load_sample_buffer(str(tmp_path / "nope.dcm"))
        assert not DicomFileSource().is_valid_image(str(tmp_path / "nope.dcm"))
