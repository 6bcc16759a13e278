"""Tests for dicom_pixels/windowing.py."""

from unittest.mock import patch

import numpy as np
import pytest

from dicom_pixels.buffer_pool import BufferPool
from dicom_pixels.errors import InvalidBufferError, InvalidWindowError
from dicom_pixels.models import SampleBuffer, WindowLevel
from dicom_pixels.windowing import apply_window_level, to_hounsfield, window_to_bytes


def _buffer(values, width, height, bits=16, signed=False, slope=1.0, intercept=0.0) -> SampleBuffer:
    dtype = "u1" if bits == 8 else ("<i2" if signed else "<u2")
    raw = np.asarray(values).astype(dtype)
    return SampleBuffer(width, height, bits, bits, signed, slope, intercept, raw.tobytes())


class TestHounsfield:
    def test_known_conversion(self):
        pixels = np.array([[0, 100], [200, 1000]], dtype=np.uint16)
        hu = to_hounsfield(pixels, slope=1.0, intercept=-1024.0)
        np.testing.assert_array_almost_equal(hu, pixels.astype(np.float64) - 1024.0)

    def test_default_slope_intercept(self):
        pixels = np.array([5, 10], dtype=np.int16)
        np.testing.assert_array_equal(to_hounsfield(pixels), [5.0, 10.0])


class TestWindowToBytes:
    def test_boundaries_clamp(self):
        window = WindowLevel(width=80.0, center=40.0)
        values = np.array([-2000.0, 0.0, 80.0, 5000.0])
        np.testing.assert_array_equal(window_to_bytes(values, window), [0, 0, 255, 255])

    def test_center_maps_to_middle(self):
        window = WindowLevel(width=80.0, center=40.0)
        # (40 - 0) * 255 / 80 = 127.5 -> truncated to 127
        assert window_to_bytes(np.array([40.0]), window)[0] == 127

    def test_truncates_instead_of_rounding(self):
        window = WindowLevel(width=256.0, center=128.0)
        assert window_to_bytes(np.array([64.0]), window)[0] == 63

    def test_monotonic_in_physical_value(self):
        values = np.linspace(-3000.0, 3000.0, 5001)
        for window in (WindowLevel(400.0, 40.0), WindowLevel(1.0, 0.0), WindowLevel(1500.0, -600.0)):
            out = window_to_bytes(values, window)
            assert np.all(np.diff(out.astype(np.int32)) >= 0)

    def test_non_positive_width_rejected(self):
        with pytest.raises(InvalidWindowError):
            window_to_bytes(np.array([0.0]), WindowLevel(width=0.0, center=40.0))


class TestApplyWindowLevel:
    def test_eight_bit_example(self):
        buf = _buffer([0, 128, 255, 64], 2, 2, bits=8)
        out = apply_window_level(buf, WindowLevel(width=256.0, center=128.0))
        np.testing.assert_array_equal(out, [0, 127, 254, 63])
        assert out.dtype == np.uint8

    def test_signed_sixteen_bit(self):
        buf = _buffer([-1024, 0, 40, 1000], 4, 1, signed=True)
        out = apply_window_level(buf, WindowLevel(width=80.0, center=40.0))
        np.testing.assert_array_equal(out, [0, 0, 127, 255])

    def test_rescale_applied_before_window(self):
        # stored 1064 * 1 - 1024 = 40 HU, the window centre
        buf = _buffer([0, 1064, 4095], 3, 1, intercept=-1024.0)
        out = apply_window_level(buf, WindowLevel(width=80.0, center=40.0))
        np.testing.assert_array_equal(out, [0, 127, 255])

    def test_slope_scales_values(self):
        buf = _buffer([10], 1, 1, bits=8, slope=2.0)
        out = apply_window_level(buf, WindowLevel(width=255.0, center=127.5))
        assert out[0] == 20

    def test_output_length_matches_pixel_count(self):
        buf = _buffer(np.arange(35), 7, 5)
        assert apply_window_level(buf, WindowLevel.DEFAULT).shape == (35,)

    def test_short_buffer_rejected(self):
        buf = SampleBuffer(4, 4, 16, 12, False, 1.0, 0.0, b"\0" * 10)
        with pytest.raises(InvalidBufferError):
            apply_window_level(buf, WindowLevel.DEFAULT)

    def test_unsupported_bit_depth_rejected(self):
        buf = SampleBuffer(1, 1, 32, 32, False, 1.0, 0.0, b"\0" * 4)
        with pytest.raises(InvalidBufferError):
            apply_window_level(buf, WindowLevel.DEFAULT)

    def test_invalid_window_rejected(self):
        buf = _buffer([0], 1, 1)
        with pytest.raises(InvalidWindowError):
            apply_window_level(buf, WindowLevel(width=-5.0, center=0.0))

    def test_empty_frame_gives_empty_output(self):
        assert apply_window_level(SampleBuffer.empty(), WindowLevel.DEFAULT).shape == (0,)


class TestExecutionPaths:
    @pytest.fixture
    def frame(self):
        rng = np.random.default_rng(7)
        values = rng.integers(-2000, 3000, size=48 * 32)
        return _buffer(values, 48, 32, signed=True, slope=1.5, intercept=-20.0)

    @pytest.mark.parametrize("chunks", [2, 3, 7, 48 * 32])
    def test_chunked_matches_sequential(self, frame, chunks):
        window = WindowLevel(400.0, 40.0)
        sequential = apply_window_level(frame, window, chunks=1)
        chunked = apply_window_level(frame, window, chunks=chunks, workers=4)
        np.testing.assert_array_equal(chunked, sequential)

    def test_threshold_switches_to_parallel_path(self, frame):
        window = WindowLevel(1500.0, -600.0)
        expected = apply_window_level(frame, window, chunks=1)
        out = apply_window_level(frame, window, threshold=16, workers=3)
        np.testing.assert_array_equal(out, expected)

    def test_full_size_frame(self):
        values = np.arange(512 * 512) % 4096
        frame = _buffer(values, 512, 512, intercept=-1024.0)
        window = WindowLevel.CT_BONE
        np.testing.assert_array_equal(
            apply_window_level(frame, window),
            apply_window_level(frame, window, chunks=1),
        )


class TestScratchBuffers:
    def test_buffer_returned_to_pool(self):
        pool = BufferPool()
        apply_window_level(_buffer([1, 2, 3, 4], 2, 2), WindowLevel.DEFAULT, pool=pool)
        assert pool.pooled_count() == 1

    def test_buffer_returned_when_worker_fails(self):
        pool = BufferPool()
        with patch("dicom_pixels.windowing.window_to_bytes", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError, match="boom"):
                apply_window_level(_buffer([1, 2, 3, 4], 2, 2), WindowLevel.DEFAULT, chunks=2, pool=pool)
        assert pool.pooled_count() == 1

    def test_result_does_not_alias_pool_memory(self):
        pool = BufferPool()
        buf = _buffer([0, 4095], 2, 1)
        first = apply_window_level(buf, WindowLevel(100.0, 50.0), pool=pool)
        apply_window_level(_buffer([4095, 0], 2, 1), WindowLevel(100.0, 50.0), pool=pool)
        np.testing.assert_array_equal(first, [0, 255])
