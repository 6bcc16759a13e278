"""
png.py - Minimal 8-bit grayscale PNG writer.

Layout produced by ``encode_grayscale``:

    89 50 4E 47 0D 0A 1A 0A                       signature
    IHDR  width, height, depth 8, colour type 0, compression 0,
          filter 0, interlace 0
    IDAT  78 9C | raw DEFLATE of the filtered scanlines | Adler-32
    IEND

Every chunk is ``length (4, BE) | type (4) | data | CRC-32 (4, BE)`` with
the CRC taken over type + data.  Each scanline is prefixed with filter
type 0 (None).  The checksums are computed here rather than delegated so
the chunk framing is explicit; zlib is used only for the DEFLATE blocks.

References
----------
- PNG Specification, 2nd edition (W3C): https://www.w3.org/TR/png/
- RFC 1950 (zlib) and RFC 1951 (DEFLATE)
"""

import base64
import logging
import struct
import zlib
from typing import Optional, Union

import numpy as np

from dicom_pixels.config import CONFIG
from dicom_pixels.errors import EncodingError

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
ZLIB_HEADER = b"\x78\x9c"

_ADLER_MOD = 65521
# Keeps the weighted byte sum of one block well inside int64
_ADLER_BLOCK = 1 << 20


def _make_crc_table() -> tuple[int, ...]:
    table = []
    for n in range(256):
        c = n
        for _ in range(8):
            if c & 1:
                c = 0xEDB88320 ^ (c >> 1)
            else:
                c >>= 1
        table.append(c)
    return tuple(table)


CRC_TABLE = _make_crc_table()


def crc32(data: bytes, crc: int = 0) -> int:
    """CRC-32 with the PNG/zlib reflected polynomial 0xEDB88320."""
    table = CRC_TABLE
    c = crc ^ 0xFFFFFFFF
    for byte in data:
        c = table[(c ^ byte) & 0xFF] ^ (c >> 8)
    return c ^ 0xFFFFFFFF


def adler32(data: bytes) -> int:
    """Adler-32 of *data*, computed blockwise with numpy."""
    values = np.frombuffer(bytes(data), dtype=np.uint8)
    a, b = 1, 0
    for start in range(0, values.shape[0], _ADLER_BLOCK):
        block = values[start:start + _ADLER_BLOCK].astype(np.int64)
        n = block.shape[0]
        weights = np.arange(n, 0, -1, dtype=np.int64)
        b = (b + n * a + int(np.dot(weights, block))) % _ADLER_MOD
        a = (a + int(block.sum())) % _ADLER_MOD
    return (b << 16) | a


def _chunk(chunk_type: bytes, data: bytes) -> bytes:
    return (
        struct.pack(">I", len(data))
        + chunk_type
        + data
        + struct.pack(">I", crc32(chunk_type + data))
    )


def _filtered_scanlines(pixels: np.ndarray, width: int, height: int) -> bytes:
    rows = np.zeros((height, width + 1), dtype=np.uint8)
    rows[:, 1:] = pixels.reshape(height, width)
    return rows.tobytes()


def _zlib_stream(raw: bytes, level: int) -> bytes:
    compressor = zlib.compressobj(level, zlib.DEFLATED, -15)
    payload = compressor.compress(raw) + compressor.flush()
    return ZLIB_HEADER + payload + struct.pack(">I", adler32(raw))


def encode_grayscale(
    pixels: Union[np.ndarray, bytes, bytearray],
    width: int,
    height: int,
    compression_level: Optional[int] = None,
) -> bytes:
    """
    Encode a display buffer as an 8-bit grayscale PNG.

    Parameters
    ----------
    pixels : np.ndarray or bytes
        ``width * height`` bytes, row-major.
    width, height : int
        Image dimensions; both must be positive.
    compression_level : int, optional
        zlib level 0-9.  Defaults to ``png.compression_level``.

    Returns
    -------
    bytes
        A complete PNG file.

    Raises
    ------
    EncodingError
        If the dimensions are not positive or do not match the pixel count.
    """
    if width <= 0 or height <= 0:
        raise EncodingError(f"Image dimensions must be positive, got {width}x{height}.")
    if pixels is None:
        raise EncodingError("No pixel data to encode.")
    if isinstance(pixels, (bytes, bytearray, memoryview)):
        values = np.frombuffer(pixels, dtype=np.uint8)
    else:
        values = np.asarray(pixels).ravel()
        if values.dtype != np.uint8:
            raise EncodingError(f"Expected 8-bit pixels, got dtype {values.dtype}.")
    if values.shape[0] != width * height:
        raise EncodingError(
            f"Pixel buffer holds {values.shape[0]} bytes, expected {width * height} "
            f"for {width}x{height}."
        )

    if compression_level is None:
        compression_level = CONFIG["png"]["compression_level"]

    header = struct.pack(">IIBBBBB", width, height, 8, 0, 0, 0, 0)
    idat = _zlib_stream(_filtered_scanlines(values, width, height), compression_level)

    png = PNG_SIGNATURE + _chunk(b"IHDR", header) + _chunk(b"IDAT", idat) + _chunk(b"IEND", b"")
    logger.debug("Encoded %dx%d grayscale PNG, %d bytes.", width, height, len(png))
    return png


def to_data_uri(png_bytes: bytes) -> str:
    """Wrap encoded PNG bytes in a ``data:image/png;base64,...`` URI."""
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


def write_png(path: str, pixels, width: int, height: int) -> str:
    """Encode *pixels* and write them to *path*; returns *path*."""
    png = encode_grayscale(pixels, width, height)
    with open(path, "wb") as f:
        f.write(png)
    return path
