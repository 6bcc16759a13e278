"""
errors.py - Exception taxonomy for the pixel pipeline.

Precondition violations are raised before any indexed access into a
sample buffer.  Invalid-input errors also derive from ValueError so
callers that only know about built-in exceptions still catch them.
"""


class PixelPipelineError(Exception):
    """Base class for every error raised by this package."""


class InvalidBufferError(PixelPipelineError, ValueError):
    """Declared dimensions or bit depth do not match the sample bytes."""


class InvalidWindowError(PixelPipelineError, ValueError):
    """Window width is not strictly positive."""


class EncodingError(PixelPipelineError, ValueError):
    """Raster encoder preconditions were violated."""


class DecodeFailure(PixelPipelineError):
    """A DICOM file could not be turned into a SampleBuffer."""


class BatchCancelledError(PixelPipelineError):
    """A thumbnail batch was cancelled between items."""


InvalidBuffer = InvalidBufferError
InvalidWindow = InvalidWindowError
