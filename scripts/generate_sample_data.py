"""
generate_sample_data.py - Create synthetic CT DICOM files for the demo.

Writes a short series of small DICOM slices to data/raw/ so the render
pipeline and thumbnail strip can run without real patient data.  One
file is deliberately truncated so the placeholder path is visible.

Usage
-----
    python scripts/generate_sample_data.py
"""

import os
import sys

import numpy as np
import pydicom
from pydicom.dataset import FileDataset
from pydicom.uid import ExplicitVRLittleEndian

# Make sure repo root is on the path when run as a script
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

from dicom_pixels.config import CONFIG  # noqa: E402  import after path fix

OUTPUT_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["input_folder"])

SLICE_COUNT = 12


def _phantom(size: int, slice_index: int, seed: int) -> np.ndarray:
    """
    Head-phantom-like slice in stored values (HU + 1024).

    Air outside, a bone ring, brain tissue inside, and a dense lesion
    whose radius changes with the slice index.
    """
    rng = np.random.default_rng(seed)
    y, x = np.mgrid[0:size, 0:size]
    r = np.hypot(x - size / 2, y - size / 2) / (size / 2)

    hu = np.full((size, size), -1000.0)
    hu[r < 0.85] = 700.0                       # skull
    hu[r < 0.75] = 35.0                        # brain
    lesion = np.hypot(x - size * 0.6, y - size * 0.4) < size * (0.04 + 0.01 * slice_index)
    hu[lesion & (r < 0.75)] = 80.0
    hu += rng.normal(0.0, 8.0, size=hu.shape)

    return (hu + 1024.0).clip(0, 4095).astype(np.uint16)


def _make_dicom(path: str, pixels: np.ndarray, slice_index: int) -> None:
    """Write one synthetic CT slice with RescaleIntercept=-1024."""
    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = pydicom.uid.UID("1.2.840.10008.5.1.4.1.1.2")
    file_meta.MediaStorageSOPInstanceUID = pydicom.uid.generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(path, {}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.PatientName = "Synthetic^Phantom"
    ds.PatientID = "PHANTOM01"
    ds.Modality = "CT"
    ds.InstanceNumber = slice_index + 1

    ds.RescaleSlope = 1.0
    ds.RescaleIntercept = -1024.0
    ds.WindowCenter = 40.0
    ds.WindowWidth = 80.0

    ds.Rows, ds.Columns = pixels.shape
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.PixelRepresentation = 0
    ds.BitsAllocated = 16
    ds.BitsStored = 12
    ds.HighBit = 11
    ds.PixelData = pixels.tobytes()

    ds.save_as(path)


def generate(output_folder: str = OUTPUT_FOLDER, size: int = 256) -> None:
    """Generate the synthetic series into *output_folder*."""
    os.makedirs(output_folder, exist_ok=True)

    print(f"Writing {SLICE_COUNT} synthetic DICOM slices to: {output_folder}")
    print("-" * 60)

    for i in range(SLICE_COUNT):
        path = os.path.join(output_folder, f"slice_{i + 1:03d}.dcm")
        _make_dicom(path, _phantom(size, i, seed=42 + i), i)
        print(f"  [{i + 1:02d}/{SLICE_COUNT}] {os.path.basename(path)}")

    broken = os.path.join(output_folder, f"slice_{SLICE_COUNT + 1:03d}.dcm")
    with open(broken, "wb") as f:
        f.write(b"\0" * 64)
    print(f"  [--] {os.path.basename(broken)}  (truncated on purpose)")

    print("-" * 60)
    print("Done.  Run the pipeline with:")
    print("  python scripts/run_full_pipeline.py")


if __name__ == "__main__":
    generate()
