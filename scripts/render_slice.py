"""
render_slice.py - Window a single DICOM slice and save it as a PNG.

Prints the display histogram statistics so the effect of a preset is
visible without opening the image.

Usage
-----
    python scripts/render_slice.py path/to/slice.dcm                 # header window
    python scripts/render_slice.py path/to/slice.dcm ct_lung         # named preset
    python scripts/render_slice.py path/to/slice.dcm ct_bone out.png # custom output
"""

import logging
import os
import sys

# Ensure repo root is on sys.path
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

from dicom_pixels.dicom_io import read_dataset, resolve_window, sample_buffer_from_dataset  # noqa: E402
from dicom_pixels.histogram import display_histogram  # noqa: E402
from dicom_pixels.models import WINDOW_PRESETS  # noqa: E402
from dicom_pixels.png import write_png  # noqa: E402
from dicom_pixels.windowing import apply_window_level  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(levelname)-8s %(message)s")
logger = logging.getLogger(__name__)


def render(path: str, preset: str = None, output_path: str = None) -> str:
    """Render *path* and print its histogram summary; returns the PNG path."""
    ds = read_dataset(path)
    buffer = sample_buffer_from_dataset(ds)
    window = resolve_window(ds, preset=preset)
    display = apply_window_level(buffer, window)
    hist = display_histogram(display)

    output_path = output_path or os.path.splitext(path)[0] + ".png"
    write_png(output_path, display, buffer.width, buffer.height)

    print("=" * 50)
    print(f"  File     : {path}")
    print(f"  Size     : {buffer.width}x{buffer.height}, {buffer.bits_allocated}-bit"
          f"{' signed' if buffer.is_signed else ''}")
    print(f"  Window   : W={window.width:g} C={window.center:g}"
          f"{f' ({preset})' if preset else ' (header)'}")
    print(f"  Range    : {hist.min_value}..{hist.max_value}")
    print(f"  Peak     : bin {hist.peak_index} ({hist.peak_value} px)")
    print(f"  Saved    : {output_path}")
    print("=" * 50)
    return output_path


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        print(f"Presets: {', '.join(WINDOW_PRESETS)}")
        sys.exit(1)

    path = sys.argv[1]
    preset = sys.argv[2] if len(sys.argv) > 2 else None
    output_path = sys.argv[3] if len(sys.argv) > 3 else None
    render(path, preset, output_path)


if __name__ == "__main__":
    main()
