"""
run_full_pipeline.py - End-to-end pipeline demonstration.

Generates a synthetic CT series (if data/raw is empty), renders every
slice to PNG, builds the thumbnail strip, and saves report figures to
reports/.

Usage
-----
    python scripts/run_full_pipeline.py

To use your own data instead of generated samples, copy your DICOM
files into data/raw/ first:

    cp path/to/series/*.dcm data/raw/
    python scripts/run_full_pipeline.py
"""

import logging
import os
import sys

# Ensure repo root is on sys.path regardless of launch directory
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

import matplotlib
matplotlib.use("Agg")  # non-interactive backend, works without a display

from dicom_pixels.config import CONFIG  # noqa: E402
from dicom_pixels.dicom_io import DicomFileSource  # noqa: E402
from dicom_pixels.histogram import display_histogram, sample_histogram  # noqa: E402
from dicom_pixels.pipeline import export_folder  # noqa: E402
from dicom_pixels.thumbnails import generate_thumbnails  # noqa: E402
from dicom_pixels.visualization import (  # noqa: E402
    plot_display_buffer,
    plot_histogram,
    plot_preset_comparison,
    plot_thumbnail_strip,
)
from dicom_pixels.windowing import apply_window_level  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)-8s %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
INPUT_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["input_folder"])
OUTPUT_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["output_folder"])
REPORTS_FOLDER = os.path.join(_REPO_ROOT, CONFIG["paths"]["reports_folder"])


def _ensure_sample_data() -> None:
    """Generate synthetic data if data/raw/ has no .dcm files."""
    os.makedirs(INPUT_FOLDER, exist_ok=True)
    dcm_files = [f for f in os.listdir(INPUT_FOLDER) if f.endswith(".dcm")]
    if dcm_files:
        logger.info("Found %d DICOM file(s) in %s — skipping generation.", len(dcm_files), INPUT_FOLDER)
        return

    logger.info("No DICOM files in %s — generating samples…", INPUT_FOLDER)
    from scripts.generate_sample_data import generate  # noqa: E402  lazy import
    generate(INPUT_FOLDER)


def _save(fig, name: str) -> None:
    path = os.path.join(REPORTS_FOLDER, name)
    fig.savefig(path, dpi=100, bbox_inches="tight")
    print(f"  Saved: {path}")


def main() -> None:
    os.makedirs(REPORTS_FOLDER, exist_ok=True)

    # ── Step 1: Ensure sample data exists ──────────────────────────────────
    print("=" * 60)
    print("STEP 1 — Prepare input data")
    print("=" * 60)
    _ensure_sample_data()
    dcm_files = sorted(f for f in os.listdir(INPUT_FOLDER) if f.endswith(".dcm"))
    paths = [os.path.join(INPUT_FOLDER, f) for f in dcm_files]
    print(f"  Input folder : {INPUT_FOLDER}")
    print(f"  Files found  : {len(dcm_files)}")
    print()

    # ── Step 2: Render every slice to PNG ──────────────────────────────────
    print("=" * 60)
    print("STEP 2 — Render slices (header window → PNG)")
    print("=" * 60)
    report = export_folder(input_folder=INPUT_FOLDER, output_folder=OUTPUT_FOLDER)
    print(report.summary())
    print()

    # ── Step 3: Thumbnail strip ────────────────────────────────────────────
    print("=" * 60)
    print("STEP 3 — Thumbnails")
    print("=" * 60)
    thumbnails = generate_thumbnails(
        paths,
        on_progress=lambda done: logger.debug("thumbnails: %d/%d", done, len(paths)),
    )
    placeholders = [t.display_number for t in thumbnails if t.is_placeholder]
    print(f"  Thumbnails   : {len(thumbnails)}")
    print(f"  Placeholders : {placeholders or 'none'}")
    print()

    # ── Step 4: Save visualisations ────────────────────────────────────────
    print("=" * 60)
    print("STEP 4 — Saving visualisations to reports/")
    print("=" * 60)
    source = DicomFileSource()
    first = next(p for p in paths if source.is_valid_image(p))
    buffer = source.load_sample_buffer(first)
    window = source.default_window_level(first)
    display = apply_window_level(buffer, window)

    _save(plot_display_buffer(display, buffer.width, buffer.height,
                              title=f"{os.path.basename(first)} (W={window.width:g}, C={window.center:g})"),
          "display.png")
    _save(plot_histogram(display_histogram(display), title="Display histogram"), "display_histogram.png")
    _save(plot_histogram(sample_histogram(buffer), title="Native sample histogram"), "native_histogram.png")
    _save(plot_preset_comparison(buffer), "preset_comparison.png")
    _save(plot_thumbnail_strip(thumbnails), "thumbnails.png")
    print()

    # ── Done ───────────────────────────────────────────────────────────────
    print("=" * 60)
    print("ALL PIPELINE STAGES COMPLETED")
    print("=" * 60)
    print(f"  Rendered PNGs  → {OUTPUT_FOLDER}")
    print(f"  Visualisations → {REPORTS_FOLDER}")
    print()


if __name__ == "__main__":
    main()
