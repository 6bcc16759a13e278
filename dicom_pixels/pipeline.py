"""
pipeline.py - Batch DICOM-to-PNG rendering orchestrator.

Reads every DICOM file from an input folder, windows it (named preset or
the file's own header window), encodes the display buffer as a grayscale
PNG and writes it to an output folder.  One unreadable file is recorded
as a failure and the run moves on to the next.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Optional

from dicom_pixels.config import CONFIG
from dicom_pixels.dicom_io import read_dataset, resolve_window, sample_buffer_from_dataset
from dicom_pixels.png import write_png
from dicom_pixels.windowing import apply_window_level

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class ProcessingResult:
    """Summary of a single file's processing outcome."""
    filename: str
    success: bool
    output_path: Optional[str] = None
    error: Optional[str] = None
    duration_s: float = 0.0


@dataclass
class PipelineReport:
    """Aggregate report produced at the end of a batch run."""
    total_files: int = 0
    processed: int = 0
    failed: int = 0
    elapsed_s: float = 0.0
    results: list[ProcessingResult] = field(default_factory=list)

    def summary(self) -> str:
        lines = [
            "=" * 50,
            "RENDER SUMMARY",
            "=" * 50,
            f"Total files found    : {self.total_files}",
            f"Successfully rendered: {self.processed}",
            f"Failed               : {self.failed}",
            f"Total time           : {self.elapsed_s:.2f}s",
        ]
        if self.failed > 0:
            lines.append("\nFailed files:")
            for r in self.results:
                if not r.success:
                    lines.append(f"  - {r.filename}: {r.error}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Core pipeline
# ---------------------------------------------------------------------------

def render_file(path: str, output_path: str, preset: Optional[str] = None) -> str:
    """Window one DICOM file and write it as a PNG; returns *output_path*."""
    ds = read_dataset(path)
    buffer = sample_buffer_from_dataset(ds)
    window = resolve_window(ds, preset=preset)
    display = apply_window_level(buffer, window)
    return write_png(output_path, display, buffer.width, buffer.height)


def export_folder(
    input_folder: Optional[str] = None,
    output_folder: Optional[str] = None,
    preset: Optional[str] = None,
    max_files: Optional[int] = None,
) -> PipelineReport:
    """
    Render all DICOM files in *input_folder* to PNGs in *output_folder*.

    Parameters
    ----------
    input_folder : str, optional
        Source directory.  Defaults to config value.
    output_folder : str, optional
        Destination directory.  Defaults to config value.
    preset : str, optional
        Window preset name.  None = use each file's header window.
    max_files : int, optional
        Cap on the number of files to process.  None = process all.

    Returns
    -------
    PipelineReport
        Summary of the batch run.
    """
    input_folder = input_folder or CONFIG["paths"]["input_folder"]
    output_folder = output_folder or CONFIG["paths"]["output_folder"]

    report = PipelineReport()
    batch_start = time.time()

    if not os.path.isdir(input_folder):
        logger.error("Input folder not found: %s", input_folder)
        return report

    os.makedirs(output_folder, exist_ok=True)

    files = sorted(
        f for f in os.listdir(input_folder)
        if not f.startswith(".") and os.path.isfile(os.path.join(input_folder, f))
    )

    if max_files is not None:
        files = files[:max_files]

    report.total_files = len(files)
    logger.info("Starting render: %d files to process.", report.total_files)

    for filename in files:
        file_start = time.time()
        result = ProcessingResult(filename=filename, success=False)

        try:
            stem = os.path.splitext(filename)[0]
            output_path = os.path.join(output_folder, f"{stem}.png")
            result.output_path = render_file(
                os.path.join(input_folder, filename), output_path, preset=preset,
            )
            result.success = True
            report.processed += 1

        except Exception as exc:
            result.error = str(exc)
            report.failed += 1
            logger.exception("Error rendering %s: %s", filename, exc)

        result.duration_s = time.time() - file_start
        report.results.append(result)

    report.elapsed_s = time.time() - batch_start
    logger.info(report.summary())
    return report
