"""DICOM pixel pipeline: windowing, histograms, thumbnails and PNG encoding."""
