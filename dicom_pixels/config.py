"""
config.py - Configuration loader for the DICOM pixel pipeline.

Loads settings from config.yaml with sensible defaults so that no
path, threshold or tuning parameter is hard-coded inside a module.
"""

import os
from typing import Any

import yaml

# Resolve the config file relative to the repo root, not the CWD,
# so imports work regardless of where the script is launched from.
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_CONFIG_PATH = os.path.join(_REPO_ROOT, "config.yaml")

_DEFAULTS: dict[str, Any] = {
    "paths": {
        "input_folder": "data/raw",
        "output_folder": "data/rendered",
        "reports_folder": "reports",
    },
    "processing": {
        # 512 x 512 pixels; smaller frames are processed on the calling thread
        "parallel_threshold": 262144,
        "max_workers": None,
    },
    "thumbnails": {
        "size": 64,
    },
    "window": {
        "default_width": 400.0,
        "default_center": 40.0,
    },
    "png": {
        "compression_level": 6,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base*, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str = _CONFIG_PATH) -> dict[str, Any]:
    """
    Load the YAML configuration file and merge it with built-in defaults.

    Parameters
    ----------
    config_path : str
        Path to config.yaml. Defaults to the repo-root config.yaml.

    Returns
    -------
    dict
        Merged configuration dictionary.
    """
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            user_config = yaml.safe_load(f) or {}
    else:
        user_config = {}

    return _deep_merge(_DEFAULTS, user_config)


def worker_count(configured: Any = None) -> int:
    """Number of parallel workers: *configured*, else the CPU count."""
    if configured is None:
        configured = CONFIG["processing"]["max_workers"]
    if configured is None:
        return os.cpu_count() or 1
    return max(1, int(configured))


# Module-level singleton so callers can just do `from dicom_pixels.config import CONFIG`
CONFIG = load_config()
