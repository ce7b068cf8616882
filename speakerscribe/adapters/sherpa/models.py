"""Model file verification shared by the sherpa adapters."""

import logging
import os

logger = logging.getLogger(__name__)


def verify_model_files(group: str, paths: list[str]) -> None:
    """Log each model file with its size; raise FileNotFoundError if any is missing."""
    missing = []
    for path in paths:
        if os.path.exists(path):
            size_mb = os.path.getsize(path) / (1024 * 1024)
            logger.info(f"  {group}: {os.path.basename(path)} ({size_mb:.1f} MB)")
        else:
            missing.append(path)
            logger.error(f"  {group}: {path} MISSING")

    if missing:
        raise FileNotFoundError(f"Missing {group} model files: {missing}")
