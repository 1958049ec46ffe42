"""
Job Workspace - per-job temporary directory with guaranteed removal.
"""

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from typing import Iterator, Optional

from app.config import get_settings

logger = logging.getLogger(__name__)


def frame_filename(index: int) -> str:
    """Zero-based slide index -> 'slide-001.png'."""
    return f"slide-{index + 1:03d}.png"


@contextmanager
def job_workspace(
    job_id: str,
    root: Optional[str] = None,
) -> Iterator[str]:
    """
    Create a uniquely named working directory and remove it on exit.

    Removal runs on every exit path (normal return, exception, cancellation).
    Cleanup failures are logged, never raised.

    Usage:
        with job_workspace(job_id) as work_dir:
            ...
    """
    root = root or get_settings().temp_directory
    os.makedirs(root, exist_ok=True)

    work_dir = tempfile.mkdtemp(dir=root, prefix=f"video-render-{job_id}-")
    logger.info(f"[{job_id}] Working directory: {work_dir}")

    try:
        yield work_dir
    finally:
        try:
            shutil.rmtree(work_dir)
            logger.debug(f"[{job_id}] Cleaned up working directory")
        except FileNotFoundError:
            pass
        except Exception as e:
            logger.warning(f"[{job_id}] Failed to cleanup {work_dir}: {e}")
