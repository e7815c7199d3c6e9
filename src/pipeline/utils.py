"""
Utility functions for the GFS layer pipeline

Common helper functions used across the pipeline stages.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Union

logger = logging.getLogger(__name__)


def ensure_directory(directory: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        directory: Path to directory

    Returns:
        Path: The directory path
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def temp_path(directory: Union[str, Path], suffix: str = "") -> Path:
    """Create an empty temp file in `directory` and return its path."""
    ensure_directory(directory)
    fd, name = tempfile.mkstemp(dir=str(directory), suffix=suffix)
    os.close(fd)
    return Path(name)


def write_atomic(path: Union[str, Path], text: str) -> None:
    """Write text next to `path` and move it into place in one step."""
    path = Path(path)
    ensure_directory(path.parent)
    tmp = temp_path(path.parent, suffix=".tmp")
    try:
        tmp.write_text(text)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        str: Formatted size (e.g., "12.3 MB")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 ** 2:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 ** 3:
        return f"{size_bytes / 1024 ** 2:.1f} MB"
    else:
        return f"{size_bytes / 1024 ** 3:.1f} GB"


def init_results_dict() -> Dict[str, int]:
    """
    Initialize a results dictionary with standard keys.

    Returns:
        dict: Results dictionary with success, failed, skipped set to 0
    """
    return {'success': 0, 'failed': 0, 'skipped': 0}


def log_summary(title: str, results: Dict[str, int], separator_width: int = 60) -> None:
    """
    Log a formatted summary of results.

    Args:
        title: Title for the summary
        results: Dictionary with 'success', 'failed', 'skipped' keys
        separator_width: Width of separator line
    """
    logger.info("=" * separator_width)
    logger.info(f"{title}:")
    logger.info(f"  Success: {results.get('success', 0)}")
    logger.info(f"  Failed: {results.get('failed', 0)}")
    logger.info(f"  Skipped: {results.get('skipped', 0)}")
    if 'total' in results:
        logger.info(f"  Total: {results['total']}")
    logger.info("=" * separator_width)
