"""File cleanup functionality for tube-fetcher."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Iterable

from ..config import get_download_dir, get_temp_dir

logger = logging.getLogger(__name__)


def remove_files(paths: Iterable[Path]) -> list[dict[str, str]]:
    """
    Best-effort deletion of per-request temporary files.

    Missing files are skipped. A file that cannot be deleted is logged and
    reported, never raised.

    Returns:
        List of {"file", "error"} dicts for deletions that failed
    """
    errors = []
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete temp file {path}: {e}")
            errors.append({"file": str(path), "error": str(e)})
    return errors


def get_file_age_days(path: Path) -> float | None:
    """
    Get file age in days based on its mtime.

    Returns:
        Age in days, or None if the file is inaccessible
    """
    try:
        return (time.time() - path.stat().st_mtime) / 86400.0
    except OSError as e:
        logger.warning(f"Failed to get age for {path}: {e}")
        return None


def _sweep_dir(directory: Path, retention_days: float) -> dict[str, Any]:
    deleted_count = 0
    freed_bytes = 0
    errors = []

    if not directory.exists():
        logger.info(f"Directory does not exist: {directory}")
        return {"deleted_count": 0, "freed_bytes": 0, "errors": []}

    for path in directory.iterdir():
        if not path.is_file():
            continue

        age_days = get_file_age_days(path)
        if age_days is None or age_days <= retention_days:
            continue

        try:
            size = path.stat().st_size
            path.unlink()
        except OSError as e:
            logger.warning(f"Failed to delete {path}: {e}")
            errors.append({"file": str(path), "error": str(e)})
            continue

        logger.info(f"Deleted {path.name}: age {age_days:.2f} days")
        deleted_count += 1
        freed_bytes += size

    return {"deleted_count": deleted_count, "freed_bytes": freed_bytes, "errors": errors}


def cleanup_expired_files(retention_days: float) -> dict[str, Any]:
    """
    Delete finished artifacts and orphaned temp files older than the retention period.

    Temp files normally go away at the end of their request; the ones left
    behind by a crashed process are picked up here.

    Args:
        retention_days: Number of days to retain files

    Returns:
        Dictionary with cleanup statistics:
        {
            "success": True,
            "deleted_count": 5,
            "freed_bytes": 1234567890,
            "errors": [],
        }
    """
    downloads = _sweep_dir(get_download_dir(), retention_days)
    temp = _sweep_dir(get_temp_dir(), retention_days)

    return {
        "success": True,
        "deleted_count": downloads["deleted_count"] + temp["deleted_count"],
        "freed_bytes": downloads["freed_bytes"] + temp["freed_bytes"],
        "errors": downloads["errors"] + temp["errors"],
    }
