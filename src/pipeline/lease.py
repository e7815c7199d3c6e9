"""
Artifact Leases

Exclusive per-artifact lock files, so two runs working through overlapping
windows do not build or upload the same layer at the same time.
"""

import logging
import os
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def _lease_file_name(name: str) -> str:
    return re.sub(r'[^A-Za-z0-9._-]+', '_', name.strip('/')) + ".lock"


class ArtifactLease:
    """
    Lock file held while one artifact is being produced.

    A lease older than `stale_after` seconds is assumed to belong to a dead
    run and is broken once.
    """

    def __init__(self, lease_dir: Union[str, Path], name: str, stale_after: float = 3600):
        self.path = Path(lease_dir) / _lease_file_name(name)
        self.name = name
        self.stale_after = stale_after
        self.held = False

    def _create(self, note: str = "") -> None:
        fd = os.open(self.path.as_posix(), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        try:
            payload = f"pid={os.getpid()} utc={datetime.now(timezone.utc).isoformat()}{note}\n"
            os.write(fd, payload.encode("utf-8"))
        finally:
            os.close(fd)

    def acquire(self) -> bool:
        """Try to take the lease without waiting. Returns True when held."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._create()
            self.held = True
            return True
        except FileExistsError:
            pass

        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            age = None  # released between our attempts

        if age is not None and age <= self.stale_after:
            return False

        if age is not None:
            logger.warning(f"Breaking stale lease ({age:.0f}s old): {self.path}")
            self.path.unlink(missing_ok=True)

        try:
            self._create(" stale_recovered=1")
            self.held = True
            return True
        except FileExistsError:
            return False

    def release(self) -> None:
        if self.held:
            self.path.unlink(missing_ok=True)
            self.held = False

    def __enter__(self) -> "ArtifactLease":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
