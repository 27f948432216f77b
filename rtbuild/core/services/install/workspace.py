"""
Workspace — the per-run scratch directory (BUILD_PATH).

One workspace exists per run.  Its name is derived from a run seed
(timestamp + pid) shared with the run log, so the two are easy to
match up after a failure.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from pathlib import Path

from rtbuild.core.config.settings import BuildConfig

logger = logging.getLogger(__name__)

RUN_PREFIX = "rtbuild"


def run_seed() -> str:
    """``YYYYMMDDHHMMSS.<pid>`` — unique per invocation."""
    return f"{time.strftime('%Y%m%d%H%M%S')}.{os.getpid()}"


def log_path_for(config: BuildConfig, seed: str) -> Path:
    return config.tmpdir / f"{RUN_PREFIX}.{seed}.log"


class Workspace:
    """Owns the scratch directory for one run."""

    def __init__(self, path: Path):
        self.path = path

    @classmethod
    def create(cls, config: BuildConfig, seed: str) -> Workspace:
        """Create the workspace: ``RTBUILD_BUILD_PATH`` or ``<tmpdir>/rtbuild.<seed>``."""
        path = config.build_path or config.tmpdir / f"{RUN_PREFIX}.{seed}"
        path.mkdir(parents=True, exist_ok=True)
        logger.debug("Workspace: %s", path)
        return cls(path)

    @property
    def exists(self) -> bool:
        return self.path.is_dir()

    def is_empty(self) -> bool:
        return self.exists and not any(self.path.iterdir())

    def remove(self) -> None:
        """Delete the workspace and everything in it."""
        shutil.rmtree(self.path, ignore_errors=True)

    def remove_if_empty(self) -> bool:
        """Delete the workspace only if it holds nothing.  Returns True if removed."""
        if not self.exists:
            return True
        try:
            self.path.rmdir()
        except OSError:
            return False
        return True
