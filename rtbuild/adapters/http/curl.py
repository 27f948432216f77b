"""
curl transport — the preferred download backend.

Output and errors go to the run log through the CommandRunner.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from rtbuild.adapters.base import HttpClient
from rtbuild.adapters.shell.command import CommandRunner
from rtbuild.core.errors import FetchError


class CurlClient(HttpClient):
    """Download with ``curl -qsSLf``."""

    def __init__(self, runner: CommandRunner, executable: str = "curl"):
        self._runner = runner
        self._executable = executable

    @property
    def name(self) -> str:
        return "curl"

    def is_available(self) -> bool:
        return shutil.which(self._executable) is not None

    def head(self, url: str) -> bool:
        return self._runner.call([self._executable, "-qsILf", url]) == 0

    def download(self, url: str, dest: Path) -> None:
        rc = self._runner.call([self._executable, "-q", "-o", str(dest), "-sSLf", url])
        if rc != 0:
            dest.unlink(missing_ok=True)
            raise FetchError(f"curl failed (exit {rc}) downloading {url}")
