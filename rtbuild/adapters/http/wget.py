"""
wget transport — fallback when curl is missing.

wget does not link against libcurl, so it still works on hosts where
curl itself is what we are trying to build.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from rtbuild.adapters.base import HttpClient
from rtbuild.adapters.shell.command import CommandRunner
from rtbuild.core.errors import FetchError


class WgetClient(HttpClient):
    """Download with ``wget -nv``."""

    def __init__(self, runner: CommandRunner, executable: str = "wget"):
        self._runner = runner
        self._executable = executable

    @property
    def name(self) -> str:
        return "wget"

    def is_available(self) -> bool:
        return shutil.which(self._executable) is not None

    def head(self, url: str) -> bool:
        return self._runner.call([self._executable, "-q", "--spider", url]) == 0

    def download(self, url: str, dest: Path) -> None:
        rc = self._runner.call([self._executable, "-nv", "-O", str(dest), url])
        if rc != 0:
            dest.unlink(missing_ok=True)
            raise FetchError(f"wget failed (exit {rc}) downloading {url}")
