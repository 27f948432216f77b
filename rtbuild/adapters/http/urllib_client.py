"""
urllib transport — the last resort, needs nothing outside the stdlib.

Also the only transport that understands ``file://`` URLs without
extra flags, which makes it handy for local mirrors.
"""

from __future__ import annotations

import logging
import shutil
import urllib.error
import urllib.request
from pathlib import Path

from rtbuild import __version__
from rtbuild.adapters.base import HttpClient
from rtbuild.core.errors import FetchError

logger = logging.getLogger(__name__)

_USER_AGENT = f"rtbuild/{__version__}"


class UrllibClient(HttpClient):
    """Download with ``urllib.request``."""

    def __init__(self, timeout: int = 60):
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "urllib"

    def is_available(self) -> bool:
        return True

    def head(self, url: str) -> bool:
        req = urllib.request.Request(url, method="HEAD", headers={"User-Agent": _USER_AGENT})
        try:
            with urllib.request.urlopen(req, timeout=self._timeout):  # nosec B310
                return True
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.debug("HEAD %s failed: %s", url, e)
            return False

    def download(self, url: str, dest: Path) -> None:
        req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:  # nosec B310
                with open(dest, "wb") as f:
                    shutil.copyfileobj(resp, f)
        except (urllib.error.URLError, OSError, ValueError) as e:
            dest.unlink(missing_ok=True)
            raise FetchError(f"download failed: {url} - {e}") from e
