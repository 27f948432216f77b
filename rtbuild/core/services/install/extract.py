"""
Archive extraction — unpack a fetched tarball into the workspace.

The tarball must contain a top-level ``<package>/`` directory; build
steps run inside it.
"""

from __future__ import annotations

import logging
import tarfile
from pathlib import Path

from rtbuild.core.errors import ExtractionError

logger = logging.getLogger(__name__)

# Longest first so ".tar.gz" wins over ".gz"
ARCHIVE_EXTENSIONS = (".tar.gz", ".tar.bz2", ".tar.xz", ".tgz", ".tbz2", ".txz")
DEFAULT_EXTENSION = ".tar.gz"


def archive_filename(package_name: str, url: str) -> str:
    """Workspace/cache filename for a package's archive.

    The extension follows the URL so the cache keeps what was actually
    downloaded: ``archive_filename("yaml-0.2.5", ".../yaml-0.2.5.tar.gz")``
    → ``yaml-0.2.5.tar.gz``.
    """
    path = url.split("?", 1)[0].lower()
    for ext in ARCHIVE_EXTENSIONS:
        if path.endswith(ext):
            return f"{package_name}{ext}"
    return f"{package_name}{DEFAULT_EXTENSION}"


def extract_archive(archive: Path, dest_dir: Path, package_name: str) -> Path:
    """Unpack ``archive`` into ``dest_dir`` and return ``dest_dir/<package>``.

    Raises:
        ExtractionError: If the archive is unreadable or lacks the
            expected top-level directory.
    """
    logger.debug("Extracting %s into %s", archive, dest_dir)
    try:
        with tarfile.open(archive, "r:*") as tar:
            tar.extractall(dest_dir, filter="data")
    except (tarfile.TarError, OSError) as e:
        raise ExtractionError(f"cannot extract {archive.name}: {e}") from e

    source_dir = dest_dir / package_name
    if not source_dir.is_dir():
        raise ExtractionError(
            f"{archive.name} did not unpack into {package_name}/"
        )
    return source_dir
