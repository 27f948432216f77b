"""
Package fetching — turn a source locator into an extracted source tree.

Fetch *kinds* are pluggable: each ``FetchStrategy`` declares how many
definition arguments it consumes (its arity) and must leave
``<build_path>/<package>/`` behind.  ``tarball`` is the built-in kind.

Tarball resolution order:

    1. archive already in the workspace (kept build path) and valid
    2. cache directory hit, verified, symlinked into the workspace
    3. mirror ``<mirror>/<checksum>`` if a HEAD probe succeeds
    4. the primary URL

Any network download is checksum-verified before it is trusted, then
moved into the cache (when configured) and replaced by a symlink.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from rtbuild.core.errors import DefinitionError, FetchError
from rtbuild.core.services.install.checksum import ensure_checksum, split_checksum, verify_checksum
from rtbuild.core.services.install.context import RunContext
from rtbuild.core.services.install.extract import archive_filename, extract_archive

logger = logging.getLogger(__name__)


class FetchStrategy(ABC):
    """A way of obtaining a package's source tree."""

    @property
    @abstractmethod
    def kind(self) -> str:
        """Name used by ``install_package_using``."""

    @property
    @abstractmethod
    def arity(self) -> int:
        """Number of definition arguments this kind consumes."""

    @abstractmethod
    def fetch(self, ctx: RunContext, package_name: str, *args: str) -> Path:
        """Produce and return ``ctx.build_path / package_name``."""


class TarballFetch(FetchStrategy):
    """Download, verify, cache and extract a tarball."""

    @property
    def kind(self) -> str:
        return "tarball"

    @property
    def arity(self) -> int:
        return 1

    def fetch(self, ctx: RunContext, package_name: str, *args: str) -> Path:
        (locator,) = args
        url, checksum = split_checksum(locator)
        archive = ctx.build_path / archive_filename(package_name, url)

        if not self._reuse_existing(archive, checksum):
            if not self._link_from_cache(ctx, archive, checksum):
                ctx.notify(f"Downloading {archive.name}...")
                self._download(ctx, archive, url, checksum)
                try:
                    ensure_checksum(archive, checksum)
                except FetchError:
                    archive.unlink(missing_ok=True)
                    raise
                self._store_in_cache(ctx, archive)

        source_dir = extract_archive(archive, ctx.build_path, package_name)
        if not ctx.config.keep:
            archive.unlink(missing_ok=True)
        return source_dir

    # ── Resolution stages ───────────────────────────────────────

    @staticmethod
    def _reuse_existing(archive: Path, checksum: str | None) -> bool:
        if not archive.is_file():
            return False
        if verify_checksum(archive, checksum):
            logger.info("Reusing %s from the build path", archive.name)
            return True
        archive.unlink()
        return False

    @staticmethod
    def _link_from_cache(ctx: RunContext, archive: Path, checksum: str | None) -> bool:
        cache = ctx.config.usable_cache
        if cache is None:
            return False
        cached = cache / archive.name
        if not cached.is_file():
            return False
        if not verify_checksum(cached, checksum):
            logger.warning("Ignoring invalid cache entry %s", cached)
            return False

        archive.unlink(missing_ok=True)
        archive.symlink_to(cached.resolve())
        ctx.notify(f"Using {archive.name} from the cache")
        return True

    @staticmethod
    def _download(ctx: RunContext, archive: Path, url: str, checksum: str | None) -> None:
        client = ctx.http_client()
        mirror = ctx.config.effective_mirror

        if checksum and mirror:
            mirror_url = f"{mirror}/{checksum}"
            if client.head(mirror_url):
                try:
                    logger.info("-> %s", mirror_url)
                    client.download(mirror_url, archive)
                    return
                except FetchError as e:
                    logger.warning("Mirror download failed, using %s: %s", url, e)
            else:
                logger.info("Mirror has no %s, falling back to %s", checksum, url)

        logger.info("-> %s", url)
        client.download(url, archive)

    @staticmethod
    def _store_in_cache(ctx: RunContext, archive: Path) -> None:
        cache = ctx.config.usable_cache
        if cache is None:
            return
        cached = cache / archive.name
        shutil.move(str(archive), str(cached))
        archive.symlink_to(cached.resolve())
        logger.info("Cached %s in %s", archive.name, cache)


class FetchStrategyRegistry:
    """Mapping from fetch kind to strategy."""

    def __init__(self) -> None:
        self._strategies: dict[str, FetchStrategy] = {}

    def register(self, strategy: FetchStrategy) -> None:
        if strategy.kind in self._strategies:
            logger.warning("Overwriting existing fetch kind: %s", strategy.kind)
        self._strategies[strategy.kind] = strategy

    def get(self, kind: str) -> FetchStrategy:
        strategy = self._strategies.get(kind)
        if strategy is None:
            raise DefinitionError(
                f"unknown fetch kind '{kind}' (known: {', '.join(sorted(self._strategies))})"
            )
        return strategy

    def list_kinds(self) -> list[str]:
        return list(self._strategies)


def default_fetch_registry() -> FetchStrategyRegistry:
    registry = FetchStrategyRegistry()
    registry.register(TarballFetch())
    return registry
