"""
Execution contexts handed to fetch strategies, build steps and hooks.

``RunContext`` is shared by every package in one run; ``PackageContext``
narrows it to a single package with its extracted source directory.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from rtbuild.adapters.base import HttpClient
from rtbuild.adapters.registry import HttpClientRegistry
from rtbuild.adapters.shell.command import CommandRunner
from rtbuild.core.config.settings import BuildConfig
from rtbuild.core.observability.build_log import BuildLog

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Per-run collaborators: config, prefix, workspace, log, transports."""

    config: BuildConfig
    prefix: Path
    build_path: Path
    log: BuildLog
    runner: CommandRunner
    http_registry: HttpClientRegistry
    notify: Callable[[str], None] = logger.info
    _http: HttpClient | None = field(default=None, init=False, repr=False)

    def http_client(self) -> HttpClient:
        """The transport for this run, selected on first use."""
        if self._http is None:
            self._http = self.http_registry.select(self.config.http_client)
        return self._http


@dataclass
class PackageContext:
    """One package being built, with its source tree."""

    run: RunContext
    name: str
    source_dir: Path

    @property
    def config(self) -> BuildConfig:
        return self.run.config

    @property
    def prefix(self) -> Path:
        return self.run.prefix

    @property
    def runner(self) -> CommandRunner:
        return self.run.runner
