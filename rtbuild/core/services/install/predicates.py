"""
Install predicates — the ``--if`` conditions gating a package.

A predicate name is looked up in the registry first.  Unknown names
are run as shell commands in the workspace; a zero exit means "install".
A failing predicate is a skip, never an error.
"""

from __future__ import annotations

import logging
import platform
import re
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

from rtbuild.core.services.install.context import RunContext

logger = logging.getLogger(__name__)

Predicate = Callable[[RunContext], bool]

# Oldest system OpenSSL a runtime can link against
MIN_OPENSSL = (1, 1, 1)

_SYSTEM_INCLUDE_DIRS = (
    Path("/usr/include"),
    Path("/usr/local/include"),
    Path("/opt/homebrew/include"),
)


def is_linux(ctx: RunContext) -> bool:
    return platform.system() == "Linux"


def is_mac(ctx: RunContext) -> bool:
    return platform.system() == "Darwin"


def needs_yaml(ctx: RunContext) -> bool:
    """True when no libyaml headers are visible to the compiler."""
    candidates = (ctx.prefix / "include", *_SYSTEM_INCLUDE_DIRS)
    return not any((d / "yaml.h").is_file() for d in candidates)


def needs_openssl(ctx: RunContext) -> bool:
    """True when the system OpenSSL is missing, LibreSSL, or too old."""
    if not shutil.which("openssl"):
        return True
    try:
        result = subprocess.run(
            ["openssl", "version"], capture_output=True, text=True, timeout=10, check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return True
    match = re.match(r"OpenSSL (\d+)\.(\d+)\.(\d+)", result.stdout.strip())
    if result.returncode != 0 or not match:
        return True
    return tuple(int(part) for part in match.groups()) < MIN_OPENSSL


class PredicateRegistry:
    """Named predicates with shell-command fallback."""

    def __init__(self) -> None:
        self._predicates: dict[str, Predicate] = {}

    def register(self, name: str, predicate: Predicate) -> None:
        self._predicates[name] = predicate

    def list_predicates(self) -> list[str]:
        return list(self._predicates)

    def evaluate(self, name: str, ctx: RunContext) -> bool:
        predicate = self._predicates.get(name)
        if predicate is not None:
            result = bool(predicate(ctx))
        else:
            result = ctx.runner.shell(name, cwd=ctx.build_path) == 0
        logger.debug("predicate %s → %s", name, result)
        return result

    def all_pass(self, names: list[str] | tuple[str, ...], ctx: RunContext) -> str | None:
        """Return the first failing predicate name, or None if all pass."""
        for name in names:
            if not self.evaluate(name, ctx):
                return name
        return None


def default_predicate_registry() -> PredicateRegistry:
    registry = PredicateRegistry()
    registry.register("is_linux", is_linux)
    registry.register("is_mac", is_mac)
    registry.register("needs_yaml", needs_yaml)
    registry.register("needs_openssl", needs_openssl)
    return registry
