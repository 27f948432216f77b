"""
Installation pipeline — fetch, build and install one package at a time.

Flow per package:
    predicates → fetch (+verify, cache, extract) → before_install hooks
    → build steps → after_install hooks → directory permission fix

Any error propagates to the caller untouched; the pipeline never rolls
back files already installed into the prefix.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Iterable
from pathlib import Path

from rtbuild.core.errors import DefinitionError
from rtbuild.core.models.result import InstallResult
from rtbuild.core.services.install.build_steps import (
    DEFAULT_STEPS,
    BuildStepRegistry,
    default_step_registry,
    run_build_steps,
)
from rtbuild.core.services.install.context import PackageContext, RunContext
from rtbuild.core.services.install.fetcher import FetchStrategyRegistry, default_fetch_registry
from rtbuild.core.services.install.hooks import HookRegistry
from rtbuild.core.services.install.predicates import PredicateRegistry, default_predicate_registry

logger = logging.getLogger(__name__)


def fix_directory_permissions(prefix: Path) -> int:
    """Strip the world-writable bit from every directory under ``prefix``.

    Returns the number of directories changed.  Symlinked directories
    are left alone.
    """
    if not prefix.is_dir():
        return 0

    changed = 0
    # os.walk yields each real directory once and never descends symlinks
    for dirpath, _, _ in os.walk(prefix):
        path = Path(dirpath)
        mode = path.stat().st_mode
        if mode & stat.S_IWOTH:
            path.chmod(stat.S_IMODE(mode) & ~stat.S_IWOTH)
            changed += 1
    return changed


class InstallPipeline:
    """Installs packages into ``ctx.prefix`` using ``ctx.build_path`` as scratch.

    Args:
        ctx: Shared run context.
        steps: Build step registry (default: built-in steps).
        fetchers: Fetch strategy registry (default: tarball).
        predicates: ``--if`` predicate registry.
        hooks: before/after install hook registry.
    """

    def __init__(
        self,
        ctx: RunContext,
        *,
        steps: BuildStepRegistry | None = None,
        fetchers: FetchStrategyRegistry | None = None,
        predicates: PredicateRegistry | None = None,
        hooks: HookRegistry | None = None,
    ):
        self.ctx = ctx
        self.steps = steps or default_step_registry()
        self.fetchers = fetchers or default_fetch_registry()
        self.predicates = predicates or default_predicate_registry()
        self.hooks = hooks or HookRegistry()
        self.results: list[InstallResult] = []

    def install_package(
        self,
        name: str,
        url: str,
        *steps: str,
        predicates: Iterable[str] = (),
    ) -> InstallResult:
        """Install a tarball package: ``install_package NAME URL[#SUM] STEP...``."""
        return self.install_package_using("tarball", 1, name, url, *steps, predicates=predicates)

    def install_package_using(
        self,
        kind: str,
        arity: int,
        name: str,
        *args: str,
        predicates: Iterable[str] = (),
    ) -> InstallResult:
        """Install a package with an explicit fetch kind.

        The first ``arity`` args go to the fetch strategy; the rest are
        build step names.
        """
        strategy = self.fetchers.get(kind)
        if arity != strategy.arity:
            raise DefinitionError(
                f"{name}: fetch kind '{kind}' takes {strategy.arity} argument(s), got arity {arity}"
            )
        if len(args) < arity:
            raise DefinitionError(
                f"{name}: fetch kind '{kind}' needs {arity} argument(s), got {len(args)}"
            )

        fetch_args, step_names = args[:arity], args[arity:]
        result = self._install(name, strategy.kind, fetch_args, step_names, tuple(predicates))
        self.results.append(result)
        return result

    def _install(
        self,
        name: str,
        kind: str,
        fetch_args: tuple[str, ...],
        step_names: tuple[str, ...],
        predicates: tuple[str, ...],
    ) -> InstallResult:
        ctx = self.ctx

        failed = self.predicates.all_pass(predicates, ctx)
        if failed is not None:
            logger.info("Skipping %s (--if %s not satisfied)", name, failed)
            return InstallResult.skipped(name, f"--if {failed}")

        # Resolve steps before fetching so a typo costs no download
        for step_name in step_names or DEFAULT_STEPS:
            self.steps.get(step_name)

        ctx.notify(f"Installing {name}...")
        source_dir = self.fetchers.get(kind).fetch(ctx, name, *fetch_args)

        pkg = PackageContext(run=ctx, name=name, source_dir=source_dir)
        self.hooks.run("before_install", pkg)
        run_build_steps(pkg, step_names, self.steps)
        self.hooks.run("after_install", pkg)

        fixed = fix_directory_permissions(ctx.prefix)
        if fixed:
            logger.info("Removed world-writable bit from %d director%s", fixed, "y" if fixed == 1 else "ies")

        ctx.notify(f"Installed {name} to {ctx.prefix}")
        return InstallResult(package=name, source_dir=str(source_dir))
