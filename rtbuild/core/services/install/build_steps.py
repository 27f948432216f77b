"""
Build steps — named policies that turn a source tree into installed files.

A package lists step names (default: ``standard``).  Each name is looked
up in a ``BuildStepRegistry`` and run in order inside the extracted
source directory.

Every tunable of the ``standard`` step is resolved through one chain:

    <FAMILY>_<TUNABLE>  >  global <TUNABLE>  >  hard default

where FAMILY is the package name up to its first hyphen, upper-cased.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from rtbuild.core.config.settings import (
    DEFAULT_CONFIGURE,
    DEFAULT_MAKE_OPTS,
    BuildConfig,
    resolve,
    split_opts,
)
from rtbuild.core.errors import UnknownBuildStepError
from rtbuild.core.services.install.context import PackageContext

logger = logging.getLogger(__name__)

DEFAULT_STEPS = ("standard",)


@dataclass(frozen=True)
class StandardOptions:
    """Fully resolved configure/make/install arguments for one package."""

    configure: list[str]
    prefix: str
    configure_opts: list[str]
    make: str
    make_opts: list[str]
    make_install_opts: list[str]
    env: dict[str, str] = field(default_factory=dict)

    @property
    def configure_cmd(self) -> list[str]:
        return [*self.configure, f"--prefix={self.prefix}", *self.configure_opts]

    @property
    def make_cmd(self) -> list[str]:
        return [self.make, *self.make_opts]

    @property
    def make_install_cmd(self) -> list[str]:
        return [self.make, "install", *self.make_install_opts]


def resolve_standard_options(
    config: BuildConfig,
    package_name: str,
    prefix: Path,
) -> StandardOptions:
    """Apply the family → global → default chain for ``package_name``."""
    fam = config.family(package_name)

    env: dict[str, str] = {}
    if config.cc:
        env["CC"] = config.cc
    cflags = resolve(fam.cflags, config.cflags, None)
    if cflags is not None:
        env["CFLAGS"] = cflags

    return StandardOptions(
        configure=split_opts(fam.configure) or [DEFAULT_CONFIGURE],
        prefix=fam.prefix_path or str(prefix),
        configure_opts=[
            *split_opts(resolve(fam.configure_opts, config.configure_opts, "")),
            *fam.configure_opts_array,
        ],
        make=config.make,
        make_opts=[
            *split_opts(resolve(fam.make_opts, config.make_opts, DEFAULT_MAKE_OPTS)),
            *fam.make_opts_array,
        ],
        make_install_opts=[
            *split_opts(resolve(fam.make_install_opts, config.make_install_opts, "")),
            *fam.make_install_opts_array,
        ],
        env=env,
    )


# ── Step protocol ───────────────────────────────────────────────


class BuildStep(ABC):
    """One named build policy."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in definitions (e.g. 'standard')."""

    @abstractmethod
    def run(self, ctx: PackageContext) -> None:
        """Build inside ``ctx.source_dir``.  Raises BuildStepError on failure."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class StandardStep(BuildStep):
    """``./configure && make && make install``."""

    @property
    def name(self) -> str:
        return "standard"

    def run(self, ctx: PackageContext) -> None:
        opts = resolve_standard_options(ctx.config, ctx.name, ctx.prefix)
        run = ctx.runner.run
        run(opts.configure_cmd, label=f"{ctx.name}: configure",
            cwd=ctx.source_dir, env_overrides=opts.env)
        run(opts.make_cmd, label=f"{ctx.name}: make",
            cwd=ctx.source_dir, env_overrides=opts.env)
        run(opts.make_install_cmd, label=f"{ctx.name}: make install",
            cwd=ctx.source_dir, env_overrides=opts.env)


class AutoconfStep(BuildStep):
    """Regenerate ``configure`` for trees shipped without one."""

    @property
    def name(self) -> str:
        return "autoconf"

    def run(self, ctx: PackageContext) -> None:
        ctx.runner.run(["autoreconf", "-i"], label=f"{ctx.name}: autoreconf",
                       cwd=ctx.source_dir)


class OpenSSLStep(BuildStep):
    """OpenSSL's own ``./config``, installing libraries and headers only."""

    @property
    def name(self) -> str:
        return "openssl"

    def run(self, ctx: PackageContext) -> None:
        opts = resolve_standard_options(ctx.config, ctx.name, ctx.prefix)
        configure = [
            "./config",
            f"--prefix={opts.prefix}",
            f"--openssldir={opts.prefix}/openssl",
            "--libdir=lib",
            *opts.configure_opts,
        ]
        run = ctx.runner.run
        run(configure, label=f"{ctx.name}: config",
            cwd=ctx.source_dir, env_overrides=opts.env)
        run(opts.make_cmd, label=f"{ctx.name}: make",
            cwd=ctx.source_dir, env_overrides=opts.env)
        run([opts.make, "install_sw", *opts.make_install_opts],
            label=f"{ctx.name}: make install_sw",
            cwd=ctx.source_dir, env_overrides=opts.env)


class CopyStep(BuildStep):
    """Copy a prebuilt tree into the prefix."""

    @property
    def name(self) -> str:
        return "copy"

    def run(self, ctx: PackageContext) -> None:
        ctx.prefix.mkdir(parents=True, exist_ok=True)
        shutil.copytree(ctx.source_dir, ctx.prefix, dirs_exist_ok=True, symlinks=True)
        ctx.run.log.write(f"copied {ctx.source_dir} -> {ctx.prefix}")


# ── Registry ────────────────────────────────────────────────────


class BuildStepRegistry:
    """Mapping from step name to BuildStep."""

    def __init__(self) -> None:
        self._steps: dict[str, BuildStep] = {}

    def register(self, step: BuildStep) -> None:
        if step.name in self._steps:
            logger.warning("Overwriting existing build step: %s", step.name)
        self._steps[step.name] = step

    def unregister(self, name: str) -> None:
        self._steps.pop(name, None)

    def get(self, name: str) -> BuildStep:
        step = self._steps.get(name)
        if step is None:
            raise UnknownBuildStepError(name, list(self._steps))
        return step

    def list_steps(self) -> list[str]:
        return list(self._steps)


def default_step_registry() -> BuildStepRegistry:
    registry = BuildStepRegistry()
    for step in (StandardStep(), AutoconfStep(), OpenSSLStep(), CopyStep()):
        registry.register(step)
    return registry


def run_build_steps(
    ctx: PackageContext,
    step_names: Sequence[str],
    registry: BuildStepRegistry,
) -> None:
    """Run each named step in order; the first failure aborts.

    Step names are resolved up front so a typo fails before anything
    has been compiled.
    """
    steps = [registry.get(name) for name in (step_names or DEFAULT_STEPS)]
    for step in steps:
        logger.info("%s: build step '%s'", ctx.name, step.name)
        step.run(ctx)
