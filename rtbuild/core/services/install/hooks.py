"""
Install hooks — callbacks run around each package's build steps.

Hooks are registered explicitly and run in registration order at two
fixed points: ``before_install`` (after extraction, before the first
build step) and ``after_install`` (after the last build step).
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from rtbuild.core.errors import BuildStepError
from rtbuild.core.services.install.context import PackageContext

logger = logging.getLogger(__name__)

Hook = Callable[[PackageContext], None]

HOOK_POINTS = ("before_install", "after_install")


class HookRegistry:
    """Ordered hook lists per hook point."""

    def __init__(self) -> None:
        self._hooks: dict[str, list[Hook]] = {point: [] for point in HOOK_POINTS}

    def register(self, point: str, hook: Hook) -> None:
        if point not in self._hooks:
            raise ValueError(f"unknown hook point '{point}' (expected one of {HOOK_POINTS})")
        self._hooks[point].append(hook)

    def before_install(self, hook: Hook) -> Hook:
        """Register ``hook`` for the before_install point.  Usable as a decorator."""
        self.register("before_install", hook)
        return hook

    def after_install(self, hook: Hook) -> Hook:
        """Register ``hook`` for the after_install point.  Usable as a decorator."""
        self.register("after_install", hook)
        return hook

    def hooks(self, point: str) -> list[Hook]:
        return list(self._hooks.get(point, []))

    def run(self, point: str, ctx: PackageContext) -> None:
        for hook in self._hooks[point]:
            logger.debug("%s: running %s hook %r", ctx.name, point, hook)
            hook(ctx)

    def clear(self) -> None:
        for hooks in self._hooks.values():
            hooks.clear()


def shell_hook(command: str, point: str = "hook") -> Hook:
    """Build a hook that runs ``command`` with ``sh -c`` in the source dir.

    ``PREFIX_PATH``, ``BUILD_PATH`` and ``PACKAGE_NAME`` are exported to
    the command.
    """

    def _run(ctx: PackageContext) -> None:
        rc = ctx.runner.shell(
            command,
            cwd=ctx.source_dir,
            env_overrides={
                "PREFIX_PATH": str(ctx.prefix),
                "BUILD_PATH": str(ctx.run.build_path),
                "PACKAGE_NAME": ctx.name,
            },
        )
        if rc != 0:
            raise BuildStepError(f"{ctx.name}: {point} hook", rc, command)

    _run.__qualname__ = f"shell_hook({command!r})"
    return _run
