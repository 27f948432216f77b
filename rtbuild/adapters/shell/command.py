"""
Command runner — the single place build commands hit ``subprocess``.

Every external program the pipeline starts (configure, make, curl,
predicate commands, hooks) goes through ``CommandRunner`` so that:

    - output always lands in the run log, never on the terminal
    - each invocation is announced in the log before it runs
    - failures surface as ``BuildStepError`` with the exit status
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

from rtbuild.core.errors import BuildStepError
from rtbuild.core.observability.build_log import BuildLog

logger = logging.getLogger(__name__)


class CommandRunner:
    """Run commands with output redirected into a ``BuildLog``."""

    def __init__(self, log: BuildLog, base_env: Mapping[str, str] | None = None):
        self.log = log
        self._base_env = dict(os.environ if base_env is None else base_env)

    def call(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | str | None = None,
        env_overrides: Mapping[str, str] | None = None,
        shell: bool = False,
    ) -> int:
        """Run a command and return its exit status.  Never raises on nonzero."""
        env = dict(self._base_env)
        if env_overrides:
            env.update(env_overrides)

        display = cmd[0] if shell else shlex.join(cmd)
        self.log.write(f"+ {display}" + (f"  (cwd={cwd})" if cwd else ""))
        logger.debug("Executing: %s (cwd=%s)", display, cwd)

        start = time.monotonic()
        try:
            result = subprocess.run(
                cmd[0] if shell else list(cmd),
                shell=shell,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=self.log.stream,
                stderr=subprocess.STDOUT,
                check=False,
            )
        except FileNotFoundError:
            self.log.write(f"command not found: {cmd[0]}")
            return 127
        except PermissionError:
            self.log.write(f"permission denied: {cmd[0]}")
            return 126

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Exit %d after %dms: %s", result.returncode, elapsed_ms, display)
        return result.returncode

    def run(
        self,
        cmd: Sequence[str],
        *,
        label: str,
        cwd: Path | str | None = None,
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        """Run a command, raising ``BuildStepError`` on nonzero exit."""
        rc = self.call(cmd, cwd=cwd, env_overrides=env_overrides)
        if rc != 0:
            raise BuildStepError(label, rc)

    def shell(
        self,
        script: str,
        *,
        cwd: Path | str | None = None,
        env_overrides: Mapping[str, str] | None = None,
    ) -> int:
        """Run a shell snippet through ``sh -c`` and return its status."""
        return self.call([script], cwd=cwd, env_overrides=env_overrides, shell=True)
