"""
Build use case — the guarded scope around one whole run.

``run_build`` is the only place pipeline errors are caught.  It owns
the run log, the workspace and the verbose tailer, and always releases
them no matter how the run ends:

    success          → workspace removed (unless keep), exit 0
    not found        → nothing created, exit 2
    any other error  → workspace removed only if empty, log tail, exit 1
    interrupted      → workspace removed (unless keep), exit 1
"""

from __future__ import annotations

import logging
import platform
from collections.abc import Callable
from pathlib import Path

from rtbuild import __version__
from rtbuild.adapters.registry import HttpClientRegistry, default_http_registry
from rtbuild.adapters.shell.command import CommandRunner
from rtbuild.core.config.settings import BuildConfig
from rtbuild.core.errors import DefinitionNotFoundError, RtbuildError
from rtbuild.core.models.result import BuildOutcome
from rtbuild.core.observability.build_log import TAIL_LINES, BuildLog, LogTailer
from rtbuild.core.observability.logging_config import attach_run_log, detach_run_log
from rtbuild.core.services.definitions.loader import (
    execute_definition,
    load_definition,
    search_dirs,
)
from rtbuild.core.services.install.build_steps import BuildStepRegistry
from rtbuild.core.services.install.context import RunContext
from rtbuild.core.services.install.fetcher import FetchStrategyRegistry
from rtbuild.core.services.install.pipeline import InstallPipeline
from rtbuild.core.services.install.predicates import PredicateRegistry
from rtbuild.core.services.install.workspace import Workspace, log_path_for, run_seed

logger = logging.getLogger(__name__)


def failure_banner() -> str:
    return f"BUILD FAILED ({platform.system()} {platform.release()} using rtbuild {__version__})"


def run_build(
    definition: str,
    prefix: Path,
    config: BuildConfig,
    *,
    notify: Callable[[str], None] | None = None,
    echo: Callable[[str], None] | None = None,
    http_registry: HttpClientRegistry | None = None,
    steps: BuildStepRegistry | None = None,
    fetchers: FetchStrategyRegistry | None = None,
    predicates: PredicateRegistry | None = None,
) -> BuildOutcome:
    """Load ``definition`` and install it into ``prefix``.

    Args:
        definition: Definition name or path.
        prefix: Installation prefix (made absolute).
        config: Run configuration; never mutated.
        notify: Receives user-facing progress lines.
        echo: Receives live log lines in verbose mode.
        http_registry: Transport registry (default: curl → wget → urllib).
        steps: Build step registry override.
        fetchers: Fetch strategy registry override.
        predicates: Predicate registry override.

    Returns:
        BuildOutcome describing what happened.  Never raises for
        pipeline errors.
    """
    prefix = prefix.expanduser().absolute()
    outcome = BuildOutcome(definition=definition, prefix=str(prefix))

    try:
        loaded = load_definition(definition, search_dirs(config.definition_dirs))
    except DefinitionNotFoundError as e:
        return outcome.model_copy(update={
            "exit_code": e.exit_code, "status": "not_found", "message": str(e),
        })
    except RtbuildError as e:
        return outcome.model_copy(update={
            "exit_code": e.exit_code, "status": "failed", "message": str(e),
        })
    except Exception as e:
        logger.debug("Loading %s failed", definition, exc_info=True)
        return outcome.model_copy(update={
            "exit_code": 1, "status": "failed", "message": f"{type(e).__name__}: {e}",
        })

    seed = run_seed()
    log = BuildLog(log_path_for(config, seed)).open()
    handler = attach_run_log(log.path)
    tailer = LogTailer(log.path, echo) if config.verbose else None
    workspace: Workspace | None = None
    outcome.log_path = str(log.path)

    try:
        if tailer is not None:
            tailer.start()

        workspace = Workspace.create(config, seed)
        outcome.build_path = str(workspace.path)

        runner = CommandRunner(log)
        ctx = RunContext(
            config=config.model_copy(deep=True),
            prefix=prefix,
            build_path=workspace.path,
            log=log,
            runner=runner,
            http_registry=http_registry or default_http_registry(runner),
            notify=notify or logger.info,
        )
        pipeline = InstallPipeline(ctx, steps=steps, fetchers=fetchers, predicates=predicates)
        logger.info("Building %s into %s", loaded.name, prefix)
        try:
            execute_definition(loaded, pipeline)
        finally:
            outcome.packages = list(pipeline.results)

    except (RtbuildError, OSError) as e:
        exit_code = e.exit_code if isinstance(e, RtbuildError) else 1
        logger.info("Build failed: %s", e)
        _record_failure(outcome, exit_code, str(e), log, workspace)

    except Exception as e:
        logger.info("Build failed: %s: %s", type(e).__name__, e)
        logger.debug("Unexpected build error", exc_info=True)
        _record_failure(outcome, 1, f"{type(e).__name__}: {e}", log, workspace)

    except KeyboardInterrupt:
        logger.info("Build interrupted")
        outcome.exit_code = 1
        outcome.status = "interrupted"
        outcome.message = "interrupted"
        if workspace is not None:
            if config.keep:
                outcome.build_path_kept = True
            else:
                workspace.remove()

    else:
        if config.keep:
            outcome.build_path_kept = True
        else:
            workspace.remove()

    finally:
        if tailer is not None:
            tailer.stop()
        detach_run_log(handler)
        log.close()

    return outcome


def _record_failure(
    outcome: BuildOutcome,
    exit_code: int,
    message: str,
    log: BuildLog,
    workspace: Workspace | None,
) -> None:
    outcome.exit_code = exit_code
    outcome.status = "failed"
    outcome.message = message
    outcome.log_tail = log.tail(TAIL_LINES)
    if workspace is not None and not workspace.remove_if_empty():
        outcome.build_path_kept = True
