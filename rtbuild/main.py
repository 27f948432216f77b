"""
rtbuild — CLI entrypoint.

Usage:
    rtbuild [--keep] [--verbose] DEFINITION PREFIX
    rtbuild --definitions
    python -m rtbuild.main --help

Exit codes: 0 success, 1 failure (including usage errors),
2 definition not found.
"""

from __future__ import annotations

import os
import signal
import sys
from pathlib import Path
from typing import Any

import click

from rtbuild import __version__
from rtbuild.core.config.settings import load_config
from rtbuild.core.errors import ConfigError
from rtbuild.core.models.result import BuildOutcome
from rtbuild.core.observability.logging_config import setup_logging


class _BuildCommand(click.Command):
    """Report usage errors with exit status 1; status 2 means "not found"."""

    def make_context(self, info_name: str | None, args: list[str], parent: Any = None, **extra: Any) -> click.Context:
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = 1
            raise

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except click.UsageError as e:
            e.exit_code = 1
            raise


def _raise_interrupt(signum: int, frame: Any) -> None:
    raise KeyboardInterrupt


def _notify(message: str) -> None:
    click.echo(message, err=True)


def _report(outcome: BuildOutcome) -> None:
    """Render a BuildOutcome for the terminal."""
    from rtbuild.core.use_cases.build import failure_banner

    if outcome.status == "not_found":
        click.secho(f"rtbuild: {outcome.message}", fg="red", err=True)
        click.echo("See all available definitions with `rtbuild --definitions'.", err=True)
        return

    if outcome.ok:
        if outcome.build_path_kept and outcome.build_path:
            click.echo(f"Build path kept at {outcome.build_path}", err=True)
        return

    if outcome.status == "interrupted":
        click.secho("rtbuild: interrupted", fg="yellow", err=True)
        return

    click.echo(err=True)
    click.secho(failure_banner(), fg="red", bold=True, err=True)
    click.echo(err=True)
    click.echo(f"error: {outcome.message}", err=True)
    if outcome.build_path_kept and outcome.build_path:
        click.echo(f"Inspect or clean up the working tree at {outcome.build_path}", err=True)
    if outcome.log_path:
        click.echo(f"Results logged to {outcome.log_path}", err=True)
    if outcome.log_tail:
        click.echo(err=True)
        click.echo("Last 10 log lines:", err=True)
        for line in outcome.log_tail:
            click.echo(line, err=True)


@click.command(cls=_BuildCommand, context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="rtbuild")
@click.option("--keep", "-k", is_flag=True, help="Do not remove the build path after a successful build.")
@click.option("--verbose", "-v", is_flag=True, help="Stream the build log to the terminal.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option("--definitions", "list_defs", is_flag=True, help="List available definitions and exit.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to a YAML build config (default: $RTBUILD_CONFIG).",
)
@click.argument("definition", required=False)
@click.argument("prefix", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def cli(
    ctx: click.Context,
    keep: bool,
    verbose: bool,
    debug: bool,
    list_defs: bool,
    config_path: Path | None,
    definition: str | None,
    prefix: Path | None,
) -> None:
    """Build and install a runtime DEFINITION into PREFIX."""
    setup_logging(os.environ.get("RTBUILD_LOG_LEVEL"), debug=debug)

    try:
        config = load_config(path=config_path, keep=keep, verbose=verbose)
    except ConfigError as e:
        click.secho(f"rtbuild: {e}", fg="red", err=True)
        sys.exit(1)

    if list_defs:
        from rtbuild.core.services.definitions.loader import list_definitions, search_dirs

        for name in list_definitions(search_dirs(config.definition_dirs)):
            click.echo(name)
        return

    if not definition or prefix is None:
        raise click.UsageError("DEFINITION and PREFIX are required.", ctx=ctx)

    from rtbuild.core.use_cases.build import run_build

    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        outcome = run_build(definition, prefix, config, notify=_notify, echo=click.echo)
    finally:
        signal.signal(signal.SIGTERM, previous)

    _report(outcome)
    sys.exit(outcome.exit_code)


def main() -> None:
    cli(prog_name="rtbuild")


if __name__ == "__main__":
    main()
