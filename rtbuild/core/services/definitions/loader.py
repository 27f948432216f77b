"""
Definition loader — find, parse and execute build recipes.

A definition file is a list of shell-like directives, one per line::

    # comments and blank lines are ignored
    package_option python configure --with-openssl="$PREFIX_PATH"
    install_package "openssl-3.0.13" "https://.../openssl-3.0.13.tar.gz#<sha256>" openssl
    install_package "Python-3.12.4" "https://.../Python-3.12.4.tgz" standard --if is_linux
    install_package_using tarball 1 "yaml-0.2.5" "https://.../yaml-0.2.5.tar.gz" standard
    after_install "rm -rf \\"$PREFIX_PATH/share/man\\""

Lookup order: literal path, then each configured definition directory,
then the built-in ``rtbuild/share/definitions``.
"""

from __future__ import annotations

import logging
import re
import shlex
from collections.abc import Iterable, Mapping
from pathlib import Path
from string import Template

from rtbuild.core.errors import ConfigError, DefinitionError, DefinitionNotFoundError
from rtbuild.core.models.definition import (
    Definition,
    Directive,
    HookDirective,
    InstallDirective,
    PackageOptionDirective,
)
from rtbuild.core.services.install.hooks import shell_hook
from rtbuild.core.services.install.pipeline import InstallPipeline

logger = logging.getLogger(__name__)

BUILTIN_DEFINITIONS_DIR = Path(__file__).resolve().parents[3] / "share" / "definitions"

_PREDICATE_FLAG = "--if"
_HOOK_POINTS = ("before_install", "after_install")


# ── Resolution ──────────────────────────────────────────────────


def search_dirs(extra: Iterable[Path] = ()) -> list[Path]:
    """Definition directories in lookup order."""
    return [*extra, BUILTIN_DEFINITIONS_DIR]


def resolve_definition(name: str, dirs: Iterable[Path] | None = None) -> Path:
    """Map a definition name or path to a file.

    Raises:
        DefinitionNotFoundError: If nothing matches.
    """
    literal = Path(name).expanduser()
    if literal.is_file():
        return literal

    for directory in search_dirs() if dirs is None else dirs:
        candidate = directory / name
        if candidate.is_file():
            return candidate

    raise DefinitionNotFoundError(name)


def _version_key(name: str) -> list[tuple[int, int | str]]:
    """Natural sort key: ``python-3.9.1`` < ``python-3.10.0``."""
    return [(0, int(part)) if part.isdigit() else (1, part)
            for part in re.split(r"(\d+)", name) if part]


def list_definitions(dirs: Iterable[Path] | None = None) -> list[str]:
    """Names of every definition in the search dirs, naturally sorted."""
    names: set[str] = set()
    for directory in search_dirs() if dirs is None else dirs:
        if directory.is_dir():
            names.update(p.name for p in directory.iterdir()
                         if p.is_file() and not p.name.startswith("."))
    return sorted(names, key=_version_key)


# ── Parsing ─────────────────────────────────────────────────────


def _logical_lines(text: str) -> Iterable[tuple[int, str]]:
    """Join backslash-continued lines; yields ``(first_line_no, line)``."""
    buffer: list[str] = []
    start = 0
    for lineno, raw in enumerate(text.splitlines(), start=1):
        if not buffer:
            start = lineno
        if raw.endswith("\\") and not raw.endswith("\\\\"):
            buffer.append(raw[:-1])
            continue
        buffer.append(raw)
        yield start, " ".join(buffer)
        buffer = []
    if buffer:
        yield start, " ".join(buffer)


def _split_predicates(args: list[str], lineno: int) -> tuple[list[str], tuple[str, ...]]:
    """Pull every ``--if PRED`` pair off the argument list."""
    rest: list[str] = []
    predicates: list[str] = []
    it = iter(args)
    for arg in it:
        if arg == _PREDICATE_FLAG:
            pred = next(it, None)
            if pred is None:
                raise DefinitionError(f"line {lineno}: --if needs a predicate")
            predicates.append(pred)
        else:
            rest.append(arg)
    return rest, tuple(predicates)


def _parse_directive(tokens: list[str], lineno: int) -> Directive:
    command, args = tokens[0], tokens[1:]

    if command == "install_package":
        args, predicates = _split_predicates(args, lineno)
        if len(args) < 2:
            raise DefinitionError(f"line {lineno}: install_package needs NAME and URL")
        return InstallDirective(
            line=lineno, package=args[0], fetch_args=(args[1],),
            steps=tuple(args[2:]), predicates=predicates,
        )

    if command == "install_package_using":
        args, predicates = _split_predicates(args, lineno)
        if len(args) < 3:
            raise DefinitionError(f"line {lineno}: install_package_using needs KIND ARGC NAME")
        kind, argc, package, rest = args[0], args[1], args[2], args[3:]
        try:
            arity = int(argc)
        except ValueError:
            raise DefinitionError(f"line {lineno}: argument count must be an integer, got {argc!r}") from None
        if arity < 0 or len(rest) < arity:
            raise DefinitionError(
                f"line {lineno}: {package} declares {arity} fetch argument(s) but has {len(rest)}"
            )
        return InstallDirective(
            line=lineno, package=package, fetch_kind=kind, fetch_arity=arity,
            fetch_args=tuple(rest[:arity]), steps=tuple(rest[arity:]), predicates=predicates,
        )

    if command == "package_option":
        if len(args) < 3:
            raise DefinitionError(f"line {lineno}: package_option needs FAMILY STAGE ARG...")
        return PackageOptionDirective(line=lineno, family=args[0], stage=args[1], args=tuple(args[2:]))

    if command in _HOOK_POINTS:
        if not args:
            raise DefinitionError(f"line {lineno}: {command} needs a command")
        return HookDirective(line=lineno, point=command, command=" ".join(args))

    raise DefinitionError(f"line {lineno}: unknown directive '{command}'")


def _tokenize(line: str) -> list[str]:
    """Split a line like a shell would, dropping a trailing comment.

    A comment starts at the first word beginning with ``#``; a ``#`` inside
    a word (``URL#checksum``) is kept.
    """
    if line.lstrip().startswith("#"):
        return []
    lexer = shlex.shlex(line, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    tokens: list[str] = []
    # Lazy, so quotes inside the comment are never parsed
    for token in lexer:
        if token.startswith("#"):
            break
        tokens.append(token)
    return tokens


def parse_definition(text: str, name: str, path: Path | None = None) -> Definition:
    """Parse definition text into an immutable ``Definition``.

    Raises:
        DefinitionError: On syntax errors or unknown directives.
    """
    directives: list[Directive] = []
    for lineno, line in _logical_lines(text):
        try:
            tokens = _tokenize(line)
        except ValueError as e:
            raise DefinitionError(f"{name} line {lineno}: {e}") from e
        if not tokens:
            continue
        try:
            directives.append(_parse_directive(tokens, lineno))
        except DefinitionError as e:
            raise DefinitionError(f"{name}: {e}") from e
    return Definition(name=name, path=path, directives=tuple(directives))


def load_definition(name: str, dirs: Iterable[Path] | None = None) -> Definition:
    """Resolve and parse a definition by name or path."""
    path = resolve_definition(name, dirs)
    logger.debug("Loading definition %s from %s", name, path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DefinitionError(f"Cannot read {path}: {e}") from e
    return parse_definition(text, name=Path(name).name, path=path)


# ── Execution ───────────────────────────────────────────────────


def _expand(values: Iterable[str], variables: Mapping[str, str]) -> tuple[str, ...]:
    return tuple(Template(v).safe_substitute(variables) for v in values)


def execute_definition(definition: Definition, pipeline: InstallPipeline) -> None:
    """Run every directive of ``definition`` against ``pipeline`` in order.

    ``$PREFIX_PATH`` and ``$BUILD_PATH`` are expanded in arguments.
    Errors propagate; there is no partial-success mode.
    """
    variables = {
        "PREFIX_PATH": str(pipeline.ctx.prefix),
        "BUILD_PATH": str(pipeline.ctx.build_path),
    }

    for directive in definition.directives:
        if isinstance(directive, InstallDirective):
            pipeline.install_package_using(
                directive.fetch_kind,
                directive.fetch_arity,
                directive.package,
                *_expand(directive.fetch_args, variables),
                *directive.steps,
                predicates=directive.predicates,
            )
        elif isinstance(directive, PackageOptionDirective):
            try:
                pipeline.ctx.config.add_package_option(
                    directive.family, directive.stage, list(_expand(directive.args, variables)),
                )
            except ConfigError as e:
                raise DefinitionError(f"{definition.name} line {directive.line}: {e}") from e
        elif isinstance(directive, HookDirective):
            pipeline.hooks.register(directive.point, shell_hook(directive.command, directive.point))
