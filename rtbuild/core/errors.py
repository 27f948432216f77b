"""
Error taxonomy — every failure the build pipeline can raise.

All pipeline errors derive from ``RtbuildError`` and carry the process
exit code the top-level guard should use.  Skipped packages are not
errors and never raise.
"""

from __future__ import annotations

from pathlib import Path


class RtbuildError(Exception):
    """Base class for all rtbuild failures."""

    exit_code: int = 1


class ConfigError(RtbuildError):
    """Raised when configuration (file or environment) is invalid."""


class DefinitionNotFoundError(RtbuildError):
    """Raised when a definition name resolves to no file."""

    exit_code = 2

    def __init__(self, name: str):
        super().__init__(f"definition not found: {name}")
        self.name = name


class DefinitionError(RtbuildError):
    """Raised for malformed definition files or directives."""


class FetchError(RtbuildError):
    """Raised when a package source cannot be downloaded."""


class HttpClientUnavailableError(FetchError):
    """Raised when no usable HTTP transport can be found."""


class ChecksumMismatchError(FetchError):
    """Raised when a downloaded artifact does not match its digest."""

    def __init__(self, path: Path, expected: str, computed: str, detail: str = ""):
        msg = (
            f"checksum mismatch: {path.name} (file) vs {expected} (expected), "
            f"computed {computed}"
        )
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)
        self.path = path
        self.expected = expected
        self.computed = computed


class ExtractionError(RtbuildError):
    """Raised when an archive cannot be unpacked."""


class BuildStepError(RtbuildError):
    """Raised when an external build command exits nonzero."""

    def __init__(self, label: str, returncode: int | None = None, detail: str = ""):
        msg = f"{label} failed"
        if returncode is not None:
            msg += f" (exit {returncode})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
        self.label = label
        self.returncode = returncode


class UnknownBuildStepError(BuildStepError):
    """Raised when a definition names a build step nobody registered."""

    def __init__(self, name: str, known: list[str]):
        super().__init__(
            f"build step '{name}'",
            detail=f"unknown step (known: {', '.join(sorted(known))})",
        )
        self.step_name = name
