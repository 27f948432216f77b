"""
Domain models — Pydantic types for rtbuild.

All models are re-exported here for convenient access:

    from rtbuild.core.models import Definition, InstallDirective, BuildOutcome
"""

from rtbuild.core.models.definition import (
    Definition,
    Directive,
    HookDirective,
    InstallDirective,
    PackageOptionDirective,
)
from rtbuild.core.models.result import BuildOutcome, InstallResult

__all__ = [
    # definition.py
    "Definition",
    "Directive",
    "HookDirective",
    "InstallDirective",
    "PackageOptionDirective",
    # result.py
    "BuildOutcome",
    "InstallResult",
]
