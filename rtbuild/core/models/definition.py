"""
Definition models — the parsed, immutable form of a build recipe.

A definition is an ordered tuple of directives.  Parsing never runs
anything; ``execute_definition`` walks the directives against a
pipeline.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _Directive(BaseModel):
    model_config = ConfigDict(frozen=True)

    line: int = 0  # source line, for error messages


class InstallDirective(_Directive):
    """``install_package`` / ``install_package_using``."""

    kind: Literal["install"] = "install"
    package: str
    fetch_kind: str = "tarball"
    fetch_arity: int = 1
    fetch_args: tuple[str, ...] = ()
    steps: tuple[str, ...] = ()
    predicates: tuple[str, ...] = ()


class PackageOptionDirective(_Directive):
    """``package_option FAMILY STAGE ARG...``."""

    kind: Literal["package_option"] = "package_option"
    family: str
    stage: str
    args: tuple[str, ...] = ()


class HookDirective(_Directive):
    """``before_install CMD`` / ``after_install CMD``."""

    kind: Literal["hook"] = "hook"
    point: Literal["before_install", "after_install"]
    command: str


Directive = Annotated[
    Union[InstallDirective, PackageOptionDirective, HookDirective],
    Field(discriminator="kind"),
]


class Definition(BaseModel):
    """A loaded build recipe."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path | None = None
    directives: tuple[Directive, ...] = ()

    @property
    def packages(self) -> list[InstallDirective]:
        return [d for d in self.directives if isinstance(d, InstallDirective)]
