"""
Result models — what an install or a whole run reports back.

Skips are results, not errors; errors never reach these models except
as the ``message`` of a failed ``BuildOutcome``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class InstallResult(BaseModel):
    """Outcome of one ``install_package`` directive."""

    package: str
    status: Literal["installed", "skipped"] = "installed"
    source_dir: str | None = None
    reason: str = ""

    @property
    def installed(self) -> bool:
        return self.status == "installed"

    @classmethod
    def skipped(cls, package: str, reason: str) -> InstallResult:
        return cls(package=package, status="skipped", reason=reason)


class BuildOutcome(BaseModel):
    """Outcome of a full ``run_build`` invocation."""

    definition: str
    prefix: str
    exit_code: int = 0
    status: Literal["ok", "failed", "not_found", "interrupted"] = "ok"
    message: str = ""
    packages: list[InstallResult] = Field(default_factory=list)
    build_path: str | None = None
    build_path_kept: bool = False
    log_path: str | None = None
    log_tail: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0
