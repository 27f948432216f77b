"""Package installation pipeline: fetch, verify, extract, build, install."""

from rtbuild.core.services.install.pipeline import InstallPipeline, fix_directory_permissions

__all__ = [
    "InstallPipeline",
    "fix_directory_permissions",
]
