"""
Build configuration — the explicit settings object for one run.

Every tunable the pipeline reads lives on ``BuildConfig``.  Values are
resolved once, at startup, in precedence order:

    environment variable  >  YAML config file  >  built-in default

Per-package overrides are grouped by *family*: the package name up to
its first hyphen, upper-cased (``openssl-3.0.13`` → ``OPENSSL``).
"""

from __future__ import annotations

import logging
import os
import shlex
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from rtbuild.core.errors import ConfigError

logger = logging.getLogger(__name__)

# Default parallelism when neither MAKE_OPTS nor a family override is set
DEFAULT_MAKE_OPTS = "-j 2"
DEFAULT_CONFIGURE = "./configure"

ENV_PREFIX = "RTBUILD_"

# Env suffix → FamilyOverrides field.  Longest suffixes first so
# FOO_MAKE_INSTALL_OPTS never matches as _MAKE_OPTS.
_FAMILY_ENV_SUFFIXES: tuple[tuple[str, str], ...] = (
    ("_MAKE_INSTALL_OPTS", "make_install_opts"),
    ("_CONFIGURE_OPTS", "configure_opts"),
    ("_MAKE_OPTS", "make_opts"),
    ("_PREFIX_PATH", "prefix_path"),
    ("_CONFIGURE", "configure"),
    ("_CFLAGS", "cflags"),
)

_TRUTHY = {"1", "true", "yes", "on"}


def package_family(package_name: str) -> str:
    """Derive the override family for a package name.

    ``foo-1.2.3`` → ``FOO``; ``Python-3.12.4`` → ``PYTHON``.
    """
    return package_name.split("-", 1)[0].upper()


class FamilyOverrides(BaseModel):
    """Package-family scoped overrides.

    ``None`` means "not set, fall back".  An empty string is a real
    override to nothing.  The ``*_array`` fields are the structured
    form and are always appended after the flat value.
    """

    configure: str | None = None
    prefix_path: str | None = None
    configure_opts: str | None = None
    configure_opts_array: list[str] = Field(default_factory=list)
    make_opts: str | None = None
    make_opts_array: list[str] = Field(default_factory=list)
    make_install_opts: str | None = None
    make_install_opts_array: list[str] = Field(default_factory=list)
    cflags: str | None = None


class BuildConfig(BaseModel):
    """Everything a pipeline run needs to know about its environment."""

    # ── Fetching ──
    cache_path: Path | None = None
    mirror_url: str | None = None
    skip_mirror: bool = False
    http_client: str | None = None  # force curl / wget / urllib

    # ── Locations ──
    tmpdir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    build_path: Path | None = None
    definition_dirs: list[Path] = Field(default_factory=list)

    # ── Toolchain ──
    make: str = "make"
    cc: str | None = None
    cflags: str | None = None
    configure_opts: str | None = None
    make_opts: str | None = None
    make_install_opts: str | None = None

    families: dict[str, FamilyOverrides] = Field(default_factory=dict)

    # ── Run behaviour ──
    keep: bool = False
    verbose: bool = False

    @property
    def effective_mirror(self) -> str | None:
        """Mirror base URL, or None when unset or disabled."""
        if self.skip_mirror or not self.mirror_url:
            return None
        return self.mirror_url.rstrip("/")

    @property
    def usable_cache(self) -> Path | None:
        """Cache directory, only when it exists on disk."""
        if self.cache_path and self.cache_path.is_dir():
            return self.cache_path
        return None

    def family(self, package_name: str) -> FamilyOverrides:
        """Overrides for a package's family (empty model when none)."""
        return self.families.get(package_family(package_name), FamilyOverrides())

    def add_package_option(self, family: str, stage: str, args: list[str]) -> None:
        """Append structured args to a family's ``<stage>_opts_array``."""
        field_name = f"{stage}_opts_array"
        if field_name not in FamilyOverrides.model_fields:
            raise ConfigError(
                f"Unknown package_option stage '{stage}' "
                "(expected configure, make or make_install)"
            )
        overrides = self.families.setdefault(family.upper(), FamilyOverrides())
        getattr(overrides, field_name).extend(args)


# ── Resolution helpers ──────────────────────────────────────────


def split_opts(value: str | None) -> list[str]:
    """Split a flat option string the way a shell would."""
    if not value:
        return []
    try:
        return shlex.split(value)
    except ValueError as e:
        raise ConfigError(f"Cannot split options {value!r}: {e}") from e


def resolve(family_value: str | None, global_value: str | None, default: str | None) -> str | None:
    """Apply the family → global → default precedence chain."""
    if family_value is not None:
        return family_value
    if global_value is not None:
        return global_value
    return default


# ── Loading ─────────────────────────────────────────────────────


def _read_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML config file into a plain mapping."""
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading build config from %s", path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def _env_settings(environ: Mapping[str, str]) -> dict[str, Any]:
    """Pick the settings carried by environment variables."""
    out: dict[str, Any] = {}

    simple = {
        f"{ENV_PREFIX}CACHE_PATH": "cache_path",
        f"{ENV_PREFIX}MIRROR_URL": "mirror_url",
        f"{ENV_PREFIX}BUILD_PATH": "build_path",
        f"{ENV_PREFIX}HTTP_CLIENT": "http_client",
        "TMPDIR": "tmpdir",
        "MAKE": "make",
        "CC": "cc",
        "CFLAGS": "cflags",
        "CONFIGURE_OPTS": "configure_opts",
        "MAKE_OPTS": "make_opts",
        "MAKE_INSTALL_OPTS": "make_install_opts",
    }
    for env_key, field_name in simple.items():
        if env_key in environ:
            out[field_name] = environ[env_key]

    # Empty path-like values mean "unset", not "current directory"
    for field_name in ("cache_path", "build_path", "tmpdir"):
        if out.get(field_name) == "":
            del out[field_name]

    skip = environ.get(f"{ENV_PREFIX}SKIP_MIRROR")
    if skip is not None:
        out["skip_mirror"] = skip.strip().lower() in _TRUTHY

    dirs = environ.get(f"{ENV_PREFIX}DEFINITIONS")
    if dirs:
        out["definition_dirs"] = [d for d in dirs.split(os.pathsep) if d]

    return out


def _env_families(environ: Mapping[str, str]) -> dict[str, dict[str, str]]:
    """Collect ``<FAMILY>_<SUFFIX>`` variables into per-family dicts."""
    families: dict[str, dict[str, str]] = {}
    for key, value in environ.items():
        if key.startswith(ENV_PREFIX):
            continue
        for suffix, field_name in _FAMILY_ENV_SUFFIXES:
            if key.endswith(suffix) and len(key) > len(suffix):
                family = key[: -len(suffix)]
                families.setdefault(family, {})[field_name] = value
                break
    return families


def load_config(
    environ: Mapping[str, str] | None = None,
    path: Path | None = None,
    **overrides: Any,
) -> BuildConfig:
    """Build a ``BuildConfig`` from a config file, the environment and overrides.

    Args:
        environ: Environment mapping (default: ``os.environ``).
        path: Optional YAML config file.  Falls back to ``RTBUILD_CONFIG``.
        **overrides: Final keyword overrides (CLI flags such as ``keep``).

    Returns:
        Validated BuildConfig.

    Raises:
        ConfigError: If the file is unreadable or values fail validation.
    """
    env = os.environ if environ is None else environ

    if path is None and env.get(f"{ENV_PREFIX}CONFIG"):
        path = Path(env[f"{ENV_PREFIX}CONFIG"])

    data: dict[str, Any] = _read_config_file(path) if path else {}
    file_families = data.pop("families", None) or {}
    if not isinstance(file_families, dict):
        raise ConfigError("'families' must be a mapping of FAMILY → overrides")

    families: dict[str, dict[str, Any]] = {
        str(name).upper(): dict(values or {}) for name, values in file_families.items()
    }
    for name, values in _env_families(env).items():
        families.setdefault(name, {}).update(values)

    data.update(_env_settings(env))
    data.update({k: v for k, v in overrides.items() if v is not None})
    data["families"] = families

    try:
        config = BuildConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid build configuration: {e}") from e

    logger.debug(
        "Build config: cache=%s mirror=%s families=%s",
        config.cache_path, config.effective_mirror, sorted(config.families),
    )
    return config
