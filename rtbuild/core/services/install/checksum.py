"""
Checksum verification — best effort, fail only on a proven mismatch.

Policy, in order:

    file missing                       → pass
    no expected digest                 → pass
    digest length unrecognised         → fail (sha256 reported)
    algorithm unavailable at runtime   → pass (logged)
    computed digest empty              → fail
    computed != expected (any case)    → fail

The algorithm is chosen from the expected digest's length, so a
definition can mix md5 and sha256 fragments.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Collection
from pathlib import Path

from rtbuild.core.errors import ChecksumMismatchError

logger = logging.getLogger(__name__)

_ALGORITHM_BY_LENGTH = {
    32: "md5",
    40: "sha1",
    64: "sha256",
    128: "sha512",
}

_CHUNK = 64 * 1024

# Digest reported when the expected value has no recognisable length
_FALLBACK_ALGORITHM = "sha256"


def split_checksum(url: str) -> tuple[str, str | None]:
    """Split ``URL#checksum`` into ``(URL, checksum)``."""
    base, _, fragment = url.partition("#")
    return base, fragment or None


def algorithm_for(expected: str) -> str | None:
    """Digest algorithm implied by a hex digest's length."""
    return _ALGORITHM_BY_LENGTH.get(len(expected))


def compute_digest(path: Path, algorithm: str) -> str:
    """Hex digest of a file."""
    h = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def _check(
    path: Path,
    expected: str | None,
    algorithms: Collection[str] | None,
) -> tuple[bool, str | None]:
    """Apply the policy.  Returns ``(ok, computed)``; computed is None when skipped."""
    if not path.exists():
        return True, None
    if not expected:
        return True, None

    expected = expected.strip().lower()
    algorithm = algorithm_for(expected)
    if algorithm is None:
        logger.error(
            "unexpected checksum length: %d (%s); expected 32 (MD5), 40 (SHA1), "
            "64 (SHA2-256) or 128 (SHA2-512)",
            len(expected), expected,
        )
        return False, compute_digest(path, _FALLBACK_ALGORITHM)

    available = hashlib.algorithms_available if algorithms is None else algorithms
    if algorithm not in available:
        logger.warning(
            "%s unavailable, skipping checksum verification of %s", algorithm, path.name,
        )
        return True, None

    computed = compute_digest(path, algorithm).lower()
    if not computed:
        return False, computed
    return computed == expected, computed


def verify_checksum(
    path: Path,
    expected: str | None,
    *,
    algorithms: Collection[str] | None = None,
) -> bool:
    """Check ``path`` against ``expected`` under the permissive policy.

    Args:
        path: File to verify.
        expected: Hex digest, or None/empty when the definition has none.
        algorithms: Digest capability override (default:
            ``hashlib.algorithms_available``).

    Returns:
        False only for a concrete mismatch, an empty digest, or an
        unrecognised digest length.
    """
    ok, computed = _check(path, expected, algorithms)
    if not ok:
        logger.warning(
            "checksum mismatch: %s (file) vs %s (expected), computed %s",
            path.name, expected, computed or "<empty>",
        )
    return ok


def ensure_checksum(
    path: Path,
    expected: str | None,
    *,
    algorithms: Collection[str] | None = None,
) -> None:
    """Like ``verify_checksum`` but raise on failure.

    Raises:
        ChecksumMismatchError: On a proven mismatch, an empty digest, or an
            unrecognised digest length.
    """
    ok, computed = _check(path, expected, algorithms)
    if not ok:
        expected = (expected or "").strip().lower()
        detail = "" if algorithm_for(expected) else f"unexpected checksum length {len(expected)}"
        raise ChecksumMismatchError(path, expected, computed or "<empty>", detail=detail)
    if computed is not None:
        logger.debug("Checksum OK: %s (%s)", path.name, computed)
