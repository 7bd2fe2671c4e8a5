# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Content fingerprints used as cache keys."""

from __future__ import annotations

import hashlib
import os
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Final

from ..core.models import BuildProfile

FINGERPRINT_VERSION: Final[bytes] = b"dynlint-fingerprint-v1"
FIELD_DELIMITER: Final[bytes] = b"::"
EXCLUDED_DIRECTORIES: Final[frozenset[str]] = frozenset(
    {"target", ".git", ".hg", ".svn", ".idea", ".vscode", "__pycache__"},
)
_CHUNK_SIZE: Final[int] = 1 << 16
SYMLINK_MARKER: Final[bytes] = b"symlink\0"


def iter_source_files(root: Path) -> Iterator[Path]:
    """Yield files under ``root`` in a stable order, skipping build output and VCS metadata.

    Symbolic links are yielded as entries of their own and never followed, so
    a dangling link (an editor lock file, say) is part of the tree like any
    other file.

    Args:
        root: Library source directory.

    Yields:
        Path: Files and links sorted by their path relative to ``root``.
    """

    collected: list[Path] = []
    for current, dirnames, filenames in os.walk(root):
        base = Path(current)
        kept = [name for name in dirnames if name not in EXCLUDED_DIRECTORIES]
        linked = [name for name in kept if (base / name).is_symlink()]
        dirnames[:] = sorted(name for name in kept if name not in linked)
        collected.extend(base / name for name in (*filenames, *linked))
    yield from sorted(collected, key=lambda path: path.relative_to(root).as_posix())


def file_digest(path: Path) -> str:
    hasher = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def entry_digest(path: Path) -> str | None:
    """Return the digest of one tree entry, or ``None`` for sockets and pipes.

    A symbolic link is hashed by its target text rather than the target's
    content.
    """

    if path.is_symlink():
        target = os.readlink(path)
        return hashlib.sha256(SYMLINK_MARKER + os.fsencode(target)).hexdigest()
    if not path.is_file():
        return None
    return file_digest(path)


def source_digest(root: Path) -> str:
    """Return a digest covering every source file path and content under ``root``."""

    hasher = hashlib.sha256()
    for path in iter_source_files(root):
        digest = entry_digest(path)
        if digest is None:
            continue
        hasher.update(path.relative_to(root).as_posix().encode("utf-8"))
        hasher.update(b"\0")
        hasher.update(digest.encode("ascii"))
        hasher.update(b"\n")
    return hasher.hexdigest()


def compute_fingerprint(
    *,
    identity: str,
    toolchain: str,
    profile: BuildProfile,
    source_root: Path,
) -> str:
    """Return the build-cache key for one library build.

    Args:
        identity: Canonical source path of the library.
        toolchain: Toolchain identifier the library is built with.
        profile: Build profile.
        source_root: Directory whose content is hashed.

    Returns:
        str: Hex digest that changes whenever any input changes.
    """

    hasher = hashlib.sha256()
    hasher.update(FINGERPRINT_VERSION)
    for field in (identity, toolchain, profile.value, source_digest(source_root)):
        hasher.update(FIELD_DELIMITER)
        hasher.update(field.encode("utf-8"))
    return hasher.hexdigest()


def harness_fingerprint(files: Mapping[str, str], *, crate_spec: str) -> str:
    """Return the fingerprint of the driver harness sources.

    Args:
        files: Relative path to template text for the harness package.
        crate_spec: Dependency specification of the driver crate.

    Returns:
        str: Hex digest independent of the toolchain being built for.
    """

    hasher = hashlib.sha256()
    hasher.update(FINGERPRINT_VERSION)
    hasher.update(FIELD_DELIMITER)
    hasher.update(crate_spec.encode("utf-8"))
    for name in sorted(files):
        hasher.update(FIELD_DELIMITER)
        hasher.update(name.encode("utf-8"))
        hasher.update(b"\0")
        hasher.update(files[name].encode("utf-8"))
    return hasher.hexdigest()


__all__ = [
    "EXCLUDED_DIRECTORIES",
    "compute_fingerprint",
    "entry_digest",
    "file_digest",
    "harness_fingerprint",
    "iter_source_files",
    "source_digest",
]
