# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Filesystem layout of the persistent plugin and driver cache."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal

PLUGINS_SUBDIR: Final[str] = "plugins"
DRIVERS_SUBDIR: Final[str] = "drivers"
LOCKS_SUBDIR: Final[str] = "locks"
GIT_SUBDIR: Final[str] = "git"
TARGETS_SUBDIR: Final[str] = "targets"
STAGING_SUBDIR: Final[str] = "tmp"
README_FILENAME: Final[str] = "README.txt"

README_TEXT: Final[str] = """\
This directory contains plugin libraries and compiler drivers built by dynlint.

Deleting this directory, or any entry below plugins/ or drivers/, causes
dynlint to rebuild the removed entries the next time they are needed, but has
no other ill effects.
"""

CacheKind = Literal["plugin", "driver", "git", "project", "toolchain"]


def slugify(value: str) -> str:
    """Return a filesystem-friendly slug for ``value``."""

    return re.sub(r"[^A-Za-z0-9_.-]+", "-", value).strip("-") or "root"


def path_slug(path: Path) -> str:
    """Return a stable, collision-resistant slug for an absolute path.

    Args:
        path: Canonical path being keyed.

    Returns:
        str: Readable basename plus a short digest of the full path.
    """

    digest = hashlib.sha256(str(path).encode("utf-8")).hexdigest()[:12]
    return f"{slugify(path.name)}-{digest}"


@dataclass(frozen=True, slots=True)
class CacheLayout:
    """Resolve every directory beneath the cache root.

    Attributes:
        root: Base directory holding all cache state.
        drivers_override: Optional directory replacing ``<root>/drivers``.
    """

    root: Path
    drivers_override: Path | None = None

    @property
    def plugins_dir(self) -> Path:
        return self.root / PLUGINS_SUBDIR

    @property
    def drivers_dir(self) -> Path:
        return self.drivers_override if self.drivers_override is not None else self.root / DRIVERS_SUBDIR

    @property
    def locks_dir(self) -> Path:
        return self.root / LOCKS_SUBDIR

    @property
    def git_dir(self) -> Path:
        return self.root / GIT_SUBDIR

    @property
    def targets_dir(self) -> Path:
        return self.root / TARGETS_SUBDIR

    @property
    def staging_dir(self) -> Path:
        return self.root / STAGING_SUBDIR

    @property
    def readme(self) -> Path:
        return self.root / README_FILENAME

    def directories(self) -> tuple[Path, ...]:
        """Return the directories that must exist once the store is open."""

        return (
            self.root,
            self.plugins_dir,
            self.drivers_dir,
            self.locks_dir,
            self.git_dir,
            self.targets_dir,
            self.staging_dir,
        )

    def plugin_entry(self, fingerprint: str) -> Path:
        return self.plugins_dir / fingerprint

    def driver_entry(self, toolchain: str) -> Path:
        return self.drivers_dir / slugify(toolchain)

    def target_dir_for(self, source: Path, toolchain: str) -> Path:
        """Return the persistent cargo target directory for a library source."""

        return self.targets_dir / f"{path_slug(source)}-{slugify(toolchain)}"

    def checkout_dir(self, url: str) -> Path:
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
        name = slugify(url.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git"))
        return self.git_dir / f"{name}-{digest}"

    def lock_file(self, kind: CacheKind, key: str) -> Path:
        return self.locks_dir / f"{kind}-{slugify(key)}.lock"


__all__ = [
    "README_TEXT",
    "CacheKind",
    "CacheLayout",
    "path_slug",
    "slugify",
]
