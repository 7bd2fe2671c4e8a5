# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Explicit store object owning every mutation of the persistent cache."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Literal, TypeVar

from pydantic import BaseModel, ValidationError

from ..core.errors import ConfigError
from .layout import README_TEXT, CacheKind, CacheLayout
from .locking import file_lock

LOGGER = logging.getLogger(__name__)

DRIVER_PATH_ENV: Final[str] = "DYNLINT_DRIVER_PATH"
STAGING_PREFIX: Final[str] = ".staging-"

ManifestT = TypeVar("ManifestT", bound=BaseModel)
EntryKind = Literal["plugin", "driver"]


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """Describe one committed cache entry."""

    kind: EntryKind
    key: str
    path: Path
    size: int


def _directory_size(path: Path) -> int:
    total = 0
    for child in path.rglob("*"):
        if child.is_file():
            total += child.stat().st_size
    return total


class CacheStore:
    """Persisted plugin and driver cache with per-key locking and atomic commits."""

    def __init__(self, layout: CacheLayout) -> None:
        self._layout = layout

    @classmethod
    def open(cls, root: Path, *, env: Mapping[str, str] | None = None) -> CacheStore:
        """Open (and initialise on first use) the cache rooted at ``root``.

        Args:
            root: Cache root directory.
            env: Environment mapping consulted for ``DYNLINT_DRIVER_PATH``.

        Returns:
            CacheStore: Store whose directories all exist.

        Raises:
            ConfigError: If ``DYNLINT_DRIVER_PATH`` names a missing directory.
        """

        environ = os.environ if env is None else env
        override: Path | None = None
        driver_path = environ.get(DRIVER_PATH_ENV)
        if driver_path:
            override = Path(driver_path).expanduser()
            if not override.is_dir():
                raise ConfigError(f"{DRIVER_PATH_ENV}={driver_path} is not a directory")
        layout = CacheLayout(root=root, drivers_override=override)
        for directory in layout.directories():
            directory.mkdir(parents=True, exist_ok=True)
        if not layout.readme.exists():
            layout.readme.write_text(README_TEXT, encoding="utf-8")
        return cls(layout)

    @property
    def layout(self) -> CacheLayout:
        return self._layout

    def lock(self, kind: CacheKind, key: str) -> AbstractContextManager[Path]:
        """Return a context manager holding the exclusive lock for ``kind``/``key``."""

        return file_lock(self._layout.lock_file(kind, key))

    @contextmanager
    def staging(self, parent: Path) -> Iterator[Path]:
        """Yield a fresh staging directory beside ``parent``'s entries.

        Staging lives on the same filesystem as the final entry so the commit
        rename is atomic. Whatever remains when the context exits (failure,
        interrupt, or an uncommitted directory) is removed.

        Args:
            parent: Directory that will contain the committed entry.

        Yields:
            Path: Empty staging directory.
        """

        parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=parent))
        try:
            yield staging
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

    @contextmanager
    def scratch(self, prefix: str) -> Iterator[Path]:
        """Yield a temporary working directory under ``tmp/`` removed on exit."""

        self._layout.staging_dir.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix=prefix, dir=self._layout.staging_dir))
        try:
            yield scratch
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

    def commit(self, staging: Path, destination: Path) -> Path:
        """Atomically move ``staging`` into place at ``destination``.

        A stale entry already at ``destination`` is moved aside first and
        discarded. Callers must hold the entry's lock.

        Args:
            staging: Fully populated staging directory.
            destination: Final entry location.

        Returns:
            Path: ``destination``.
        """

        if destination.exists():
            discard = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=destination.parent)) / "stale"
            os.replace(destination, discard)
            shutil.rmtree(discard.parent, ignore_errors=True)
        os.replace(staging, destination)
        LOGGER.debug("committed cache entry=%s", destination)
        return destination

    @staticmethod
    def write_manifest(directory: Path, manifest: BaseModel, filename: str) -> Path:
        path = directory / filename
        path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")
        return path

    @staticmethod
    def read_manifest(directory: Path, model: type[ManifestT], filename: str) -> ManifestT | None:
        """Return the manifest stored in ``directory`` or ``None`` when unusable.

        Args:
            directory: Cache entry directory.
            model: Pydantic model describing the manifest.
            filename: Manifest filename inside the entry.

        Returns:
            ManifestT | None: Parsed manifest; missing or corrupt files are a miss.
        """

        path = directory / filename
        try:
            return model.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValidationError, ValueError) as exc:
            LOGGER.debug("ignoring unreadable manifest=%s error=%s", path, exc)
            return None

    def entries(self) -> list[CacheEntry]:
        """Return every committed plugin and driver entry."""

        found: list[CacheEntry] = []
        for kind, directory in (("plugin", self._layout.plugins_dir), ("driver", self._layout.drivers_dir)):
            if not directory.is_dir():
                continue
            for child in sorted(directory.iterdir()):
                if not child.is_dir() or child.name.startswith("."):
                    continue
                found.append(CacheEntry(kind=kind, key=child.name, path=child, size=_directory_size(child)))
        return found

    def remove(self, kind: EntryKind, key: str) -> bool:
        """Delete one entry under its lock; returns whether it existed."""

        if kind == "plugin":
            entry = self._layout.plugin_entry(key)
        else:
            entry = self._layout.driver_entry(key)
        with self.lock(kind, key):
            if not entry.exists():
                return False
            shutil.rmtree(entry)
        return True

    def clear(self, *, drivers: bool = True) -> list[Path]:
        """Remove cached plugins (and drivers when requested).

        Args:
            drivers: Whether driver entries are removed as well.

        Returns:
            list[Path]: Entries that were removed.
        """

        removed: list[Path] = []
        for entry in self.entries():
            if entry.kind == "driver" and not drivers:
                continue
            key = entry.key
            if self.remove(entry.kind, key):
                removed.append(entry.path)
        return removed

    def prune_staging(self) -> int:
        """Remove leftover staging and scratch directories; returns the count."""

        removed = 0
        candidates: list[Path] = []
        for parent in (self._layout.plugins_dir, self._layout.drivers_dir):
            if parent.is_dir():
                candidates.extend(child for child in parent.iterdir() if child.name.startswith(STAGING_PREFIX))
        if self._layout.staging_dir.is_dir():
            candidates.extend(self._layout.staging_dir.iterdir())
        for candidate in candidates:
            shutil.rmtree(candidate, ignore_errors=True)
            removed += 1
        return removed


__all__ = ["DRIVER_PATH_ENV", "CacheEntry", "CacheStore"]
