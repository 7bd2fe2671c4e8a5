# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Fingerprint-keyed cache of compiled plugin libraries."""

from __future__ import annotations

import logging
import shutil
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict

from ..cache.fingerprint import compute_fingerprint, file_digest
from ..cache.store import CacheStore
from ..core.errors import BuildFailure
from ..core.models import BuildProfile, BuiltArtifact, ResolvedLibrary
from ..platform import library_filename
from .builder import BuildRequest, LibraryBuilder

LOGGER = logging.getLogger(__name__)

ARTIFACT_MANIFEST: Final[str] = "artifact.json"


class ArtifactManifest(BaseModel):
    """Metadata persisted beside each cached library."""

    model_config = ConfigDict(frozen=True)

    fingerprint: str
    identity: str
    name: str
    toolchain: str
    profile: BuildProfile
    filename: str
    built_at: datetime


@dataclass(frozen=True, slots=True)
class BuildStats:
    builds: int = 0
    cache_hits: int = 0


class BuildCache:
    """Serve plugin libraries from the cache, building them on a miss.

    The store is the sole writer of cache entries. Lookups run without a lock;
    a miss takes the per-fingerprint lock and looks again before building, so
    concurrent requests for one fingerprint collapse into a single build.
    """

    def __init__(self, store: CacheStore, builder: LibraryBuilder) -> None:
        self._store = store
        self._builder = builder
        self._counter_lock = threading.Lock()
        self._builds = 0
        self._hits = 0

    @property
    def stats(self) -> BuildStats:
        with self._counter_lock:
            return BuildStats(builds=self._builds, cache_hits=self._hits)

    def fingerprint(self, resolved: ResolvedLibrary, profile: BuildProfile) -> str:
        return compute_fingerprint(
            identity=resolved.identity,
            toolchain=resolved.toolchain,
            profile=profile,
            source_root=resolved.source_dir,
        )

    def build(self, resolved: ResolvedLibrary, profile: BuildProfile) -> BuiltArtifact:
        """Return the compiled library for ``resolved``.

        Args:
            resolved: Library bound to its toolchain.
            profile: Run-wide build profile; a per-library override wins.

        Returns:
            BuiltArtifact: Cached or freshly built library.

        Raises:
            BuildFailure: If the build step rejects the library, or its
                sources or output cannot be read.
        """

        try:
            return self._build_or_reuse(resolved, profile)
        except OSError as exc:
            raise BuildFailure(resolved.identity, toolchain=resolved.toolchain, diagnostics=str(exc)) from exc

    def _build_or_reuse(self, resolved: ResolvedLibrary, profile: BuildProfile) -> BuiltArtifact:
        if resolved.prebuilt:
            return self._prebuilt(resolved)

        effective = resolved.spec.options.profile or profile
        fingerprint = self.fingerprint(resolved, effective)
        entry = self._store.layout.plugin_entry(fingerprint)

        artifact = self._lookup(entry, resolved, fingerprint)
        if artifact is not None:
            return self._hit(artifact)

        with self._store.lock("plugin", fingerprint):
            artifact = self._lookup(entry, resolved, fingerprint)
            if artifact is not None:
                return self._hit(artifact)
            artifact = self._build(entry, resolved, effective, fingerprint)
        with self._counter_lock:
            self._builds += 1
        return artifact

    def _hit(self, artifact: BuiltArtifact) -> BuiltArtifact:
        LOGGER.debug("cache hit %s fingerprint=%s", artifact.identity, artifact.fingerprint)
        with self._counter_lock:
            self._hits += 1
        return artifact

    def _lookup(self, entry: Path, resolved: ResolvedLibrary, fingerprint: str) -> BuiltArtifact | None:
        manifest = self._store.read_manifest(entry, ArtifactManifest, ARTIFACT_MANIFEST)
        if manifest is None or manifest.fingerprint != fingerprint:
            return None
        path = entry / manifest.filename
        if not path.is_file():
            LOGGER.debug("cached library %s is missing; rebuilding", path)
            return None
        return BuiltArtifact(
            library=resolved,
            path=path,
            fingerprint=fingerprint,
            profile=manifest.profile,
            built_at=manifest.built_at,
            cached=True,
        )

    def _build(
        self,
        entry: Path,
        resolved: ResolvedLibrary,
        profile: BuildProfile,
        fingerprint: str,
    ) -> BuiltArtifact:
        target_dir = self._store.layout.target_dir_for(resolved.source_dir, resolved.toolchain)
        output = self._builder.build(BuildRequest(library=resolved, profile=profile, target_dir=target_dir))
        filename = library_filename(resolved.name, resolved.toolchain)
        manifest = ArtifactManifest(
            fingerprint=fingerprint,
            identity=resolved.identity,
            name=resolved.name,
            toolchain=resolved.toolchain,
            profile=profile,
            filename=filename,
            built_at=datetime.now(timezone.utc),
        )
        with self._store.staging(entry.parent) as staging:
            shutil.copy2(output, staging / filename)
            self._store.write_manifest(staging, manifest, ARTIFACT_MANIFEST)
            self._store.commit(staging, entry)
        LOGGER.info("cached %s as %s", resolved.identity, filename)
        return BuiltArtifact(
            library=resolved,
            path=entry / filename,
            fingerprint=fingerprint,
            profile=profile,
            built_at=manifest.built_at,
        )

    @staticmethod
    def _prebuilt(resolved: ResolvedLibrary) -> BuiltArtifact:
        path = resolved.spec.source
        stat = path.stat()
        return BuiltArtifact(
            library=resolved,
            path=path,
            fingerprint=file_digest(path),
            profile=resolved.spec.options.profile or BuildProfile.RELEASE,
            built_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )


__all__ = ["ARTIFACT_MANIFEST", "ArtifactManifest", "BuildCache", "BuildStats"]
