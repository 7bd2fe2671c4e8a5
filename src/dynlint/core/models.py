# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Data model flowing through specification, resolution, build and execution."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .errors import ExitCategory


class BuildProfile(str, Enum):
    """Enumerate cargo build profiles used for plugin libraries."""

    DEBUG = "debug"
    RELEASE = "release"

    @property
    def output_dir(self) -> str:
        """Return the directory cargo writes artefacts for this profile into."""

        return self.value


class SpecificationKind(str, Enum):
    """Enumerate the ways a plugin source can be declared."""

    PATH = "path"
    PATTERN = "pattern"
    GIT = "git"
    PREBUILT = "prebuilt"


class ToolchainSource(str, Enum):
    """Enumerate where a library's toolchain identifier came from."""

    DECLARED = "declared"
    TOOLCHAIN_FILE = "toolchain-file"
    ACTIVE = "active"
    FILENAME = "filename"


class GitCoordinate(BaseModel):
    """Remote repository location plus an optional revision selector."""

    model_config = ConfigDict(frozen=True)

    url: str
    rev: str | None = None
    tag: str | None = None
    branch: str | None = None

    @property
    def reference(self) -> str | None:
        """Return the selector passed to ``git checkout`` (``None`` for the default head)."""

        if self.rev:
            return self.rev
        if self.tag:
            return f"tags/{self.tag}"
        if self.branch:
            return f"origin/{self.branch}"
        return None


class LibraryOptions(BaseModel):
    """Per-library options; the last declaration of a library wins."""

    model_config = ConfigDict(frozen=True)

    profile: BuildProfile | None = None
    enabled: bool = True


class LibrarySpecification(BaseModel):
    """Unresolved reference to a plugin source, immutable once parsed."""

    model_config = ConfigDict(frozen=True)

    kind: SpecificationKind
    source: Path
    declared: str
    workspace: Path
    git: GitCoordinate | None = None
    options: LibraryOptions = Field(default_factory=LibraryOptions)
    declaration_index: int = 0

    @property
    def identity(self) -> str:
        """Return the canonical source identity used for deduplication."""

        return str(self.source)


class LibraryPackage(BaseModel):
    """Metadata read from a plugin library's manifest."""

    model_config = ConfigDict(frozen=True)

    crate_name: str
    name: str
    lints: tuple[str, ...]
    root: Path
    workspace_root: Path
    declared_toolchain: str | None = None


class DeclaredLibrary(BaseModel):
    """Specification paired with its manifest metadata, before toolchain resolution."""

    model_config = ConfigDict(frozen=True)

    spec: LibrarySpecification
    package: LibraryPackage

    @property
    def identity(self) -> str:
        return self.spec.identity

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def lints(self) -> tuple[str, ...]:
        return self.package.lints


class ResolvedLibrary(BaseModel):
    """Library bound to a concrete source directory and exactly one toolchain."""

    model_config = ConfigDict(frozen=True)

    spec: LibrarySpecification
    package: LibraryPackage
    toolchain: str
    toolchain_source: ToolchainSource

    @property
    def identity(self) -> str:
        return self.spec.identity

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def lints(self) -> tuple[str, ...]:
        return self.package.lints

    @property
    def source_dir(self) -> Path:
        return self.package.root

    @property
    def prebuilt(self) -> bool:
        """Return whether the library ships as an already-built file."""

        return self.spec.kind is SpecificationKind.PREBUILT


class BuiltArtifact(BaseModel):
    """Compiled plugin library owned by the build cache."""

    model_config = ConfigDict(frozen=True)

    library: ResolvedLibrary
    path: Path
    fingerprint: str
    profile: BuildProfile
    built_at: datetime
    cached: bool = False

    @property
    def identity(self) -> str:
        return self.library.identity

    @property
    def lints(self) -> tuple[str, ...]:
        return self.library.lints

    @property
    def toolchain(self) -> str:
        return self.library.toolchain


class DriverBinary(BaseModel):
    """Built execution harness able to load plugins for one toolchain."""

    model_config = ConfigDict(frozen=True)

    toolchain: str
    path: Path
    harness_fingerprint: str
    built_at: datetime
    cached: bool = False
    requested: str | None = None

    @property
    def downgraded(self) -> bool:
        """Return whether this driver serves a different (older) toolchain than requested."""

        return self.requested is not None and self.requested != self.toolchain


@dataclass(frozen=True, slots=True)
class ExecutionGroup:
    """Built libraries sharing one toolchain plus the driver that loads them."""

    toolchain: str
    driver: DriverBinary
    artifacts: tuple[BuiltArtifact, ...]

    @property
    def library_paths(self) -> tuple[Path, ...]:
        """Return the library paths handed to the driver, in a stable order."""

        return tuple(artifact.path for artifact in self.artifacts)


@dataclass(frozen=True, slots=True)
class GroupResult:
    """Outcome of one toolchain group, including groups that never executed."""

    toolchain: str
    category: ExitCategory
    libraries: tuple[str, ...]
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.category is ExitCategory.SUCCESS


__all__ = [
    "BuildProfile",
    "BuiltArtifact",
    "DeclaredLibrary",
    "DriverBinary",
    "ExecutionGroup",
    "GitCoordinate",
    "GroupResult",
    "LibraryOptions",
    "LibraryPackage",
    "LibrarySpecification",
    "ResolvedLibrary",
    "SpecificationKind",
    "ToolchainSource",
]
