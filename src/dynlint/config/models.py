# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models for plugin resolution, builds and execution."""

from __future__ import annotations

import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.models import BuildProfile, GitCoordinate, LibraryOptions

GLOB_METACHARACTERS: Final[frozenset[str]] = frozenset("*?[")
DEFAULT_DRIVER_CRATE_VERSION: Final[str] = "2.1.11"
CACHE_DIR_NAME: Final[str] = "dynlint"


def has_glob_magic(text: str) -> bool:
    """Return whether ``text`` contains glob metacharacters."""

    return any(char in GLOB_METACHARACTERS for char in text)


class DowngradePolicy(str, Enum):
    """Enumerate how strictly drivers must match a requested toolchain."""

    EXACT = "exact"
    COMPATIBLE = "compatible"


class LibraryDeclaration(BaseModel):
    """One entry of the ``libraries`` array."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str | None = None
    pattern: str | None = None
    git: str | None = None
    rev: str | None = None
    tag: str | None = None
    branch: str | None = None
    profile: BuildProfile | None = None
    enabled: bool = True

    @model_validator(mode="after")
    def _check_shape(self) -> LibraryDeclaration:
        if self.git is not None and self.path is not None:
            raise ValueError("git libraries select subdirectories with `pattern`, not `path`")
        if self.git is None and self.path is None and self.pattern is None:
            raise ValueError("library entries need a `path`, `pattern` or `git` key")
        selectors = [value for value in (self.rev, self.tag, self.branch) if value is not None]
        if selectors and self.git is None:
            raise ValueError("`rev`, `tag` and `branch` are only valid with `git`")
        if len(selectors) > 1:
            raise ValueError("at most one of `rev`, `tag` or `branch` may be given")
        return self

    @property
    def is_literal(self) -> bool:
        """Return whether the entry names exactly one local path."""

        return self.git is None and self.pattern is None and self.path is not None and not has_glob_magic(self.path)

    @property
    def coordinate(self) -> GitCoordinate | None:
        """Return the git coordinate for remote entries."""

        if self.git is None:
            return None
        return GitCoordinate(url=self.git, rev=self.rev, tag=self.tag, branch=self.branch)

    @property
    def options(self) -> LibraryOptions:
        return LibraryOptions(profile=self.profile, enabled=self.enabled)

    def describe(self) -> str:
        """Return a compact human-readable rendering of the entry."""

        if self.git is not None:
            selector = self.rev or self.tag or self.branch
            suffix = f"@{selector}" if selector else ""
            pattern = f" [{self.pattern}]" if self.pattern else ""
            return f"git:{self.git}{suffix}{pattern}"
        if self.pattern is not None:
            base = f"{self.path}/" if self.path else ""
            return f"pattern:{base}{self.pattern}"
        return f"path:{self.path}"


class ProjectConfig(BaseModel):
    """Target project location and pass-through arguments."""

    model_config = ConfigDict(validate_assignment=True)

    root: Path = Field(default_factory=Path.cwd)
    passthrough: tuple[str, ...] = ()
    target_dir: Path | None = None

    @property
    def resolved_target_dir(self) -> Path:
        """Return the build-output directory shared by all driver invocations."""

        return self.target_dir if self.target_dir is not None else self.root / "target" / "dynlint"


class ToolchainConfig(BaseModel):
    """Toolchain resolution and provisioning switches."""

    model_config = ConfigDict(validate_assignment=True)

    auto_install: bool = False
    allow_downgrade: bool = False
    allow_active_fallback: bool = False
    compat_window_days: int = Field(default=0, ge=0)

    @property
    def downgrade_policy(self) -> DowngradePolicy:
        return DowngradePolicy.COMPATIBLE if self.allow_downgrade else DowngradePolicy.EXACT


class DriverConfig(BaseModel):
    """Harness crate selection used when scaffolding drivers."""

    model_config = ConfigDict(validate_assignment=True)

    crate_version: str = DEFAULT_DRIVER_CRATE_VERSION
    crate_path: Path | None = None


class BuildConfig(BaseModel):
    """Plugin build settings."""

    model_config = ConfigDict(validate_assignment=True)

    profile: BuildProfile = BuildProfile.DEBUG
    jobs: int | None = Field(default=None, ge=1)

    @property
    def worker_count(self) -> int:
        """Return the worker pool size, defaulting to available parallelism."""

        return self.jobs or os.cpu_count() or 1


class ExecutionConfig(BaseModel):
    """Driver execution settings."""

    model_config = ConfigDict(validate_assignment=True)

    strict: bool = True
    parallel_groups: bool = False
    rustflags: str | None = None


class CacheConfig(BaseModel):
    """Persistent cache location."""

    model_config = ConfigDict(validate_assignment=True)

    root: Path | None = None

    def resolve_root(self, env: Mapping[str, str] | None = None) -> Path:
        """Return the cache root honouring XDG conventions.

        Args:
            env: Environment mapping, defaults to :data:`os.environ`.

        Returns:
            Path: Absolute cache root directory.
        """

        if self.root is not None:
            return self.root.expanduser().resolve()
        environ = os.environ if env is None else env
        xdg = environ.get("XDG_CACHE_HOME")
        base = Path(xdg) if xdg else Path.home() / ".cache"
        return (base / CACHE_DIR_NAME).resolve()


class Config(BaseModel):
    """Top-level configuration assembled from layered sources."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    libraries: list[LibraryDeclaration] = Field(default_factory=list)
    library_path: list[Path] = Field(default_factory=list)
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    drivers: DriverConfig = Field(default_factory=DriverConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


__all__ = [
    "BuildConfig",
    "CacheConfig",
    "Config",
    "DowngradePolicy",
    "DriverConfig",
    "ExecutionConfig",
    "LibraryDeclaration",
    "ProjectConfig",
    "ToolchainConfig",
    "has_glob_magic",
]
