# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Concrete configuration sources (defaults, Cargo manifests, TOML, environment)."""

from __future__ import annotations

import os
import tomllib
from abc import ABC, abstractmethod
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any, Final

from ..core.errors import ConfigError
from .models import Config, ProjectConfig

METADATA_KEY: Final[str] = "dynlint"
LIBRARY_PATH_ENV: Final[str] = "DYNLINT_LIBRARY_PATH"
CACHE_DIR_ENV: Final[str] = "DYNLINT_CACHE_DIR"

# Flat keys accepted at the top level of a declaration table, mapped onto sections.
_FLAT_ALIASES: Final[dict[str, tuple[str, str]]] = {
    "auto_install_toolchains": ("toolchain", "auto_install"),
    "allow_downgrade": ("toolchain", "allow_downgrade"),
    "profile": ("build", "profile"),
    "jobs": ("build", "jobs"),
    "strict": ("execution", "strict"),
}


def normalise_keys(value: Any) -> Any:
    """Return ``value`` with kebab-case table keys rewritten to snake_case."""

    if isinstance(value, Mapping):
        return {str(key).replace("-", "_"): normalise_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [normalise_keys(item) for item in value]
    return value


def hoist_flat_aliases(fragment: Mapping[str, Any]) -> dict[str, Any]:
    """Move recognised top-level shorthand keys into their sections.

    Args:
        fragment: Normalised configuration fragment.

    Returns:
        dict[str, Any]: Fragment where shorthand keys live in their sections.
    """

    result: dict[str, Any] = dict(fragment)
    for alias, (section, field) in _FLAT_ALIASES.items():
        if alias not in result:
            continue
        value = result.pop(alias)
        existing = result.get(section)
        section_payload: dict[str, Any] = dict(existing) if isinstance(existing, Mapping) else {}
        section_payload[field] = value
        result[section] = section_payload
    return result


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(data, MutableMapping):
        raise ConfigError(f"Configuration at {path} must be a table")
    return dict(data)


def _is_library_metadata(key: str, value: Any) -> bool:
    """Return whether ``key`` describes the manifest's own plugin library rather than configuration."""

    return key == "lints" or (key == "toolchain" and isinstance(value, str))


class ConfigSource(ABC):
    """Produce one configuration fragment."""

    name: str = "source"

    @abstractmethod
    def load(self) -> Mapping[str, Any]:
        """Return the configuration fragment contributed by this source."""

    @abstractmethod
    def describe(self) -> str:
        """Return a human-readable description used in diagnostics."""


class DefaultConfigSource(ConfigSource):
    """Return the built-in defaults as a configuration fragment."""

    name = "defaults"

    def __init__(self, project_root: Path) -> None:
        self._project_root = project_root

    def load(self) -> Mapping[str, Any]:
        return Config(project=ProjectConfig(root=self._project_root)).model_dump()

    def describe(self) -> str:
        return "Built-in defaults"


class TomlConfigSource(ConfigSource):
    """Load a standalone ``dynlint.toml`` document."""

    def __init__(self, path: Path, *, name: str | None = None) -> None:
        self._path = path
        self.name = name or str(path)

    def load(self) -> Mapping[str, Any]:
        if not self._path.is_file():
            return {}
        return hoist_flat_aliases(normalise_keys(_read_toml(self._path)))

    def describe(self) -> str:
        return f"TOML configuration at {self.name}"


class CargoManifestConfigSource(ConfigSource):
    """Read ``[workspace.metadata.dynlint]`` or ``[package.metadata.dynlint]`` from ``Cargo.toml``."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self.name = str(path)

    def load(self) -> Mapping[str, Any]:
        if not self._path.is_file():
            return {}
        document = _read_toml(self._path)
        merged: dict[str, Any] = {}
        for table in ("package", "workspace"):
            section = document.get(table)
            if not isinstance(section, Mapping):
                continue
            metadata = section.get("metadata")
            if not isinstance(metadata, Mapping):
                continue
            payload = metadata.get(METADATA_KEY)
            if payload is None:
                continue
            if not isinstance(payload, Mapping):
                raise ConfigError(f"{self._path}: `{table}.metadata.{METADATA_KEY}` must be a table")
            merged.update(
                {key: value for key, value in payload.items() if not _is_library_metadata(key, value)},
            )
        return hoist_flat_aliases(normalise_keys(merged))

    def describe(self) -> str:
        return f"Cargo manifest metadata ({self.name})"


class EnvironmentConfigSource(ConfigSource):
    """Read library search paths and the cache root from the environment."""

    name = "environment"

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env = os.environ if env is None else env

    def load(self) -> Mapping[str, Any]:
        fragment: dict[str, Any] = {}
        library_path = self._env.get(LIBRARY_PATH_ENV)
        if library_path:
            fragment["library_path"] = [Path(entry) for entry in library_path.split(os.pathsep) if entry]
        cache_dir = self._env.get(CACHE_DIR_ENV)
        if cache_dir:
            fragment["cache"] = {"root": Path(cache_dir)}
        return fragment

    def describe(self) -> str:
        return f"environment ({LIBRARY_PATH_ENV}, {CACHE_DIR_ENV})"


__all__ = [
    "CACHE_DIR_ENV",
    "LIBRARY_PATH_ENV",
    "CargoManifestConfigSource",
    "ConfigSource",
    "DefaultConfigSource",
    "EnvironmentConfigSource",
    "TomlConfigSource",
    "hoist_flat_aliases",
    "normalise_keys",
]
