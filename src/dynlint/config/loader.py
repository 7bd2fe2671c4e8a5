# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Config loading with layered precedence.

Sources are applied in order; later sources override earlier ones. Table
sections are deep-merged while the ``libraries`` and ``library_path`` arrays
accumulate, so the declaration order across sources is preserved and the last
declaration of a library wins.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.errors import ConfigError
from .models import Config
from .sources import (
    CargoManifestConfigSource,
    ConfigSource,
    DefaultConfigSource,
    EnvironmentConfigSource,
    TomlConfigSource,
    hoist_flat_aliases,
    normalise_keys,
)

CONFIG_FILENAME: Final[str] = "dynlint.toml"
MANIFEST_FILENAME: Final[str] = "Cargo.toml"
_ACCUMULATING_KEYS: Final[frozenset[str]] = frozenset({"libraries", "library_path"})


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _merge_fragment(base: Mapping[str, Any], fragment: Mapping[str, Any]) -> dict[str, Any]:
    accumulated = {key: [*base.get(key, []), *fragment[key]] for key in _ACCUMULATING_KEYS if key in fragment}
    remainder = {key: value for key, value in fragment.items() if key not in _ACCUMULATING_KEYS}
    merged = _deep_merge(base, remainder)
    merged.update(accumulated)
    return merged


class ConfigLoadResult(BaseModel):
    """Container bundling a resolved config with the sources that contributed."""

    model_config = ConfigDict(validate_assignment=True)

    config: Config
    sources: list[str] = Field(default_factory=list)


class ConfigLoader:
    """Apply layered configuration sources with predictable precedence."""

    def __init__(self, *, project_root: Path, sources: Sequence[ConfigSource]) -> None:
        if not sources:
            raise ValueError("at least one configuration source is required")
        self._project_root = project_root.resolve()
        self._sources = list(sources)

    @classmethod
    def for_root(
        cls,
        project_root: Path,
        *,
        config_file: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ConfigLoader:
        """Build a loader reading defaults, ``Cargo.toml``, ``dynlint.toml`` and the environment.

        Args:
            project_root: Target project directory.
            config_file: Optional explicit replacement for ``dynlint.toml``.
            env: Optional environment mapping for tests.

        Returns:
            ConfigLoader: Loader configured with default precedence ordering.
        """

        root = project_root.resolve()
        toml_path = config_file if config_file is not None else root / CONFIG_FILENAME
        sources: list[ConfigSource] = [
            DefaultConfigSource(root),
            CargoManifestConfigSource(root / MANIFEST_FILENAME),
            TomlConfigSource(toml_path),
            EnvironmentConfigSource(env),
        ]
        return cls(project_root=root, sources=sources)

    def load(self, overrides: Mapping[str, Any] | None = None) -> ConfigLoadResult:
        """Return the merged configuration.

        Args:
            overrides: Highest-precedence fragment, typically built from CLI flags.

        Returns:
            ConfigLoadResult: Validated configuration plus contributing sources.

        Raises:
            ConfigError: If any fragment is malformed or the result fails validation.
        """

        merged: dict[str, Any] = {}
        contributing: list[str] = []
        for source in self._sources:
            fragment = source.load()
            if not fragment:
                continue
            merged = _merge_fragment(merged, fragment)
            contributing.append(source.describe())
        if overrides:
            merged = _merge_fragment(merged, hoist_flat_aliases(normalise_keys(dict(overrides))))
            contributing.append("command line")
        try:
            config = Config.model_validate(merged)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration for {self._project_root}:\n{exc}") from exc
        return ConfigLoadResult(config=config, sources=contributing)


__all__ = ["CONFIG_FILENAME", "MANIFEST_FILENAME", "ConfigLoadResult", "ConfigLoader"]
