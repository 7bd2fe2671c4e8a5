# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for layered configuration loading."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from dynlint.config import ConfigLoader, DowngradePolicy, LibraryDeclaration
from dynlint.core.errors import ConfigError
from dynlint.core.models import BuildProfile


def _write(path: Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")


def test_sources_layer_and_libraries_accumulate(tmp_path: Path) -> None:
    _write(
        tmp_path / "Cargo.toml",
        '[workspace]\nmembers = []\n\n[workspace.metadata.dynlint]\nlibraries = [{ path = "libs/a" }]\n',
    )
    _write(
        tmp_path / "dynlint.toml",
        'auto-install-toolchains = true\nlibraries = [{ pattern = "libs/*" }]\n\n[build]\nprofile = "release"\n',
    )

    result = ConfigLoader.for_root(tmp_path, env={}).load({"libraries": [{"path": "extra"}]})
    config = result.config

    assert [entry.describe() for entry in config.libraries] == ["path:libs/a", "pattern:libs/*", "path:extra"]
    assert config.toolchain.auto_install is True
    assert config.build.profile is BuildProfile.RELEASE
    assert config.project.root == tmp_path.resolve()
    assert result.sources[-1] == "command line"


def test_command_line_overrides_file_values(tmp_path: Path) -> None:
    _write(tmp_path / "dynlint.toml", "[execution]\nstrict = true\nparallel-groups = true\n")

    config = ConfigLoader.for_root(tmp_path, env={}).load({"execution": {"strict": False}}).config

    assert config.execution.strict is False
    assert config.execution.parallel_groups is True


def test_environment_supplies_library_path_and_cache_dir(tmp_path: Path) -> None:
    first, second = tmp_path / "one", tmp_path / "two"
    env = {
        "DYNLINT_LIBRARY_PATH": f"{first}{os.pathsep}{second}",
        "DYNLINT_CACHE_DIR": str(tmp_path / "cache"),
    }

    config = ConfigLoader.for_root(tmp_path, env=env).load().config

    assert config.library_path == [first, second]
    assert config.cache.resolve_root(env) == (tmp_path / "cache").resolve()


def test_cache_root_defaults_to_xdg(tmp_path: Path) -> None:
    config = ConfigLoader.for_root(tmp_path, env={}).load().config

    assert config.cache.resolve_root({"XDG_CACHE_HOME": str(tmp_path / "xdg")}) == (tmp_path / "xdg" / "dynlint").resolve()


def test_allow_downgrade_selects_compatible_policy(tmp_path: Path) -> None:
    _write(tmp_path / "dynlint.toml", "allow-downgrade = true\n\n[toolchain]\ncompat-window-days = 3\n")

    config = ConfigLoader.for_root(tmp_path, env={}).load().config

    assert config.toolchain.downgrade_policy is DowngradePolicy.COMPATIBLE
    assert config.toolchain.compat_window_days == 3


def test_plugin_manifest_metadata_is_not_configuration(tmp_path: Path) -> None:
    _write(
        tmp_path / "Cargo.toml",
        '[package]\nname = "proj"\nversion = "0.1.0"\n\n'
        '[package.metadata.dynlint]\ntoolchain = "nightly-2023-06-01"\nlints = ["x"]\n'
        'libraries = [{ path = "lints" }]\n',
    )

    config = ConfigLoader.for_root(tmp_path, env={}).load().config

    assert [entry.path for entry in config.libraries] == ["lints"]
    assert config.toolchain.auto_install is False


@pytest.mark.parametrize(
    "document",
    [
        "[build]\njobs = 0\n",
        "unknown-key = 1\n",
        'libraries = [{ path = "a", git = "https://example.com/x.git" }]\n',
        "libraries = [{ profile = \"release\" }]\n",
        "not toml = = =\n",
    ],
)
def test_invalid_configuration_raises_config_error(tmp_path: Path, document: str) -> None:
    _write(tmp_path / "dynlint.toml", document)

    with pytest.raises(ConfigError):
        ConfigLoader.for_root(tmp_path, env={}).load()


def test_library_declaration_shapes() -> None:
    literal = LibraryDeclaration(path="libs/a")
    glob_path = LibraryDeclaration(path="libs/*")
    remote = LibraryDeclaration(git="https://example.com/lints.git", tag="v1", pattern="crates/*")

    assert literal.is_literal
    assert not glob_path.is_literal
    assert remote.coordinate is not None and remote.coordinate.reference == "tags/v1"
    assert remote.describe() == "git:https://example.com/lints.git@v1 [crates/*]"
    with pytest.raises(ValidationError):
        LibraryDeclaration(path="a", rev="abc")
    with pytest.raises(ValidationError):
        LibraryDeclaration(git="https://example.com/x.git", rev="a", tag="b")
