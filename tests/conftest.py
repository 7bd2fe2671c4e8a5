# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from dynlint.cache.store import CacheStore

@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep tests away from the developer's cache and rustup overrides."""

    for name in ("DYNLINT_LIBRARY_PATH", "DYNLINT_CACHE_DIR", "DYNLINT_DRIVER_PATH", "RUSTUP_TOOLCHAIN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def store(cache_root: Path) -> CacheStore:
    return CacheStore.open(cache_root, env={})


@pytest.fixture
def libs_root(tmp_path: Path) -> Path:
    root = tmp_path / "libs"
    root.mkdir()
    return root


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "Cargo.toml").write_text('[package]\nname = "proj"\nversion = "0.1.0"\n', encoding="utf-8")
    return root.resolve()
