# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""BDD tests covering the on-disk cache layout and recovery from deleted entries."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest
from pytest_bdd import given, scenarios, then, when

from dynlint.build.cache import BuildCache
from dynlint.cache.store import DRIVER_PATH_ENV, CacheStore
from dynlint.core.errors import ConfigError
from dynlint.core.models import BuildProfile

from .fakes import TOOLCHAIN, FakeBuilder, resolved_library, write_library

scenarios("features/cache_store.feature")


@pytest.fixture
def cache_state(tmp_path: Path) -> dict[str, object]:
    return {"tmp_root": tmp_path, "env": {}}


@given("an empty cache root", target_fixture="cache_state")
def given_empty_cache_root(cache_state: dict[str, object]) -> dict[str, object]:
    cache_state["root"] = Path(cache_state["tmp_root"]) / "dynlint-cache"
    return cache_state


@given("a driver directory override", target_fixture="cache_state")
def given_driver_override(cache_state: dict[str, object]) -> dict[str, object]:
    override = Path(cache_state["tmp_root"]) / "shared-drivers"
    override.mkdir()
    cache_state["override"] = override
    cache_state["env"] = {DRIVER_PATH_ENV: str(override)}
    return cache_state


@given("two plugin libraries built into the cache", target_fixture="cache_state")
def given_two_cached_plugins(cache_state: dict[str, object]) -> dict[str, object]:
    libs_root = Path(cache_state["tmp_root"]) / "libs"
    store = CacheStore.open(Path(cache_state["root"]), env={})
    builder = FakeBuilder()
    libraries = [
        resolved_library(write_library(libs_root, "alpha"), TOOLCHAIN),
        resolved_library(write_library(libs_root, "beta"), TOOLCHAIN, index=1),
    ]
    artifacts = [BuildCache(store, builder).build(library, BuildProfile.DEBUG) for library in libraries]
    cache_state.update({"store": store, "builder": builder, "libraries": libraries, "artifacts": artifacts})
    return cache_state


@when("the cache store is opened")
def when_store_opened(cache_state: dict[str, object]) -> None:
    cache_state["store"] = CacheStore.open(Path(cache_state["root"]), env=cache_state["env"])


@when("the cache entry of the first library is deleted")
def when_first_entry_deleted(cache_state: dict[str, object]) -> None:
    first = cache_state["artifacts"][0]
    shutil.rmtree(first.path.parent)


@when("both libraries are requested again")
def when_requested_again(cache_state: dict[str, object]) -> None:
    store = cache_state["store"]
    cache = BuildCache(store, cache_state["builder"])
    cache_state["rebuilt"] = [cache.build(library, BuildProfile.DEBUG) for library in cache_state["libraries"]]


@then("the plugin, driver, lock and scratch directories exist")
def then_layout_exists(cache_state: dict[str, object]) -> None:
    layout = cache_state["store"].layout
    for directory in (layout.plugins_dir, layout.drivers_dir, layout.locks_dir, layout.git_dir, layout.staging_dir):
        assert directory.is_dir()
        assert directory.is_relative_to(Path(cache_state["root"]))


@then("the cache root explains how to clean it")
def then_readme_written(cache_state: dict[str, object]) -> None:
    readme = cache_state["store"].layout.readme
    assert "rebuild the removed entries" in readme.read_text(encoding="utf-8").replace("\n", " ")


@then("drivers are stored in the override directory")
def then_drivers_overridden(cache_state: dict[str, object]) -> None:
    store = cache_state["store"]
    assert store.layout.drivers_dir == cache_state["override"]
    assert store.layout.driver_entry(TOOLCHAIN).parent == cache_state["override"]
    assert not (Path(cache_state["root"]) / "drivers").exists()


@then("only the first library is rebuilt")
def then_only_first_rebuilt(cache_state: dict[str, object]) -> None:
    alpha, beta = cache_state["libraries"]
    assert cache_state["builder"].built == [alpha.identity, beta.identity, alpha.identity]
    first, second = cache_state["rebuilt"]
    assert not first.cached
    assert second.cached
    assert first.path.is_file()


def test_missing_driver_override_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match=DRIVER_PATH_ENV):
        CacheStore.open(tmp_path / "cache", env={DRIVER_PATH_ENV: str(tmp_path / "missing")})
