# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for manifest metadata and remote checkouts."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from pathlib import Path
from subprocess import CompletedProcess

import pytest

from dynlint.cache.store import CacheStore
from dynlint.core.errors import SpecificationError
from dynlint.core.models import GitCoordinate
from dynlint.core.runtime.process import CommandOptions, SubprocessExecutionError
from dynlint.specs.git import GitCheckouts
from dynlint.specs.package import find_workspace_root, is_library_package, read_package

from .fakes import TOOLCHAIN, write_library


def test_read_package_defaults_lints_to_library_name(libs_root: Path) -> None:
    package = read_package(write_library(libs_root, "my-lint"))

    assert package.crate_name == "my-lint"
    assert package.name == "my_lint"
    assert package.lints == ("my_lint",)
    assert package.declared_toolchain is None


def test_read_package_reads_declared_metadata(libs_root: Path) -> None:
    package = read_package(write_library(libs_root, "alpha", lints=["foo", "bar", "foo"], toolchain=TOOLCHAIN))

    assert package.lints == ("foo", "bar")
    assert package.declared_toolchain == TOOLCHAIN


def test_read_package_rejects_non_library_crates(libs_root: Path) -> None:
    plain = write_library(libs_root, "plain", crate_type="rlib")

    assert not is_library_package(plain)
    with pytest.raises(SpecificationError, match="cdylib"):
        read_package(plain)


def test_read_package_rejects_malformed_lints(libs_root: Path) -> None:
    package = write_library(libs_root, "alpha")
    manifest = package / "Cargo.toml"
    manifest.write_text(
        manifest.read_text(encoding="utf-8") + "\n[package.metadata.dynlint]\nlints = \"foo\"\n",
        encoding="utf-8",
    )

    with pytest.raises(SpecificationError, match="lints"):
        read_package(package)


def test_workspace_root_is_nearest_workspace_manifest(libs_root: Path) -> None:
    (libs_root / "Cargo.toml").write_text('[workspace]\nmembers = ["alpha"]\n', encoding="utf-8")
    alpha = write_library(libs_root, "alpha")

    assert find_workspace_root(alpha) == libs_root
    assert read_package(alpha).workspace_root == libs_root


class GitRunner:
    """Fake git that materialises clones, resolves references and records every command."""

    def __init__(self, *, fail_on: str | None = None) -> None:
        self.commands: list[list[str]] = []
        self.fail_on = fail_on

    @staticmethod
    def commit_for(reference: str) -> str:
        return hashlib.sha1(reference.encode("utf-8")).hexdigest()

    def __call__(self, args: Sequence[str], *, options: CommandOptions | None = None) -> CompletedProcess[str]:
        command = list(args)
        self.commands.append(command)
        assert options is not None and options.env is not None
        assert options.env["GIT_TERMINAL_PROMPT"] == "0"
        if command[1] == self.fail_on:
            raise SubprocessExecutionError(command, 128, "", "fatal: repository not found")
        stdout = ""
        if command[1] == "clone":
            (Path(command[-1]) / ".git").mkdir(parents=True)
        elif command[1] == "rev-parse":
            stdout = self.commit_for(command[-1].removesuffix("^{commit}")) + "\n"
        return CompletedProcess(command, 0, stdout, "")


def test_git_checkout_clones_once_then_fetches(store: CacheStore) -> None:
    runner = GitRunner()
    checkouts = GitCheckouts(store, runner=runner)
    coordinate = GitCoordinate(url="https://example.com/lints.git", tag="v1")

    first = checkouts.checkout(coordinate)
    second = checkouts.checkout(coordinate)

    assert first == second
    assert first.parent == store.layout.git_dir
    assert first.name.endswith("@" + GitRunner.commit_for("tags/v1")[:16])
    assert (first / ".git").is_dir()
    verbs = [command[1] for command in runner.commands]
    assert verbs == ["clone", "rev-parse", "clone", "checkout", "fetch", "rev-parse"]
    assert "--shared" in runner.commands[2]
    assert runner.commands[3][-1] == GitRunner.commit_for("tags/v1")
    assert not [child for child in store.layout.git_dir.iterdir() if child.name.startswith(".staging-")]


def test_each_revision_gets_its_own_checkout(store: CacheStore) -> None:
    runner = GitRunner()
    checkouts = GitCheckouts(store, runner=runner)
    url = "https://example.com/lints.git"

    old = checkouts.checkout(GitCoordinate(url=url, rev="1111111"))
    new = checkouts.checkout(GitCoordinate(url=url, rev="2222222"))
    again = checkouts.checkout(GitCoordinate(url=url, rev="1111111"))

    assert old != new
    assert again == old
    assert (old / ".git").is_dir() and (new / ".git").is_dir()
    clones = [command for command in runner.commands if command[1] == "clone"]
    repository = str(store.layout.checkout_dir(url))
    assert [command[-2] for command in clones] == [url, repository, repository]


def test_git_failures_are_specification_errors(store: CacheStore) -> None:
    checkouts = GitCheckouts(store, runner=GitRunner(fail_on="clone"))

    with pytest.raises(SpecificationError, match="repository not found"):
        checkouts.checkout(GitCoordinate(url="https://example.com/missing.git"))
    assert list(store.layout.git_dir.iterdir()) == []
