# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for toolchain identifiers, resolution and provisioning."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from subprocess import CompletedProcess

import pytest

from dynlint.config.models import ToolchainConfig
from dynlint.core.errors import ExitCategory, ToolchainUnavailable
from dynlint.core.models import (
    DeclaredLibrary,
    LibraryPackage,
    LibrarySpecification,
    SpecificationKind,
    ToolchainSource,
)
from dynlint.core.runtime.process import CommandOptions
from dynlint.platform import library_filename, parse_library_filename
from dynlint.specs.package import prebuilt_package, read_package
from dynlint.toolchain.ids import ToolchainId
from dynlint.toolchain.resolver import ToolchainResolver, read_toolchain_file
from dynlint.toolchain.rustup import RustupManager

from .fakes import OTHER_TOOLCHAIN, TOOLCHAIN, FakeToolchainManager, write_library


def _declare(source: Path, kind: SpecificationKind = SpecificationKind.PATH) -> DeclaredLibrary:
    spec = LibrarySpecification(kind=kind, source=source, declared=str(source), workspace=source.parent)
    if kind is SpecificationKind.PREBUILT:
        parsed = parse_library_filename(source)
        assert parsed is not None
        return DeclaredLibrary(spec=spec, package=prebuilt_package(source, parsed))
    return DeclaredLibrary(spec=spec, package=read_package(source))


@pytest.mark.parametrize(
    ("raw", "channel", "host"),
    [
        ("nightly-2023-06-01", "nightly", None),
        ("nightly-2023-06-01-x86_64-unknown-linux-gnu", "nightly", "x86_64-unknown-linux-gnu"),
        ("1.72.0", "1.72.0", None),
        ("stable", "stable", None),
        ("my-custom-toolchain!", "my-custom-toolchain!", None),
    ],
)
def test_toolchain_id_parse(raw: str, channel: str, host: str | None) -> None:
    parsed = ToolchainId.parse(raw)

    assert parsed.raw == raw
    assert parsed.channel == channel
    assert parsed.host == host


def test_installed_names_may_carry_the_host_triple() -> None:
    required = ToolchainId.parse(TOOLCHAIN)

    assert required.matches_installed(f"{TOOLCHAIN}-x86_64-unknown-linux-gnu")
    assert not required.matches_installed(f"{OTHER_TOOLCHAIN}-x86_64-unknown-linux-gnu")
    assert not ToolchainId.parse(f"{TOOLCHAIN}-aarch64-apple-darwin").matches_installed(
        f"{TOOLCHAIN}-x86_64-unknown-linux-gnu",
    )


@pytest.mark.parametrize(
    ("required", "candidate", "window", "expected"),
    [
        ("nightly-2023-06-08", "nightly-2023-06-01", 7, True),
        ("nightly-2023-06-08", "nightly-2023-06-01", 6, False),
        ("nightly-2023-06-01", "nightly-2023-06-08", 30, False),
        ("nightly-2023-06-08", "beta-2023-06-01", 30, False),
        ("1.72.1", "1.72.0", 0, True),
        ("1.72.0", "1.72.1", 0, False),
        ("1.73.0", "1.72.0", 0, False),
        ("1.72.0", "1.72.0", 0, True),
    ],
)
def test_compatibility_ranges(required: str, candidate: str, window: int, expected: bool) -> None:
    result = ToolchainId.parse(required).is_compatible_with(ToolchainId.parse(candidate), window_days=window)

    assert result is expected


def test_read_toolchain_file_supports_both_forms(tmp_path: Path) -> None:
    toml_file = tmp_path / "rust-toolchain.toml"
    toml_file.write_text(f'[toolchain]\nchannel = "{TOOLCHAIN}"\ncomponents = ["rustc-dev"]\n', encoding="utf-8")
    legacy = tmp_path / "rust-toolchain"
    legacy.write_text(f"{OTHER_TOOLCHAIN}\n", encoding="utf-8")

    assert read_toolchain_file(toml_file) == TOOLCHAIN
    assert read_toolchain_file(legacy) == OTHER_TOOLCHAIN


def test_declared_toolchain_beats_toolchain_file(libs_root: Path) -> None:
    source = write_library(libs_root, "alpha", toolchain=TOOLCHAIN)
    (source / "rust-toolchain").write_text(f"{OTHER_TOOLCHAIN}\n", encoding="utf-8")
    manager = FakeToolchainManager(installed_names=[TOOLCHAIN], active_name="stable")
    resolver = ToolchainResolver(manager, ToolchainConfig(allow_active_fallback=True))

    resolved = resolver.resolve(_declare(source))

    assert resolved.toolchain == TOOLCHAIN
    assert resolved.toolchain_source is ToolchainSource.DECLARED


def test_toolchain_file_is_found_up_to_the_workspace_root(libs_root: Path) -> None:
    (libs_root / "Cargo.toml").write_text('[workspace]\nmembers = ["alpha"]\n', encoding="utf-8")
    (libs_root / "rust-toolchain.toml").write_text(f'[toolchain]\nchannel = "{TOOLCHAIN}"\n', encoding="utf-8")
    source = write_library(libs_root, "alpha")
    manager = FakeToolchainManager(installed_names=[TOOLCHAIN], active_name="stable")
    resolver = ToolchainResolver(manager, ToolchainConfig(allow_active_fallback=True))

    resolved = resolver.resolve(_declare(source))

    assert resolved.toolchain == TOOLCHAIN
    assert resolved.toolchain_source is ToolchainSource.TOOLCHAIN_FILE


def test_toolchain_file_outside_the_workspace_is_ignored(libs_root: Path) -> None:
    (libs_root / "rust-toolchain").write_text(f"{OTHER_TOOLCHAIN}\n", encoding="utf-8")
    source = write_library(libs_root, "alpha")
    resolver = ToolchainResolver(FakeToolchainManager(), ToolchainConfig())

    with pytest.raises(ToolchainUnavailable) as excinfo:
        resolver.resolve(_declare(source))

    assert excinfo.value.toolchain is None
    assert excinfo.value.category is ExitCategory.TOOLCHAIN_UNAVAILABLE
    assert "disabled" in str(excinfo.value)


def test_active_toolchain_is_an_opt_in_fallback(libs_root: Path) -> None:
    source = write_library(libs_root, "alpha")
    manager = FakeToolchainManager(installed_names=[f"{TOOLCHAIN}-x86_64-unknown-linux-gnu"], active_name=TOOLCHAIN)
    resolver = ToolchainResolver(manager, ToolchainConfig(allow_active_fallback=True))

    resolved = resolver.resolve(_declare(source))

    assert resolved.toolchain == TOOLCHAIN
    assert resolved.toolchain_source is ToolchainSource.ACTIVE


def test_prebuilt_libraries_take_the_toolchain_from_their_filename(libs_root: Path) -> None:
    path = libs_root / library_filename("gamma", TOOLCHAIN)
    path.write_bytes(b"\0")
    resolver = ToolchainResolver(FakeToolchainManager(installed_names=[TOOLCHAIN]), ToolchainConfig())

    resolved = resolver.resolve(_declare(path, SpecificationKind.PREBUILT))

    assert resolved.toolchain == TOOLCHAIN
    assert resolved.toolchain_source is ToolchainSource.FILENAME
    assert resolved.prebuilt


def test_prebuilt_library_without_a_toolchain_is_unavailable(libs_root: Path) -> None:
    path = libs_root / "libgamma.so"
    path.write_bytes(b"\0")
    spec = LibrarySpecification(kind=SpecificationKind.PREBUILT, source=path, declared=str(path), workspace=libs_root)
    package = LibraryPackage(
        crate_name="gamma",
        name="gamma",
        lints=("gamma",),
        root=libs_root,
        workspace_root=libs_root,
    )
    resolver = ToolchainResolver(FakeToolchainManager(installed_names=[TOOLCHAIN]), ToolchainConfig())

    with pytest.raises(ToolchainUnavailable, match="does not encode a toolchain") as excinfo:
        resolver.resolve(DeclaredLibrary(spec=spec, package=package))

    assert excinfo.value.toolchain is None
    assert excinfo.value.category is ExitCategory.TOOLCHAIN_UNAVAILABLE


def test_missing_toolchain_without_auto_install(libs_root: Path) -> None:
    source = write_library(libs_root, "alpha", toolchain=TOOLCHAIN)
    manager = FakeToolchainManager(installed_names=["stable-x86_64-unknown-linux-gnu"])
    resolver = ToolchainResolver(manager, ToolchainConfig())

    with pytest.raises(ToolchainUnavailable, match="auto-install") as excinfo:
        resolver.resolve(_declare(source))

    assert excinfo.value.toolchain == TOOLCHAIN
    assert excinfo.value.library == str(source)
    assert manager.installs == []


def test_auto_install_runs_once_per_toolchain(libs_root: Path) -> None:
    first = write_library(libs_root, "alpha", toolchain=TOOLCHAIN)
    second = write_library(libs_root, "beta", toolchain=TOOLCHAIN)
    manager = FakeToolchainManager()
    resolver = ToolchainResolver(manager, ToolchainConfig(auto_install=True))

    resolver.resolve(_declare(first))
    resolver.resolve(_declare(second))

    assert manager.installs == [TOOLCHAIN]
    assert manager.list_calls == 2


def test_installed_list_is_queried_once(libs_root: Path) -> None:
    manager = FakeToolchainManager(installed_names=[TOOLCHAIN, OTHER_TOOLCHAIN])
    resolver = ToolchainResolver(manager, ToolchainConfig())

    resolver.resolve(_declare(write_library(libs_root, "alpha", toolchain=TOOLCHAIN)))
    resolver.resolve(_declare(write_library(libs_root, "beta", toolchain=OTHER_TOOLCHAIN)))

    assert manager.list_calls == 1


def test_failed_install_is_reported_and_remembered(libs_root: Path) -> None:
    source = write_library(libs_root, "alpha", toolchain=TOOLCHAIN)
    manager = FakeToolchainManager(installable=False)
    resolver = ToolchainResolver(manager, ToolchainConfig(auto_install=True))

    with pytest.raises(ToolchainUnavailable, match="installation failed: no such toolchain"):
        resolver.resolve(_declare(source))
    with pytest.raises(ToolchainUnavailable):
        resolver.resolve(_declare(source))

    assert manager.installs == [TOOLCHAIN]


class ScriptedRunner:
    def __init__(self, outputs: dict[str, CompletedProcess[str]]) -> None:
        self.outputs = outputs
        self.calls: list[tuple[list[str], CommandOptions | None]] = []

    def __call__(self, args: Sequence[str], *, options: CommandOptions | None = None) -> CompletedProcess[str]:
        self.calls.append((list(args), options))
        return self.outputs[" ".join(args[:3])]


def test_rustup_manager_parses_toolchain_listing(tmp_path: Path) -> None:
    listing = "stable-x86_64-unknown-linux-gnu (default)\nnightly-2023-06-01-x86_64-unknown-linux-gnu\n"
    runner = ScriptedRunner(
        {
            "rustup toolchain list": CompletedProcess([], 0, listing, ""),
            "rustup show active-toolchain": CompletedProcess([], 0, "stable-x86_64-unknown-linux-gnu (default)\n", ""),
            "rustc +nightly-2023-06-01 --print": CompletedProcess([], 0, "/opt/rust/nightly\n", ""),
        },
    )
    manager = RustupManager(runner=runner, env={"RUSTUP_TOOLCHAIN": "beta", "PATH": "/usr/bin"})

    assert manager.installed() == ("stable-x86_64-unknown-linux-gnu", "nightly-2023-06-01-x86_64-unknown-linux-gnu")
    assert manager.active(tmp_path) == "stable-x86_64-unknown-linux-gnu"
    assert manager.sysroot(TOOLCHAIN) == Path("/opt/rust/nightly")
    list_options = runner.calls[0][1]
    assert list_options is not None and list_options.env is not None
    assert "RUSTUP_TOOLCHAIN" not in list_options.env


def test_rustup_manager_installs_driver_components() -> None:
    runner = ScriptedRunner({"rustup toolchain install": CompletedProcess([], 0, "", "")})

    RustupManager(runner=runner, env={}).install(TOOLCHAIN)

    args = runner.calls[0][0]
    assert args[:4] == ["rustup", "toolchain", "install", TOOLCHAIN]
    assert args[args.index("--component") + 1] == "rustc-dev"
    assert "llvm-tools-preview" in args
