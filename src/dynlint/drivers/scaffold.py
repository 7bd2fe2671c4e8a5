# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Templates for the driver harness package built once per toolchain."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Final

from ..cache.fingerprint import harness_fingerprint
from ..config.models import DriverConfig
from ..platform import EXE_SUFFIX

HARNESS_PACKAGE: Final[str] = "dynlint_driver_harness"
DRIVER_FILENAME: Final[str] = f"dynlint-driver{EXE_SUFFIX}"

CARGO_TOML: Final[str] = """\
[package]
name = "{package}"
version = "0.1.0"
edition = "2021"
publish = false

[dependencies]
anyhow = "1.0"
env_logger = "0.11"
dylint_driver = {{ {crate_spec} }}
"""

RUST_TOOLCHAIN: Final[str] = """\
[toolchain]
channel = "{toolchain}"
components = ["llvm-tools-preview", "rustc-dev"]
"""

MAIN_RS: Final[str] = """\
use anyhow::Result;
use std::env;
use std::ffi::OsString;

pub fn main() -> Result<()> {
    env_logger::init();

    let args: Vec<_> = env::args().map(OsString::from).collect();

    dylint_driver::dylint_driver(&args)
}
"""

HARNESS_TEMPLATES: Final[Mapping[str, str]] = {
    "Cargo.toml": CARGO_TOML,
    "rust-toolchain": RUST_TOOLCHAIN,
    "src/main.rs": MAIN_RS,
}

# Rust sources contain braces and are written verbatim.
_FORMATTED: Final[frozenset[str]] = frozenset({"Cargo.toml", "rust-toolchain"})


def crate_spec(config: DriverConfig) -> str:
    """Return the inline dependency table body for the driver crate.

    Args:
        config: Driver crate selection.

    Returns:
        str: For example ``version = "=2.1.11"`` optionally followed by a
        ``path`` key when a local checkout is configured.
    """

    spec = f'version = "={config.crate_version}"'
    if config.crate_path is not None:
        local = str(config.crate_path.expanduser().resolve()).replace("\\", "\\\\")
        spec += f', path = "{local}"'
    return spec


def render_harness(toolchain: str, spec: str) -> dict[str, str]:
    """Return the harness files for ``toolchain`` keyed by relative path."""

    values = {"package": HARNESS_PACKAGE, "crate_spec": spec, "toolchain": toolchain}
    return {
        name: template.format(**values) if name in _FORMATTED else template
        for name, template in HARNESS_TEMPLATES.items()
    }


def write_harness(directory: Path, toolchain: str, spec: str) -> Path:
    """Write the harness package for ``toolchain`` into ``directory``."""

    for name, content in render_harness(toolchain, spec).items():
        path = directory / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return directory


def scaffold_fingerprint(spec: str) -> str:
    """Return the harness fingerprint, independent of the toolchain."""

    return harness_fingerprint(HARNESS_TEMPLATES, crate_spec=spec)


__all__ = [
    "DRIVER_FILENAME",
    "HARNESS_PACKAGE",
    "HARNESS_TEMPLATES",
    "crate_spec",
    "render_harness",
    "scaffold_fingerprint",
    "write_harness",
]
