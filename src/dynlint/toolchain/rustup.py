# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Thin ``rustup``/``rustc`` wrapper used by toolchain resolution and driver builds."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Final, Protocol

from ..core.runtime.process import CommandOptions, CommandRunner, run_command

LOGGER = logging.getLogger(__name__)

RUSTUP_TOOLCHAIN_ENV: Final[str] = "RUSTUP_TOOLCHAIN"
INSTALL_COMPONENTS: Final[tuple[str, ...]] = ("rustc-dev", "llvm-tools-preview")


def toolchain_env(env: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return ``env`` without ``RUSTUP_TOOLCHAIN`` so an explicit ``+toolchain`` wins."""

    cleaned = dict(os.environ if env is None else env)
    cleaned.pop(RUSTUP_TOOLCHAIN_ENV, None)
    return cleaned


def _first_token(line: str) -> str | None:
    parts = line.split()
    return parts[0] if parts else None


class ToolchainManager(Protocol):
    """Operations the resolver and driver provisioner need from rustup."""

    def installed(self) -> tuple[str, ...]:
        """Return the names of every installed toolchain."""

    def active(self, directory: Path) -> str | None:
        """Return the toolchain rustup would select inside ``directory``."""

    def install(self, toolchain: str) -> None:
        """Install ``toolchain`` with the components drivers link against."""

    def sysroot(self, toolchain: str) -> Path:
        """Return the sysroot of ``toolchain``."""


class RustupManager:
    """Query and provision toolchains through the ``rustup`` executable.

    Failures surface as :class:`~dynlint.core.runtime.process.SubprocessExecutionError`
    or :class:`OSError`; callers attach library context before reporting them.
    """

    def __init__(self, *, runner: CommandRunner = run_command, env: Mapping[str, str] | None = None) -> None:
        self._runner = runner
        self._env = env

    def installed(self) -> tuple[str, ...]:
        completed = self._runner(
            ["rustup", "toolchain", "list"],
            options=CommandOptions(env=toolchain_env(self._env), capture_output=True, discard_stdin=True),
        )
        names: list[str] = []
        for line in (completed.stdout or "").splitlines():
            token = _first_token(line)
            if token is None or line.startswith("no installed toolchains"):
                continue
            names.append(token)
        return tuple(names)

    def active(self, directory: Path) -> str | None:
        completed = self._runner(
            ["rustup", "show", "active-toolchain"],
            options=CommandOptions(
                cwd=directory,
                env=dict(os.environ if self._env is None else self._env),
                capture_output=True,
                check=False,
                discard_stdin=True,
            ),
        )
        if completed.returncode != 0:
            LOGGER.debug("no active toolchain in %s: %s", directory, (completed.stderr or "").strip())
            return None
        lines = (completed.stdout or "").strip().splitlines()
        return _first_token(lines[0]) if lines else None

    def install(self, toolchain: str) -> None:
        args = ["rustup", "toolchain", "install", toolchain, "--profile", "minimal"]
        for component in INSTALL_COMPONENTS:
            args.extend(["--component", component])
        LOGGER.info("installing toolchain %s", toolchain)
        self._runner(args, options=CommandOptions(env=toolchain_env(self._env), capture_output=True, discard_stdin=True))

    def sysroot(self, toolchain: str) -> Path:
        completed = self._runner(
            ["rustc", f"+{toolchain}", "--print", "sysroot"],
            options=CommandOptions(env=toolchain_env(self._env), capture_output=True, discard_stdin=True),
        )
        return Path((completed.stdout or "").strip())


__all__ = ["INSTALL_COMPONENTS", "RustupManager", "ToolchainManager", "toolchain_env"]
