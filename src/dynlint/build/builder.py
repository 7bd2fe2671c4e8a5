# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Compile plugin libraries with ``cargo`` as a black-box build step."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..core.errors import BuildFailure
from ..core.models import BuildProfile, ResolvedLibrary
from ..core.runtime.process import CommandOptions, CommandRunner, run_command
from ..platform import cargo_output_filename
from ..toolchain.rustup import toolchain_env

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildRequest:
    """Inputs of one library build."""

    library: ResolvedLibrary
    profile: BuildProfile
    target_dir: Path

    @property
    def output_path(self) -> Path:
        """Return where cargo is expected to write the dynamic library."""

        return self.target_dir / self.profile.output_dir / cargo_output_filename(self.library.name)


class LibraryBuilder(Protocol):
    def build(self, request: BuildRequest) -> Path:
        """Compile the library and return the path of the produced dynamic library."""


class CargoBuilder:
    """Run ``cargo +<toolchain> build --lib`` inside the library directory."""

    def __init__(self, *, runner: CommandRunner = run_command, env: Mapping[str, str] | None = None) -> None:
        self._runner = runner
        self._env = env

    def build(self, request: BuildRequest) -> Path:
        """Build ``request`` and return the produced library path.

        Args:
            request: Library, profile and cargo target directory.

        Returns:
            Path: Dynamic library written by cargo.

        Raises:
            BuildFailure: If cargo cannot start, exits non-zero, or does not
                produce the expected library file.
        """

        library = request.library
        args = [
            "cargo",
            f"+{library.toolchain}",
            "build",
            "--lib",
            "--target-dir",
            str(request.target_dir),
        ]
        if request.profile is BuildProfile.RELEASE:
            args.append("--release")
        options = CommandOptions(
            cwd=library.source_dir,
            env=toolchain_env(self._env),
            capture_output=True,
            check=False,
            discard_stdin=True,
        )
        LOGGER.info("building %s with %s (%s)", library.identity, library.toolchain, request.profile.value)
        try:
            completed = self._runner(args, options=options)
        except OSError as exc:
            raise BuildFailure(library.identity, toolchain=library.toolchain, diagnostics=str(exc)) from exc
        if completed.returncode != 0:
            diagnostics = completed.stderr or completed.stdout or ""
            raise BuildFailure(library.identity, toolchain=library.toolchain, diagnostics=diagnostics)

        output = request.output_path
        if not output.is_file():
            raise BuildFailure(
                library.identity,
                toolchain=library.toolchain,
                diagnostics=f"cargo succeeded but {output} was not produced",
            )
        return output


__all__ = ["BuildRequest", "CargoBuilder", "LibraryBuilder"]
