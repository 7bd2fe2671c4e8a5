# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Invoke one driver process per execution group against the target project."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Final

from ..cache.locking import file_lock
from ..config.models import ExecutionConfig, ProjectConfig
from ..core.errors import ExecutionFailure, ExitCategory
from ..core.models import ExecutionGroup, GroupResult
from ..core.runtime.process import CommandOptions, CommandRunner, run_command
from ..toolchain.rustup import toolchain_env
from .worker import run_tasks

LOGGER = logging.getLogger(__name__)

WRAPPER_ENV: Final[str] = "RUSTC_WORKSPACE_WRAPPER"
# Names read by the dylint_driver crate linked into the harness.
LIBS_ENV: Final[str] = "DYLINT_LIBS"
TOOLCHAIN_ENV: Final[str] = "DYLINT_TOOLCHAIN"
RUSTFLAGS_ENV: Final[str] = "DYLINT_RUSTFLAGS"
# cargo exits with 101 for every failed compilation, lint errors included.
CARGO_ERROR_RETURNCODE: Final[int] = 101
CRASH_MARKERS: Final[tuple[str, ...]] = (
    "internal compiler error",
    "the compiler unexpectedly panicked",
    "thread 'rustc' panicked",
    "panicked at",
)
COMPILE_ERROR_MARKER: Final[str] = "could not compile"


def classify_returncode(returncode: int, stderr: str | None = None) -> ExitCategory:
    """Map a driver exit status and its diagnostics onto an outcome category.

    Args:
        returncode: Exit status of the ``cargo check`` invocation.
        stderr: Captured standard error of the invocation.

    Returns:
        ExitCategory: ``SUCCESS`` for zero. ``EXECUTION_FAILURE`` for signals,
        panics and internal compiler errors, and for a cargo error that did
        not come from compiling the project. ``LINT_FINDINGS`` otherwise.
    """

    if returncode == 0:
        return ExitCategory.SUCCESS
    if returncode < 0:
        return ExitCategory.EXECUTION_FAILURE
    text = stderr or ""
    if any(marker in text for marker in CRASH_MARKERS):
        return ExitCategory.EXECUTION_FAILURE
    if returncode == CARGO_ERROR_RETURNCODE and COMPILE_ERROR_MARKER not in text:
        return ExitCategory.EXECUTION_FAILURE
    return ExitCategory.LINT_FINDINGS


class ExecutionOrchestrator:
    """Run execution groups and collect one :class:`GroupResult` per group."""

    def __init__(
        self,
        project: ProjectConfig,
        execution: ExecutionConfig,
        *,
        runner: CommandRunner = run_command,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._project = project
        self._execution = execution
        self._runner = runner
        self._env = env

    @property
    def lock_path(self) -> Path:
        """Return the lock serialising every invocation sharing the target directory."""

        target_dir = self._project.resolved_target_dir
        return target_dir.parent / f"{target_dir.name}.lock"

    def command(self, group: ExecutionGroup) -> list[str]:
        return [
            "cargo",
            f"+{group.driver.toolchain}",
            "check",
            "--target-dir",
            str(self._project.resolved_target_dir),
            *self._project.passthrough,
        ]

    def environment(self, group: ExecutionGroup) -> dict[str, str]:
        """Return the driver environment for ``group``."""

        env = toolchain_env(self._env)
        env[WRAPPER_ENV] = str(group.driver.path)
        env[LIBS_ENV] = json.dumps([str(path) for path in group.library_paths])
        env[TOOLCHAIN_ENV] = group.driver.toolchain
        if self._execution.rustflags:
            env[RUSTFLAGS_ENV] = self._execution.rustflags
        return env

    def run_group(self, group: ExecutionGroup) -> GroupResult:
        """Invoke the driver for ``group`` while holding the project lock.

        Args:
            group: Libraries sharing one toolchain plus their driver.

        Returns:
            GroupResult: Captured output and the classified exit status.
        """

        libraries = tuple(artifact.identity for artifact in group.artifacts)
        options = CommandOptions(
            cwd=self._project.root,
            env=self.environment(group),
            capture_output=True,
            check=False,
        )
        with file_lock(self.lock_path):
            LOGGER.info("running %d librar(y/ies) with %s", len(libraries), group.driver.toolchain)
            try:
                completed = self._runner(self.command(group), options=options)
            except OSError as exc:
                failure = ExecutionFailure(group.toolchain, returncode=None, detail=str(exc))
                return GroupResult(
                    toolchain=group.toolchain,
                    category=failure.category,
                    libraries=libraries,
                    message=str(failure),
                )

        category = classify_returncode(completed.returncode, completed.stderr)
        message: str | None = None
        if category is ExitCategory.EXECUTION_FAILURE:
            detail = _crash_line(completed.stderr) or "driver crashed"
            message = str(ExecutionFailure(group.toolchain, returncode=completed.returncode, detail=detail))
        elif category is ExitCategory.LINT_FINDINGS:
            message = f"lints reported findings (exit status {completed.returncode})"
        return GroupResult(
            toolchain=group.toolchain,
            category=category,
            libraries=libraries,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            message=message,
        )

    def run(self, groups: Sequence[ExecutionGroup]) -> list[GroupResult]:
        """Run every group; results are ordered by toolchain identifier."""

        ordered = sorted(groups, key=lambda group: group.toolchain)
        workers = len(ordered) if self._execution.parallel_groups else 1
        outcomes = run_tasks(self.run_group, ordered, max_workers=workers)
        results: list[GroupResult] = []
        for outcome in outcomes:
            if outcome.error is None:
                if outcome.result is not None:
                    results.append(outcome.result)
                continue
            group = outcome.item
            results.append(
                GroupResult(
                    toolchain=group.toolchain,
                    category=outcome.error.category,
                    libraries=tuple(artifact.identity for artifact in group.artifacts),
                    message=str(outcome.error),
                ),
            )
        return results


def _crash_line(text: str | None) -> str | None:
    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
    for line in lines:
        if any(marker in line for marker in CRASH_MARKERS):
            return line
    return lines[-1] if lines else None


__all__ = ["ExecutionOrchestrator", "classify_returncode"]
