# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Error taxonomy shared by every stage of the plugin pipeline.

Each error maps onto an :class:`ExitCategory` so callers can tell resolution
problems, missing toolchains, build failures and driver crashes apart without
parsing messages.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum


class ExitCategory(str, Enum):
    """Enumerate outcome categories surfaced to the caller."""

    SUCCESS = "success"
    LINT_FINDINGS = "lint-findings"
    EXECUTION_FAILURE = "execution-failure"
    BUILD_FAILURE = "build-failure"
    TOOLCHAIN_UNAVAILABLE = "toolchain-unavailable"
    RESOLUTION_ERROR = "resolution-error"

    @property
    def severity(self) -> int:
        """Return the rank used when aggregating several outcomes.

        Returns:
            int: Larger values dominate when categories are combined.
        """

        return _SEVERITY[self]

    @classmethod
    def worst(cls, categories: Sequence[ExitCategory]) -> ExitCategory:
        """Return the most severe category in ``categories``.

        Args:
            categories: Outcome categories gathered during a run.

        Returns:
            ExitCategory: ``SUCCESS`` when ``categories`` is empty.
        """

        return max(categories, key=lambda category: category.severity, default=cls.SUCCESS)


_SEVERITY: dict[ExitCategory, int] = {
    ExitCategory.SUCCESS: 0,
    ExitCategory.LINT_FINDINGS: 1,
    ExitCategory.EXECUTION_FAILURE: 2,
    ExitCategory.BUILD_FAILURE: 3,
    ExitCategory.TOOLCHAIN_UNAVAILABLE: 4,
    ExitCategory.RESOLUTION_ERROR: 5,
}


class DynlintError(RuntimeError):
    """Base class for pipeline failures."""

    category: ExitCategory = ExitCategory.RESOLUTION_ERROR


class SpecificationError(DynlintError):
    """Raised when a library declaration is malformed or matches nothing."""


class ConfigError(SpecificationError):
    """Raised when configuration input is invalid."""


class ToolchainUnavailable(DynlintError):
    """Raised when a required toolchain is missing and cannot be provisioned."""

    category = ExitCategory.TOOLCHAIN_UNAVAILABLE

    def __init__(self, toolchain: str | None, *, library: str, reason: str) -> None:
        """Initialise the error with the toolchain and library involved.

        Args:
            toolchain: Identifier that was required, ``None`` when none could
                be determined.
            library: Canonical identity of the library needing the toolchain.
            reason: Human-readable explanation.
        """

        label = toolchain or "<undetermined>"
        super().__init__(f"toolchain {label} unavailable for {library}: {reason}")
        self.toolchain = toolchain
        self.library = library
        self.reason = reason


class BuildFailure(DynlintError):
    """Raised when cargo rejects a plugin library or the driver harness."""

    category = ExitCategory.BUILD_FAILURE

    def __init__(self, target: str, *, toolchain: str, diagnostics: str) -> None:
        """Initialise the error with the build target and compiler output.

        Args:
            target: Library identity, or ``driver`` for harness builds.
            toolchain: Toolchain identifier used for the build.
            diagnostics: Diagnostic text reported by the compiler.
        """

        detail = diagnostics.strip() or "<no diagnostics>"
        super().__init__(f"failed to build {target} with {toolchain}:\n{detail}")
        self.target = target
        self.toolchain = toolchain
        self.diagnostics = diagnostics


@dataclass(frozen=True, slots=True)
class LintConflict:
    """Describe one lint name exported by more than one library."""

    lint: str
    sources: tuple[str, ...]

    def describe(self) -> str:
        joined = ", ".join(self.sources)
        return f"lint `{self.lint}` is exported by multiple libraries: {joined}"


class ConflictError(DynlintError):
    """Raised when different libraries export the same lint name."""

    def __init__(self, conflicts: Sequence[LintConflict]) -> None:
        """Initialise the error with every detected collision.

        Args:
            conflicts: Collisions detected while merging libraries.
        """

        if not conflicts:
            raise ValueError("ConflictError requires at least one conflict")
        super().__init__("; ".join(conflict.describe() for conflict in conflicts))
        self.conflicts = tuple(conflicts)

    @property
    def lint(self) -> str:
        """Return the first colliding lint name."""

        return self.conflicts[0].lint

    @property
    def sources(self) -> tuple[str, ...]:
        """Return the libraries involved in the first collision."""

        return self.conflicts[0].sources


class ExecutionFailure(DynlintError):
    """Raised when a driver process could not start or crashed."""

    category = ExitCategory.EXECUTION_FAILURE

    def __init__(self, toolchain: str, *, returncode: int | None, detail: str) -> None:
        """Initialise the error with the driver exit metadata.

        Args:
            toolchain: Toolchain identifier of the failed group.
            returncode: Exit status, ``None`` when the process never started.
            detail: Explanation or captured stderr.
        """

        status = "did not start" if returncode is None else f"exited with status {returncode}"
        super().__init__(f"driver for {toolchain} {status}: {detail}")
        self.toolchain = toolchain
        self.returncode = returncode
        self.detail = detail


__all__ = [
    "BuildFailure",
    "ConfigError",
    "ConflictError",
    "DynlintError",
    "ExecutionFailure",
    "ExitCategory",
    "LintConflict",
    "SpecificationError",
    "ToolchainUnavailable",
]
