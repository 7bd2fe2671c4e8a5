# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the error taxonomy and exit-code policy."""

from __future__ import annotations

import pytest

from dynlint.core.errors import (
    BuildFailure,
    ConfigError,
    ConflictError,
    ExecutionFailure,
    ExitCategory,
    LintConflict,
    SpecificationError,
    ToolchainUnavailable,
)
from dynlint.reporting import EXIT_CODES, exit_code_for


def test_worst_category_prefers_resolution_errors() -> None:
    categories = [ExitCategory.LINT_FINDINGS, ExitCategory.BUILD_FAILURE, ExitCategory.RESOLUTION_ERROR]

    assert ExitCategory.worst(categories) is ExitCategory.RESOLUTION_ERROR
    assert ExitCategory.worst([]) is ExitCategory.SUCCESS
    assert ExitCategory.worst([ExitCategory.LINT_FINDINGS, ExitCategory.EXECUTION_FAILURE]) is (
        ExitCategory.EXECUTION_FAILURE
    )


def test_every_category_has_a_distinct_exit_code() -> None:
    assert set(EXIT_CODES) == set(ExitCategory)
    assert len(set(EXIT_CODES.values())) == len(EXIT_CODES)
    assert exit_code_for(ExitCategory.SUCCESS) == 0
    assert exit_code_for(ExitCategory.LINT_FINDINGS) == 1


@pytest.mark.parametrize(
    ("error", "category"),
    [
        (SpecificationError("bad"), ExitCategory.RESOLUTION_ERROR),
        (ConfigError("bad"), ExitCategory.RESOLUTION_ERROR),
        (ConflictError([LintConflict("foo", ("/a", "/b"))]), ExitCategory.RESOLUTION_ERROR),
        (ToolchainUnavailable("nightly", library="/a", reason="missing"), ExitCategory.TOOLCHAIN_UNAVAILABLE),
        (BuildFailure("/a", toolchain="nightly", diagnostics="boom"), ExitCategory.BUILD_FAILURE),
        (ExecutionFailure("nightly", returncode=101, detail="panic"), ExitCategory.EXECUTION_FAILURE),
    ],
)
def test_errors_map_to_categories(error: Exception, category: ExitCategory) -> None:
    assert getattr(error, "category") is category


def test_conflict_error_names_every_collision() -> None:
    error = ConflictError(
        [
            LintConflict("foo", ("/libs/a", "/libs/b")),
            LintConflict("bar", ("/libs/a", "/libs/c")),
        ],
    )

    assert error.lint == "foo"
    assert error.sources == ("/libs/a", "/libs/b")
    message = str(error)
    for fragment in ("foo", "bar", "/libs/a", "/libs/b", "/libs/c"):
        assert fragment in message


def test_conflict_error_requires_conflicts() -> None:
    with pytest.raises(ValueError):
        ConflictError([])


def test_errors_carry_actionable_identity() -> None:
    unavailable = ToolchainUnavailable(None, library="/libs/a", reason="nothing pinned")
    failure = BuildFailure("/libs/a", toolchain="nightly-2023-06-01", diagnostics="  ")
    crash = ExecutionFailure("nightly-2023-06-01", returncode=None, detail="cargo missing")

    assert "<undetermined>" in str(unavailable) and "/libs/a" in str(unavailable)
    assert "<no diagnostics>" in str(failure)
    assert "did not start" in str(crash)
