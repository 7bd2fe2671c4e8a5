# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run reports, exit-code policy and console rendering."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Final

from .core.errors import ExitCategory
from .core.logging import fail, info, ok, section, warn
from .core.models import GroupResult
from .specs.parser import PatternReport

EXIT_CODES: Final[dict[ExitCategory, int]] = {
    ExitCategory.SUCCESS: 0,
    ExitCategory.LINT_FINDINGS: 1,
    ExitCategory.RESOLUTION_ERROR: 2,
    ExitCategory.TOOLCHAIN_UNAVAILABLE: 3,
    ExitCategory.BUILD_FAILURE: 4,
    ExitCategory.EXECUTION_FAILURE: 5,
}


def exit_code_for(category: ExitCategory) -> int:
    """Return the process exit status for ``category``."""

    return EXIT_CODES[category]


@dataclass(slots=True)
class RunReport:
    """Aggregated outcome of one pipeline run.

    Attributes:
        groups: One result per toolchain group, ordered by toolchain.
        reports: Pattern expansion problems that did not abort the run.
        builds: Plugin libraries compiled during the run.
        cache_hits: Plugin libraries served from the cache.
        driver_builds: Driver harnesses compiled during the run.
        strict: Whether lint findings fail the run.
    """

    groups: list[GroupResult] = field(default_factory=list)
    reports: list[PatternReport] = field(default_factory=list)
    builds: int = 0
    cache_hits: int = 0
    driver_builds: int = 0
    strict: bool = True

    @property
    def exit_category(self) -> ExitCategory:
        """Return the most severe category across groups, honouring strictness."""

        categories = [group.category for group in self.groups]
        if not self.strict:
            categories = [
                ExitCategory.SUCCESS if category is ExitCategory.LINT_FINDINGS else category
                for category in categories
            ]
        return ExitCategory.worst(categories)

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.exit_category)

    @property
    def ok(self) -> bool:
        return self.exit_category is ExitCategory.SUCCESS


def emit_output(report: RunReport) -> None:
    """Re-emit captured driver output group by group in toolchain order."""

    for group in report.groups:
        if group.stdout:
            sys.stdout.write(group.stdout)
            if not group.stdout.endswith("\n"):
                sys.stdout.write("\n")
        if group.stderr:
            sys.stderr.write(group.stderr)
            if not group.stderr.endswith("\n"):
                sys.stderr.write("\n")
    sys.stdout.flush()
    sys.stderr.flush()


def render_report(report: RunReport, *, use_emoji: bool, use_color: bool) -> None:
    """Print driver output followed by a per-group summary.

    Args:
        report: Completed run report.
        use_emoji: Whether status lines carry emoji prefixes.
        use_color: Whether ANSI colour is permitted.
    """

    emit_output(report)
    section("dynlint summary", use_color=use_color)
    for pattern in report.reports:
        warn(pattern.describe(), use_emoji=use_emoji, use_color=use_color)
    for group in report.groups:
        label = f"{group.toolchain}: {len(group.libraries)} librar{'y' if len(group.libraries) == 1 else 'ies'}"
        if group.category is ExitCategory.SUCCESS:
            ok(label, use_emoji=use_emoji, use_color=use_color)
        elif group.category is ExitCategory.LINT_FINDINGS and not report.strict:
            warn(f"{label}: {group.message}", use_emoji=use_emoji, use_color=use_color)
        else:
            fail(f"{label}: {group.message or group.category.value}", use_emoji=use_emoji, use_color=use_color)
    info(
        f"plugins built: {report.builds}, cache hits: {report.cache_hits}, drivers built: {report.driver_builds}",
        use_emoji=use_emoji,
        use_color=use_color,
    )


__all__ = ["EXIT_CODES", "RunReport", "emit_output", "exit_code_for", "render_report"]
