# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Deduplicate libraries, detect lint collisions and group by toolchain."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol, TypeVar

from ..core.errors import ConflictError, LintConflict
from ..core.models import BuiltArtifact

LOGGER = logging.getLogger(__name__)


class LintExporter(Protocol):
    @property
    def identity(self) -> str: ...

    @property
    def lints(self) -> tuple[str, ...]: ...


ExporterT = TypeVar("ExporterT", bound=LintExporter)


class ConflictResolver:
    """Validate a merged library set before anything is executed.

    The same checks apply to declared libraries (before any toolchain work or
    build) and to built artifacts (just before execution).
    """

    @staticmethod
    def deduplicate(items: Iterable[ExporterT]) -> list[ExporterT]:
        """Collapse entries sharing a canonical identity; the last one wins.

        The surviving entry keeps the position of the first occurrence so the
        order stays stable across runs.
        """

        merged: dict[str, ExporterT] = {}
        for item in items:
            if item.identity in merged:
                LOGGER.debug("deduplicating library %s", item.identity)
            merged[item.identity] = item
        return list(merged.values())

    @staticmethod
    def conflicts(items: Iterable[LintExporter]) -> list[LintConflict]:
        """Return every lint exported by more than one distinct library."""

        owners: dict[str, list[str]] = {}
        for item in items:
            for lint in item.lints:
                sources = owners.setdefault(lint, [])
                if item.identity not in sources:
                    sources.append(item.identity)
        return [
            LintConflict(lint=lint, sources=tuple(sources))
            for lint, sources in sorted(owners.items())
            if len(sources) > 1
        ]

    def check_conflicts(self, items: Iterable[ExporterT]) -> list[ExporterT]:
        """Return the deduplicated ``items`` or raise on any lint collision.

        Raises:
            ConflictError: Listing every colliding lint and its libraries.
        """

        unique = self.deduplicate(items)
        found = self.conflicts(unique)
        if found:
            raise ConflictError(found)
        return unique

    @staticmethod
    def partition(artifacts: Iterable[BuiltArtifact]) -> dict[str, tuple[BuiltArtifact, ...]]:
        """Group artifacts by toolchain, ordered by toolchain identifier."""

        groups: dict[str, list[BuiltArtifact]] = {}
        for artifact in artifacts:
            groups.setdefault(artifact.toolchain, []).append(artifact)
        return {toolchain: tuple(groups[toolchain]) for toolchain in sorted(groups)}

    def merge(self, artifacts: Iterable[BuiltArtifact]) -> dict[str, tuple[BuiltArtifact, ...]]:
        """Validate ``artifacts`` and partition them into per-toolchain sets."""

        return self.partition(self.check_conflicts(artifacts))


__all__ = ["ConflictResolver", "LintExporter"]
