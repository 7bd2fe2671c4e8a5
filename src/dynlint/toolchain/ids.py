# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Parse and compare Rust toolchain identifiers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Final

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version

_TOOLCHAIN_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"""
    ^(?P<channel>stable|beta|nightly|\d+\.\d+(?:\.\d+)?)
    (?:-(?P<date>\d{4}-\d{2}-\d{2}))?
    (?:-(?P<host>[A-Za-z0-9_]+(?:-[A-Za-z0-9_.]+)+))?$
    """,
    re.VERBOSE,
)


@dataclass(frozen=True, slots=True)
class ToolchainId:
    """Structured view of a toolchain identifier.

    The raw string stays the identity everywhere else; the parsed fields are
    only consulted for installed-toolchain matching and downgrade ranges.

    Attributes:
        raw: Identifier exactly as declared.
        channel: ``stable``, ``beta``, ``nightly``, a numbered release, or the
            raw text for custom toolchains.
        date: Archive date of dated channels.
        version: Release version of numbered channels.
        host: Host triple when the identifier carries one.
    """

    raw: str
    channel: str
    date: date | None = None
    version: Version | None = None
    host: str | None = None

    @classmethod
    def parse(cls, raw: str) -> ToolchainId:
        """Return the structured form of ``raw``; unknown shapes become custom toolchains."""

        text = raw.strip()
        match = _TOOLCHAIN_PATTERN.match(text)
        if match is None:
            return cls(raw=text, channel=text)
        channel = match.group("channel")
        version: Version | None = None
        if channel[0].isdigit():
            try:
                version = Version(channel)
            except InvalidVersion:
                return cls(raw=text, channel=text)
        stamp: date | None = None
        if match.group("date"):
            try:
                stamp = date.fromisoformat(match.group("date"))
            except ValueError:
                return cls(raw=text, channel=text)
        return cls(raw=text, channel=channel, date=stamp, version=version, host=match.group("host"))

    @property
    def custom(self) -> bool:
        return self.channel == self.raw and self.version is None and self.channel not in {"stable", "beta", "nightly"}

    @property
    def without_host(self) -> str:
        """Return the identifier with any host triple removed."""

        if self.host is None:
            return self.raw
        return self.raw.removesuffix(f"-{self.host}")

    def matches_installed(self, installed: str) -> bool:
        """Return whether rustup's ``installed`` name satisfies this identifier.

        ``nightly-2023-06-01`` is satisfied by
        ``nightly-2023-06-01-x86_64-unknown-linux-gnu``; a host-qualified
        identifier must match exactly.
        """

        if installed == self.raw:
            return True
        if self.host is not None or self.custom:
            return False
        other = ToolchainId.parse(installed)
        return other.host is not None and other.without_host == self.raw

    def is_compatible_with(self, candidate: ToolchainId, *, window_days: int = 0) -> bool:
        """Return whether a driver built for ``candidate`` may stand in for this identifier.

        Args:
            candidate: Identifier of an available, older driver.
            window_days: Maximum age difference accepted for dated channels.

        Returns:
            bool: ``True`` for identical identifiers, same-series numbered
            releases with a lower or equal patch, and same-channel dated
            toolchains no more than ``window_days`` older.
        """

        if candidate.raw == self.raw:
            return True
        if self.custom or candidate.custom or candidate.host != self.host:
            return False
        if self.version is not None and candidate.version is not None:
            if self.date is not None or candidate.date is not None:
                return False
            series = f"{self.version.major}.{self.version.minor}"
            allowed = SpecifierSet(f"=={series}.*,<={self.version}")
            return allowed.contains(candidate.version)
        if self.channel != candidate.channel or self.date is None or candidate.date is None:
            return False
        age = (self.date - candidate.date).days
        return 0 <= age <= window_days


__all__ = ["ToolchainId"]
