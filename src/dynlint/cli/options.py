# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Option declarations shared by CLI commands and their translation into config overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any

import typer

from ..config.loader import ConfigLoader
from ..config.models import Config
from ..core.errors import DynlintError
from ..core.logging import configure_verbose_logging
from ..reporting import exit_code_for
from .shared import CLIError

RootOption = Annotated[
    Path,
    typer.Option("--root", "-r", help="Target project directory.", file_okay=False),
]
ConfigFileOption = Annotated[
    Path | None,
    typer.Option("--config", help="Configuration file used instead of dynlint.toml.", dir_okay=False),
]
PathOption = Annotated[
    list[str] | None,
    typer.Option("--path", help="Plugin library directory (repeatable).", show_default=False),
]
PatternOption = Annotated[
    list[str] | None,
    typer.Option("--pattern", help="Glob selecting plugin library directories (repeatable).", show_default=False),
]
GitOption = Annotated[
    str | None,
    typer.Option("--git", help="Repository containing plugin libraries."),
]
RevOption = Annotated[str | None, typer.Option("--rev", help="Git revision to check out.")]
TagOption = Annotated[str | None, typer.Option("--tag", help="Git tag to check out.")]
BranchOption = Annotated[str | None, typer.Option("--branch", help="Git branch to check out.")]
CacheDirOption = Annotated[
    Path | None,
    typer.Option("--cache-dir", help="Cache root (defaults to $DYNLINT_CACHE_DIR or the XDG cache).", file_okay=False),
]
EmojiOption = Annotated[bool, typer.Option("--emoji/--no-emoji", help="Toggle emoji in output.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Log debug details to stderr.")]


@dataclass(slots=True)
class SourceOptions:
    """Library selection and configuration location flags."""

    root: Path = field(default_factory=Path.cwd)
    config_file: Path | None = None
    paths: list[str] = field(default_factory=list)
    patterns: list[str] = field(default_factory=list)
    git: str | None = None
    rev: str | None = None
    tag: str | None = None
    branch: str | None = None
    cache_dir: Path | None = None
    verbose: bool = False

    def library_overrides(self) -> list[dict[str, Any]]:
        """Return ``libraries`` entries for the command-line declarations.

        ``--path`` values are taken relative to the working directory. With
        ``--git``, every ``--pattern`` selects directories inside the checkout;
        otherwise patterns are evaluated in the project.
        """

        entries: list[dict[str, Any]] = [{"path": _from_cwd(path)} for path in self.paths]
        if self.git is None:
            entries.extend({"pattern": pattern} for pattern in self.patterns)
            return entries
        selector = {key: value for key, value in (("rev", self.rev), ("tag", self.tag), ("branch", self.branch)) if value}
        if self.patterns:
            entries.extend({"git": self.git, "pattern": pattern, **selector} for pattern in self.patterns)
        else:
            entries.append({"git": self.git, **selector})
        return entries

    def overrides(self) -> dict[str, Any]:
        fragment: dict[str, Any] = {}
        libraries = self.library_overrides()
        if libraries:
            fragment["libraries"] = libraries
        if self.cache_dir is not None:
            fragment["cache"] = {"root": self.cache_dir}
        return fragment


def _from_cwd(path: str) -> str:
    return str(Path.cwd() / Path(path).expanduser())


def load_config(options: SourceOptions, extra: dict[str, Any] | None = None) -> Config:
    """Load the layered configuration for ``options``.

    Args:
        options: Library selection flags.
        extra: Additional command-specific overrides.

    Returns:
        Config: Validated configuration.

    Raises:
        CLIError: If configuration loading fails.
    """

    if options.verbose:
        configure_verbose_logging()
    overrides = options.overrides()
    for key, value in (extra or {}).items():
        if isinstance(value, dict) and isinstance(overrides.get(key), dict):
            overrides[key] = {**overrides[key], **value}
        else:
            overrides[key] = value
    try:
        loader = ConfigLoader.for_root(options.root, config_file=options.config_file)
        return loader.load(overrides).config
    except DynlintError as exc:
        raise CLIError(str(exc), exit_code=exit_code_for(exc.category)) from exc


__all__ = [
    "BranchOption",
    "CacheDirOption",
    "ConfigFileOption",
    "EmojiOption",
    "GitOption",
    "PathOption",
    "PatternOption",
    "RevOption",
    "RootOption",
    "SourceOptions",
    "TagOption",
    "VerboseOption",
    "load_config",
]
