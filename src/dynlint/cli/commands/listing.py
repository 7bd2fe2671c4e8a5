# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""``dynlint list``: show declared plugin libraries and their lints."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from ...core.errors import DynlintError, ToolchainUnavailable
from ...core.models import DeclaredLibrary, SpecificationKind
from ...pipeline import Pipeline
from ...reporting import exit_code_for
from ...runtime.console.manager import get_console_manager
from ..options import (
    BranchOption,
    CacheDirOption,
    ConfigFileOption,
    EmojiOption,
    GitOption,
    PathOption,
    PatternOption,
    RevOption,
    RootOption,
    SourceOptions,
    TagOption,
    VerboseOption,
    load_config,
)
from ..shared import CLIError, build_cli_logger


def _toolchain_label(pipeline: Pipeline, library: DeclaredLibrary) -> str:
    if library.spec.kind is SpecificationKind.PREBUILT:
        return library.package.declared_toolchain or "?"
    try:
        toolchain, source = pipeline.resolver.determine(library.package, library=library.identity)
    except ToolchainUnavailable:
        return "?"
    return f"{toolchain} ({source.value})"


def list_command(
    root: RootOption = Path("."),
    config_file: ConfigFileOption = None,
    paths: PathOption = None,
    patterns: PatternOption = None,
    git: GitOption = None,
    rev: RevOption = None,
    tag: TagOption = None,
    branch: BranchOption = None,
    cache_dir: CacheDirOption = None,
    emoji: EmojiOption = True,
    verbose: VerboseOption = False,
) -> None:
    """List declared plugin libraries, their lints and toolchains without building."""

    logger = build_cli_logger(emoji=emoji, debug=verbose)
    options = SourceOptions(
        root=root,
        config_file=config_file,
        paths=list(paths or []),
        patterns=list(patterns or []),
        git=git,
        rev=rev,
        tag=tag,
        branch=branch,
        cache_dir=cache_dir,
        verbose=verbose,
    )
    try:
        config = load_config(options)
        pipeline = Pipeline.from_config(config)
        specs, declared = pipeline.declare(config)
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
    except DynlintError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exit_code_for(exc.category)) from exc

    for report in specs.reports:
        logger.warn(report.describe())
    table = Table(title="Plugin libraries", show_lines=False)
    table.add_column("Library", no_wrap=True)
    table.add_column("Lints", no_wrap=True)
    table.add_column("Toolchain", no_wrap=True)
    table.add_column("Source", overflow="fold")
    for library in declared:
        table.add_row(
            library.name,
            ", ".join(library.lints),
            _toolchain_label(pipeline, library),
            library.identity,
        )
    get_console_manager().get(color=logger.use_color, emoji=emoji).print(table)
    raise typer.Exit(code=0)


__all__ = ["list_command"]
