# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""``dynlint check``: build plugin libraries and run them against the project."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer

from ...core.errors import DynlintError
from ...pipeline import Pipeline
from ...reporting import exit_code_for, render_report
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


def _execution_overrides(
    *,
    passthrough: list[str] | None,
    auto_install: bool | None,
    allow_downgrade: bool,
    release: bool,
    strict: bool | None,
    jobs: int | None,
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if passthrough:
        overrides["project"] = {"passthrough": list(passthrough)}
    toolchain: dict[str, Any] = {}
    if auto_install is not None:
        toolchain["auto_install"] = auto_install
    if allow_downgrade:
        toolchain["allow_downgrade"] = True
    if toolchain:
        overrides["toolchain"] = toolchain
    build: dict[str, Any] = {}
    if release:
        build["profile"] = "release"
    if jobs is not None:
        build["jobs"] = jobs
    if build:
        overrides["build"] = build
    if strict is not None:
        overrides["execution"] = {"strict": strict}
    return overrides


def check_command(
    passthrough: Annotated[
        list[str] | None,
        typer.Argument(help="Arguments forwarded to `cargo check` (place after `--`).", show_default=False),
    ] = None,
    root: RootOption = Path("."),
    config_file: ConfigFileOption = None,
    paths: PathOption = None,
    patterns: PatternOption = None,
    git: GitOption = None,
    rev: RevOption = None,
    tag: TagOption = None,
    branch: BranchOption = None,
    auto_install: Annotated[
        bool | None,
        typer.Option("--auto-install/--no-auto-install", help="Install missing toolchains with rustup."),
    ] = None,
    allow_downgrade: Annotated[
        bool,
        typer.Option("--allow-downgrade", help="Permit a compatible older driver when the exact one cannot be built."),
    ] = False,
    release: Annotated[bool, typer.Option("--release", help="Build plugin libraries in release mode.")] = False,
    strict: Annotated[
        bool | None,
        typer.Option("--strict/--no-strict", help="Fail the run when lints report findings."),
    ] = None,
    jobs: Annotated[int | None, typer.Option("--jobs", "-j", min=1, help="Concurrent resolution/build workers.")] = None,
    cache_dir: CacheDirOption = None,
    emoji: EmojiOption = True,
    verbose: VerboseOption = False,
) -> None:
    """Build the declared plugin libraries and run them against the project."""

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
    extra = _execution_overrides(
        passthrough=passthrough,
        auto_install=auto_install,
        allow_downgrade=allow_downgrade,
        release=release,
        strict=strict,
        jobs=jobs,
    )
    try:
        config = load_config(options, extra)
        pipeline = Pipeline.from_config(config)
        report = pipeline.run(config)
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
    except DynlintError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exit_code_for(exc.category)) from exc
    except KeyboardInterrupt as exc:
        logger.warn("interrupted")
        raise typer.Exit(code=130) from exc

    render_report(report, use_emoji=emoji, use_color=logger.use_color)
    raise typer.Exit(code=report.exit_code)


__all__ = ["check_command"]
