# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""``dynlint cache``: inspect and clean the persistent plugin and driver cache."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from ...cache.store import CacheStore
from ...core.errors import DynlintError
from ...reporting import exit_code_for
from ...runtime.console.manager import get_console_manager
from ..options import CacheDirOption, ConfigFileOption, EmojiOption, RootOption, SourceOptions, VerboseOption, load_config
from ..shared import CLIError, CLILogger, build_cli_logger

cache_app = typer.Typer(name="cache", help="Inspect or clean the dynlint cache.", no_args_is_help=True)


def _open_store(options: SourceOptions, logger: CLILogger) -> CacheStore:
    try:
        config = load_config(options)
        return CacheStore.open(config.cache.resolve_root())
    except CLIError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
    except DynlintError as exc:
        logger.fail(str(exc))
        raise typer.Exit(code=exit_code_for(exc.category)) from exc


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


@cache_app.command("info")
def info_command(
    root: RootOption = Path("."),
    config_file: ConfigFileOption = None,
    cache_dir: CacheDirOption = None,
    emoji: EmojiOption = True,
    verbose: VerboseOption = False,
) -> None:
    """Show the cache location and its plugin and driver entries."""

    logger = build_cli_logger(emoji=emoji, debug=verbose)
    store = _open_store(SourceOptions(root=root, config_file=config_file, cache_dir=cache_dir, verbose=verbose), logger)
    entries = store.entries()
    typer.echo(f"cache root: {store.layout.root}")
    typer.echo(f"drivers: {store.layout.drivers_dir}")
    table = Table(title="Cache entries")
    table.add_column("Kind", no_wrap=True)
    table.add_column("Key", overflow="fold")
    table.add_column("Size", justify="right", no_wrap=True)
    for entry in entries:
        table.add_row(entry.kind, entry.key, _human_size(entry.size))
    get_console_manager().get(color=logger.use_color, emoji=emoji).print(table)
    plugins = sum(1 for entry in entries if entry.kind == "plugin")
    logger.info(f"{plugins} plugin(s), {len(entries) - plugins} driver(s)")


@cache_app.command("clean")
def clean_command(
    root: RootOption = Path("."),
    config_file: ConfigFileOption = None,
    cache_dir: CacheDirOption = None,
    drivers: Annotated[
        bool,
        typer.Option("--drivers/--no-drivers", help="Also remove cached drivers."),
    ] = True,
    emoji: EmojiOption = True,
    verbose: VerboseOption = False,
) -> None:
    """Remove cached plugin libraries (and drivers unless --no-drivers)."""

    logger = build_cli_logger(emoji=emoji, debug=verbose)
    store = _open_store(SourceOptions(root=root, config_file=config_file, cache_dir=cache_dir, verbose=verbose), logger)
    removed = store.clear(drivers=drivers)
    pruned = store.prune_staging()
    for path in removed:
        logger.debug(f"removed {path}")
    logger.ok(f"removed {len(removed)} cache entr{'y' if len(removed) == 1 else 'ies'}")
    if pruned:
        logger.debug(f"pruned {pruned} staging director{'y' if pruned == 1 else 'ies'}")


__all__ = ["cache_app"]
