# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command registry."""

from __future__ import annotations

import typer

from .cache import cache_app
from .check import check_command
from .listing import list_command

__all__ = ["register_commands"]


def register_commands(app: typer.Typer) -> None:
    """Register the built-in commands on ``app``.

    Args:
        app: Typer application receiving the command registrations.
    """

    app.command("check")(check_command)
    app.command("list")(list_command)
    app.add_typer(cache_app, name="cache")
