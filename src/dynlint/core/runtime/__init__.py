# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Runtime helpers for controlled subprocess execution."""

from __future__ import annotations

from .process import (
    CommandOptions,
    CommandRunner,
    SubprocessExecutionError,
    run_command,
    terminate_active_processes,
)

__all__ = [
    "CommandOptions",
    "CommandRunner",
    "SubprocessExecutionError",
    "run_command",
    "terminate_active_processes",
]
