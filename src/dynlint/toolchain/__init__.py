# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Toolchain identification, verification and provisioning."""

from __future__ import annotations

from .ids import ToolchainId
from .resolver import ToolchainResolver, read_toolchain_file
from .rustup import RustupManager, ToolchainManager, toolchain_env

__all__ = [
    "RustupManager",
    "ToolchainId",
    "ToolchainManager",
    "ToolchainResolver",
    "read_toolchain_file",
    "toolchain_env",
]
