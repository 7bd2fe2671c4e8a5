# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models and layered loading."""

from __future__ import annotations

from .loader import ConfigLoader, ConfigLoadResult
from .models import (
    BuildConfig,
    CacheConfig,
    Config,
    DowngradePolicy,
    DriverConfig,
    ExecutionConfig,
    LibraryDeclaration,
    ProjectConfig,
    ToolchainConfig,
)

__all__ = [
    "BuildConfig",
    "CacheConfig",
    "Config",
    "ConfigLoadResult",
    "ConfigLoader",
    "DowngradePolicy",
    "DriverConfig",
    "ExecutionConfig",
    "LibraryDeclaration",
    "ProjectConfig",
    "ToolchainConfig",
]
