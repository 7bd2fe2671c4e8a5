# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Merge libraries into one execution set and reject lint-name collisions."""

from __future__ import annotations

from .resolver import ConflictResolver, LintExporter

__all__ = ["ConflictResolver", "LintExporter"]
