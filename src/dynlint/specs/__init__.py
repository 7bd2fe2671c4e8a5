# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Specification parsing: declarations to canonical library specifications."""

from __future__ import annotations

from .git import GitCheckouts
from .package import is_library_package, prebuilt_package, read_package
from .parser import PatternReport, SpecificationParser, SpecificationSet

__all__ = [
    "GitCheckouts",
    "PatternReport",
    "SpecificationParser",
    "SpecificationSet",
    "is_library_package",
    "prebuilt_package",
    "read_package",
]
