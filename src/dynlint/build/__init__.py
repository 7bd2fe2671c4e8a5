# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Plugin library builds and their persistent cache."""

from __future__ import annotations

from .builder import BuildRequest, CargoBuilder, LibraryBuilder
from .cache import ARTIFACT_MANIFEST, ArtifactManifest, BuildCache, BuildStats

__all__ = [
    "ARTIFACT_MANIFEST",
    "ArtifactManifest",
    "BuildCache",
    "BuildRequest",
    "BuildStats",
    "CargoBuilder",
    "LibraryBuilder",
]
