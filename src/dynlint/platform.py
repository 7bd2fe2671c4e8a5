# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Platform-specific naming for dynamic libraries and executables."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Final


def _dll_affixes(platform: str) -> tuple[str, str]:
    if platform.startswith("win") or platform == "cygwin":
        return "", ".dll"
    if platform == "darwin":
        return "lib", ".dylib"
    return "lib", ".so"


DLL_PREFIX, DLL_SUFFIX = _dll_affixes(sys.platform)
EXE_SUFFIX: Final[str] = ".exe" if sys.platform.startswith("win") else ""
TOOLCHAIN_SEPARATOR: Final[str] = "@"

_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True, slots=True)
class LibraryFilename:
    """Name and toolchain encoded in a plugin library filename."""

    name: str
    toolchain: str


def library_filename(name: str, toolchain: str) -> str:
    """Return the on-disk filename for library ``name`` built with ``toolchain``.

    Args:
        name: Normalised library name (underscores, no hyphens).
        toolchain: Toolchain identifier the library was built against.

    Returns:
        str: Filename such as ``libfoo@nightly-2023-06-01.so``.
    """

    return f"{DLL_PREFIX}{name}{TOOLCHAIN_SEPARATOR}{toolchain}{DLL_SUFFIX}"


def parse_library_filename(path: Path) -> LibraryFilename | None:
    """Return the name and toolchain encoded in ``path`` when it follows the convention.

    Args:
        path: Candidate library file.

    Returns:
        LibraryFilename | None: Parsed components, or ``None`` for foreign files.
    """

    filename = path.name
    if not (filename.startswith(DLL_PREFIX) and filename.endswith(DLL_SUFFIX)):
        return None
    stem = filename[len(DLL_PREFIX) : len(filename) - len(DLL_SUFFIX)]
    name, separator, toolchain = stem.partition(TOOLCHAIN_SEPARATOR)
    if not separator or not toolchain or not _NAME_PATTERN.match(name):
        return None
    return LibraryFilename(name=name, toolchain=toolchain)


def cargo_output_filename(name: str) -> str:
    """Return the filename cargo produces for a ``cdylib`` named ``name``."""

    return f"{DLL_PREFIX}{name}{DLL_SUFFIX}"


__all__ = [
    "DLL_PREFIX",
    "DLL_SUFFIX",
    "EXE_SUFFIX",
    "LibraryFilename",
    "cargo_output_filename",
    "library_filename",
    "parse_library_filename",
]
