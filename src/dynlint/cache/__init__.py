# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Persistent cache store, layout, locking and fingerprints."""

from __future__ import annotations

from .fingerprint import compute_fingerprint, harness_fingerprint, source_digest
from .layout import CacheLayout
from .locking import file_lock
from .store import CacheEntry, CacheStore

__all__ = [
    "CacheEntry",
    "CacheLayout",
    "CacheStore",
    "compute_fingerprint",
    "file_lock",
    "harness_fingerprint",
    "source_digest",
]
