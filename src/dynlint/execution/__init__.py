# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Driver invocation and the shared worker pool."""

from __future__ import annotations

from .orchestrator import ExecutionOrchestrator, classify_returncode
from .worker import Outcome, run_tasks

__all__ = ["ExecutionOrchestrator", "Outcome", "classify_returncode", "run_tasks"]
