# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Driver harness scaffolding and provisioning."""

from __future__ import annotations

from .provisioner import DRIVER_MANIFEST, CargoDriverBuilder, DriverBuilder, DriverManifest, DriverProvisioner
from .scaffold import DRIVER_FILENAME, crate_spec, render_harness, scaffold_fingerprint

__all__ = [
    "DRIVER_FILENAME",
    "DRIVER_MANIFEST",
    "CargoDriverBuilder",
    "DriverBuilder",
    "DriverManifest",
    "DriverProvisioner",
    "crate_spec",
    "render_harness",
    "scaffold_fingerprint",
]
