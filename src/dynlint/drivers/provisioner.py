# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Build and cache one driver harness per toolchain identifier."""

from __future__ import annotations

import logging
import os
import shutil
import threading
from collections.abc import Mapping
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Final, Protocol

from packaging.version import Version
from pydantic import BaseModel, ConfigDict

from ..cache.store import CacheStore
from ..config.models import DowngradePolicy, DriverConfig
from ..core.errors import BuildFailure
from ..core.models import DriverBinary
from ..core.runtime.process import CommandOptions, CommandRunner, SubprocessExecutionError, run_command
from ..platform import EXE_SUFFIX
from ..toolchain.ids import ToolchainId
from ..toolchain.rustup import ToolchainManager, toolchain_env
from .scaffold import DRIVER_FILENAME, HARNESS_PACKAGE, crate_spec, scaffold_fingerprint, write_harness

LOGGER = logging.getLogger(__name__)

DRIVER_MANIFEST: Final[str] = "driver.json"
DRIVER_TARGET: Final[str] = "driver"


class DriverManifest(BaseModel):
    """Metadata persisted beside each cached driver binary."""

    model_config = ConfigDict(frozen=True)

    toolchain: str
    harness_fingerprint: str
    crate_spec: str
    filename: str
    built_at: datetime


class DriverBuilder(Protocol):
    def build(self, toolchain: str, package_dir: Path) -> Path:
        """Compile the harness package in ``package_dir`` and return the binary path."""


class CargoDriverBuilder:
    """Compile the scaffolded harness with ``cargo`` against the toolchain's sysroot."""

    def __init__(
        self,
        manager: ToolchainManager,
        *,
        runner: CommandRunner = run_command,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._manager = manager
        self._runner = runner
        self._env = env

    def build(self, toolchain: str, package_dir: Path) -> Path:
        """Build the harness and return the produced executable.

        Args:
            toolchain: Toolchain the driver links against.
            package_dir: Scaffolded harness package.

        Returns:
            Path: Binary inside ``package_dir``'s target directory.

        Raises:
            BuildFailure: If the sysroot cannot be queried, cargo fails, or no
                binary is produced.
        """

        try:
            sysroot = self._manager.sysroot(toolchain)
        except OSError as exc:
            raise BuildFailure(DRIVER_TARGET, toolchain=toolchain, diagnostics=str(exc)) from exc
        except SubprocessExecutionError as exc:
            detail = exc.stderr or str(exc)
            raise BuildFailure(DRIVER_TARGET, toolchain=toolchain, diagnostics=detail) from exc

        env = toolchain_env(self._env)
        env["RUSTFLAGS"] = f"-C link-args=-Wl,-rpath,{sysroot / 'lib'}"
        options = CommandOptions(cwd=package_dir, env=env, capture_output=True, check=False, discard_stdin=True)
        LOGGER.info("building driver for %s", toolchain)
        try:
            completed = self._runner(["cargo", f"+{toolchain}", "build"], options=options)
        except OSError as exc:
            raise BuildFailure(DRIVER_TARGET, toolchain=toolchain, diagnostics=str(exc)) from exc
        if completed.returncode != 0:
            raise BuildFailure(DRIVER_TARGET, toolchain=toolchain, diagnostics=completed.stderr or completed.stdout or "")

        binary = package_dir / "target" / "debug" / f"{HARNESS_PACKAGE}{EXE_SUFFIX}"
        if not binary.is_file():
            raise BuildFailure(DRIVER_TARGET, toolchain=toolchain, diagnostics=f"{binary} was not produced")
        return binary


def _recency(identifier: ToolchainId) -> tuple[Version, date]:
    return (identifier.version or Version("0"), identifier.date or date.min)


class DriverProvisioner:
    """Ensure a driver exists for each toolchain, building it at most once.

    Drivers are keyed by toolchain identifier; the harness fingerprint in the
    manifest invalidates drivers scaffolded from different templates or a
    different driver crate.
    """

    def __init__(
        self,
        store: CacheStore,
        builder: DriverBuilder,
        *,
        config: DriverConfig | None = None,
        policy: DowngradePolicy = DowngradePolicy.EXACT,
        compat_window_days: int = 0,
    ) -> None:
        self._store = store
        self._builder = builder
        self._crate_spec = crate_spec(config or DriverConfig())
        self._fingerprint = scaffold_fingerprint(self._crate_spec)
        self._policy = policy
        self._window = compat_window_days
        self._lock = threading.Lock()
        self._resolved: dict[str, DriverBinary] = {}
        self._builds = 0

    @property
    def harness_fingerprint(self) -> str:
        return self._fingerprint

    @property
    def builds(self) -> int:
        with self._lock:
            return self._builds

    def ensure_driver(self, toolchain: str) -> DriverBinary:
        """Return a driver able to load libraries built with ``toolchain``.

        Args:
            toolchain: Toolchain identifier shared by one execution group.

        Returns:
            DriverBinary: Cached or freshly built driver. Under the compatible
            policy this may serve an older compatible toolchain, in which case
            ``requested`` records ``toolchain``.

        Raises:
            BuildFailure: If the driver cannot be built and no permitted
                fallback exists.
        """

        with self._lock:
            memo = self._resolved.get(toolchain)
        if memo is not None:
            return memo

        entry = self._store.layout.driver_entry(toolchain)
        driver = self._lookup(entry, toolchain)
        if driver is None:
            with self._store.lock("driver", toolchain):
                driver = self._lookup(entry, toolchain)
                if driver is None:
                    driver = self._build_or_downgrade(entry, toolchain)
        with self._lock:
            self._resolved[toolchain] = driver
        return driver

    def _lookup(self, entry: Path, toolchain: str) -> DriverBinary | None:
        manifest = self._store.read_manifest(entry, DriverManifest, DRIVER_MANIFEST)
        if manifest is None or manifest.toolchain != toolchain:
            return None
        if manifest.harness_fingerprint != self._fingerprint:
            LOGGER.debug("driver for %s was built from a different harness; rebuilding", toolchain)
            return None
        binary = entry / manifest.filename
        if not binary.is_file():
            return None
        return DriverBinary(
            toolchain=toolchain,
            path=binary,
            harness_fingerprint=manifest.harness_fingerprint,
            built_at=manifest.built_at,
            cached=True,
        )

    def _build_or_downgrade(self, entry: Path, toolchain: str) -> DriverBinary:
        try:
            return self._build(entry, toolchain)
        except BuildFailure:
            if self._policy is not DowngradePolicy.COMPATIBLE:
                raise
            fallback = self._compatible_driver(toolchain)
            if fallback is None:
                raise
            LOGGER.warning(
                "driver for %s could not be built; using compatible driver for %s",
                toolchain,
                fallback.toolchain,
            )
            return fallback.model_copy(update={"requested": toolchain})

    def _build(self, entry: Path, toolchain: str) -> DriverBinary:
        built_at = datetime.now(timezone.utc)
        with self._store.scratch("driver-") as scratch:
            package_dir = write_harness(scratch / HARNESS_PACKAGE, toolchain, self._crate_spec)
            binary = self._builder.build(toolchain, package_dir)
            with self._store.staging(entry.parent) as staging:
                shutil.copy2(binary, staging / DRIVER_FILENAME)
                os.chmod(staging / DRIVER_FILENAME, 0o755)
                manifest = DriverManifest(
                    toolchain=toolchain,
                    harness_fingerprint=self._fingerprint,
                    crate_spec=self._crate_spec,
                    filename=DRIVER_FILENAME,
                    built_at=built_at,
                )
                self._store.write_manifest(staging, manifest, DRIVER_MANIFEST)
                self._store.commit(staging, entry)
        with self._lock:
            self._builds += 1
        LOGGER.info("cached driver for %s", toolchain)
        return DriverBinary(
            toolchain=toolchain,
            path=entry / DRIVER_FILENAME,
            harness_fingerprint=self._fingerprint,
            built_at=built_at,
        )

    def _compatible_driver(self, toolchain: str) -> DriverBinary | None:
        """Return the newest cached driver whose toolchain may stand in for ``toolchain``."""

        required = ToolchainId.parse(toolchain)
        candidates: list[tuple[ToolchainId, DriverBinary]] = []
        for cached in self._store.entries():
            if cached.kind != "driver":
                continue
            manifest = self._store.read_manifest(cached.path, DriverManifest, DRIVER_MANIFEST)
            if manifest is None or manifest.toolchain == toolchain:
                continue
            candidate = ToolchainId.parse(manifest.toolchain)
            if not required.is_compatible_with(candidate, window_days=self._window):
                continue
            driver = self._lookup(cached.path, manifest.toolchain)
            if driver is not None:
                candidates.append((candidate, driver))
        if not candidates:
            return None
        return max(candidates, key=lambda pair: _recency(pair[0]))[1]


__all__ = [
    "DRIVER_MANIFEST",
    "CargoDriverBuilder",
    "DriverBuilder",
    "DriverManifest",
    "DriverProvisioner",
]
