# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Bind declared libraries to exactly one installed toolchain."""

from __future__ import annotations

import logging
import threading
import tomllib
from collections.abc import Iterator
from contextlib import ExitStack
from pathlib import Path
from typing import Final

from ..cache.store import CacheStore
from ..config.models import ToolchainConfig
from ..core.errors import ToolchainUnavailable
from ..core.models import DeclaredLibrary, LibraryPackage, ResolvedLibrary, SpecificationKind, ToolchainSource
from ..core.runtime.process import SubprocessExecutionError
from .ids import ToolchainId
from .rustup import ToolchainManager

LOGGER = logging.getLogger(__name__)

TOOLCHAIN_FILENAMES: Final[tuple[str, ...]] = ("rust-toolchain.toml", "rust-toolchain")


def _ancestors(start: Path, stop: Path) -> Iterator[Path]:
    """Yield ``start`` and its parents up to and including ``stop``."""

    yield start
    if start == stop or stop not in start.parents:
        return
    for parent in start.parents:
        yield parent
        if parent == stop:
            return


def read_toolchain_file(path: Path) -> str | None:
    """Return the channel pinned by a ``rust-toolchain`` file.

    Args:
        path: ``rust-toolchain.toml`` or legacy ``rust-toolchain`` file.

    Returns:
        str | None: Channel name, or ``None`` when the file pins none.
    """

    text = path.read_text(encoding="utf-8")
    try:
        document = tomllib.loads(text)
    except tomllib.TOMLDecodeError:
        if path.suffix == ".toml":
            raise
        # Legacy single-line form.
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        return lines[0] if len(lines) == 1 else None
    table = document.get("toolchain")
    channel = table.get("channel") if isinstance(table, dict) else None
    return channel.strip() if isinstance(channel, str) and channel.strip() else None


class ToolchainResolver:
    """Determine, verify and optionally install the toolchain each library needs.

    Precedence is fixed: the toolchain declared in the library's manifest, then
    a pinned toolchain file between the library and its workspace root, then
    the caller's active toolchain when ``allow_active_fallback`` is set.
    """

    def __init__(
        self,
        manager: ToolchainManager,
        config: ToolchainConfig,
        *,
        store: CacheStore | None = None,
    ) -> None:
        self._manager = manager
        self._config = config
        self._store = store
        self._lock = threading.Lock()
        self._determined: dict[Path, tuple[str, ToolchainSource]] = {}
        self._installed: tuple[str, ...] | None = None
        self._verified: dict[str, str | None] = {}
        self._install_locks: dict[str, threading.Lock] = {}

    def resolve(self, declared: DeclaredLibrary) -> ResolvedLibrary:
        """Return ``declared`` bound to its verified toolchain.

        Args:
            declared: Library specification plus manifest metadata.

        Returns:
            ResolvedLibrary: Library with exactly one toolchain identifier.

        Raises:
            ToolchainUnavailable: If no toolchain can be determined, or the
                required one is missing and cannot be installed.
        """

        package = declared.package
        if declared.spec.kind is SpecificationKind.PREBUILT:
            if package.declared_toolchain is None:
                raise ToolchainUnavailable(
                    None,
                    library=declared.identity,
                    reason="library filename does not encode a toolchain",
                )
            toolchain, source = package.declared_toolchain, ToolchainSource.FILENAME
        else:
            toolchain, source = self.determine(package, library=declared.identity)
        self.ensure_installed(toolchain, library=declared.identity)
        LOGGER.debug("library %s uses toolchain %s (%s)", declared.identity, toolchain, source.value)
        return ResolvedLibrary(spec=declared.spec, package=package, toolchain=toolchain, toolchain_source=source)

    def determine(self, package: LibraryPackage, *, library: str) -> tuple[str, ToolchainSource]:
        """Return the toolchain identifier for ``package`` and where it came from."""

        with self._lock:
            cached = self._determined.get(package.root)
        if cached is not None:
            return cached

        result: tuple[str, ToolchainSource] | None = None
        if package.declared_toolchain:
            result = (package.declared_toolchain, ToolchainSource.DECLARED)
        else:
            pinned = self._pinned_toolchain(package, library=library)
            if pinned is not None:
                result = (pinned, ToolchainSource.TOOLCHAIN_FILE)
            elif self._config.allow_active_fallback:
                active = self._active_toolchain(package.root, library=library)
                if active is not None:
                    result = (active, ToolchainSource.ACTIVE)
        if result is None:
            reason = "no toolchain is declared in the manifest or pinned by a rust-toolchain file"
            if not self._config.allow_active_fallback:
                reason += " (falling back to the active toolchain is disabled)"
            raise ToolchainUnavailable(None, library=library, reason=reason)

        with self._lock:
            self._determined[package.root] = result
        return result

    def _pinned_toolchain(self, package: LibraryPackage, *, library: str) -> str | None:
        for directory in _ancestors(package.root, package.workspace_root):
            for filename in TOOLCHAIN_FILENAMES:
                path = directory / filename
                if not path.is_file():
                    continue
                try:
                    channel = read_toolchain_file(path)
                except (OSError, tomllib.TOMLDecodeError) as exc:
                    raise ToolchainUnavailable(None, library=library, reason=f"cannot read {path}: {exc}") from exc
                if channel is None:
                    raise ToolchainUnavailable(None, library=library, reason=f"{path} does not pin a channel")
                return channel
        return None

    def _active_toolchain(self, directory: Path, *, library: str) -> str | None:
        try:
            return self._manager.active(directory)
        except (OSError, SubprocessExecutionError) as exc:
            raise ToolchainUnavailable(None, library=library, reason=f"rustup is unavailable: {exc}") from exc

    def ensure_installed(self, toolchain: str, *, library: str) -> str:
        """Verify ``toolchain`` is installed, installing it when permitted.

        Results are memoised per identifier and concurrent installs of the same
        identifier are serialised.

        Args:
            toolchain: Required identifier.
            library: Library needing the toolchain, used in error messages.

        Returns:
            str: The installed toolchain name satisfying ``toolchain``.

        Raises:
            ToolchainUnavailable: If the toolchain is missing and cannot be
                provisioned.
        """

        with self._lock:
            install_lock = self._install_locks.setdefault(toolchain, threading.Lock())
        with ExitStack() as stack:
            stack.enter_context(install_lock)
            if toolchain in self._verified:
                match = self._verified[toolchain]
                if match is None:
                    raise ToolchainUnavailable(toolchain, library=library, reason="not installed")
                return match
            if self._store is not None:
                stack.enter_context(self._store.lock("toolchain", toolchain))
            match = self._find_installed(toolchain, library=library, refresh=False)
            if match is None and self._config.auto_install:
                self._install(toolchain, library=library)
                match = self._find_installed(toolchain, library=library, refresh=True)
            self._verified[toolchain] = match
        if match is None:
            reason = "installed but not reported by rustup" if self._config.auto_install else "not installed"
            if not self._config.auto_install:
                reason += "; enable auto-install-toolchains to provision it"
            raise ToolchainUnavailable(toolchain, library=library, reason=reason)
        return match

    def _find_installed(self, toolchain: str, *, library: str, refresh: bool) -> str | None:
        with self._lock:
            installed = None if refresh else self._installed
        if installed is None:
            try:
                installed = self._manager.installed()
            except (OSError, SubprocessExecutionError) as exc:
                raise ToolchainUnavailable(toolchain, library=library, reason=f"rustup is unavailable: {exc}") from exc
            with self._lock:
                self._installed = installed
        wanted = ToolchainId.parse(toolchain)
        return next((name for name in installed if wanted.matches_installed(name)), None)

    def _install(self, toolchain: str, *, library: str) -> None:
        try:
            self._manager.install(toolchain)
        except SubprocessExecutionError as exc:
            detail = (exc.stderr or exc.stdout or "").strip()
            self._verified[toolchain] = None
            raise ToolchainUnavailable(toolchain, library=library, reason=f"installation failed: {detail}") from exc
        except OSError as exc:
            self._verified[toolchain] = None
            raise ToolchainUnavailable(toolchain, library=library, reason=f"rustup is unavailable: {exc}") from exc


__all__ = ["TOOLCHAIN_FILENAMES", "ToolchainResolver", "read_toolchain_file"]
