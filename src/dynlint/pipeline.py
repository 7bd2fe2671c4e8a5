# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Wire specification parsing, toolchains, builds, drivers and execution together."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Final

from .build.builder import CargoBuilder, LibraryBuilder
from .build.cache import BuildCache
from .cache.store import CacheStore
from .config.models import Config
from .core.errors import DynlintError, ExitCategory, SpecificationError
from .core.models import (
    BuildProfile,
    BuiltArtifact,
    DeclaredLibrary,
    ExecutionGroup,
    GroupResult,
    LibrarySpecification,
    ResolvedLibrary,
    SpecificationKind,
)
from .core.runtime.process import CommandRunner, run_command, terminate_active_processes
from .drivers.provisioner import CargoDriverBuilder, DriverBuilder, DriverProvisioner
from .execution.orchestrator import ExecutionOrchestrator
from .execution.worker import run_tasks
from .platform import parse_library_filename
from .registry.resolver import ConflictResolver
from .reporting import RunReport
from .specs.git import GitCheckouts
from .specs.package import prebuilt_package, read_package
from .specs.parser import SpecificationParser, SpecificationSet
from .toolchain.resolver import ToolchainResolver
from .toolchain.rustup import RustupManager, ToolchainManager

LOGGER = logging.getLogger(__name__)

UNDETERMINED_TOOLCHAIN: Final[str] = "<undetermined>"


def declare_library(spec: LibrarySpecification) -> DeclaredLibrary:
    """Pair ``spec`` with the metadata of the package (or file) it names."""

    if spec.kind is SpecificationKind.PREBUILT:
        parsed = parse_library_filename(spec.source)
        if parsed is None:
            raise SpecificationError(f"{spec.declared}: {spec.source} is not a dynlint library file")
        return DeclaredLibrary(spec=spec, package=prebuilt_package(spec.source, parsed))
    return DeclaredLibrary(spec=spec, package=read_package(spec.source))


@dataclass(slots=True)
class _GroupFailures:
    """Failures recorded for one toolchain before execution."""

    errors: list[DynlintError]
    libraries: list[str]


class Pipeline:
    """Run declared plugin libraries against a target project.

    Every collaborator is injected so tests can replace cargo, rustup and the
    driver with fakes while exercising the real cache, locking and grouping.
    """

    def __init__(
        self,
        *,
        store: CacheStore,
        parser: SpecificationParser,
        resolver: ToolchainResolver,
        build_cache: BuildCache,
        drivers: DriverProvisioner,
        orchestrator: ExecutionOrchestrator,
        conflicts: ConflictResolver | None = None,
        workers: int = 1,
        profile: BuildProfile = BuildProfile.DEBUG,
    ) -> None:
        self.store = store
        self.parser = parser
        self.resolver = resolver
        self.build_cache = build_cache
        self.drivers = drivers
        self.orchestrator = orchestrator
        self.conflicts = conflicts or ConflictResolver()
        self.workers = workers
        self.profile = profile

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        env: Mapping[str, str] | None = None,
        runner: CommandRunner = run_command,
        manager: ToolchainManager | None = None,
        builder: LibraryBuilder | None = None,
        driver_builder: DriverBuilder | None = None,
    ) -> Pipeline:
        """Return a pipeline wired to the real toolchain, or to supplied fakes.

        Args:
            config: Fully merged configuration.
            env: Environment used for cache resolution and child processes.
            runner: Command runner shared by git, rustup, cargo and the driver.
            manager: Toolchain manager replacing ``rustup``.
            builder: Library builder replacing ``cargo build``.
            driver_builder: Driver builder replacing the harness build.

        Returns:
            Pipeline: Ready to :meth:`run`.
        """

        store = CacheStore.open(config.cache.resolve_root(env), env=env)
        toolchains = manager or RustupManager(runner=runner, env=env)
        return cls(
            store=store,
            parser=SpecificationParser(
                workspace=config.project.root,
                checkouts=GitCheckouts(store, runner=runner),
            ),
            resolver=ToolchainResolver(toolchains, config.toolchain, store=store),
            build_cache=BuildCache(store, builder or CargoBuilder(runner=runner, env=env)),
            drivers=DriverProvisioner(
                store,
                driver_builder or CargoDriverBuilder(toolchains, runner=runner, env=env),
                config=config.drivers,
                policy=config.toolchain.downgrade_policy,
                compat_window_days=config.toolchain.compat_window_days,
            ),
            orchestrator=ExecutionOrchestrator(config.project, config.execution, runner=runner, env=env),
            workers=config.build.worker_count,
            profile=config.build.profile,
        )

    def declare(self, config: Config) -> tuple[SpecificationSet, list[DeclaredLibrary]]:
        """Parse declarations, read package metadata and reject lint conflicts.

        Raises:
            SpecificationError: If declarations are malformed or match nothing.
            ConflictError: If two libraries export the same lint.
        """

        specs = self.parser.parse(config.libraries, config.library_path)
        declared = [declare_library(spec) for spec in specs.specifications() if spec.options.enabled]
        return specs, self.conflicts.check_conflicts(declared)

    def run(self, config: Config) -> RunReport:
        """Execute the full pipeline and return the aggregated report.

        Specification and conflict errors abort before any build. Toolchain
        and build failures fail only the group of the affected toolchain.

        Args:
            config: Declarations, project and execution settings.

        Returns:
            RunReport: Per-group results ordered by toolchain.
        """

        try:
            return self._run(config)
        except KeyboardInterrupt:
            LOGGER.warning("interrupted; stopping child processes")
            terminate_active_processes()
            raise

    def _run(self, config: Config) -> RunReport:
        specs, declared = self.declare(config)
        failures: dict[str, _GroupFailures] = {}

        resolved: list[ResolvedLibrary] = []
        for outcome in run_tasks(self.resolver.resolve, declared, max_workers=self.workers):
            if outcome.error is not None:
                toolchain = getattr(outcome.error, "toolchain", None) or UNDETERMINED_TOOLCHAIN
                self._record(failures, toolchain, outcome.error, outcome.item.identity)
            elif outcome.result is not None:
                resolved.append(outcome.result)

        built: list[BuiltArtifact] = []
        for outcome in run_tasks(self._build, resolved, max_workers=self.workers):
            if outcome.error is not None:
                self._record(failures, outcome.item.toolchain, outcome.error, outcome.item.identity)
            elif outcome.result is not None:
                built.append(outcome.result)

        partitioned = self.conflicts.merge(built)
        results: list[GroupResult] = []
        runnable: dict[str, tuple[BuiltArtifact, ...]] = {}
        for toolchain, artifacts in partitioned.items():
            if toolchain in failures:
                failures[toolchain].libraries.extend(artifact.identity for artifact in artifacts)
            else:
                runnable[toolchain] = artifacts

        groups: list[ExecutionGroup] = []
        toolchains = list(runnable)
        for outcome in run_tasks(self.drivers.ensure_driver, toolchains, max_workers=self.workers):
            toolchain = outcome.item
            if outcome.error is not None:
                identities = [artifact.identity for artifact in runnable[toolchain]]
                failures[toolchain] = _GroupFailures(errors=[outcome.error], libraries=identities)
            elif outcome.result is not None:
                groups.append(ExecutionGroup(toolchain=toolchain, driver=outcome.result, artifacts=runnable[toolchain]))

        results.extend(self._failed_groups(failures))
        results.extend(self.orchestrator.run(groups))
        results.sort(key=lambda result: result.toolchain)

        stats = self.build_cache.stats
        return RunReport(
            groups=results,
            reports=list(specs.reports),
            builds=stats.builds,
            cache_hits=stats.cache_hits,
            driver_builds=self.drivers.builds,
            strict=config.execution.strict,
        )

    def _build(self, library: ResolvedLibrary) -> BuiltArtifact:
        return self.build_cache.build(library, self.profile)

    @staticmethod
    def _record(failures: dict[str, _GroupFailures], toolchain: str, error: DynlintError, library: str) -> None:
        LOGGER.error("%s", error)
        entry = failures.setdefault(toolchain, _GroupFailures(errors=[], libraries=[]))
        entry.errors.append(error)
        entry.libraries.append(library)

    @staticmethod
    def _failed_groups(failures: Mapping[str, _GroupFailures]) -> Sequence[GroupResult]:
        results: list[GroupResult] = []
        for toolchain, entry in failures.items():
            category = ExitCategory.worst([error.category for error in entry.errors])
            results.append(
                GroupResult(
                    toolchain=toolchain,
                    category=category,
                    libraries=tuple(entry.libraries),
                    message="\n".join(str(error) for error in entry.errors),
                ),
            )
        return results


__all__ = ["Pipeline", "declare_library"]
