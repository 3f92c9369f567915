"""Pipeline — the per-platform coordinator.

The Pipeline wires the source snapshot, the common build configuration,
the dependency cache, the check registry, the package and documentation
builders, the version reader and the archive packager for one platform.

Intermediate values are memoized per instance: the snapshot, the build
configuration and the dependency cache are produced once and handed by
reference to every consumer. Failures are not memoized; a later call
retries.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Any, TypeVar

from crateforge.checks import CHECK_ORDER, get_check
from crateforge.config import ForgeConfig
from crateforge.core.archive import VersionedArchivePackager
from crateforge.core.artifact_store import ContentAddressedStore
from crateforge.core.build_config import build_configuration_from_config
from crateforge.core.dependency_cache import DependencyBuildError, DependencyCacheBuilder
from crateforge.core.devshell import compose_dev_environment, query_sysroot
from crateforge.core.docs_builder import DocumentationBuilder
from crateforge.core.package_builder import PackageBuild, PackageBuilder
from crateforge.core.runner import CommandRunner, SubprocessRunner, ToolNotFoundError
from crateforge.core.source_snapshot import take_snapshot
from crateforge.core.version_reader import ManifestVersionReader
from crateforge.core.waiver_manager import WaiverManager
from crateforge.models.artifacts import (
    DependencyCacheArtifact,
    DocumentationArtifact,
    SourceSnapshot,
    VersionedArchive,
)
from crateforge.models.build import BuildConfiguration
from crateforge.models.checks import CheckResult
from crateforge.models.devshell import DevEnvironment
from crateforge.models.platforms import PlatformKey, platform_spec

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlatformUnavailableError(RuntimeError):
    """Raised when a platform's toolchain steps are run on a different host."""


class Pipeline:
    """Build, check, document and archive the package for one platform.

    Parameters
    ----------
    platform:
        The platform this pipeline builds for.
    config:
        Configuration. Uses ``ForgeConfig()`` defaults if not provided.
    store:
        Shared content-addressed store; created from ``config.store_path``
        if not provided.
    runner:
        Command runner; a ``SubprocessRunner`` if not provided.
    host:
        The platform of the executing machine. Detected if not provided.
    """

    def __init__(
        self,
        platform: PlatformKey | str,
        config: ForgeConfig | None = None,
        *,
        store: ContentAddressedStore | None = None,
        runner: CommandRunner | None = None,
        waiver_manager: WaiverManager | None = None,
        host: PlatformKey | None = None,
    ) -> None:
        self.platform = platform_spec(platform).key
        self.config = config or ForgeConfig()
        self.store = store or ContentAddressedStore(self.config.store_path)
        self.runner = runner or SubprocessRunner()
        self._host = host

        if waiver_manager is None:
            waiver_manager = WaiverManager(self.store)
            waiver_manager.register_ids(
                self.config.audit_waivers, justification="configured in CRATEFORGE_AUDIT_WAIVERS"
            )
        self.waiver_manager = waiver_manager

        self.dependency_builder = DependencyCacheBuilder(self.store, self.runner)
        self.package_builder = PackageBuilder(self.store, self.runner)
        self.docs_builder = DocumentationBuilder(self.store, self.runner)
        self.version_reader = ManifestVersionReader(self.runner, self.config.package_name)
        self.archive_packager = VersionedArchivePackager(
            self.store, extension=self.config.archive_extension
        )

        self._lock = threading.RLock()
        self._memo: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def host(self) -> PlatformKey:
        if self._host is None:
            self._host = PlatformKey.host()
        return self._host

    @property
    def package_root(self) -> Path:
        return Path(self.config.package_root)

    def is_runnable(self) -> bool:
        return self.platform == self.host

    def ensure_runnable(self) -> None:
        """Refuse to run toolchain steps for a platform other than the host."""
        if not self.is_runnable():
            raise PlatformUnavailableError(
                f"Cannot build for {self.platform.value} on a "
                f"{self.host.value} host; select the host platform explicitly"
            )

    def _memoized(self, key: str, produce: Callable[[], T]) -> T:
        with self._lock:
            if key not in self._memo:
                self._memo[key] = produce()
            return self._memo[key]

    # ------------------------------------------------------------------
    # Shared inputs
    # ------------------------------------------------------------------

    def snapshot(self) -> SourceSnapshot:
        return self._memoized(
            "snapshot",
            lambda: take_snapshot(
                self.package_root,
                self.store,
                extra_globs=self.config.extra_source_globs,
            ),
        )

    def build_configuration(self) -> BuildConfiguration:
        return self._memoized(
            "build_configuration",
            lambda: build_configuration_from_config(
                self.snapshot(), self.platform, self.config
            ),
        )

    def dependency_cache(self) -> DependencyCacheArtifact:
        self.ensure_runnable()
        return self._memoized(
            "dependency_cache",
            lambda: self.dependency_builder.build(self.build_configuration()),
        )

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def check_params(self, check_name: str) -> dict[str, Any]:
        """Check-specific parameters drawn from configuration."""
        if check_name == "audit":
            return {
                "advisory_db": self.config.advisory_db_path,
                "ignore": self.waiver_manager.active_advisory_ids(),
            }
        return {}

    def run_check(self, check_name: str, **params: Any) -> CheckResult:
        """Run one check. Check failures are reported, never raised."""
        self.ensure_runnable()
        check = get_check(check_name)
        build_config = self.build_configuration()

        dependency_cache: DependencyCacheArtifact | None = None
        if check.needs_dependency_cache:
            try:
                dependency_cache = self.dependency_cache()
            except (DependencyBuildError, ToolNotFoundError) as exc:
                return check.unavailable(build_config, f"dependency cache unavailable: {exc}")

        merged = {**self.check_params(check_name), **params}
        return check.run_check(
            build_config,
            dependency_cache,
            store=self.store,
            runner=self.runner,
            **merged,
        )

    def run_checks(
        self,
        check_names: Iterable[str] | None = None,
        *,
        max_workers: int | None = None,
    ) -> dict[str, CheckResult]:
        """Run the named checks (all by default) concurrently.

        Unknown names raise ``KeyError`` before anything runs. Results come
        back in registry order, one per requested check.
        """
        names = list(dict.fromkeys(check_names)) if check_names else list(CHECK_ORDER)
        for name in names:
            get_check(name)
        self.ensure_runnable()

        # Build shared inputs once, before fanning out.
        build_config = self.build_configuration()
        dependency_error: Exception | None = None
        try:
            if any(get_check(n).needs_dependency_cache for n in names):
                self.dependency_cache()
        except (DependencyBuildError, ToolNotFoundError) as exc:
            logger.error("Dependency cache failed; dependent checks will fail: %s", exc)
            dependency_error = exc

        def _run_one(name: str) -> CheckResult:
            check = get_check(name)
            if dependency_error is not None and check.needs_dependency_cache:
                return check.unavailable(
                    build_config, f"dependency cache unavailable: {dependency_error}"
                )
            return self.run_check(name)

        workers = max(1, min(max_workers or self.config.max_workers, len(names)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="check") as pool:
            futures = {name: pool.submit(_run_one, name) for name in names}
            results = {name: futures[name].result() for name in names}

        order = {name: i for i, name in enumerate(CHECK_ORDER)}
        return dict(sorted(results.items(), key=lambda kv: order.get(kv[0], len(order))))

    # ------------------------------------------------------------------
    # Package, docs, version, archive
    # ------------------------------------------------------------------

    def build_package(self) -> PackageBuild:
        """Build the package. Never runs or waits for any check."""
        build_config = self.build_configuration()
        dependency_cache = self.dependency_cache()
        artifact = self.package_builder.build(build_config, dependency_cache)
        return PackageBuild(
            artifact=artifact,
            build_config=build_config,
            dependency_cache=dependency_cache,
            checks={name: partial(self.run_check, name) for name in CHECK_ORDER},
        )

    def build_docs(self) -> DocumentationArtifact:
        return self._memoized(
            "docs",
            lambda: self.docs_builder.build(
                self.build_configuration(), self.dependency_cache()
            ),
        )

    def read_version(self) -> str:
        self.ensure_runnable()
        return self.version_reader.read(self.package_root)

    def docs_archive(self, output_dir: Path | None = None) -> VersionedArchive:
        """Read the version, build the docs, then archive them by version."""
        version = self.read_version()
        docs = self.build_docs()
        return self.archive_packager.package(
            docs, version, Path(output_dir or self.config.output_dir)
        )

    # ------------------------------------------------------------------
    # Development environment
    # ------------------------------------------------------------------

    def dev_environment(self, extra_tools: Iterable[str] | None = None) -> DevEnvironment:
        """Compose the development environment for this platform.

        ``RUST_SRC_PATH`` is only set when rustc can be queried on this host.
        """
        sysroot = None
        if self.is_runnable():
            try:
                sysroot = query_sysroot(self.runner, self.package_root)
            except ToolNotFoundError:
                logger.warning("rustc not found; RUST_SRC_PATH left unset")
        tools = self.config.dev_tools if extra_tools is None else list(extra_tools)
        return compose_dev_environment(
            self.platform, supplementary_tools=tools, sysroot=sysroot
        )

    def __repr__(self) -> str:
        return f"<Pipeline platform={self.platform.value!r} package={self.config.package_name!r}>"
