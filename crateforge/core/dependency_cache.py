"""Dependency Cache Builder — builds *only* the dependency closure.

Runs against the dependency skeleton of the snapshot, so the package's own
compilation units never enter the cache. The result is bound in the store
under the configuration's cache key only after every command succeeded; a
failed build publishes nothing.
"""

from __future__ import annotations

import logging

from crateforge.core.artifact_store import ContentAddressedStore
from crateforge.core.build_config import dependency_cache_key
from crateforge.core.cargo import CargoCommand, cargo_command
from crateforge.core.runner import CommandRunner
from crateforge.core.workspace import materialize
from crateforge.models.artifacts import DependencyCacheArtifact
from crateforge.models.build import BuildConfiguration

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "dependency-cache"

# Never part of the cached target dir.
_TARGET_EXCLUDES: frozenset[str] = frozenset({".package-cache", ".rustc_info.json"})


class DependencyBuildError(RuntimeError):
    """Raised when any dependency fails to build."""


def dependency_commands(build_config: BuildConfiguration) -> list[CargoCommand]:
    """The commands that compile the dependency closure for every target kind."""
    return [
        cargo_command(build_config, "check", "--all-targets"),
        cargo_command(build_config, "build"),
        cargo_command(build_config, "test", "--no-run"),
    ]


class DependencyCacheBuilder:
    """Builds, stores and reuses ``DependencyCacheArtifact`` values.

    Parameters
    ----------
    store:
        Content-addressed store holding the snapshot and receiving the cache.
    runner:
        Command runner used to invoke cargo.
    """

    def __init__(self, store: ContentAddressedStore, runner: CommandRunner) -> None:
        self._store = store
        self._runner = runner

    def lookup(self, build_config: BuildConfiguration) -> DependencyCacheArtifact | None:
        """Return the cached artifact for *build_config* if one is bound and intact."""
        key = dependency_cache_key(build_config)
        record = self._store.lookup(CACHE_NAMESPACE, key)
        if record is None:
            return None
        artifact = DependencyCacheArtifact.model_validate(record)
        if not self._store.verify(artifact.content_address):
            logger.warning("Dependency cache %s failed verification; rebuilding", key[:19])
            return None
        return artifact

    def build(self, build_config: BuildConfiguration) -> DependencyCacheArtifact:
        """Return the dependency cache for *build_config*, building it on a miss."""
        key = dependency_cache_key(build_config)
        cached = self.lookup(build_config)
        if cached is not None:
            logger.info("Dependency cache hit %s", key[:19])
            return cached

        logger.info("Dependency cache miss %s; building dependencies", key[:19])
        commands = dependency_commands(build_config)
        with materialize(
            self._store, build_config.source.dependency_address, prefix="crateforge-deps-"
        ) as ws:
            for command in commands:
                result = self._runner.run(
                    command.argv,
                    cwd=ws.source_dir,
                    env={**command.env, **ws.env()},
                )
                if not result.ok:
                    logger.error("Dependency build failed: %s", command.command_line)
                    raise DependencyBuildError(
                        f"Dependency build failed ({result.returncode}):\n"
                        f"{result.diagnostics()}"
                    )
            stored = self._store.store_tree(
                ws.target_dir,
                name=f"{build_config.package_name}-deps",
                artifact_type="dependency-cache",
                exclude=_TARGET_EXCLUDES,
            )

        artifact = DependencyCacheArtifact(
            cache_key=key,
            content_address=stored.content_address,
            platform=build_config.platform,
            size_bytes=stored.size_bytes,
            commands=tuple(c.command_line for c in commands),
        )
        self._store.bind(CACHE_NAMESPACE, key, artifact.model_dump(mode="json"))
        logger.info(
            "Dependency cache %s stored as %s (%d bytes)",
            key[:19], stored.content_address[:19], stored.size_bytes,
        )
        return artifact
