"""Package Builder — the distributable, built on top of the dependency cache.

The test suite is deliberately *not* run here: tests are the test check's
job, and running them again in every package build would duplicate the
most expensive step. A package build therefore never waits on, nor is
gated by, any ``CheckResult``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from crateforge.core.artifact_store import ContentAddressedStore, pack_files
from crateforge.core.build_config import build_fingerprint
from crateforge.core.cargo import CargoCommand, cargo_command
from crateforge.core.runner import CommandRunner
from crateforge.core.workspace import materialize
from crateforge.models.artifacts import DependencyCacheArtifact, PackageArtifact
from crateforge.models.build import BuildConfiguration
from crateforge.models.checks import CheckResult

logger = logging.getLogger(__name__)

_LIBRARY_SUFFIXES: tuple[str, ...] = (".rlib", ".a", ".so", ".dylib", ".dll", ".lib")


class PackageBuildError(RuntimeError):
    """Raised when compiling the package fails."""


@dataclass(frozen=True)
class PackageBuild:
    """A package artifact plus the inputs it was built from.

    ``checks`` maps each check name to the operation producing its result,
    so callers can run checks against exactly these inputs without
    rebuilding anything.
    """

    artifact: PackageArtifact
    build_config: BuildConfiguration
    dependency_cache: DependencyCacheArtifact
    checks: Mapping[str, Callable[[], CheckResult]] = field(default_factory=dict)


def package_command(build_config: BuildConfiguration) -> CargoCommand:
    return cargo_command(
        build_config, "build", "--message-format", "json-render-diagnostics"
    )


def installed_files(build_log: str, source_dir: Path) -> dict[str, Path]:
    """Pick the installable outputs out of cargo's JSON build log.

    Only artifacts of crates whose manifest lives under *source_dir* are
    installed: executables into ``bin/``, library files into ``lib/``.
    """
    source_dir = source_dir.resolve()
    installed: dict[str, Path] = {}
    for line in build_log.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            message: dict[str, Any] = json.loads(line)
        except json.JSONDecodeError:
            continue
        if message.get("reason") != "compiler-artifact":
            continue
        manifest = Path(message.get("manifest_path", "")).resolve()
        if not manifest.is_relative_to(source_dir):
            continue
        executable = message.get("executable")
        if executable:
            installed[f"bin/{Path(executable).name}"] = Path(executable)
            continue
        for filename in message.get("filenames", []):
            if filename.endswith(_LIBRARY_SUFFIXES):
                installed[f"lib/{Path(filename).name}"] = Path(filename)
    return installed


class PackageBuilder:
    """Compiles the package and stores its installed outputs."""

    def __init__(self, store: ContentAddressedStore, runner: CommandRunner) -> None:
        self._store = store
        self._runner = runner

    def build(
        self,
        build_config: BuildConfiguration,
        dependency_cache: DependencyCacheArtifact,
    ) -> PackageArtifact:
        command = package_command(build_config)
        fingerprint = build_fingerprint(build_config)
        logger.info(
            "Building %s for %s (config %s)",
            build_config.package_name, build_config.platform.value, fingerprint[:19],
        )
        with materialize(
            self._store,
            build_config.source.content_address,
            dependency_cache,
            prefix="crateforge-build-",
        ) as ws:
            result = self._runner.run(
                command.argv, cwd=ws.source_dir, env={**command.env, **ws.env()}
            )
            if not result.ok:
                logger.error("Package build failed: %s", command.command_line)
                raise PackageBuildError(
                    f"Package build failed ({result.returncode}):\n{result.diagnostics()}"
                )
            outputs = installed_files(result.stdout, ws.source_dir)
            if not outputs:
                logger.warning("Build of %s installed no files", build_config.package_name)
            files = {
                rel: (path.read_bytes(), rel.startswith("bin/"))
                for rel, path in outputs.items()
            }

        stored = self._store.store(
            pack_files(files),
            name=build_config.package_name,
            artifact_type="package",
        )
        return PackageArtifact(
            package_name=build_config.package_name,
            platform=build_config.platform,
            content_address=stored.content_address,
            files=tuple(sorted(files)),
            build_fingerprint=fingerprint,
            dependency_cache_address=dependency_cache.content_address,
        )
