"""Documentation Builder — full-feature API docs, warnings are errors.

Unlike the documentation-lint check (own items, private items included),
this documents the whole dependency graph with every feature enabled.
"""

from __future__ import annotations

import logging

from crateforge.core.artifact_store import ContentAddressedStore
from crateforge.core.cargo import CargoCommand, cargo_command
from crateforge.core.runner import CommandRunner
from crateforge.core.workspace import materialize
from crateforge.models.artifacts import DependencyCacheArtifact, DocumentationArtifact
from crateforge.models.build import BuildConfiguration

logger = logging.getLogger(__name__)

# cargo's lock file is build state, not documentation.
_DOC_EXCLUDES: frozenset[str] = frozenset({".lock"})


class DocumentationBuildError(RuntimeError):
    """Raised when rustdoc fails or emits a warning."""


def docs_command(build_config: BuildConfiguration) -> CargoCommand:
    return cargo_command(
        build_config, "doc", "--all-features", env={"RUSTDOCFLAGS": "-D warnings"}
    )


class DocumentationBuilder:
    """Builds documentation and stores the ``doc/`` tree."""

    def __init__(self, store: ContentAddressedStore, runner: CommandRunner) -> None:
        self._store = store
        self._runner = runner

    def build(
        self,
        build_config: BuildConfiguration,
        dependency_cache: DependencyCacheArtifact,
    ) -> DocumentationArtifact:
        command = docs_command(build_config)
        with materialize(
            self._store,
            build_config.source.content_address,
            dependency_cache,
            prefix="crateforge-docs-",
        ) as ws:
            result = self._runner.run(
                command.argv, cwd=ws.source_dir, env={**command.env, **ws.env()}
            )
            if not result.ok:
                logger.error("Documentation build failed: %s", command.command_line)
                raise DocumentationBuildError(
                    f"Documentation build failed ({result.returncode}):\n"
                    f"{result.diagnostics()}"
                )
            doc_dir = ws.target_dir / "doc"
            if not doc_dir.is_dir():
                raise DocumentationBuildError(
                    f"cargo doc succeeded but produced no {doc_dir.name}/ directory"
                )
            file_count = sum(1 for p in doc_dir.rglob("*") if p.is_file() and p.name not in _DOC_EXCLUDES)
            stored = self._store.store_tree(
                doc_dir,
                name=f"{build_config.package_name}-docs",
                artifact_type="documentation",
                exclude=_DOC_EXCLUDES,
            )

        logger.info(
            "Documentation for %s stored as %s (%d files)",
            build_config.package_name, stored.content_address[:19], file_count,
        )
        return DocumentationArtifact(
            package_name=build_config.package_name,
            platform=build_config.platform,
            content_address=stored.content_address,
            file_count=file_count,
            dependency_cache_address=dependency_cache.content_address,
        )
