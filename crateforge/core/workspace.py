"""Private, throwaway materialization of a step's inputs.

Each step gets its own temporary directory holding a copy of the source
snapshot and, when given, an unpacked copy of the dependency cache as
``CARGO_TARGET_DIR``. Shared artifacts in the store are never written to.
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from crateforge.core.artifact_store import ContentAddressedStore
from crateforge.models.artifacts import DependencyCacheArtifact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Workspace:
    """Paths of a materialized step workspace."""

    root: Path
    source_dir: Path
    target_dir: Path

    def env(self) -> dict[str, str]:
        return {"CARGO_TARGET_DIR": str(self.target_dir)}


@contextmanager
def materialize(
    store: ContentAddressedStore,
    source_address: str,
    dependency_cache: DependencyCacheArtifact | None = None,
    *,
    prefix: str = "crateforge-",
) -> Iterator[Workspace]:
    """Yield a fresh workspace; everything in it is removed on exit.

    The cache is unpacked before the sources so restored build outputs are
    older than the sources cargo has to compile.
    """
    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        root = Path(tmp)
        ws = Workspace(root=root, source_dir=root / "source", target_dir=root / "target")
        ws.target_dir.mkdir()
        if dependency_cache is not None:
            store.extract_tree(dependency_cache.content_address, ws.target_dir, touch=True)
            logger.debug("restored dependency cache %s", dependency_cache.cache_key[:19])
        store.extract_tree(source_address, ws.source_dir, touch=True)
        yield ws
