"""Content-addressed artifact models (immutable once stored)."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from crateforge.models.platforms import PlatformKey


class ContentAddressedArtifact(BaseModel):
    """Metadata for a stored artifact; the bytes themselves live in the store.

    Artifacts are immutable once stored. There is no update or delete operation.
    The content_address is both the identity and the integrity check.
    """

    model_config = ConfigDict(frozen=True)

    content_address: str  # "sha256:<hex>"
    artifact_type: str
    name: str
    size_bytes: int
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    metadata: dict[str, Any] = {}


class SnapshotFile(BaseModel):
    """One file kept by the source filter."""

    model_config = ConfigDict(frozen=True)

    path: str  # POSIX path relative to the package root
    sha256: str
    size_bytes: int
    executable: bool = False


class SourceSnapshot(BaseModel):
    """Filtered, deterministic snapshot of the package source tree.

    Two snapshots with the same ``content_address`` are interchangeable.
    ``dependency_address`` addresses the dummy skeleton used to build the
    dependency closure; it only changes with manifests and the lockfile.
    """

    model_config = ConfigDict(frozen=True)

    content_address: str
    dependency_address: str
    files: tuple[SnapshotFile, ...]
    size_bytes: int = 0

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]


class DependencyCacheArtifact(BaseModel):
    """Build output of the package's dependency closure only."""

    model_config = ConfigDict(frozen=True)

    cache_key: str
    content_address: str
    platform: PlatformKey
    size_bytes: int = 0
    commands: tuple[str, ...] = ()


class PackageArtifact(BaseModel):
    """The built distributable: installed binaries and libraries."""

    model_config = ConfigDict(frozen=True)

    package_name: str
    platform: PlatformKey
    content_address: str
    files: tuple[str, ...] = ()
    build_fingerprint: str
    dependency_cache_address: str


class DocumentationArtifact(BaseModel):
    """Compiled API documentation (all features, zero warnings)."""

    model_config = ConfigDict(frozen=True)

    package_name: str
    platform: PlatformKey
    content_address: str
    file_count: int = 0
    dependency_cache_address: str


class VersionedArchive(BaseModel):
    """Documentation packed into one archive named by version.

    The directory inside the archive and the archive file name embed the
    same version string; the validator rejects anything else.
    """

    model_config = ConfigDict(frozen=True)

    package_name: str
    version: str
    directory_name: str
    file_name: str
    path: Path
    content_address: str
    size_bytes: int = 0

    @model_validator(mode="after")
    def _names_agree(self) -> VersionedArchive:
        expected_dir = f"{self.package_name}-docs-{self.version}"
        if self.directory_name != expected_dir:
            raise ValueError(
                f"directory_name {self.directory_name!r} != {expected_dir!r}"
            )
        if not self.file_name.startswith(f"{expected_dir}."):
            raise ValueError(
                f"file_name {self.file_name!r} does not embed {expected_dir!r}"
            )
        return self
