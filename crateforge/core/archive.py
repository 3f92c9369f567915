"""Versioned Archive Packager.

Moves the documentation into ``<package>-docs-<version>/`` and packs that
directory into ``<package>-docs-<version>.<ext>``. Both names are derived
from the same version string in one place, so they cannot drift apart.
Archives are deterministic: identical docs and version give identical bytes.
"""

from __future__ import annotations

import bz2
import gzip
import io
import logging
import lzma
import os
import re
import tarfile
import tempfile
from pathlib import Path

from crateforge.core.artifact_store import ArtifactNotFoundError, ContentAddressedStore, write_tree
from crateforge.models.artifacts import DocumentationArtifact, VersionedArchive

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: tuple[str, ...] = ("tar.gz", "tar.xz", "tar.bz2")

# No path separators, no whitespace, nothing that would split a file name.
_VERSION_RE = re.compile(r"[0-9A-Za-z][0-9A-Za-z.+_-]*")


class ArchiveError(RuntimeError):
    """Raised before archiving when the inputs cannot give a well-named archive."""


def archive_names(package_name: str, version: str, extension: str) -> tuple[str, str]:
    """Return ``(directory_name, file_name)`` for an archive.

    Raises ``ArchiveError`` for an empty or malformed version or an
    unsupported extension.
    """
    if not version or not version.strip():
        raise ArchiveError("Refusing to archive documentation without a version")
    if not _VERSION_RE.fullmatch(version):
        raise ArchiveError(f"Version {version!r} is not usable in a file name")
    if extension not in SUPPORTED_EXTENSIONS:
        raise ArchiveError(
            f"Unsupported archive extension {extension!r}; "
            f"expected one of {SUPPORTED_EXTENSIONS}"
        )
    directory = f"{package_name}-docs-{version}"
    return directory, f"{directory}.{extension}"


def _compress(tar_bytes: bytes, extension: str) -> bytes:
    if extension == "tar.gz":
        buf = io.BytesIO()
        with gzip.GzipFile(filename="", mode="wb", fileobj=buf, mtime=0) as gz:
            gz.write(tar_bytes)
        return buf.getvalue()
    if extension == "tar.xz":
        return lzma.compress(tar_bytes, format=lzma.FORMAT_XZ)
    return bz2.compress(tar_bytes)


class VersionedArchivePackager:
    """Produces one compressed, version-named archive of the documentation."""

    def __init__(self, store: ContentAddressedStore, *, extension: str = "tar.gz") -> None:
        self._store = store
        self._extension = extension

    def package(
        self,
        docs: DocumentationArtifact,
        version: str,
        output_dir: Path,
    ) -> VersionedArchive:
        directory, file_name = archive_names(docs.package_name, version, self._extension)
        if not self._store.exists(docs.content_address):
            raise ArchiveError(
                f"Documentation {docs.content_address} is missing from the store"
            )

        with tempfile.TemporaryDirectory(prefix="crateforge-archive-") as tmp:
            staging = Path(tmp) / directory
            try:
                self._store.extract_tree(docs.content_address, staging)
            except ArtifactNotFoundError as exc:
                raise ArchiveError(str(exc)) from exc
            if not any(staging.iterdir()):
                raise ArchiveError("Documentation directory is empty; nothing to archive")

            buf = io.BytesIO()
            with tarfile.open(fileobj=buf, mode="w", format=tarfile.GNU_FORMAT) as tar:
                write_tree(tar, staging, prefix=directory)
            data = _compress(buf.getvalue(), self._extension)

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / file_name
        tmp_path = output_dir / f".{file_name}.{os.getpid()}.tmp"
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)

        stored = self._store.store(data, name=file_name, artifact_type="docs-archive")
        logger.info("Wrote %s (%d bytes)", path, len(data))
        return VersionedArchive(
            package_name=docs.package_name,
            version=version,
            directory_name=directory,
            file_name=file_name,
            path=path,
            content_address=stored.content_address,
            size_bytes=len(data),
        )
