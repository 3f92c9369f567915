"""Content-addressed, immutable artifact store.

Storage layout:
    {base_path}/{sha256[0:2]}/{sha256[2:4]}/{sha256}.dat   artifact bytes
    {base_path}/keys/{namespace}/{key}.json                 key bindings

No delete method: artifacts are immutable once stored. Directory trees are
stored as deterministic tarballs (sorted entries, zeroed mtimes and owners)
so identical trees always get identical addresses.
"""

from __future__ import annotations

import io
import json
import os
import stat
import tarfile
import time
from pathlib import Path
from typing import Any

from crateforge.core.hasher import sha256_hex
from crateforge.models.artifacts import ContentAddressedArtifact


class ArtifactIntegrityError(RuntimeError):
    """Raised when a stored artifact's hash does not match its address."""


class ArtifactNotFoundError(FileNotFoundError):
    """Raised when a content address is not present in the store."""


# ---------------------------------------------------------------------------
# Deterministic tree packing
# ---------------------------------------------------------------------------


def _normalized_info(info: tarfile.TarInfo, executable: bool) -> tarfile.TarInfo:
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    if info.isdir():
        info.mode = 0o755
    else:
        info.mode = 0o755 if executable else 0o644
    return info


def write_tree(
    tar: tarfile.TarFile,
    root: Path,
    *,
    prefix: str = "",
    exclude: frozenset[str] = frozenset(),
) -> list[str]:
    """Add every file under *root* to *tar* in sorted order.

    Entries are named ``prefix/relative/path``. Returns the file names added.
    Symlinks are followed; names listed in *exclude* are skipped at any depth.
    """
    added: list[str] = []
    root = Path(root)

    def _arcname(rel: str) -> str:
        return f"{prefix}/{rel}" if prefix else rel

    if prefix:
        top = tarfile.TarInfo(prefix)
        top.type = tarfile.DIRTYPE
        tar.addfile(_normalized_info(top, False))

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in exclude)
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        if rel_dir != ".":
            info = tarfile.TarInfo(_arcname(rel_dir))
            info.type = tarfile.DIRTYPE
            tar.addfile(_normalized_info(info, False))
        for name in sorted(filenames):
            if name in exclude:
                continue
            path = Path(dirpath) / name
            rel = path.relative_to(root).as_posix()
            data = path.read_bytes()
            executable = bool(path.stat().st_mode & stat.S_IXUSR)
            info = tarfile.TarInfo(_arcname(rel))
            info.size = len(data)
            tar.addfile(_normalized_info(info, executable), io.BytesIO(data))
            added.append(rel)
    return added


def pack_tree(root: Path, *, exclude: frozenset[str] = frozenset()) -> bytes:
    """Pack the tree under *root* into deterministic, uncompressed tar bytes."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.GNU_FORMAT) as tar:
        write_tree(tar, Path(root), exclude=exclude)
    return buf.getvalue()


def pack_files(files: dict[str, tuple[bytes, bool]]) -> bytes:
    """Pack an in-memory ``{path: (data, executable)}`` mapping deterministically."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.GNU_FORMAT) as tar:
        for rel in sorted(files):
            data, executable = files[rel]
            info = tarfile.TarInfo(rel)
            info.size = len(data)
            tar.addfile(_normalized_info(info, executable), io.BytesIO(data))
    return buf.getvalue()


def unpack_tree(data: bytes, dest: Path, *, touch: bool = False) -> list[str]:
    """Unpack tar bytes produced by :func:`pack_tree` into *dest*.

    With ``touch=True`` every extracted file gets the current time as its
    mtime, so incremental tools see restored outputs as fresh.
    """
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    with tarfile.open(fileobj=io.BytesIO(data), mode="r") as tar:
        members = tar.getmembers()
        tar.extractall(dest, filter="data")
    names = [m.name for m in members if m.isfile()]
    if touch:
        now = time.time()
        for name in names:
            os.utime(dest / name, (now, now))
    return names


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ContentAddressedStore:
    """SHA-256 keyed, immutable artifact store.

    Every artifact is stored under its SHA-256 digest. Storing the same
    content twice is a no-op (idempotent). There is no update or delete.

    Parameters
    ----------
    base_path:
        Root directory for artifact storage.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    @staticmethod
    def _extract_digest(content_address: str) -> str:
        """Strip the ``sha256:`` prefix from a content address, if present."""
        return content_address.removeprefix("sha256:")

    def _artifact_path(self, sha256_digest: str) -> Path:
        """Compute the storage path for a SHA-256 digest.

        Layout: {base}/{sha256[0:2]}/{sha256[2:4]}/{sha256}.dat
        """
        return self._base / sha256_digest[:2] / sha256_digest[2:4] / f"{sha256_digest}.dat"

    def _key_path(self, namespace: str, key: str) -> Path:
        return self._base / "keys" / namespace / f"{self._extract_digest(key)}.json"

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.{os.getpid()}.tmp")
        tmp.write_bytes(data)
        os.replace(tmp, path)

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def store(
        self,
        data: bytes,
        *,
        name: str = "",
        artifact_type: str = "generic",
        metadata: dict[str, Any] | None = None,
    ) -> ContentAddressedArtifact:
        """Store data and return its content-addressed artifact metadata.

        If the content already exists (same hash), verifies integrity
        and returns the existing artifact without overwriting.
        """
        digest = sha256_hex(data)
        path = self._artifact_path(digest)

        if path.exists():
            if not self.verify(digest):
                raise ArtifactIntegrityError(
                    f"Existing artifact at {digest} failed integrity check"
                )
        else:
            self._atomic_write(path, data)

        return ContentAddressedArtifact(
            content_address=f"sha256:{digest}",
            artifact_type=artifact_type,
            name=name or digest[:16],
            size_bytes=len(data),
            metadata=metadata or {},
        )

    def store_tree(
        self,
        root: Path,
        *,
        name: str = "",
        artifact_type: str = "tree",
        exclude: frozenset[str] = frozenset(),
    ) -> ContentAddressedArtifact:
        """Pack a directory deterministically and store the tarball."""
        return self.store(
            pack_tree(root, exclude=exclude), name=name, artifact_type=artifact_type
        )

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def retrieve(self, content_address: str) -> bytes:
        """Retrieve artifact bytes by content address.

        Parameters
        ----------
        content_address:
            Either "sha256:<hex>" or just the hex digest.
        """
        digest = self._extract_digest(content_address)
        path = self._artifact_path(digest)
        if not path.exists():
            raise ArtifactNotFoundError(f"Artifact not found: {content_address}")
        data = path.read_bytes()
        if sha256_hex(data) != digest:
            raise ArtifactIntegrityError(
                f"Artifact {content_address} failed integrity check"
            )
        return data

    def extract_tree(
        self, content_address: str, dest: Path, *, touch: bool = False
    ) -> list[str]:
        """Unpack a tree stored by :meth:`store_tree` into *dest*."""
        return unpack_tree(self.retrieve(content_address), dest, touch=touch)

    # ------------------------------------------------------------------
    # Key bindings
    # ------------------------------------------------------------------

    def bind(self, namespace: str, key: str, record: dict[str, Any]) -> None:
        """Bind *key* to a JSON record (typically naming a content address).

        Bindings are written atomically, so a reader never observes a
        partial record.
        """
        self._atomic_write(
            self._key_path(namespace, key),
            json.dumps(record, sort_keys=True, indent=2).encode("utf-8"),
        )

    def lookup(self, namespace: str, key: str) -> dict[str, Any] | None:
        """Return the record bound to *key*, or None if unbound."""
        path = self._key_path(namespace, key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    # ------------------------------------------------------------------
    # Check and verify
    # ------------------------------------------------------------------

    def exists(self, content_address: str) -> bool:
        """Check if an artifact exists in the store."""
        return self._artifact_path(self._extract_digest(content_address)).exists()

    def verify(self, content_address: str) -> bool:
        """Re-hash stored data and compare against the content address.

        Returns True if the stored bytes match the expected hash.
        """
        digest = self._extract_digest(content_address)
        path = self._artifact_path(digest)
        if not path.exists():
            return False
        return sha256_hex(path.read_bytes()) == digest
