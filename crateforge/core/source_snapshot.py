"""Source Snapshot — the filtered, content-addressed package source tree.

The filter keeps what cargo needs (``*.rs``, ``*.toml``, ``Cargo.lock``) and
drops VCS metadata, build output, editor backups and the ``result*``
symlinks a build leaves at the package root. Alongside the full snapshot a
*dependency skeleton* is stored: manifests, lockfile and cargo config with
every target root replaced by a placeholder.
The dependency cache is keyed on the skeleton, so edits to ``.rs`` files
never invalidate it.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import stat
import tomllib
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Any

from crateforge.core.artifact_store import ContentAddressedStore, pack_files
from crateforge.core.hasher import sha256_hex
from crateforge.models.artifacts import SnapshotFile, SourceSnapshot

logger = logging.getLogger(__name__)

EXCLUDED_DIRS: frozenset[str] = frozenset({
    ".git", ".hg", ".svn", ".jj", ".direnv", ".crateforge", "target", "node_modules",
})

_BACKUP_SUFFIXES: tuple[str, ...] = ("~", ".swp", ".swo", ".orig", ".rej")

_TOOLCHAIN_FILES: frozenset[str] = frozenset({"rust-toolchain", "rust-toolchain.toml"})

_CARGO_CONFIG_FILES: frozenset[str] = frozenset({".cargo/config", ".cargo/config.toml"})

# Directories cargo infers a name-only target's file from.
_TARGET_DIRS: dict[str, str] = {
    "bin": "src/bin",
    "example": "examples",
    "test": "tests",
    "bench": "benches",
}

DUMMY_RS: bytes = (
    b"#![allow(clippy::all)]\n"
    b"#![allow(dead_code)]\n"
    b"pub fn main() {}\n"
)


class SnapshotError(RuntimeError):
    """Raised when a source tree cannot be snapshotted."""


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


def _is_junk(name: str) -> bool:
    return name.startswith(".#") or name.endswith(_BACKUP_SUFFIXES)


def _is_result_link(path: Path) -> bool:
    """A build output link (`result`, `result-doc`, ...) at the package root."""
    return path.name.startswith("result") and path.is_symlink()


def is_cargo_source(rel_path: str, extra_globs: Iterable[str] = ()) -> bool:
    """Return True if *rel_path* belongs in the snapshot."""
    name = PurePosixPath(rel_path).name
    if name == "Cargo.lock" or name.endswith((".rs", ".toml")):
        return True
    if name in _TOOLCHAIN_FILES or rel_path in _CARGO_CONFIG_FILES:
        return True
    return any(fnmatch.fnmatch(rel_path, pattern) for pattern in extra_globs)


def collect_source_files(
    root: Path, extra_globs: Iterable[str] = ()
) -> dict[str, tuple[bytes, bool]]:
    """Walk *root* and return ``{posix_path: (data, executable)}`` for kept files."""
    root = Path(root)
    globs = tuple(extra_globs)
    files: dict[str, tuple[bytes, bool]] = {}
    for dirpath, dirnames, filenames in os.walk(root):
        at_root = Path(dirpath) == root
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in EXCLUDED_DIRS
            and not _is_junk(d)
            and not (at_root and _is_result_link(Path(dirpath) / d))
        )
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if _is_junk(name) or (at_root and _is_result_link(path)):
                continue
            rel = path.relative_to(root).as_posix()
            if not is_cargo_source(rel, globs):
                continue
            mode = path.stat().st_mode
            files[rel] = (path.read_bytes(), bool(mode & stat.S_IXUSR))
    return files


# ---------------------------------------------------------------------------
# Dependency skeleton
# ---------------------------------------------------------------------------


def _load_manifest(rel: str, data: bytes) -> dict[str, Any]:
    try:
        return tomllib.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise SnapshotError(f"Malformed manifest {rel}: {exc}") from exc


def _target_roots(
    crate_dir: PurePosixPath, manifest: dict[str, Any], files: dict[str, Any]
) -> set[str]:
    """Target root files a placeholder is needed for, relative to the package root."""
    roots: set[str] = set()

    def _add(rel: str) -> None:
        roots.add(_relative_to_root(crate_dir, rel))

    for auto in ("src/lib.rs", "src/main.rs", "build.rs"):
        candidate = _relative_to_root(crate_dir, auto)
        if candidate in files:
            roots.add(candidate)

    build = manifest.get("package", {}).get("build")
    if isinstance(build, str):
        _add(build)

    lib = manifest.get("lib", {})
    if isinstance(lib, dict) and isinstance(lib.get("path"), str):
        _add(lib["path"])
    for section, target_dir in _TARGET_DIRS.items():
        for target in manifest.get(section, []) or []:
            if not isinstance(target, dict):
                continue
            if isinstance(target.get("path"), str):
                _add(target["path"])
            elif isinstance(target.get("name"), str):
                _add(_inferred_target_path(crate_dir, target_dir, target["name"], files))
    return roots


def _inferred_target_path(
    crate_dir: PurePosixPath, target_dir: str, name: str, files: dict[str, Any]
) -> str:
    """Where cargo looks for a target declared by name only.

    ``<dir>/<name>/main.rs`` is used when the real tree has it, otherwise
    ``<dir>/<name>.rs``. A bin with no file of its own under ``src/bin``
    falls back to ``src/main.rs``.
    """
    nested = f"{target_dir}/{name}/main.rs"
    if _relative_to_root(crate_dir, nested) in files:
        return nested
    flat = f"{target_dir}/{name}.rs"
    if (
        target_dir == "src/bin"
        and _relative_to_root(crate_dir, flat) not in files
        and _relative_to_root(crate_dir, "src/main.rs") in files
    ):
        return "src/main.rs"
    return flat


def _relative_to_root(crate_dir: PurePosixPath, rel: str) -> str:
    return (crate_dir / rel).as_posix() if str(crate_dir) != "." else rel


def dependency_skeleton(
    files: dict[str, tuple[bytes, bool]],
) -> dict[str, tuple[bytes, bool]]:
    """Reduce a source file map to what the dependency closure depends on."""
    skeleton: dict[str, tuple[bytes, bool]] = {}
    placeholders: set[str] = set()
    for rel, (data, executable) in files.items():
        name = PurePosixPath(rel).name
        if name == "Cargo.lock" or name in _TOOLCHAIN_FILES or rel in _CARGO_CONFIG_FILES:
            skeleton[rel] = (data, executable)
        elif name == "Cargo.toml":
            skeleton[rel] = (data, executable)
            manifest = _load_manifest(rel, data)
            if "package" in manifest:
                crate_dir = PurePosixPath(rel).parent
                placeholders |= _target_roots(crate_dir, manifest, files)
    for rel in placeholders:
        skeleton[rel] = (DUMMY_RS, False)
    return skeleton


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


def take_snapshot(
    root: Path,
    store: ContentAddressedStore,
    *,
    extra_globs: Iterable[str] = (),
) -> SourceSnapshot:
    """Filter *root*, store the snapshot and its skeleton, return the snapshot.

    Raises ``SnapshotError`` if there is no ``Cargo.toml`` at the root.
    """
    root = Path(root)
    files = collect_source_files(root, extra_globs)
    if "Cargo.toml" not in files:
        raise SnapshotError(f"No Cargo.toml found at {root.resolve()}")

    full = store.store(pack_files(files), name="source", artifact_type="source")
    skeleton = store.store(
        pack_files(dependency_skeleton(files)),
        name="dependency-skeleton",
        artifact_type="source",
    )
    entries = tuple(
        SnapshotFile(
            path=rel,
            sha256=sha256_hex(data),
            size_bytes=len(data),
            executable=executable,
        )
        for rel, (data, executable) in sorted(files.items())
    )
    logger.info(
        "Snapshot of %s: %d files, %s (skeleton %s)",
        root, len(entries), full.content_address[:19], skeleton.content_address[:19],
    )
    return SourceSnapshot(
        content_address=full.content_address,
        dependency_address=skeleton.content_address,
        files=entries,
        size_bytes=full.size_bytes,
    )
