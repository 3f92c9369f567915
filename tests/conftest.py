"""Shared test fixtures for Crateforge.

No test ever runs the real toolchain: ``FakeCargo`` stands in for cargo and
rustc and simulates just enough of their behaviour (target-dir outputs,
JSON build logs, metadata) for the pipeline to be exercised end to end.
"""

from __future__ import annotations

import json
import os
import threading
import tomllib
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from crateforge.config import ForgeConfig
from crateforge.core.artifact_store import ContentAddressedStore
from crateforge.core.build_config import make_build_configuration
from crateforge.core.pipeline import Pipeline
from crateforge.core.runner import CommandResult, ToolNotFoundError
from crateforge.core.source_snapshot import take_snapshot
from crateforge.core.waiver_manager import WaiverManager
from crateforge.models.build import BuildConfiguration
from crateforge.models.platforms import PlatformKey

HOST = PlatformKey.X86_64_LINUX

SAMPLE_MANIFEST = """\
[package]
name = "utf8-command"
version = "0.3.1"
edition = "2021"
description = "UTF-8 encoded command output"
license = "MIT OR Apache-2.0"

[dependencies]
"""

SAMPLE_LOCK = """\
# This file is automatically @generated by Cargo.
version = 3

[[package]]
name = "utf8-command"
version = "0.3.1"
"""

SAMPLE_LIB = """\
//! UTF-8 encoded command output.

/// Output of a command, decoded as UTF-8.
pub struct Utf8Output {
    pub stdout: String,
    pub stderr: String,
}
"""

# The dependency artifact every simulated dependency build leaves behind.
DEPS_FILE = Path("release/deps/libdeps.rlib")


# ---------------------------------------------------------------------------
# Fake toolchain
# ---------------------------------------------------------------------------


class FakeCargo:
    """A ``CommandRunner`` that pretends to be cargo and rustc.

    Attributes
    ----------
    fail_on:
        Step labels (``"check"``, ``"build"``, ``"package"``, ``"clippy"``,
        ``"doc"``, ``"nextest"``, ``"fmt"``, ``"audit"``, ``"metadata"``)
        that exit with status 101.
    vulnerable:
        Advisory ids the simulated audit reports unless ignored.
    metadata:
        Overrides the ``cargo metadata`` JSON when set.
    missing:
        Executables that raise ``ToolNotFoundError``.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[tuple[str, ...], Path, dict[str, str]]] = []
        self.fail_on: set[str] = set()
        self.vulnerable: set[str] = set()
        self.metadata: str | None = None
        self.missing: set[str] = set()
        # (label, src/lib.rs bytes) as seen by each command
        self.lib_sources: list[tuple[str, bytes]] = []
        self._lock = threading.Lock()

    # -- inspection -----------------------------------------------------

    def labels(self) -> list[str]:
        with self._lock:
            return [self._label(argv) for argv, _, _ in self.calls]

    def count(self, label: str) -> int:
        return self.labels().count(label)

    def calls_for(self, label: str) -> list[tuple[tuple[str, ...], Path, dict[str, str]]]:
        with self._lock:
            return [c for c in self.calls if self._label(c[0]) == label]

    @staticmethod
    def _label(argv: Sequence[str]) -> str:
        if argv[0] != "cargo":
            return argv[0]
        sub = argv[1]
        if sub == "build" and "--message-format" in argv:
            return "package"
        return sub

    # -- CommandRunner --------------------------------------------------

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        argv = tuple(argv)
        env = dict(env or {})
        with self._lock:
            self.calls.append((argv, Path(cwd), env))
        if argv[0] in self.missing:
            raise ToolNotFoundError(f"{argv[0]!r} not found on PATH")

        label = self._label(argv)
        lib = Path(cwd) / "src" / "lib.rs"
        if lib.is_file():
            with self._lock:
                self.lib_sources.append((label, lib.read_bytes()))
        if label in self.fail_on:
            return CommandResult(
                argv=argv, returncode=101, stderr=f"error: simulated {label} failure"
            )

        cwd = Path(cwd)
        target = Path(env.get("CARGO_TARGET_DIR", cwd / "target"))
        handler = getattr(self, f"_do_{label}", None)
        if handler is None:
            return CommandResult(argv=argv, returncode=0)
        return handler(argv, cwd, target, env)

    # -- simulated subcommands -------------------------------------------

    @staticmethod
    def _manifest(cwd: Path) -> dict[str, Any]:
        return tomllib.loads((cwd / "Cargo.toml").read_text(encoding="utf-8"))

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def _deps(self, argv, cwd, target, env) -> CommandResult:
        self._write(target / DEPS_FILE, b"compiled dependency closure\n")
        self._write(target / "release" / f".fingerprint-{argv[1]}", argv[1].encode())
        return CommandResult(argv=argv, returncode=0, stderr="    Finished release\n")

    _do_check = _do_build = _do_test = _deps

    def _needs_deps(self, argv, target) -> CommandResult | None:
        if not (target / DEPS_FILE).is_file():
            return CommandResult(
                argv=argv, returncode=101, stderr="error: dependency closure was rebuilt"
            )
        return None

    def _do_package(self, argv, cwd, target, env) -> CommandResult:
        if (missing := self._needs_deps(argv, target)) is not None:
            return missing
        name = self._manifest(cwd)["package"]["name"]
        ident = name.replace("-", "_")
        lib = target / "release" / f"lib{ident}.rlib"
        self._write(lib, (cwd / "src" / "lib.rs").read_bytes())
        messages = [
            {
                "reason": "compiler-artifact",
                "package_id": "registry+https://github.com/rust-lang/crates.io-index#dep@1.0.0",
                "manifest_path": "/registry/src/dep-1.0.0/Cargo.toml",
                "filenames": [str(target / DEPS_FILE)],
                "executable": None,
            },
            {
                "reason": "compiler-artifact",
                "package_id": f"path+file://{cwd}#{name}@0.3.1",
                "manifest_path": str(cwd / "Cargo.toml"),
                "filenames": [str(lib)],
                "executable": None,
            },
        ]
        if (cwd / "src" / "main.rs").is_file():
            exe = target / "release" / name
            self._write(exe, b"#!fake-binary\n")
            exe.chmod(0o755)
            messages.append({
                "reason": "compiler-artifact",
                "package_id": f"path+file://{cwd}#{name}@0.3.1",
                "manifest_path": str(cwd / "Cargo.toml"),
                "filenames": [str(exe)],
                "executable": str(exe),
            })
        messages.append({"reason": "build-finished", "success": True})
        stdout = "\n".join(json.dumps(m) for m in messages) + "\n"
        return CommandResult(argv=argv, returncode=0, stdout=stdout)

    def _do_clippy(self, argv, cwd, target, env) -> CommandResult:
        if (missing := self._needs_deps(argv, target)) is not None:
            return missing
        source = (cwd / "src" / "lib.rs").read_text(encoding="utf-8")
        if "let unused" in source:
            return CommandResult(
                argv=argv,
                returncode=101,
                stderr=(
                    "error: unused variable: `unused`\n"
                    " --> src/lib.rs:9:9\n"
                    "  = note: `-D unused-variables` implied by `-D warnings`\n"
                ),
            )
        return CommandResult(argv=argv, returncode=0)

    def _do_doc(self, argv, cwd, target, env) -> CommandResult:
        if (missing := self._needs_deps(argv, target)) is not None:
            return missing
        ident = self._manifest(cwd)["package"]["name"].replace("-", "_")
        self._write(target / "doc" / ident / "index.html", f"<h1>{ident}</h1>\n".encode())
        self._write(target / "doc" / "search-index.js", b"var searchIndex = {};\n")
        self._write(target / "doc" / ".lock", b"")
        return CommandResult(argv=argv, returncode=0)

    def _do_nextest(self, argv, cwd, target, env) -> CommandResult:
        if (missing := self._needs_deps(argv, target)) is not None:
            return missing
        return CommandResult(
            argv=argv, returncode=0, stdout="     Summary [0.01s] 3 tests run: 3 passed\n"
        )

    def _do_audit(self, argv, cwd, target, env) -> CommandResult:
        ignored = {argv[i + 1] for i, a in enumerate(argv) if a == "--ignore"}
        found = sorted(self.vulnerable - ignored)
        if found:
            return CommandResult(
                argv=argv,
                returncode=1,
                stdout="".join(f"Crate: dep\nID: {aid}\n" for aid in found),
            )
        return CommandResult(argv=argv, returncode=0)

    def _do_metadata(self, argv, cwd, target, env) -> CommandResult:
        if self.metadata is not None:
            return CommandResult(argv=argv, returncode=0, stdout=self.metadata)
        package = self._manifest(cwd)["package"]
        payload = {
            "packages": [{"name": package["name"], "version": package.get("version", "")}],
            "workspace_root": str(cwd),
            "version": 1,
        }
        return CommandResult(argv=argv, returncode=0, stdout=json.dumps(payload))

    def _do_rustc(self, argv, cwd, target, env) -> CommandResult:
        if argv[1:] == ("--print", "sysroot"):
            return CommandResult(argv=argv, returncode=0, stdout="/opt/rust/toolchain\n")
        return CommandResult(argv=argv, returncode=0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep CRATEFORGE_* variables and any .env file out of every test."""
    for key in list(os.environ):
        if key.startswith("CRATEFORGE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def store(tmp_dir: Path) -> ContentAddressedStore:
    """Provide a fresh ContentAddressedStore in a temp directory."""
    return ContentAddressedStore(tmp_dir / "store")


@pytest.fixture
def fake_cargo() -> FakeCargo:
    return FakeCargo()


@pytest.fixture
def sample_crate(tmp_dir: Path) -> Path:
    """A small library crate plus the junk a real checkout accumulates."""
    root = tmp_dir / "utf8-command"
    (root / "src").mkdir(parents=True)
    (root / "Cargo.toml").write_text(SAMPLE_MANIFEST)
    (root / "Cargo.lock").write_text(SAMPLE_LOCK)
    (root / "src" / "lib.rs").write_text(SAMPLE_LIB)
    (root / "README.md").write_text("# utf8-command\n")
    (root / "src" / "lib.rs~").write_text("stale backup\n")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (root / "target" / "release").mkdir(parents=True)
    (root / "target" / "release" / "stale.rs").write_text("// stale\n")
    previous = tmp_dir / "previous-build"
    previous.mkdir()
    (previous / "out.rs").write_text("// previous result\n")
    (root / "result").symlink_to(previous, target_is_directory=True)
    return root


@pytest.fixture
def make_config(tmp_dir: Path, sample_crate: Path) -> Callable[..., ForgeConfig]:
    """Factory fixture: a ForgeConfig pointed at the sample crate."""

    def _factory(**overrides: Any) -> ForgeConfig:
        defaults: dict[str, Any] = {
            "package_root": sample_crate,
            "store_path": tmp_dir / "store",
            "output_dir": tmp_dir / "result-out",
        }
        defaults.update(overrides)
        return ForgeConfig(**defaults)

    return _factory


@pytest.fixture
def build_config(sample_crate: Path, store: ContentAddressedStore) -> BuildConfiguration:
    snapshot = take_snapshot(sample_crate, store)
    return make_build_configuration(snapshot, HOST, package_name="utf8-command")


@pytest.fixture
def make_pipeline(
    make_config: Callable[..., ForgeConfig],
    store: ContentAddressedStore,
    fake_cargo: FakeCargo,
) -> Callable[..., Pipeline]:
    """Factory fixture: a host pipeline driven by FakeCargo."""

    def _factory(platform: PlatformKey = HOST, **overrides: Any) -> Pipeline:
        return Pipeline(
            platform,
            make_config(**overrides),
            store=store,
            runner=fake_cargo,
            host=HOST,
        )

    return _factory


@pytest.fixture
def waiver_manager(store: ContentAddressedStore) -> WaiverManager:
    return WaiverManager(store)
