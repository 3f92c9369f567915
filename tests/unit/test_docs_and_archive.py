"""Tests for the documentation builder and the versioned archive packager."""

from __future__ import annotations

import io
import lzma
import tarfile
from pathlib import Path

import pytest
from pydantic import ValidationError

from crateforge.core.archive import (
    SUPPORTED_EXTENSIONS,
    ArchiveError,
    VersionedArchivePackager,
    archive_names,
)
from crateforge.core.artifact_store import ContentAddressedStore
from crateforge.core.dependency_cache import DependencyCacheBuilder
from crateforge.core.docs_builder import DocumentationBuildError, DocumentationBuilder, docs_command
from crateforge.models.artifacts import DocumentationArtifact, VersionedArchive
from crateforge.models.build import BuildConfiguration
from crateforge.models.platforms import PlatformKey

from conftest import FakeCargo


@pytest.fixture
def docs(store: ContentAddressedStore, tmp_dir: Path) -> DocumentationArtifact:
    root = tmp_dir / "doc"
    (root / "utf8_command").mkdir(parents=True)
    (root / "utf8_command" / "index.html").write_text("<h1>utf8_command</h1>\n")
    (root / "search-index.js").write_text("var searchIndex = {};\n")
    stored = store.store_tree(root)
    return DocumentationArtifact(
        package_name="utf8-command",
        platform=PlatformKey.X86_64_LINUX,
        content_address=stored.content_address,
        file_count=2,
        dependency_cache_address="",
    )


def _names(data: bytes, mode: str = "r:gz") -> list[str]:
    with tarfile.open(fileobj=io.BytesIO(data), mode=mode) as tar:
        return tar.getnames()


class TestDocumentationBuilder:
    def test_command(self, build_config: BuildConfiguration):
        command = docs_command(build_config)
        assert command.command_line == "cargo doc --profile release --locked --all-features"
        assert command.env["RUSTDOCFLAGS"] == "-D warnings"

    def test_build_stores_doc_tree(
        self, build_config: BuildConfiguration, store: ContentAddressedStore,
        fake_cargo: FakeCargo, tmp_dir: Path,
    ):
        deps = DependencyCacheBuilder(store, fake_cargo).build(build_config)
        docs = DocumentationBuilder(store, fake_cargo).build(build_config, deps)
        assert docs.file_count == 2
        names = store.extract_tree(docs.content_address, tmp_dir / "docs-out")
        assert sorted(names) == ["search-index.js", "utf8_command/index.html"]

    def test_warning_fails_build(
        self, build_config: BuildConfiguration, store: ContentAddressedStore, fake_cargo: FakeCargo,
    ):
        deps = DependencyCacheBuilder(store, fake_cargo).build(build_config)
        fake_cargo.fail_on.add("doc")
        with pytest.raises(DocumentationBuildError, match="simulated doc failure"):
            DocumentationBuilder(store, fake_cargo).build(build_config, deps)


class TestArchiveNames:
    def test_names(self):
        assert archive_names("utf8-command", "0.3.1", "tar.gz") == (
            "utf8-command-docs-0.3.1",
            "utf8-command-docs-0.3.1.tar.gz",
        )

    @pytest.mark.parametrize("version", ["", "   ", "1.0/2", "1.0 beta", "1.0\n", "0.3.1\n\n"])
    def test_bad_versions(self, version: str):
        with pytest.raises(ArchiveError):
            archive_names("utf8-command", version, "tar.gz")

    def test_bad_extension(self):
        with pytest.raises(ArchiveError, match="Unsupported archive extension"):
            archive_names("utf8-command", "0.3.1", "zip")

    def test_model_rejects_mismatched_names(self, tmp_dir: Path):
        with pytest.raises(ValidationError):
            VersionedArchive(
                package_name="utf8-command",
                version="0.3.1",
                directory_name="utf8-command-docs-0.3.0",
                file_name="utf8-command-docs-0.3.0.tar.gz",
                path=tmp_dir / "x.tar.gz",
                content_address="sha256:00",
            )


class TestVersionedArchivePackager:
    def test_layout(self, store: ContentAddressedStore, docs: DocumentationArtifact, tmp_dir: Path):
        archive = VersionedArchivePackager(store).package(docs, "0.3.1", tmp_dir / "out")
        assert archive.path == tmp_dir / "out" / "utf8-command-docs-0.3.1.tar.gz"
        assert archive.directory_name == "utf8-command-docs-0.3.1"
        names = _names(archive.path.read_bytes())
        assert names[0] == "utf8-command-docs-0.3.1"
        assert all(n == names[0] or n.startswith(names[0] + "/") for n in names)
        assert "utf8-command-docs-0.3.1/utf8_command/index.html" in names
        assert store.exists(archive.content_address)

    def test_deterministic(self, store: ContentAddressedStore, docs: DocumentationArtifact, tmp_dir: Path):
        packager = VersionedArchivePackager(store)
        first = packager.package(docs, "0.3.1", tmp_dir / "a")
        second = packager.package(docs, "0.3.1", tmp_dir / "b")
        assert first.path.read_bytes() == second.path.read_bytes()
        assert first.content_address == second.content_address

    def test_new_version_new_names(self, store: ContentAddressedStore, docs: DocumentationArtifact, tmp_dir: Path):
        archive = VersionedArchivePackager(store).package(docs, "1.0.0", tmp_dir / "out")
        assert archive.file_name == "utf8-command-docs-1.0.0.tar.gz"
        assert _names(archive.path.read_bytes())[0] == "utf8-command-docs-1.0.0"

    def test_xz(self, store: ContentAddressedStore, docs: DocumentationArtifact, tmp_dir: Path):
        archive = VersionedArchivePackager(store, extension="tar.xz").package(docs, "0.3.1", tmp_dir)
        assert archive.file_name.endswith(".tar.xz")
        assert "utf8-command-docs-0.3.1/search-index.js" in _names(
            lzma.decompress(archive.path.read_bytes()), mode="r"
        )

    def test_every_extension_supported(self, store: ContentAddressedStore, docs: DocumentationArtifact, tmp_dir: Path):
        for ext in SUPPORTED_EXTENSIONS:
            archive = VersionedArchivePackager(store, extension=ext).package(docs, "0.3.1", tmp_dir / ext)
            assert archive.path.is_file()

    def test_empty_version_writes_nothing(self, store: ContentAddressedStore, docs: DocumentationArtifact, tmp_dir: Path):
        with pytest.raises(ArchiveError):
            VersionedArchivePackager(store).package(docs, "", tmp_dir / "out")
        assert not (tmp_dir / "out").exists()

    def test_missing_docs(self, store: ContentAddressedStore, docs: DocumentationArtifact, tmp_dir: Path):
        missing = docs.model_copy(update={"content_address": "sha256:" + "f" * 64})
        with pytest.raises(ArchiveError, match="missing from the store"):
            VersionedArchivePackager(store).package(missing, "0.3.1", tmp_dir / "out")
