"""Tests for the source snapshot filter and the dependency skeleton."""

from __future__ import annotations

from pathlib import Path

import pytest

from crateforge.core.artifact_store import ContentAddressedStore
from crateforge.core.source_snapshot import (
    DUMMY_RS,
    SnapshotError,
    collect_source_files,
    dependency_skeleton,
    is_cargo_source,
    take_snapshot,
)


class TestFilter:
    @pytest.mark.parametrize("path", ["src/lib.rs", "Cargo.toml", "Cargo.lock", ".cargo/config.toml", "rust-toolchain"])
    def test_kept(self, path: str):
        assert is_cargo_source(path)

    @pytest.mark.parametrize("path", ["README.md", "docs/guide.md", "flake.nix", "src/data.bin"])
    def test_dropped(self, path: str):
        assert not is_cargo_source(path)

    def test_extra_globs(self):
        assert is_cargo_source("tests/fixtures/input.txt", ["tests/fixtures/*"])

    def test_collect_skips_junk(self, sample_crate: Path):
        files = collect_source_files(sample_crate)
        assert sorted(files) == ["Cargo.lock", "Cargo.toml", "src/lib.rs"]

    def test_result_named_sources_kept(self, sample_crate: Path):
        (sample_crate / "src" / "result.rs").write_text("pub type R = u8;\n")
        (sample_crate / "src" / "results").mkdir()
        (sample_crate / "src" / "results" / "mod.rs").write_text("pub mod table;\n")
        files = collect_source_files(sample_crate)
        assert "src/result.rs" in files
        assert "src/results/mod.rs" in files

    def test_result_symlinks_at_root_dropped(self, sample_crate: Path, tmp_dir: Path):
        built = tmp_dir / "built.rs"
        built.write_text("// build output\n")
        (sample_crate / "result-bin.rs").symlink_to(built)
        assert "result-bin.rs" not in collect_source_files(sample_crate)

    def test_plain_result_file_at_root_kept(self, sample_crate: Path):
        (sample_crate / "results.toml").write_text("[table]\n")
        assert "results.toml" in collect_source_files(sample_crate)


class TestSkeleton:
    def test_target_roots_replaced(self, sample_crate: Path):
        (sample_crate / "src" / "main.rs").write_text("fn main() { real(); }\n")
        (sample_crate / "build.rs").write_text("fn main() {}\n")
        skeleton = dependency_skeleton(collect_source_files(sample_crate))
        assert skeleton["src/lib.rs"] == (DUMMY_RS, False)
        assert skeleton["src/main.rs"] == (DUMMY_RS, False)
        assert skeleton["build.rs"] == (DUMMY_RS, False)
        assert "Cargo.toml" in skeleton and "Cargo.lock" in skeleton

    def test_non_root_sources_dropped(self, sample_crate: Path):
        (sample_crate / "src" / "parse.rs").write_text("pub fn parse() {}\n")
        skeleton = dependency_skeleton(collect_source_files(sample_crate))
        assert "src/parse.rs" not in skeleton

    def test_explicit_target_paths(self, sample_crate: Path):
        manifest = (sample_crate / "Cargo.toml").read_text()
        (sample_crate / "Cargo.toml").write_text(
            manifest + '\n[[bin]]\nname = "u8c"\npath = "cli/u8c.rs"\n'
        )
        skeleton = dependency_skeleton(collect_source_files(sample_crate))
        assert skeleton["cli/u8c.rs"] == (DUMMY_RS, False)

    @pytest.mark.parametrize(
        "section, declared, expected",
        [
            ("bin", "src/bin/tool.rs", "src/bin/tool.rs"),
            ("bin", "src/bin/tool/main.rs", "src/bin/tool/main.rs"),
            ("example", "examples/tool.rs", "examples/tool.rs"),
            ("test", "tests/tool.rs", "tests/tool.rs"),
            ("bench", "benches/tool.rs", "benches/tool.rs"),
        ],
    )
    def test_name_only_targets(self, sample_crate: Path, section: str, declared: str, expected: str):
        manifest = (sample_crate / "Cargo.toml").read_text()
        (sample_crate / "Cargo.toml").write_text(manifest + f'\n[[{section}]]\nname = "tool"\n')
        target = sample_crate / declared
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("fn main() { real(); }\n")
        skeleton = dependency_skeleton(collect_source_files(sample_crate))
        assert skeleton[expected] == (DUMMY_RS, False)

    def test_name_only_bin_on_main(self, sample_crate: Path):
        manifest = (sample_crate / "Cargo.toml").read_text()
        (sample_crate / "Cargo.toml").write_text(manifest + '\n[[bin]]\nname = "utf8-command"\n')
        (sample_crate / "src" / "main.rs").write_text("fn main() {}\n")
        skeleton = dependency_skeleton(collect_source_files(sample_crate))
        assert skeleton["src/main.rs"] == (DUMMY_RS, False)
        assert not any(p.startswith("src/bin/") for p in skeleton)

    def test_malformed_manifest(self, sample_crate: Path):
        (sample_crate / "Cargo.toml").write_text("[package\nname = ")
        with pytest.raises(SnapshotError):
            dependency_skeleton(collect_source_files(sample_crate))


class TestTakeSnapshot:
    def test_snapshot_contents(self, sample_crate: Path, store: ContentAddressedStore):
        snapshot = take_snapshot(sample_crate, store)
        assert snapshot.paths == ["Cargo.lock", "Cargo.toml", "src/lib.rs"]
        assert store.exists(snapshot.content_address)
        assert store.exists(snapshot.dependency_address)

    def test_junk_does_not_change_address(self, sample_crate: Path, store: ContentAddressedStore):
        before = take_snapshot(sample_crate, store)
        (sample_crate / "target" / "release" / "new.rs").write_text("// more junk\n")
        (sample_crate / "NOTES.md").write_text("notes\n")
        assert take_snapshot(sample_crate, store).content_address == before.content_address

    def test_source_edit_keeps_skeleton(self, sample_crate: Path, store: ContentAddressedStore):
        before = take_snapshot(sample_crate, store)
        with (sample_crate / "src" / "lib.rs").open("a") as fh:
            fh.write("\npub fn added() {}\n")
        after = take_snapshot(sample_crate, store)
        assert after.content_address != before.content_address
        assert after.dependency_address == before.dependency_address

    def test_lockfile_edit_changes_skeleton(self, sample_crate: Path, store: ContentAddressedStore):
        before = take_snapshot(sample_crate, store)
        with (sample_crate / "Cargo.lock").open("a") as fh:
            fh.write('\n[[package]]\nname = "serde"\nversion = "1.0.0"\n')
        assert take_snapshot(sample_crate, store).dependency_address != before.dependency_address

    def test_missing_manifest(self, tmp_dir: Path, store: ContentAddressedStore):
        (tmp_dir / "empty").mkdir()
        with pytest.raises(SnapshotError, match="No Cargo.toml"):
            take_snapshot(tmp_dir / "empty", store)
