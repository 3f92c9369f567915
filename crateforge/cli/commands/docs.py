"""``crateforge docs`` and ``crateforge docs-tarball``."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from crateforge.cli.context import (
    PIPELINE_ERRORS,
    PLATFORM_OPTION,
    ROOT_OPTION,
    STORE_OPTION,
    fail,
    load_config,
    root_path,
    select_pipeline,
)
from crateforge.monitor.renderer import CheckReportRenderer

console = Console()


def docs_cmd(
    platform: str = PLATFORM_OPTION,
    root: Path = ROOT_OPTION,
    store: Path = STORE_OPTION,
) -> None:
    """Build the full-feature API documentation (warnings are errors)."""
    config = load_config(package_root=root_path(root), store_path=store)
    pipeline = select_pipeline(config, platform)
    try:
        docs = pipeline.build_docs()
    except PIPELINE_ERRORS as exc:
        fail("docs", exc)
    console.print(
        f"[green]Documentation for {docs.package_name} ({docs.platform.value}):[/green] "
        f"{docs.content_address} ({docs.file_count} files)"
    )


def docs_tarball_cmd(
    platform: str = PLATFORM_OPTION,
    root: Path = ROOT_OPTION,
    store: Path = STORE_OPTION,
    output_dir: Path = typer.Option(
        None, "--output-dir", "-o", help="Directory receiving the archive."
    ),
    extension: str = typer.Option(
        None, "--format", help="Archive extension: tar.gz, tar.xz or tar.bz2."
    ),
) -> None:
    """Package the documentation as <package>-docs-<version>.<ext>."""
    config = load_config(
        package_root=root_path(root),
        store_path=store,
        output_dir=output_dir,
        archive_extension=extension,
    )
    pipeline = select_pipeline(config, platform)
    try:
        archive = pipeline.docs_archive()
    except PIPELINE_ERRORS as exc:
        fail("docs-tarball", exc)
    CheckReportRenderer(console=console).print_archive(archive)
