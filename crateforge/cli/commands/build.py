"""``crateforge build`` — build the package for one platform.

Builds (or reuses) the dependency cache, compiles the package without
running its tests, and exports the installed files to the output directory.
"""

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


def build_cmd(
    platform: str = PLATFORM_OPTION,
    root: Path = ROOT_OPTION,
    store: Path = STORE_OPTION,
    output_dir: Path = typer.Option(
        None, "--output-dir", "-o", help="Where to export the built package."
    ),
) -> None:
    """Build the package, reusing the cached dependency layer."""
    config = load_config(package_root=root_path(root), store_path=store, output_dir=output_dir)
    pipeline = select_pipeline(config, platform)

    try:
        build = pipeline.build_package()
        dest = Path(config.output_dir) / f"{build.artifact.package_name}-{build.artifact.platform.value}"
        pipeline.store.extract_tree(build.artifact.content_address, dest)
    except PIPELINE_ERRORS as exc:
        fail("build", exc)

    CheckReportRenderer(console=console).print_package(build)
    console.print(f"[green]Exported to {dest}[/green]")
