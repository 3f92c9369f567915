"""``crateforge version`` — print the package version from cargo metadata.

The version alone goes to stdout so scripts can capture it; everything
else goes to stderr.
"""

from __future__ import annotations

from pathlib import Path

import typer

from crateforge.cli.context import (
    PIPELINE_ERRORS,
    ROOT_OPTION,
    err_console,
    fail,
    load_config,
    root_path,
    select_pipeline,
)


def version_cmd(
    root: Path = ROOT_OPTION,
    package: str = typer.Option(None, "--package", help="Expected package name."),
) -> None:
    """Print the version declared in Cargo.toml."""
    config = load_config(package_root=root_path(root), package_name=package)
    pipeline = select_pipeline(config, None)
    try:
        version = pipeline.read_version()
    except PIPELINE_ERRORS as exc:
        fail("version", exc)
    err_console.print(f"Version in [bold]Cargo.toml[/bold] is {version}")
    typer.echo(version)
