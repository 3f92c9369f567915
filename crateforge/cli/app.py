"""Main Typer application: imports and registers all CLI commands.

Entry point: ``crateforge`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.table import Table

from crateforge.cli.commands.build import build_cmd
from crateforge.cli.commands.check import check_cmd
from crateforge.cli.commands.develop import develop_cmd
from crateforge.cli.commands.docs import docs_cmd, docs_tarball_cmd
from crateforge.cli.commands.version import version_cmd
from crateforge.cli import context
from crateforge.config import ForgeConfig
from crateforge.models.platforms import UnsupportedPlatformError, platform_spec

app = typer.Typer(
    name="crateforge",
    help="Crateforge: dependency-cached build, check and release pipeline for a Cargo package.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="build", help="Build the package for a platform.")(build_cmd)
app.command(name="check", help="Run checks and report pass/fail per check.")(check_cmd)
app.command(name="docs", help="Build the API documentation.")(docs_cmd)
app.command(name="docs-tarball", help="Produce the versioned documentation archive.")(docs_tarball_cmd)
app.command(name="version", help="Print the package version from Cargo.toml.")(version_cmd)
app.command(name="develop", help="Enter the development environment.")(develop_cmd)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level (default: CRATEFORGE_LOG_LEVEL or INFO)."
    ),
) -> None:
    """Configure logging for every command."""
    level = (log_level or ForgeConfig().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command(name="platforms", help="List the platform matrix.")
def platforms_cmd() -> None:
    """List the platforms in the matrix and mark the host."""
    console = Console()
    matrix = context.make_matrix(ForgeConfig())
    try:
        host = matrix.host
    except UnsupportedPlatformError:
        host = None

    table = Table(title="Platform Matrix")
    table.add_column("Platform", style="cyan", no_wrap=True)
    table.add_column("Rust target", style="green")
    table.add_column("Native inputs")
    table.add_column("Host", justify="center")
    for key in matrix.platforms:
        spec = platform_spec(key)
        natives = ", ".join(n.name for n in spec.native_inputs) or "[dim]-[/dim]"
        table.add_row(key.value, spec.rust_target, natives, "[green]*[/green]" if key == host else "")
    console.print(table)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
