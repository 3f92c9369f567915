"""``crateforge develop`` — enter the development environment.

The tool list is derived from the check registry plus the configured
supplementary tools. Missing tools are reported; with ``--print-env`` the
environment is printed as ``export`` lines instead of starting a shell.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from pathlib import Path

import typer
from rich.console import Console

from crateforge.cli.context import (
    PIPELINE_ERRORS,
    PLATFORM_OPTION,
    ROOT_OPTION,
    err_console,
    fail,
    load_config,
    root_path,
    select_pipeline,
)
from crateforge.monitor.renderer import CheckReportRenderer


def develop_cmd(
    platform: str = PLATFORM_OPTION,
    root: Path = ROOT_OPTION,
    print_env: bool = typer.Option(
        False, "--print-env", help="Print export lines instead of starting a shell."
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Exit non-zero if any tool is missing."
    ),
) -> None:
    """Compose the development environment and enter it."""
    config = load_config(package_root=root_path(root))
    pipeline = select_pipeline(config, platform)
    try:
        env = pipeline.dev_environment()
    except PIPELINE_ERRORS as exc:
        fail("develop", exc)

    missing = env.missing_tools()
    CheckReportRenderer(console=Console(stderr=True)).print_dev_environment(env, missing)
    if missing and strict:
        err_console.print(f"[bold red]Missing tools:[/bold red] {', '.join(missing)}")
        raise typer.Exit(code=1)

    if print_env:
        for key, value in sorted(env.env.items()):
            typer.echo(f"export {key}={shlex.quote(value)}")
        return

    shell = os.environ.get("SHELL", "/bin/sh")
    err_console.print(f"[dim]Entering {shell}; exit to leave the environment.[/dim]")
    completed = subprocess.run([shell], env={**os.environ, **env.env}, check=False)
    raise typer.Exit(code=completed.returncode)
