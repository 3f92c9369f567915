"""``crateforge check [NAMES...]`` — run checks and report each one.

Every requested check runs, regardless of how its siblings fare. The exit
code is zero only if all of them passed.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from crateforge.checks import CHECK_REGISTRY
from crateforge.cli.context import (
    PIPELINE_ERRORS,
    PLATFORM_OPTION,
    ROOT_OPTION,
    STORE_OPTION,
    err_console,
    fail,
    load_config,
    root_path,
    select_pipeline,
)
from crateforge.monitor.renderer import CheckReportRenderer

console = Console()


def check_cmd(
    names: list[str] = typer.Argument(
        None, help=f"Checks to run (default: all of {', '.join(CHECK_REGISTRY)})."
    ),
    platform: str = PLATFORM_OPTION,
    root: Path = ROOT_OPTION,
    store: Path = STORE_OPTION,
    advisory_db: Path = typer.Option(
        None, "--advisory-db", help="Local advisory database checkout for the audit."
    ),
    waive: list[str] = typer.Option(
        None, "--waive", help="Advisory id to waive for this run (repeatable)."
    ),
    workers: int = typer.Option(None, "--workers", "-j", help="Checks to run at once."),
) -> None:
    """Run the verification checks."""
    unknown = [n for n in names or [] if n not in CHECK_REGISTRY]
    if unknown:
        err_console.print(
            f"[bold red]Unknown check(s):[/bold red] {', '.join(unknown)}. "
            f"Registered: {', '.join(CHECK_REGISTRY)}"
        )
        raise typer.Exit(code=2)

    config = load_config(
        package_root=root_path(root),
        store_path=store,
        advisory_db_path=advisory_db,
        max_workers=workers,
    )
    pipeline = select_pipeline(config, platform)

    try:
        pipeline.waiver_manager.register_ids(waive or [], justification="waived on the command line")
        results = pipeline.run_checks(names or None)
    except PIPELINE_ERRORS as exc:
        fail("check", exc)

    CheckReportRenderer(console=console).print_checks(results, platform=pipeline.platform.value)
    failed = [name for name, result in results.items() if not result.passed]
    if failed:
        err_console.print(f"[bold red]Failed checks:[/bold red] {', '.join(failed)}")
        raise typer.Exit(code=1)
