"""Rich terminal renderer for check results and pipeline artifacts.

Color scheme
------------
- green     : PASSED
- bold red  : FAILED
"""

from __future__ import annotations

from collections.abc import Mapping

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from crateforge.core.package_builder import PackageBuild
from crateforge.models.artifacts import VersionedArchive
from crateforge.models.checks import CheckResult, CheckStatus
from crateforge.models.devshell import DevEnvironment

_STATUS_ICONS: dict[CheckStatus, str] = {
    CheckStatus.PASSED: "[green]PASSED[/green]",
    CheckStatus.FAILED: "[bold red]FAILED[/bold red]",
}

# Lines of diagnostics shown per failing check.
_DIAGNOSTIC_TAIL = 40


class CheckReportRenderer:
    """Renders pipeline results as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def render_checks(self, results: Mapping[str, CheckResult], *, platform: str = "") -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Check", min_width=20)
        table.add_column("State", min_width=10, justify="center")
        table.add_column("Time", justify="right", width=9)
        table.add_column("Details", min_width=20)

        for result in results.values():
            details = result.error or (result.commands[-1] if result.commands else "")
            table.add_row(
                result.display_name,
                _STATUS_ICONS[result.status],
                f"{result.duration_seconds:.1f}s",
                f"[dim]{details}[/dim]" if result.passed else f"[red]{details}[/red]",
            )

        failed = [r for r in results.values() if not r.passed]
        if failed:
            summary = f"[bold red]{len(failed)} of {len(results)} checks failed[/bold red]"
            border = "red"
        else:
            summary = f"[bold green]All {len(results)} checks passed[/bold green]"
            border = "green"

        title = "[bold]Checks[/bold]" + (f" ({platform})" if platform else "")
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title=title,
            border_style=border,
            padding=(1, 2),
        )

    def print_checks(self, results: Mapping[str, CheckResult], *, platform: str = "") -> None:
        """Print the summary table, then diagnostics for every failed check."""
        for result in results.values():
            if result.passed:
                continue
            body = result.diagnostics or result.error
            lines = body.splitlines()[-_DIAGNOSTIC_TAIL:]
            self.console.print(
                Panel(
                    Text("\n".join(lines)),
                    title=f"[bold red]{result.check_name} failed[/bold red]",
                    border_style="red",
                )
            )
        self.console.print(self.render_checks(results, platform=platform))

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def print_package(self, build: PackageBuild) -> None:
        artifact = build.artifact
        lines = [
            f"[bold]Package:[/bold]  {artifact.package_name} ({artifact.platform.value})",
            f"[bold]Artifact:[/bold] {artifact.content_address}",
            f"[bold]Deps:[/bold]     {build.dependency_cache.cache_key}",
            "",
            *(f"  {name}" for name in artifact.files),
            "",
            f"[dim]Checks available separately: {', '.join(build.checks)}[/dim]",
        ]
        self.console.print(
            Panel("\n".join(lines), title="[bold]Package build[/bold]", border_style="green", padding=(1, 2))
        )

    def print_archive(self, archive: VersionedArchive) -> None:
        lines = [
            f"[bold]Version:[/bold]   {archive.version}",
            f"[bold]Directory:[/bold] {archive.directory_name}/",
            f"[bold]Archive:[/bold]   {archive.path}",
            f"[bold]Address:[/bold]   {archive.content_address}",
            f"[bold]Size:[/bold]      {archive.size_bytes} bytes",
        ]
        self.console.print(
            Panel("\n".join(lines), title="[bold]Documentation archive[/bold]", border_style="green", padding=(1, 2))
        )

    def print_dev_environment(self, env: DevEnvironment, missing: list[str]) -> None:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Tool", style="cyan")
        table.add_column("Found", justify="center")
        for tool in env.tools:
            found = "[bold red]No[/bold red]" if tool in missing else "[green]Yes[/green]"
            table.add_row(tool, found)
        self.console.print(table)
        for key, value in sorted(env.env.items()):
            self.console.print(f"[bold]{key}[/bold]={value}")
        if env.native_inputs:
            self.console.print(f"[dim]Native inputs: {', '.join(env.native_inputs)}[/dim]")
