"""Shared plumbing for CLI commands: config, matrix and error mapping."""

from __future__ import annotations

from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console

from crateforge.config import ForgeConfig
from crateforge.core.archive import ArchiveError
from crateforge.core.artifact_store import ArtifactIntegrityError, ArtifactNotFoundError
from crateforge.core.dependency_cache import DependencyBuildError
from crateforge.core.docs_builder import DocumentationBuildError
from crateforge.core.package_builder import PackageBuildError
from crateforge.core.pipeline import Pipeline, PlatformUnavailableError
from crateforge.core.platform_matrix import PlatformMatrix
from crateforge.core.runner import CommandRunner, SubprocessRunner, ToolNotFoundError
from crateforge.core.source_snapshot import SnapshotError
from crateforge.core.version_reader import ManifestVersionError
from crateforge.core.waiver_manager import WaiverExpiredError
from crateforge.models.platforms import UnsupportedPlatformError

# Failures a command reports as "step failed" with exit code 1.
PIPELINE_ERRORS: tuple[type[Exception], ...] = (
    SnapshotError,
    DependencyBuildError,
    PackageBuildError,
    DocumentationBuildError,
    ManifestVersionError,
    ArchiveError,
    ToolNotFoundError,
    PlatformUnavailableError,
    UnsupportedPlatformError,
    WaiverExpiredError,
    ArtifactIntegrityError,
    ArtifactNotFoundError,
)

err_console = Console(stderr=True)


def make_runner() -> CommandRunner:
    return SubprocessRunner()


def make_matrix(config: ForgeConfig) -> PlatformMatrix:
    return PlatformMatrix(config, runner=make_runner())


def load_config(**overrides: Any) -> ForgeConfig:
    """Build a ForgeConfig; explicit (non-None) options beat the environment."""
    return ForgeConfig(**{k: v for k, v in overrides.items() if v is not None})


def select_pipeline(config: ForgeConfig, platform: str | None) -> Pipeline:
    """The pipeline for *platform*, or for the host when none is given."""
    matrix = make_matrix(config)
    try:
        return matrix.select(platform) if platform else matrix.host_pipeline()
    except UnsupportedPlatformError as exc:
        fail("platform", exc)


def fail(step: str, exc: BaseException) -> NoReturn:
    """Report a failed step on stderr and exit non-zero."""
    err_console.print(f"[bold red]{step} failed:[/bold red] {exc}")
    raise typer.Exit(code=1)


ROOT_OPTION = typer.Option(None, "--root", "-r", help="Root of the Cargo package.")
STORE_OPTION = typer.Option(None, "--store", "-s", help="Path to the artifact store.")
PLATFORM_OPTION = typer.Option(
    None, "--platform", "-p", help="Platform key (e.g. x86_64-linux). Defaults to the host."
)


def root_path(root: Path | None) -> Path | None:
    return root.resolve() if root is not None else None
