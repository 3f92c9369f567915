"""Lint check — clippy over every target, warnings denied."""

from __future__ import annotations

from typing import Any, ClassVar

from crateforge.checks.base import BaseCheck
from crateforge.core.cargo import CargoCommand, cargo_command
from crateforge.models.build import BuildConfiguration


class ClippyCheck(BaseCheck):
    """Lints the library, binaries, tests, examples and benches."""

    required_tools: ClassVar[tuple[str, ...]] = ("cargo", "rustc", "cargo-clippy", "clippy-driver")

    @property
    def check_name(self) -> str:
        return "clippy"

    @property
    def display_name(self) -> str:
        return "Lint (clippy)"

    def commands(
        self, build_config: BuildConfiguration, params: dict[str, Any]
    ) -> list[CargoCommand]:
        return [
            cargo_command(
                build_config,
                "clippy",
                "--all-targets",
                trailing=("--deny", "warnings"),
            )
        ]
