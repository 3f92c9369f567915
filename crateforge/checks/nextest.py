"""Test check — runs the test suite with cargo-nextest.

The progress bar is hidden so the output stays stable in logs.
"""

from __future__ import annotations

from typing import Any, ClassVar

from crateforge.checks.base import BaseCheck
from crateforge.core.cargo import CargoCommand, cargo_command
from crateforge.models.build import BuildConfiguration


class TestCheck(BaseCheck):
    """Runs ``cargo nextest run``; any failing test fails the check."""

    __test__ = False  # not a pytest class

    required_tools: ClassVar[tuple[str, ...]] = ("cargo", "rustc", "cargo-nextest")

    @property
    def check_name(self) -> str:
        return "tests"

    @property
    def display_name(self) -> str:
        return "Tests"

    def commands(
        self, build_config: BuildConfiguration, params: dict[str, Any]
    ) -> list[CargoCommand]:
        extra = tuple(params.get("nextest_args", ()))
        return [
            cargo_command(
                build_config,
                ["nextest", "run"],
                *extra,
                profile_flag="--cargo-profile",
                env={"NEXTEST_HIDE_PROGRESS_BAR": "true"},
            )
        ]
