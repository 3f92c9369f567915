"""Format check — the snapshot must already be rustfmt-clean."""

from __future__ import annotations

from typing import Any, ClassVar

from crateforge.checks.base import BaseCheck
from crateforge.core.cargo import CargoCommand, cargo_command
from crateforge.models.build import BuildConfiguration


class FmtCheck(BaseCheck):

    required_tools: ClassVar[tuple[str, ...]] = ("cargo", "cargo-fmt", "rustfmt")
    needs_dependency_cache: ClassVar[bool] = False

    @property
    def check_name(self) -> str:
        return "fmt"

    @property
    def display_name(self) -> str:
        return "Formatting"

    def commands(
        self, build_config: BuildConfiguration, params: dict[str, Any]
    ) -> list[CargoCommand]:
        return [
            cargo_command(
                build_config,
                "fmt",
                trailing=("--check",),
                profile_flag=None,
                shared_args=False,
            )
        ]
