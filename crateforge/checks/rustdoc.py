"""Documentation-lint check — private items included, warnings denied.

Catches broken intra-doc links and missing docs on the package's own
items. Dependencies are not documented here; that is the release
documentation build's job.
"""

from __future__ import annotations

from typing import Any, ClassVar

from crateforge.checks.base import BaseCheck
from crateforge.core.cargo import CargoCommand, cargo_command
from crateforge.models.build import BuildConfiguration


class RustdocCheck(BaseCheck):

    required_tools: ClassVar[tuple[str, ...]] = ("cargo", "rustc", "rustdoc")

    @property
    def check_name(self) -> str:
        return "rustdoc"

    @property
    def display_name(self) -> str:
        return "Documentation lint"

    def commands(
        self, build_config: BuildConfiguration, params: dict[str, Any]
    ) -> list[CargoCommand]:
        return [
            cargo_command(
                build_config,
                "doc",
                "--no-deps",
                "--document-private-items",
                env={"RUSTDOCFLAGS": "-D warnings"},
            )
        ]
