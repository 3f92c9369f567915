"""Development environment descriptor."""

from __future__ import annotations

import shutil
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from crateforge.models.platforms import PlatformKey


class DevEnvironment(BaseModel):
    """Every tool needed to reproduce every check, plus interactive extras."""

    model_config = ConfigDict(frozen=True)

    platform: PlatformKey
    tools: tuple[str, ...]
    check_names: tuple[str, ...] = ()
    supplementary_tools: tuple[str, ...] = ()
    native_inputs: tuple[str, ...] = ()
    env: dict[str, str] = {}

    def missing_tools(
        self, which: Callable[[str], str | None] = shutil.which
    ) -> list[str]:
        """Return the tools that cannot be found on ``PATH``."""
        return [tool for tool in self.tools if which(tool) is None]
