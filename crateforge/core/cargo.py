"""Cargo invocations and shared-argument composition.

Every build and check step builds its command through :func:`cargo_command`,
which layers the step's own arguments and environment on top of what the
``BuildConfiguration`` shares: the profile, the common extra args
(``--locked`` by default) and the native-input environment.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence

from pydantic import BaseModel, ConfigDict

from crateforge.models.build import BuildConfiguration

CARGO = "cargo"


class CargoCommand(BaseModel):
    """A fully composed cargo invocation."""

    model_config = ConfigDict(frozen=True)

    argv: tuple[str, ...]
    env: dict[str, str] = {}

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)


def cargo_command(
    build_config: BuildConfiguration,
    subcommand: str | Sequence[str],
    *args: str,
    trailing: Sequence[str] = (),
    env: Mapping[str, str] | None = None,
    profile_flag: str | None = "--profile",
    shared_args: bool = True,
) -> CargoCommand:
    """Compose ``cargo <subcommand> [profile] [shared] <args> [-- trailing]``.

    ``profile_flag=None`` omits the profile (``cargo fmt`` and ``cargo audit``
    take none); ``shared_args=False`` omits ``cargo_extra_args``. Step ``env``
    wins over the configuration's environment.
    """
    sub = [subcommand] if isinstance(subcommand, str) else list(subcommand)
    argv: list[str] = [CARGO, *sub]
    if profile_flag:
        argv += [profile_flag, build_config.cargo_profile]
    if shared_args:
        argv += list(build_config.cargo_extra_args)
    argv += list(args)
    if trailing:
        argv += ["--", *trailing]

    merged = build_config.environment()
    merged.update(env or {})
    return CargoCommand(argv=tuple(argv), env=merged)
