"""The shared, read-only build configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from crateforge.models.artifacts import SourceSnapshot
from crateforge.models.platforms import NativeInput, PlatformKey


class BuildConfiguration(BaseModel):
    """Source snapshot plus platform-conditional native inputs.

    Built once per platform and handed by reference to every build and
    check step. Identical content yields an identical dependency-cache key.
    """

    model_config = ConfigDict(frozen=True)

    package_name: str
    platform: PlatformKey
    source: SourceSnapshot
    native_inputs: tuple[NativeInput, ...] = ()
    extra_inputs: tuple[str, ...] = ()
    cargo_profile: str = "release"
    cargo_extra_args: tuple[str, ...] = ("--locked",)
    env: dict[str, str] = {}

    def environment(self) -> dict[str, str]:
        """Environment contributed by native inputs, then explicit ``env``."""
        merged: dict[str, str] = {}
        for native in self.native_inputs:
            merged.update(native.env)
        merged.update(self.env)
        return merged
