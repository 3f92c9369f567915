"""Platform keys and the native-input table (closed enumeration)."""

from __future__ import annotations

import platform
import sys
from enum import Enum

from pydantic import BaseModel, ConfigDict


class UnsupportedPlatformError(ValueError):
    """Raised when a platform is not part of the supported matrix."""


class PlatformKey(str, Enum):
    """Supported platform triples, in ``<arch>-<os>`` form."""

    X86_64_LINUX = "x86_64-linux"
    AARCH64_LINUX = "aarch64-linux"
    X86_64_DARWIN = "x86_64-darwin"
    AARCH64_DARWIN = "aarch64-darwin"

    @property
    def is_darwin(self) -> bool:
        return self.value.endswith("-darwin")

    @classmethod
    def host(cls) -> PlatformKey:
        """Return the key for the machine we are running on.

        Raises ``UnsupportedPlatformError`` for hosts outside the matrix.
        """
        machine = platform.machine().lower()
        arch = {"amd64": "x86_64", "arm64": "aarch64"}.get(machine, machine)
        if sys.platform.startswith("linux"):
            os_name = "linux"
        elif sys.platform == "darwin":
            os_name = "darwin"
        else:
            os_name = sys.platform
        try:
            return cls(f"{arch}-{os_name}")
        except ValueError:
            raise UnsupportedPlatformError(
                f"Host {arch}-{os_name} is not a supported platform. "
                f"Supported: {[k.value for k in cls]}"
            ) from None


class LinkMode(str, Enum):
    """How a native input is linked into the package."""

    DYNAMIC = "dynamic"
    STATIC = "static"
    FRAMEWORK = "framework"


class NativeInput(BaseModel):
    """A platform-conditional native build input (system library, SDK framework)."""

    model_config = ConfigDict(frozen=True)

    name: str
    link_mode: LinkMode = LinkMode.DYNAMIC
    env: dict[str, str] = {}


class PlatformSpec(BaseModel):
    """Everything that differs per platform, expressed once."""

    model_config = ConfigDict(frozen=True)

    key: PlatformKey
    rust_target: str
    native_inputs: tuple[NativeInput, ...] = ()


_DARWIN_INPUTS: tuple[NativeInput, ...] = (
    NativeInput(name="libiconv", link_mode=LinkMode.STATIC),
    NativeInput(name="CoreServices", link_mode=LinkMode.FRAMEWORK),
)

PLATFORM_TABLE: dict[PlatformKey, PlatformSpec] = {
    PlatformKey.X86_64_LINUX: PlatformSpec(
        key=PlatformKey.X86_64_LINUX,
        rust_target="x86_64-unknown-linux-gnu",
    ),
    PlatformKey.AARCH64_LINUX: PlatformSpec(
        key=PlatformKey.AARCH64_LINUX,
        rust_target="aarch64-unknown-linux-gnu",
    ),
    PlatformKey.X86_64_DARWIN: PlatformSpec(
        key=PlatformKey.X86_64_DARWIN,
        rust_target="x86_64-apple-darwin",
        native_inputs=_DARWIN_INPUTS,
    ),
    PlatformKey.AARCH64_DARWIN: PlatformSpec(
        key=PlatformKey.AARCH64_DARWIN,
        rust_target="aarch64-apple-darwin",
        native_inputs=_DARWIN_INPUTS,
    ),
}


def platform_spec(key: PlatformKey | str) -> PlatformSpec:
    """Look up the spec for *key*; never falls back to another platform."""
    try:
        return PLATFORM_TABLE[PlatformKey(key)]
    except (ValueError, KeyError):
        raise UnsupportedPlatformError(
            f"Unknown platform {key!r}. "
            f"Supported: {sorted(k.value for k in PLATFORM_TABLE)}"
        ) from None
