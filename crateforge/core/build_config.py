"""Common Build Configuration — constructed once, shared read-only.

Platform differences come from ``PLATFORM_TABLE``; nothing downstream
branches on the platform itself.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from crateforge.config import ForgeConfig
from crateforge.core.hasher import content_address
from crateforge.models.artifacts import SourceSnapshot
from crateforge.models.build import BuildConfiguration
from crateforge.models.platforms import NativeInput, PlatformKey, platform_spec


def make_build_configuration(
    source: SourceSnapshot,
    platform: PlatformKey,
    *,
    package_name: str,
    cargo_profile: str = "release",
    cargo_extra_args: Iterable[str] = ("--locked",),
    extra_native_inputs: Iterable[NativeInput] = (),
    extra_inputs: Iterable[str] = (),
    env: Mapping[str, str] | None = None,
) -> BuildConfiguration:
    """Combine a snapshot with the platform's native inputs."""
    spec = platform_spec(platform)
    return BuildConfiguration(
        package_name=package_name,
        platform=spec.key,
        source=source,
        native_inputs=spec.native_inputs + tuple(extra_native_inputs),
        extra_inputs=tuple(extra_inputs),
        cargo_profile=cargo_profile,
        cargo_extra_args=tuple(cargo_extra_args),
        env=dict(env or {}),
    )


def build_configuration_from_config(
    source: SourceSnapshot, platform: PlatformKey, config: ForgeConfig
) -> BuildConfiguration:
    return make_build_configuration(
        source,
        platform,
        package_name=config.package_name,
        cargo_profile=config.cargo_profile,
        cargo_extra_args=config.cargo_extra_args,
    )


def build_fingerprint(build_config: BuildConfiguration) -> str:
    """Content address of the whole configuration."""
    return content_address(build_config.model_dump(mode="json"))


def dependency_cache_key(build_config: BuildConfiguration) -> str:
    """Cache key for the dependency closure.

    Covers the dependency skeleton (manifests, lockfile, cargo config),
    the platform, its native inputs and the shared cargo arguments. Source
    edits outside the skeleton leave the key unchanged.
    """
    return content_address({
        "skeleton": build_config.source.dependency_address,
        "platform": build_config.platform.value,
        "native_inputs": [n.model_dump(mode="json") for n in build_config.native_inputs],
        "extra_inputs": list(build_config.extra_inputs),
        "cargo_profile": build_config.cargo_profile,
        "cargo_extra_args": list(build_config.cargo_extra_args),
        "env": build_config.env,
    })
