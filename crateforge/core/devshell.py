"""Development Environment Composer.

The tool set is a pure function of the check registry: every check's
``required_tools`` plus the supplementary interactive tools. Adding a check
to the registry is enough for its tools to show up here.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path

from crateforge.checks import CHECK_REGISTRY, BaseCheck
from crateforge.core.runner import CommandRunner
from crateforge.models.devshell import DevEnvironment
from crateforge.models.platforms import PlatformKey, platform_spec

# cargo and rustc are always present, whatever the registry holds.
BASE_TOOLS: tuple[str, ...] = ("cargo", "rustc")

RUST_SRC_SUFFIX = Path("lib/rustlib/src/rust/library")


def rust_src_path(sysroot: str | Path) -> str:
    """Standard library sources inside a toolchain sysroot."""
    return str(Path(sysroot) / RUST_SRC_SUFFIX)


def compose_dev_environment(
    platform: PlatformKey,
    *,
    registry: Mapping[str, type[BaseCheck]] = CHECK_REGISTRY,
    supplementary_tools: Iterable[str] = (),
    sysroot: str | Path | None = None,
) -> DevEnvironment:
    """Derive the development environment from *registry*."""
    supplementary = tuple(dict.fromkeys(supplementary_tools))
    tools: dict[str, None] = dict.fromkeys(BASE_TOOLS)
    for check_cls in registry.values():
        tools.update(dict.fromkeys(check_cls.required_tools))
    tools.update(dict.fromkeys(supplementary))

    env: dict[str, str] = {}
    if sysroot is not None:
        env["RUST_SRC_PATH"] = rust_src_path(sysroot)

    spec = platform_spec(platform)
    return DevEnvironment(
        platform=spec.key,
        tools=tuple(sorted(tools)),
        check_names=tuple(registry),
        supplementary_tools=supplementary,
        native_inputs=tuple(n.name for n in spec.native_inputs),
        env=env,
    )


def query_sysroot(runner: CommandRunner, cwd: Path) -> str | None:
    """Ask rustc for its sysroot; None when rustc is unusable."""
    result = runner.run(("rustc", "--print", "sysroot"), cwd=cwd)
    if not result.ok or not result.stdout.strip():
        return None
    return result.stdout.strip()
