"""Manifest Version Reader — the release version comes from cargo metadata.

The version is never configured by hand: it is read from ``cargo metadata``
output, and anything other than exactly one entry with the expected name
and a non-empty version is a hard failure.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from crateforge.core.runner import CommandRunner

logger = logging.getLogger(__name__)

METADATA_ARGV: tuple[str, ...] = (
    "cargo", "metadata", "--format-version", "1", "--no-deps",
)


class ManifestVersionError(RuntimeError):
    """Raised when the version cannot be determined unambiguously."""


def select_package_version(metadata: dict[str, Any], package_name: str) -> str:
    """Return the version of the single package named *package_name*.

    Raises
    ------
    ManifestVersionError
        If the metadata has no ``packages`` list, if zero or several packages
        match, or if the matching entry's version is empty.
    """
    packages = metadata.get("packages")
    if not isinstance(packages, list):
        raise ManifestVersionError("cargo metadata output has no 'packages' list")

    matches = [
        p for p in packages if isinstance(p, dict) and p.get("name") == package_name
    ]
    if not matches:
        raise ManifestVersionError(
            f"No package named {package_name!r} in cargo metadata "
            f"(found: {sorted(str(p.get('name')) for p in packages if isinstance(p, dict))})"
        )
    if len(matches) > 1:
        raise ManifestVersionError(
            f"{len(matches)} packages named {package_name!r} in cargo metadata; "
            "refusing to guess"
        )

    version = matches[0].get("version")
    if not isinstance(version, str) or not version.strip():
        raise ManifestVersionError(
            f"Package {package_name!r} has an empty 'version' field in Cargo.toml"
        )
    return version.strip()


class ManifestVersionReader:
    """Reads the authoritative version by querying ``cargo metadata``."""

    def __init__(self, runner: CommandRunner, package_name: str) -> None:
        self._runner = runner
        self._package_name = package_name

    def read(self, package_root: Path) -> str:
        result = self._runner.run(METADATA_ARGV, cwd=Path(package_root))
        if not result.ok:
            raise ManifestVersionError(
                f"cargo metadata failed ({result.returncode}):\n{result.diagnostics()}"
            )
        try:
            metadata = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise ManifestVersionError(
                f"cargo metadata produced malformed JSON: {exc}"
            ) from exc
        if not isinstance(metadata, dict):
            raise ManifestVersionError("cargo metadata output is not a JSON object")

        version = select_package_version(metadata, self._package_name)
        logger.info("Version in Cargo.toml is %s", version)
        return version
