"""Runtime configuration, env-driven.

Centralized config using pydantic-settings for environment variable
support. Reads from a .env file and CRATEFORGE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from crateforge.models.platforms import PlatformKey


class ForgeConfig(BaseSettings):
    """Pipeline configuration with environment variable overrides.

    All settings can be overridden via CRATEFORGE_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export CRATEFORGE_LOG_LEVEL=DEBUG
        export CRATEFORGE_ADVISORY_DB_PATH=/srv/advisory-db
        export CRATEFORGE_AUDIT_WAIVERS='["RUSTSEC-2020-0071"]'

    Or via .env file::

        CRATEFORGE_PACKAGE_NAME=utf8-command
        CRATEFORGE_STORE_PATH=/var/cache/crateforge
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CRATEFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # The package being built
    package_name: str = "utf8-command"
    package_root: Path = Path(".")
    extra_source_globs: list[str] = []

    # Storage paths
    store_path: Path = Path(".crateforge/store")
    output_dir: Path = Path("result")

    # Cargo arguments shared by every build and check step
    cargo_profile: str = "release"
    cargo_extra_args: list[str] = ["--locked"]

    # Security audit
    advisory_db_path: Path | None = None
    audit_waivers: list[str] = []

    # Platform matrix and scheduling
    platforms: list[PlatformKey] = list(PlatformKey)
    max_workers: int = 5

    # Development environment extras (cargo and rustc are always included)
    dev_tools: list[str] = ["rust-analyzer", "cargo-release"]

    # Documentation archive
    archive_extension: str = "tar.gz"


# Module-level singleton: `from crateforge.config import config`
config = ForgeConfig()
