"""Security-audit check — the lockfile against an advisory database snapshot.

Parameters
----------
advisory_db:
    Path to a local checkout of the advisory database. The database is
    never fetched (``-n``): results depend only on the snapshot given.
ignore:
    Advisory ids with an active waiver. Any other match fails the check.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar

from crateforge.checks.base import BaseCheck, CheckConfigurationError
from crateforge.core.cargo import CargoCommand, cargo_command
from crateforge.models.build import BuildConfiguration


class AuditCheck(BaseCheck):

    required_tools: ClassVar[tuple[str, ...]] = ("cargo", "cargo-audit")
    needs_dependency_cache: ClassVar[bool] = False

    @property
    def check_name(self) -> str:
        return "audit"

    @property
    def display_name(self) -> str:
        return "Security audit"

    def commands(
        self, build_config: BuildConfiguration, params: dict[str, Any]
    ) -> list[CargoCommand]:
        db = params.get("advisory_db")
        if not db:
            raise CheckConfigurationError(
                "audit needs an advisory database (set CRATEFORGE_ADVISORY_DB_PATH)"
            )
        db_path = Path(db)
        if not db_path.is_dir():
            raise CheckConfigurationError(f"Advisory database not found at {db_path}")

        args: list[str] = ["-n", "-d", str(db_path.resolve())]
        for advisory_id in sorted(set(params.get("ignore", ()))):
            args += ["--ignore", advisory_id]
        return [
            cargo_command(
                build_config, "audit", *args, profile_flag=None, shared_args=False
            )
        ]
