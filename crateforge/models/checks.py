"""Check result models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CheckStatus(str, Enum):
    """Outcome of a single check."""

    PASSED = "passed"
    FAILED = "failed"


class CheckResult(BaseModel):
    """Outcome of one registered check.

    Independent of every other check's result.
    """

    model_config = ConfigDict(frozen=True)

    check_name: str
    display_name: str
    status: CheckStatus
    build_fingerprint: str
    dependency_cache_address: str = ""
    commands: tuple[str, ...] = ()
    diagnostics: str = ""
    error: str = ""
    input_hash: str = ""
    output_hash: str = ""
    duration_seconds: float = 0.0
    finished_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def passed(self) -> bool:
        return self.status == CheckStatus.PASSED
