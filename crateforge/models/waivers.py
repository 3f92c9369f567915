"""Advisory waiver models — structured, never informal flags."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RiskClassification(str, Enum):
    """Risk level assigned to a waiver."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AdvisoryWaiver(BaseModel):
    """An explicit decision to accept a known advisory in the dependency closure.

    Only advisories with an active waiver are ignored by the audit check.
    """

    model_config = ConfigDict(frozen=True)

    advisory_id: str  # e.g. "RUSTSEC-2020-0071"
    justification: str
    approving_identity: str = ""
    risk_classification: RiskClassification = RiskClassification.MEDIUM
    expiration: datetime | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @field_validator("expiration", "created_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        """Naive timestamps are read as UTC."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def is_expired(self) -> bool:
        """Check if this waiver has passed its expiration date."""
        if self.expiration is None:
            return False
        return datetime.now(timezone.utc) > self.expiration
