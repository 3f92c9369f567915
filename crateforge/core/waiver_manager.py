"""Waiver management — structured advisory waivers, never informal flags.

The audit check ignores exactly the advisories that have an active waiver
registered here. Every waiver is stored as a content-addressed artifact.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from crateforge.core.artifact_store import ContentAddressedStore
from crateforge.core.hasher import canonical_json_bytes
from crateforge.models.waivers import AdvisoryWaiver

logger = logging.getLogger(__name__)


class WaiverExpiredError(RuntimeError):
    """Raised when attempting to register an expired waiver."""


class WaiverManager:
    """Validates, stores, and answers queries about advisory waivers.

    Parameters
    ----------
    artifact_store:
        The content-addressed store for persisting waivers.
    """

    def __init__(self, artifact_store: ContentAddressedStore) -> None:
        self._store = artifact_store
        self._waivers: dict[str, list[AdvisoryWaiver]] = {}

    def register_waiver(self, waiver: AdvisoryWaiver) -> str:
        """Validate and store a waiver. Returns its content address.

        Raises
        ------
        WaiverExpiredError
            If the waiver has already expired.
        """
        if waiver.is_expired:
            raise WaiverExpiredError(
                f"Waiver for {waiver.advisory_id} expired at {waiver.expiration}"
            )

        stored = self._store.store(
            canonical_json_bytes(waiver.model_dump(mode="json")),
            name=f"waiver-{waiver.advisory_id}",
            artifact_type="waiver",
            metadata={"risk": waiver.risk_classification.value},
        )
        self._waivers.setdefault(waiver.advisory_id, []).append(waiver)
        logger.warning(
            "Advisory %s waived (%s risk): %s",
            waiver.advisory_id, waiver.risk_classification.value, waiver.justification,
        )
        return stored.content_address

    def register_ids(self, advisory_ids: Iterable[str], *, justification: str) -> None:
        """Register plain advisory ids (from configuration) as waivers."""
        for advisory_id in advisory_ids:
            self.register_waiver(
                AdvisoryWaiver(advisory_id=advisory_id, justification=justification)
            )

    def has_valid_waiver(self, advisory_id: str) -> bool:
        """Check if there is a non-expired waiver for the advisory."""
        return any(not w.is_expired for w in self._waivers.get(advisory_id, []))

    def get_active_waivers(self) -> list[AdvisoryWaiver]:
        """Return all non-expired waivers."""
        return [
            w for entries in self._waivers.values() for w in entries if not w.is_expired
        ]

    def active_advisory_ids(self) -> list[str]:
        """Sorted ids of every advisory with an active waiver."""
        return sorted(aid for aid in self._waivers if self.has_valid_waiver(aid))
