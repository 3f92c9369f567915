"""Canonical hashing helpers for cache keys, idempotency, and content addressing."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes: deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def content_address(obj: Any) -> str:
    """Content-address a JSON-serializable object.

    Returns "sha256:<hex>" format used by the artifact store.
    """
    return f"sha256:{sha256_hex(canonical_json_bytes(obj))}"


def compute_input_hash(step_id: str, inputs: dict[str, Any]) -> str:
    """SHA-256 of canonical(step_id + sorted inputs).

    Identical inputs to the same step always hash identically.
    """
    payload = {"step_id": step_id, "inputs": inputs}
    return sha256_hex(canonical_json_bytes(payload))


def compute_output_hash(step_id: str, outputs: dict[str, Any]) -> str:
    """SHA-256 of canonical(step_id + sorted outputs)."""
    payload = {"step_id": step_id, "outputs": outputs}
    return sha256_hex(canonical_json_bytes(payload))
