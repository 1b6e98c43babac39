"""Webhook signature verification for Market22 — constant-time HMAC with replay window.

Market22 signs every delivery with:
    x-market22-signature: hex(HMAC-SHA256(secret, timestamp + raw_body))
    x-market22-timestamp: milliseconds since epoch, decimal

Security contract:
- Signature is recomputed over the raw body bytes, never a re-serialized object
- Comparison is length-checked, then constant-time (hmac.compare_digest)
- Timestamp must lie within a symmetric window of the verifier's clock
- Checks run in order: headers, timestamp format, freshness, signature
- verify() is pure: no clock reads, no I/O, no logging
"""

from __future__ import annotations

import hashlib
import hmac
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

SIGNATURE_HEADER = "x-market22-signature"
TIMESTAMP_HEADER = "x-market22-timestamp"

# 3 minutes
DEFAULT_REPLAY_WINDOW_MS = 180_000

# Millisecond epochs fit in a signed 64-bit integer (at most 19 digits)
_TIMESTAMP_RE = re.compile(r"[0-9]{1,19}")


class RejectReason(str, Enum):
    """Why a webhook request was rejected. All reasons are non-retryable."""

    MISSING_HEADER = "missing_header"
    INVALID_TIMESTAMP = "invalid_timestamp"
    STALE_OR_FUTURE_TIMESTAMP = "stale_or_future_timestamp"
    SIGNATURE_MISMATCH = "signature_mismatch"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification call. Truthy only when authentic."""

    reason: RejectReason | None = None

    @classmethod
    def accepted(cls) -> VerificationResult:
        return cls(reason=None)

    @classmethod
    def rejected(cls, reason: RejectReason) -> VerificationResult:
        return cls(reason=reason)

    @property
    def authentic(self) -> bool:
        return self.reason is None

    def __bool__(self) -> bool:
        return self.authentic


def _to_bytes(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_signature(secret: str | bytes, timestamp: str, raw_body: str | bytes) -> str:
    """Return the hex HMAC-SHA256 of ``timestamp || raw_body`` keyed by *secret*."""
    message = timestamp.encode("utf-8") + _to_bytes(raw_body)
    return hmac.new(_to_bytes(secret), message, hashlib.sha256).hexdigest()


def signatures_match(expected: str, received: str) -> bool:
    """Compare two hex signatures without leaking the first differing position.

    A length mismatch fails fast (length is public: always 64 for SHA-256).
    Equal-length inputs are compared in full by hmac.compare_digest.
    """
    expected_bytes = expected.encode("utf-8")
    received_bytes = received.encode("utf-8")
    if len(expected_bytes) != len(received_bytes):
        return False
    return hmac.compare_digest(expected_bytes, received_bytes)


def verify(
    signature_header: str | None,
    timestamp_header: str | None,
    raw_body: str | bytes,
    secret: str | bytes,
    now: int,
    replay_window_ms: int = DEFAULT_REPLAY_WINDOW_MS,
) -> VerificationResult:
    """Verify a Market22 webhook delivery.

    Args:
        signature_header: Value of x-market22-signature (hex)
        timestamp_header: Value of x-market22-timestamp (ms since epoch)
        raw_body: Exact request body bytes as received
        secret: Shared webhook secret for the product
        now: Current time in milliseconds since epoch
        replay_window_ms: Maximum allowed |now - timestamp|

    Returns:
        VerificationResult; ``reason`` is set when the request is rejected

    Raises:
        ValueError: If *secret* is empty (checked after the headers)
    """
    if not signature_header or not timestamp_header:
        return VerificationResult.rejected(RejectReason.MISSING_HEADER)

    if not secret:
        raise ValueError("webhook secret must not be empty")

    if not _TIMESTAMP_RE.fullmatch(timestamp_header):
        return VerificationResult.rejected(RejectReason.INVALID_TIMESTAMP)
    timestamp = int(timestamp_header)

    if abs(now - timestamp) > replay_window_ms:
        return VerificationResult.rejected(RejectReason.STALE_OR_FUTURE_TIMESTAMP)

    expected = compute_signature(secret, timestamp_header, raw_body)
    if not signatures_match(expected, signature_header):
        return VerificationResult.rejected(RejectReason.SIGNATURE_MISMATCH)

    return VerificationResult.accepted()


def verify_request(
    headers: Mapping[str, str],
    raw_body: str | bytes,
    secret: str | bytes,
    now: int,
    replay_window_ms: int = DEFAULT_REPLAY_WINDOW_MS,
) -> VerificationResult:
    """Verify a delivery given its request headers (any key casing)."""
    lowered = {k.lower(): v for k, v in headers.items()}
    return verify(
        lowered.get(SIGNATURE_HEADER),
        lowered.get(TIMESTAMP_HEADER),
        raw_body,
        secret,
        now,
        replay_window_ms=replay_window_ms,
    )


def sign_headers(secret: str | bytes, raw_body: str | bytes, now: int) -> dict[str, str]:
    """Build the signature headers Market22 would attach to *raw_body* at *now*."""
    timestamp = str(now)
    return {
        SIGNATURE_HEADER: compute_signature(secret, timestamp, raw_body),
        TIMESTAMP_HEADER: timestamp,
    }
