"""Slack request signature helpers for the Events API endpoint."""

from __future__ import annotations

import hashlib
import hmac
import time

SIGNATURE_VERSION = "v0"
MAX_REQUEST_AGE_SECONDS = 60 * 5


def compute_slack_signature(*, secret: str, timestamp: str, body: bytes) -> str:
    """Return the `v0=` signature Slack sends for `body` at `timestamp`."""

    base = f"{SIGNATURE_VERSION}:{timestamp}:".encode() + body
    digest = hmac.new(secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    *,
    secret: str,
    body: bytes,
    timestamp: str | None,
    provided_signature: str | None,
    now: float | None = None,
) -> bool:
    """Return whether a request carries a fresh, valid Slack signature."""

    if not timestamp or not provided_signature:
        return False
    try:
        sent_at = int(timestamp)
    except ValueError:
        return False

    current = time.time() if now is None else now
    if abs(current - sent_at) > MAX_REQUEST_AGE_SECONDS:
        return False

    expected = compute_slack_signature(secret=secret, timestamp=timestamp, body=body)
    return hmac.compare_digest(expected, provided_signature)
