# app/gateways/signing.py
from __future__ import annotations

import hashlib
import hmac
import time
from typing import Optional


def compute_signature(secret: str, timestamp: int, raw: bytes) -> str:
    signed = str(int(timestamp)).encode("utf-8") + b"." + raw
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def signature_header(secret: str, raw: bytes, *, timestamp: Optional[int] = None) -> str:
    """Build a `Stripe-Signature` value (used by tests and local tooling)."""
    ts = int(time.time()) if timestamp is None else int(timestamp)
    return f"t={ts},v1={compute_signature(secret, ts, raw)}"


def _parse_header(header: str) -> tuple[Optional[int], list[str]]:
    ts: Optional[int] = None
    sigs: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                ts = int(value)
            except ValueError:
                return None, []
        elif key == "v1" and value:
            sigs.append(value.strip())
    return ts, sigs


def verify_signature(
    *,
    raw: bytes,
    signature_header: str | None,
    secret: str | None,
    tolerance_s: int = 300,
    now: Optional[float] = None,
) -> tuple[bool, str | None]:
    if not secret or not secret.strip():
        return False, "WEBHOOK_SECRET_NOT_CONFIGURED"

    if not signature_header or not signature_header.strip():
        return False, "MISSING_SIGNATURE"

    ts, sigs = _parse_header(signature_header)
    if ts is None or not sigs:
        return False, "MALFORMED_SIGNATURE"

    current = time.time() if now is None else now
    if tolerance_s > 0 and abs(current - ts) > tolerance_s:
        return False, "TIMESTAMP_OUT_OF_TOLERANCE"

    expected = compute_signature(secret.strip(), ts, raw)
    if not any(hmac.compare_digest(expected, s) for s in sigs):
        return False, "INVALID_SIGNATURE"

    return True, None
