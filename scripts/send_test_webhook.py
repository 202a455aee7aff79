# scripts/send_test_webhook.py
"""
Post a signed gateway event to a running instance, e.g.

  python scripts/send_test_webhook.py --type payout.paid --ref po_123
"""
from __future__ import annotations

import argparse
import json
import time
import uuid

import httpx

from app.gateways.signing import signature_header
from settings import settings


def canonical_json_bytes(payload) -> bytes:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")


def build_event(event_type: str, external_ref: str, *, payout_id: str | None = None, failure_message: str | None = None) -> dict:
    obj = {"id": external_ref, "object": "payout", "metadata": {}}
    if payout_id:
        obj["metadata"]["internal_payout_id"] = payout_id
    if failure_message:
        obj["failure_message"] = failure_message
    return {
        "id": f"evt_{uuid.uuid4().hex[:24]}",
        "type": event_type,
        "created": int(time.time()),
        "data": {"object": obj},
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Send a signed gateway webhook.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--type", default="payout.paid", choices=["payout.paid", "payout.failed", "payout.canceled"])
    parser.add_argument("--ref", required=True, help="gateway payout id (external_ref)")
    parser.add_argument("--payout-id", default=None)
    parser.add_argument("--failure-message", default=None)
    args = parser.parse_args()

    if not settings.STRIPE_WEBHOOK_SECRET:
        raise SystemExit("STRIPE_WEBHOOK_SECRET is not set")

    body = canonical_json_bytes(
        build_event(args.type, args.ref, payout_id=args.payout_id, failure_message=args.failure_message)
    )
    headers = {
        "Content-Type": "application/json",
        "Stripe-Signature": signature_header(settings.STRIPE_WEBHOOK_SECRET, body),
    }
    r = httpx.post(f"{args.base_url.rstrip('/')}/v1/webhooks/gateway", content=body, headers=headers, timeout=10)
    print(r.status_code, r.text)


if __name__ == "__main__":
    main()
