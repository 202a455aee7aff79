# app/webhooks/intake.py
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.gateways.events import GatewayEvent, MalformedEvent, parse_stripe_event
from app.gateways.signing import verify_signature
from app.webhooks.reconciler import ReconcileOutcome, WebhookReconciler
from app.webhooks.repository import EventLog, ReceiptStatus, WebhookReceipt
from services import metrics
from services.redaction import redact_text


logger = logging.getLogger("partner_payouts.webhooks")


_RECEIPT_STATUS = {
    ReconcileOutcome.APPLIED: ReceiptStatus.APPLIED,
    ReconcileOutcome.DUPLICATE: ReceiptStatus.DUPLICATE,
    ReconcileOutcome.IGNORED: ReceiptStatus.IGNORED,
}


class WebhookRejected(Exception):
    """Delivery refused before anything was recorded."""

    def __init__(self, status_code: int, error: str):
        self.status_code = status_code
        self.error = error
        super().__init__(error)


@dataclass(frozen=True)
class IntakeResult:
    event_id: str
    outcome: str
    reason: Optional[str] = None
    payout_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": True,
            "event_id": self.event_id,
            "outcome": self.outcome,
            "reason": self.reason,
            "payout_id": self.payout_id,
        }


class WebhookIntake:
    """
    Gateway-facing side of reconciliation.

    Signature failures are refused with no side effects. Anything signed is
    first stored as a receipt; from then on the delivery is acknowledged, and
    receipts whose processing failed are replayed by the maintenance sweep.
    """

    def __init__(
        self,
        reconciler: WebhookReconciler,
        event_log: EventLog,
        *,
        secret: str,
        tolerance_s: int = 300,
    ):
        self.reconciler = reconciler
        self.event_log = event_log
        self.secret = secret
        self.tolerance_s = tolerance_s

    def receive(self, raw: bytes, signature: Optional[str], *, request_id: Optional[str] = None) -> IntakeResult:
        ok, err = verify_signature(
            raw=raw,
            signature_header=signature,
            secret=self.secret,
            tolerance_s=self.tolerance_s,
        )
        if not ok:
            metrics.increment_webhook_event(False, "rejected")
            logger.warning(
                "webhook_signature_rejected error=%s signature=%s bytes=%s",
                err,
                redact_text(signature or ""),
                len(raw),
            )
            status_code = 500 if err == "WEBHOOK_SECRET_NOT_CONFIGURED" else 401
            raise WebhookRejected(status_code, err or "INVALID_SIGNATURE")

        try:
            event = parse_stripe_event(raw)
        except MalformedEvent as exc:
            return self._record_malformed(raw, str(exc), request_id=request_id)

        receipt_id = self.event_log.record_receipt(
            event_id=event.event_id,
            event_type=event.event_type,
            external_ref=event.external_ref,
            payload=event.raw,
            request_id=request_id,
        )
        return self.process(receipt_id, event)

    def replay(self, receipt: WebhookReceipt) -> IntakeResult:
        try:
            event = parse_stripe_event(receipt.payload)
        except MalformedEvent as exc:
            self.event_log.finish_receipt(receipt.id, status=ReceiptStatus.IGNORED, reason=str(exc))
            return IntakeResult(event_id=receipt.event_id, outcome="ignored", reason=str(exc))
        return self.process(receipt.id, event)

    def process(self, receipt_id: int, event: GatewayEvent) -> IntakeResult:
        try:
            result = self.reconciler.reconcile(event)
        except Exception as exc:
            # acknowledged anyway; the sweep replays ERROR receipts
            logger.exception(
                "webhook_reconcile_failed event_id=%s type=%s receipt_id=%s",
                event.event_id,
                event.event_type,
                receipt_id,
            )
            reason = f"{type(exc).__name__}: {exc}"
            self.event_log.finish_receipt(receipt_id, status=ReceiptStatus.ERROR, reason=reason)
            metrics.increment_webhook_event(True, "deferred")
            return IntakeResult(event_id=event.event_id, outcome="deferred", reason=reason)

        self.event_log.finish_receipt(
            receipt_id,
            status=_RECEIPT_STATUS[result.outcome],
            reason=result.reason,
            payout_id=result.payout_id,
        )
        metrics.increment_webhook_event(True, result.outcome.value)
        return IntakeResult(
            event_id=event.event_id,
            outcome=result.outcome.value,
            reason=result.reason,
            payout_id=str(result.payout_id) if result.payout_id else None,
        )

    def _record_malformed(self, raw: bytes, reason: str, *, request_id: Optional[str]) -> IntakeResult:
        digest = hashlib.sha256(raw).hexdigest()[:32]
        event_id = f"malformed_{digest}"
        receipt_id = self.event_log.record_receipt(
            event_id=event_id,
            event_type="malformed",
            external_ref=None,
            payload={"body": raw.decode("utf-8", errors="replace")},
            request_id=request_id,
        )
        self.event_log.finish_receipt(receipt_id, status=ReceiptStatus.IGNORED, reason=reason)
        metrics.increment_webhook_event(True, "malformed")
        logger.warning("webhook_malformed receipt_id=%s reason=%s", receipt_id, reason)
        return IntakeResult(event_id=event_id, outcome="ignored", reason=reason)
