# app/webhooks/reconciler.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from app.gateways.events import CanceledEvent, FailedEvent, GatewayEvent, PaidEvent
from app.payouts.model import Payout
from app.payouts.repository import PayoutStore
from app.payouts.state_machine import PayoutStateMachine, TransitionOutcome, Trigger
from app.webhooks.repository import EventLog


logger = logging.getLogger("partner_payouts.webhooks")


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    payout: Optional[Payout] = None
    reason: Optional[str] = None
    transition: Optional[TransitionOutcome] = None

    @property
    def payout_id(self) -> Optional[UUID]:
        return self.payout.id if self.payout else None


def _trigger_for(event: GatewayEvent) -> tuple[Optional[Trigger], Optional[str]]:
    if isinstance(event, PaidEvent):
        return Trigger.GATEWAY_PAID, None
    if isinstance(event, FailedEvent):
        return Trigger.GATEWAY_FAILED, event.failure_message or "Payout failed"
    if isinstance(event, CanceledEvent):
        return Trigger.GATEWAY_FAILED, event.failure_message or "Payout was canceled"
    return None, None


class WebhookReconciler:
    """
    Applies gateway events to payouts at most once per event id.

    The processed-event record is written only after the transition, so a
    crash in between leads to a redelivery that lands on ALREADY_TERMINAL.
    """

    def __init__(self, machine: PayoutStateMachine, store: PayoutStore, event_log: EventLog):
        self.machine = machine
        self.store = store
        self.event_log = event_log

    def _resolve(self, event: GatewayEvent) -> Optional[Payout]:
        ref = event.external_ref
        if not ref:
            return None

        payout = self.store.get_by_external_ref(ref)
        if payout is not None:
            return payout

        # the webhook may overtake the write that stores external_ref
        if not event.payout_id_hint:
            return None
        try:
            hinted_id = UUID(event.payout_id_hint)
        except ValueError:
            return None
        candidate = self.store.get(hinted_id)
        if candidate is not None and candidate.external_ref in (None, ref):
            return candidate
        return None

    def _ignore(self, event: GatewayEvent, reason: str, payout: Optional[Payout] = None) -> ReconcileResult:
        self.event_log.mark_processed(
            event.event_id,
            applied=False,
            outcome=ReconcileOutcome.IGNORED.value,
            payout_id=payout.id if payout else None,
        )
        logger.info(
            "webhook_ignored event_id=%s type=%s external_ref=%s reason=%s",
            event.event_id,
            event.event_type,
            event.external_ref,
            reason,
        )
        return ReconcileResult(ReconcileOutcome.IGNORED, payout=payout, reason=reason)

    def reconcile(self, event: GatewayEvent) -> ReconcileResult:
        processed = self.event_log.get_processed(event.event_id)
        if processed is not None and processed.applied:
            logger.info("webhook_duplicate event_id=%s payout_id=%s", event.event_id, processed.payout_id)
            return ReconcileResult(ReconcileOutcome.DUPLICATE)

        trigger, failure_reason = _trigger_for(event)
        if trigger is None:
            return self._ignore(event, "unsupported event type")

        payout = self._resolve(event)
        if payout is None:
            return self._ignore(event, "unknown externalRef")

        # TransientConflict propagates; the receipt stays replayable
        result = self.machine.apply_latest(
            payout.id,
            trigger,
            external_ref=event.external_ref,
            failure_reason=failure_reason,
        )

        self.event_log.mark_processed(
            event.event_id,
            applied=True,
            outcome=ReconcileOutcome.APPLIED.value,
            payout_id=payout.id,
        )
        logger.info(
            "webhook_applied event_id=%s type=%s payout_id=%s status=%s transition=%s",
            event.event_id,
            event.event_type,
            payout.id,
            result.payout.status.value,
            result.outcome.value,
        )
        return ReconcileResult(ReconcileOutcome.APPLIED, payout=result.payout, transition=result.outcome)
