# app/payouts/state_machine.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from app.notifications.notifier import Notifier
from app.payouts.errors import (
    ConcurrentModification,
    InvalidTransition,
    PayoutNotFound,
    TransientConflict,
)
from app.payouts.model import NewPayout, Payout, PayoutMethod, PayoutStatus, TERMINAL_STATUSES
from app.payouts.repository import PayoutStore
from services import metrics
from services.retry import RetryPolicy


logger = logging.getLogger("partner_payouts.payouts")


class Trigger(str, Enum):
    GATEWAY_ACCEPTED = "gateway_accepted"
    GATEWAY_REJECTED = "gateway_rejected"
    GATEWAY_PAID = "gateway_paid"
    GATEWAY_FAILED = "gateway_failed"
    ADMIN_APPROVE = "admin_approve"
    ADMIN_REJECT = "admin_reject"
    ADMIN_CANCEL = "admin_cancel"


P = PayoutStatus

# trigger -> {from_status: to_status}
TRIGGERS: dict[Trigger, dict[PayoutStatus, PayoutStatus]] = {
    Trigger.GATEWAY_ACCEPTED: {P.PENDING: P.PROCESSING},
    Trigger.GATEWAY_REJECTED: {P.PENDING: P.FAILED},
    # PENDING sources cover webhooks that overtake the PROCESSING write
    Trigger.GATEWAY_PAID: {P.PROCESSING: P.COMPLETED, P.PENDING: P.COMPLETED},
    Trigger.GATEWAY_FAILED: {P.PROCESSING: P.FAILED, P.PENDING: P.FAILED},
    Trigger.ADMIN_APPROVE: {P.PENDING: P.COMPLETED},
    Trigger.ADMIN_REJECT: {P.PENDING: P.FAILED},
    Trigger.ADMIN_CANCEL: {P.PENDING: P.CANCELLED, P.PROCESSING: P.CANCELLED},
}

ALLOWED: dict[PayoutStatus, set[PayoutStatus]] = {s: set() for s in PayoutStatus}
for _edges in TRIGGERS.values():
    for _src, _dst in _edges.items():
        ALLOWED[_src].add(_dst)

DEFAULT_FAILURE_REASONS = {
    Trigger.GATEWAY_REJECTED: "Gateway rejected payout",
    Trigger.GATEWAY_FAILED: "Payout failed",
    Trigger.ADMIN_REJECT: "Rejected by administrator",
}


def assert_transition(old: PayoutStatus, new: PayoutStatus) -> None:
    if new not in ALLOWED.get(PayoutStatus(old), set()):
        raise InvalidTransition(f"Illegal payout transition: {old.value} -> {new.value}")


def resolve_target(trigger: Trigger, payout: Payout, *, external_ref: Optional[str] = None) -> PayoutStatus:
    target = TRIGGERS[trigger].get(payout.status)
    if target is None:
        raise InvalidTransition(f"Payout is {payout.status.value.lower()}; cannot {trigger.value}")

    if trigger == Trigger.ADMIN_APPROVE and payout.method != PayoutMethod.MANUAL:
        raise InvalidTransition("Only manual payouts can be approved without the gateway")

    if trigger == Trigger.GATEWAY_ACCEPTED and not (external_ref or payout.external_ref):
        # invariant: PROCESSING requires the gateway reference
        raise InvalidTransition("status=PROCESSING requires external_ref")

    assert_transition(payout.status, target)
    return target


class TransitionOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_TERMINAL = "already_terminal"


@dataclass(frozen=True)
class TransitionResult:
    outcome: TransitionOutcome
    payout: Payout

    @property
    def applied(self) -> bool:
        return self.outcome == TransitionOutcome.APPLIED


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PayoutStateMachine:
    """
    Sole writer of payout status.

    Every transition is a compare-and-swap on (id, version). A caller holding a
    stale version gets ConcurrentModification; a terminal payout answers
    ALREADY_TERMINAL without writing anything.
    """

    def __init__(
        self,
        store: PayoutStore,
        notifier: Notifier,
        *,
        retry: RetryPolicy | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.notifier = notifier
        self.retry = retry or RetryPolicy()
        self.clock = clock

    # ==========================================================
    # Creation / reads
    # ==========================================================

    def create(self, draft: NewPayout) -> Payout:
        payout = self.store.create_pending(draft)
        logger.info(
            "payout_created payout_id=%s partner_id=%s amount_cents=%s fee_cents=%s method=%s",
            payout.id,
            payout.partner_id,
            payout.amount_cents,
            payout.fee_cents,
            payout.method.value,
        )
        return payout

    def get(self, payout_id: UUID) -> Payout:
        payout = self.store.get(payout_id)
        if payout is None:
            raise PayoutNotFound(payout_id)
        return payout

    # ==========================================================
    # Transitions
    # ==========================================================

    def apply(
        self,
        payout_id: UUID,
        trigger: Trigger,
        *,
        expected_version: int,
        external_ref: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> TransitionResult:
        current = self.get(payout_id)

        if current.version != expected_version:
            metrics.increment_transition_conflict()
            raise ConcurrentModification(payout_id, expected_version)

        if current.is_terminal:
            return TransitionResult(TransitionOutcome.ALREADY_TERMINAL, current)

        target = resolve_target(trigger, current, external_ref=external_ref)

        reason = None
        if target == PayoutStatus.FAILED:
            reason = failure_reason or DEFAULT_FAILURE_REASONS.get(trigger, "Payout failed")

        updated = self.store.compare_and_set(
            payout_id,
            expected_version,
            status=target,
            external_ref=external_ref,
            failure_reason=reason,
            processed_at=self.clock() if target in TERMINAL_STATUSES else None,
        )
        if updated is None:
            metrics.increment_transition_conflict()
            raise ConcurrentModification(payout_id, expected_version)

        metrics.increment_transition(current.status.value, updated.status.value)
        logger.info(
            "payout_transition payout_id=%s from=%s to=%s trigger=%s version=%s",
            payout_id,
            current.status.value,
            updated.status.value,
            trigger.value,
            updated.version,
        )

        if updated.is_terminal:
            self._notify(updated)

        return TransitionResult(TransitionOutcome.APPLIED, updated)

    def apply_latest(
        self,
        payout_id: UUID,
        trigger: Trigger,
        *,
        external_ref: Optional[str] = None,
        failure_reason: Optional[str] = None,
    ) -> TransitionResult:
        """
        Re-read and apply, retrying version conflicts with bounded backoff.
        Raises TransientConflict once the attempts are used up.
        """
        delays = self.retry.delays()
        attempts = 0
        while True:
            attempts += 1
            current = self.get(payout_id)
            try:
                return self.apply(
                    payout_id,
                    trigger,
                    expected_version=current.version,
                    external_ref=external_ref,
                    failure_reason=failure_reason,
                )
            except ConcurrentModification:
                delay = next(delays, None)
                if delay is None:
                    logger.warning(
                        "payout_transition_exhausted payout_id=%s trigger=%s attempts=%s",
                        payout_id,
                        trigger.value,
                        attempts,
                    )
                    raise TransientConflict(payout_id, attempts)
                self.retry.pause(delay)

    def _notify(self, payout: Payout) -> None:
        event_kind = f"payout.{payout.status.value.lower()}"
        try:
            self.notifier.notify(payout.partner_id, event_kind, payout.to_dict())
        except Exception:
            logger.exception("payout_notification_failed payout_id=%s event=%s", payout.id, event_kind)
