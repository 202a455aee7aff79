# app/bulk/coordinator.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional
from uuid import UUID

from app.gateways.base import PayoutGateway
from app.ledger.accessor import Ledger
from app.payouts.errors import (
    GatewayCancelRejected,
    InvalidTransition,
    PayoutNotFound,
    TransientConflict,
)
from app.payouts.model import PayoutMethod, PayoutStatus
from app.payouts.state_machine import PayoutStateMachine, TransitionOutcome, TransitionResult, Trigger
from services import metrics
from services.audit_log import AuditLog


logger = logging.getLogger("partner_payouts.bulk")


class BulkAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


_TRIGGERS = {
    BulkAction.APPROVE: Trigger.ADMIN_APPROVE,
    BulkAction.REJECT: Trigger.ADMIN_REJECT,
    BulkAction.CANCEL: Trigger.ADMIN_CANCEL,
}


@dataclass(frozen=True)
class BulkError:
    id: str
    error: str


@dataclass(frozen=True)
class BulkResult:
    total: int
    successful: int
    failed: int
    errors: list[BulkError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AdminPayoutActions:
    """
    Single-payout admin action: approve, reject or cancel.

    Cancelling a PROCESSING gateway payout asks the gateway first; if the
    gateway refuses, nothing is written and GatewayCancelRejected is raised.
    """

    def __init__(self, machine: PayoutStateMachine, gateway: PayoutGateway, ledger: Ledger, audit: AuditLog):
        self.machine = machine
        self.gateway = gateway
        self.ledger = ledger
        self.audit = audit

    def perform(
        self,
        payout_id: UUID,
        action: BulkAction,
        *,
        actor_id: str,
        reason: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> TransitionResult:
        payout = self.machine.get(payout_id)

        if (
            action == BulkAction.CANCEL
            and payout.status == PayoutStatus.PROCESSING
            and payout.method == PayoutMethod.GATEWAY
            and payout.external_ref
        ):
            destination = self.ledger.payout_destination(payout.partner_id)
            cancel = self.gateway.cancel(payout.external_ref, destination=destination)
            if not cancel.ok:
                logger.warning(
                    "gateway_cancel_rejected payout_id=%s external_ref=%s error=%s",
                    payout_id,
                    payout.external_ref,
                    cancel.error,
                )
                raise GatewayCancelRejected(payout_id, cancel.error)

        result = self.machine.apply_latest(
            payout_id,
            _TRIGGERS[action],
            failure_reason=reason if action == BulkAction.REJECT else None,
        )

        self.record(
            actor_id=actor_id,
            action=action,
            payout_id=payout_id,
            metadata={
                "outcome": result.outcome.value,
                "status": result.payout.status.value,
                "reason": reason,
            },
            request_id=request_id,
        )
        return result

    def record(
        self,
        *,
        actor_id: str,
        action: BulkAction,
        payout_id: Optional[UUID],
        metadata: dict[str, Any],
        request_id: Optional[str] = None,
    ) -> None:
        self.audit.record(
            actor_id=actor_id,
            action=f"payout.{action.value}",
            payout_id=str(payout_id) if payout_id else None,
            metadata=metadata,
            request_id=request_id,
        )


class BulkCoordinator:
    """
    Applies one admin action to many payouts. Each id is handled on its own:
    a failure is recorded in `errors` and never stops the rest of the batch.
    """

    def __init__(self, actions: AdminPayoutActions):
        self.actions = actions

    def apply_bulk(
        self,
        action: BulkAction,
        ids: Iterable[str],
        *,
        actor_id: str,
        reason: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> BulkResult:
        raw_ids = [str(i) for i in ids]
        errors: list[BulkError] = []
        successful = 0

        for raw in raw_ids:
            error = self._apply_one(action, raw, actor_id=actor_id, reason=reason, request_id=request_id)
            if error is None:
                successful += 1
                metrics.increment_bulk_item(action.value, "ok")
            else:
                errors.append(BulkError(id=raw, error=error))
                metrics.increment_bulk_item(action.value, "error")

        result = BulkResult(
            total=len(raw_ids),
            successful=successful,
            failed=len(errors),
            errors=errors,
        )
        logger.info(
            "bulk_completed action=%s actor_id=%s total=%s successful=%s failed=%s",
            action.value,
            actor_id,
            result.total,
            result.successful,
            result.failed,
        )
        return result

    def _apply_one(
        self,
        action: BulkAction,
        raw_id: str,
        *,
        actor_id: str,
        reason: Optional[str],
        request_id: Optional[str],
    ) -> Optional[str]:
        try:
            payout_id = UUID(raw_id)
        except ValueError:
            return "Payout not found"

        try:
            result = self.actions.perform(
                payout_id,
                action,
                actor_id=actor_id,
                reason=reason,
                request_id=request_id,
            )
        except PayoutNotFound:
            return "Payout not found"
        except (InvalidTransition, GatewayCancelRejected, TransientConflict) as exc:
            self._record_failure(action, payout_id, str(exc), actor_id=actor_id, request_id=request_id)
            return str(exc)
        except Exception:
            logger.exception("bulk_item_failed action=%s payout_id=%s", action.value, payout_id)
            return "Internal error"

        if result.outcome == TransitionOutcome.ALREADY_TERMINAL:
            return "already terminal"
        return None

    def _record_failure(
        self,
        action: BulkAction,
        payout_id: UUID,
        error: str,
        *,
        actor_id: str,
        request_id: Optional[str],
    ) -> None:
        try:
            self.actions.record(
                actor_id=actor_id,
                action=action,
                payout_id=payout_id,
                metadata={"outcome": "error", "error": error},
                request_id=request_id,
            )
        except Exception:
            logger.exception("bulk_audit_failed action=%s payout_id=%s", action.value, payout_id)
