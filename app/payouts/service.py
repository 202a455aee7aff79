# app/payouts/service.py
from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID

from app.gateways.base import InitiationResult, PayoutGateway, PayoutIntent
from app.ledger.accessor import Ledger
from app.payouts.errors import PayoutRejected
from app.payouts.fees import compute_fees
from app.payouts.model import NewPayout, Payout, PayoutMethod, PayoutStatus, PayoutSummary
from app.payouts.repository import PayoutStore
from app.payouts.state_machine import PayoutStateMachine, TransitionOutcome, Trigger
from app.payouts.validator import PayoutValidator
from services import metrics


logger = logging.getLogger("partner_payouts.payouts")


class PayoutService:
    """
    Partner-facing payout flow:

      validate -> create PENDING -> initiate with the gateway -> PROCESSING | FAILED

    A gateway result flagged for review leaves the payout PENDING, so the
    amount stays committed and the sweep reports it.

    Manual payouts skip the gateway and wait in PENDING for an administrator.
    """

    def __init__(
        self,
        machine: PayoutStateMachine,
        validator: PayoutValidator,
        store: PayoutStore,
        ledger: Ledger,
        gateway: PayoutGateway,
        *,
        platform_fee_bps: int,
        gateway_fee_cents: int,
        currency: str,
    ):
        self.machine = machine
        self.validator = validator
        self.store = store
        self.ledger = ledger
        self.gateway = gateway
        self.platform_fee_bps = int(platform_fee_bps)
        self.gateway_fee_cents = int(gateway_fee_cents)
        self.currency = currency

    # ==========================================================
    # Request
    # ==========================================================

    def request_payout(self, partner_id: str, amount_cents: int, method: PayoutMethod) -> Payout:
        verdict = self.validator.validate(partner_id, amount_cents)
        if not verdict.ok:
            metrics.increment_payout_request(verdict.reason.value.lower())
            logger.info(
                "payout_request_rejected partner_id=%s amount_cents=%s reason=%s",
                partner_id,
                amount_cents,
                verdict.reason.value,
            )
            verdict.raise_if_rejected()

        fees = compute_fees(
            amount_cents,
            method,
            platform_fee_bps=self.platform_fee_bps,
            gateway_fee_cents=self.gateway_fee_cents,
        )

        try:
            payout = self.machine.create(
                NewPayout(
                    partner_id=partner_id,
                    amount_cents=fees.gross_cents,
                    fee_cents=fees.fee_cents,
                    method=method,
                )
            )
        except PayoutRejected as exc:
            # lost the race against a concurrent request for the same partner
            metrics.increment_payout_request(exc.reason.value.lower())
            raise

        metrics.increment_payout_request("created")

        if method == PayoutMethod.MANUAL:
            return payout

        return self._submit(payout)

    def _submit(self, payout: Payout) -> Payout:
        result = self._initiate(payout)

        if result.needs_review:
            # money may be sitting in the connected account; the amount stays
            # committed until an operator settles it
            metrics.increment_gateway_review("unreversed_transfer")
            logger.error(
                "payout_needs_review payout_id=%s partner_id=%s error=%s response=%s",
                payout.id,
                payout.partner_id,
                result.error,
                result.response,
            )
            return self.machine.get(payout.id)

        if not result.accepted:
            transition = self.machine.apply_latest(
                payout.id,
                Trigger.GATEWAY_REJECTED,
                failure_reason=result.error or "Gateway rejected payout",
            )
            return transition.payout

        transition = self.machine.apply_latest(
            payout.id,
            Trigger.GATEWAY_ACCEPTED,
            external_ref=result.external_ref,
        )
        settled = transition.payout
        if (
            transition.outcome == TransitionOutcome.ALREADY_TERMINAL
            and settled.status in (PayoutStatus.CANCELLED, PayoutStatus.FAILED)
            and settled.external_ref != result.external_ref
        ):
            self._cancel_untracked(settled, result.external_ref)
        return settled

    def _cancel_untracked(self, payout: Payout, external_ref: Optional[str]) -> None:
        """
        An administrator closed the payout while the gateway call was in
        flight. The gateway payout it produced has no row pointing at it, so
        it is cancelled here.
        """
        destination = self.ledger.payout_destination(payout.partner_id)
        try:
            cancel = self.gateway.cancel(external_ref or "", destination=destination)
        except Exception:
            logger.exception("gateway_cancel_crashed payout_id=%s external_ref=%s", payout.id, external_ref)
            cancel = None

        if cancel is not None and cancel.ok:
            logger.info(
                "gateway_untracked_payout_cancelled payout_id=%s status=%s external_ref=%s",
                payout.id,
                payout.status.value,
                external_ref,
            )
            return

        metrics.increment_gateway_review("untracked_payout")
        logger.error(
            "gateway_untracked_payout payout_id=%s status=%s external_ref=%s error=%s",
            payout.id,
            payout.status.value,
            external_ref,
            cancel.error if cancel is not None else "cancel crashed",
        )

    def _initiate(self, payout: Payout) -> InitiationResult:
        intent = PayoutIntent(
            payout_id=payout.id,
            partner_id=payout.partner_id,
            destination=self.ledger.payout_destination(payout.partner_id),
            amount_cents=payout.net_cents,
            currency=self.currency,
        )
        try:
            result = self.gateway.initiate(intent)
        except Exception as exc:
            logger.exception("gateway_initiate_crashed payout_id=%s gateway=%s", payout.id, self.gateway.name)
            return InitiationResult(accepted=False, error=f"Gateway error: {type(exc).__name__}")

        logger.info(
            "gateway_initiate payout_id=%s gateway=%s accepted=%s external_ref=%s error=%s",
            payout.id,
            self.gateway.name,
            result.accepted,
            result.external_ref,
            result.error,
        )
        return result

    # ==========================================================
    # Reads
    # ==========================================================

    def get(self, payout_id: UUID) -> Payout:
        return self.machine.get(payout_id)

    def history(
        self,
        partner_id: str,
        *,
        status: Optional[PayoutStatus] = None,
        limit: int = 12,
        offset: int = 0,
    ) -> list[Payout]:
        return self.store.list_payouts(partner_id=partner_id, status=status, limit=limit, offset=offset)

    def summary(self, partner_id: str) -> PayoutSummary:
        return self.store.partner_summary(partner_id)

    def balance(self, partner_id: str) -> dict[str, Any]:
        available = self.ledger.available_balance(partner_id)
        in_flight = self.store.find_in_flight(partner_id)
        return {
            "partner_id": partner_id,
            "available_cents": available,
            "min_payout_cents": self.validator.min_payout_cents,
            "can_request_payout": in_flight is None and available >= self.validator.min_payout_cents,
        }
