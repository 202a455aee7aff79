from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.ledger.accessor import Ledger
from app.payouts.errors import PayoutRejected, RejectionReason
from app.payouts.repository import PayoutStore


@dataclass(frozen=True)
class Verdict:
    ok: bool
    reason: Optional[RejectionReason] = None

    @classmethod
    def accepted(cls) -> "Verdict":
        return cls(ok=True)

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "Verdict":
        return cls(ok=False, reason=reason)

    def raise_if_rejected(self) -> None:
        if not self.ok and self.reason is not None:
            raise PayoutRejected(self.reason)


class PayoutValidator:
    """
    Advisory pre-checks for a payout request. First failing rule wins.

    The in-flight and balance rules are re-checked by the store inside the
    creating transaction; this only gives callers an early, cheap answer.
    """

    def __init__(self, ledger: Ledger, store: PayoutStore, *, min_payout_cents: int):
        self.ledger = ledger
        self.store = store
        self.min_payout_cents = int(min_payout_cents)

    def validate(self, partner_id: str, amount_cents: int) -> Verdict:
        if amount_cents <= 0:
            return Verdict.rejected(RejectionReason.INVALID_AMOUNT)

        if self.store.find_in_flight(partner_id) is not None:
            return Verdict.rejected(RejectionReason.PAYOUT_IN_FLIGHT)

        # raises PartnerNotFound for unknown partners
        if amount_cents > self.ledger.available_balance(partner_id):
            return Verdict.rejected(RejectionReason.INSUFFICIENT_BALANCE)

        if amount_cents < self.min_payout_cents:
            return Verdict.rejected(RejectionReason.BELOW_MINIMUM)

        return Verdict.accepted()
