from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({PayoutStatus.COMPLETED, PayoutStatus.FAILED, PayoutStatus.CANCELLED})
IN_FLIGHT_STATUSES = frozenset({PayoutStatus.PENDING, PayoutStatus.PROCESSING})

# amounts the ledger treats as already committed for a partner
COMMITTED_STATUSES = frozenset({PayoutStatus.PENDING, PayoutStatus.PROCESSING, PayoutStatus.COMPLETED})


class PayoutMethod(str, Enum):
    GATEWAY = "gateway"
    MANUAL = "manual"


@dataclass(frozen=True)
class Payout:
    id: UUID
    partner_id: str
    amount_cents: int
    fee_cents: int
    method: PayoutMethod
    status: PayoutStatus
    external_ref: Optional[str]
    requested_at: datetime
    processed_at: Optional[datetime]
    failure_reason: Optional[str]
    version: int
    updated_at: Optional[datetime] = None

    @property
    def net_cents(self) -> int:
        return self.amount_cents - self.fee_cents

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "payout_id": str(self.id),
            "partner_id": self.partner_id,
            "amount_cents": self.amount_cents,
            "fee_cents": self.fee_cents,
            "net_cents": self.net_cents,
            "method": self.method.value,
            "status": self.status.value,
            "external_ref": self.external_ref,
            "requested_at": self.requested_at.isoformat(),
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "failure_reason": self.failure_reason,
            "version": self.version,
        }


@dataclass(frozen=True)
class NewPayout:
    partner_id: str
    amount_cents: int
    fee_cents: int
    method: PayoutMethod


@dataclass(frozen=True)
class PayoutSummary:
    total_paid_cents: int
    total_pending_cents: int
    total_processing_cents: int
    completed_count: int
    last_payout_at: Optional[datetime]


def summarize(payouts: list[Payout]) -> PayoutSummary:
    paid = pending = processing = count = 0
    last: Optional[datetime] = None
    for p in payouts:
        if p.status == PayoutStatus.COMPLETED:
            paid += p.net_cents
            count += 1
            if p.processed_at and (last is None or p.processed_at > last):
                last = p.processed_at
        elif p.status == PayoutStatus.PENDING:
            pending += p.net_cents
        elif p.status == PayoutStatus.PROCESSING:
            processing += p.net_cents
    return PayoutSummary(
        total_paid_cents=paid,
        total_pending_cents=pending,
        total_processing_cents=processing,
        completed_count=count,
        last_payout_at=last,
    )
