# app/gateways/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol
from uuid import UUID


TERMINAL_GATEWAY_STATUSES = frozenset({"paid", "failed", "canceled"})


@dataclass(frozen=True)
class PayoutIntent:
    payout_id: UUID
    partner_id: str
    destination: Optional[str]
    amount_cents: int  # net amount that reaches the partner
    currency: str


@dataclass(frozen=True)
class InitiationResult:
    accepted: bool
    external_ref: Optional[str] = None
    error: Optional[str] = None
    response: Optional[dict[str, Any]] = None
    # money may have left the platform without a payout to show for it
    needs_review: bool = False


@dataclass(frozen=True)
class GatewayStatus:
    # gateway vocabulary: pending | in_transit | paid | failed | canceled | unknown
    status: str
    failure_message: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_GATEWAY_STATUSES


@dataclass(frozen=True)
class CancelResult:
    ok: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class AccountResult:
    account_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class AccountInfo:
    account_id: str
    details_submitted: bool = False
    payouts_enabled: bool = False
    error: Optional[str] = None

    @property
    def onboarding_complete(self) -> bool:
        return self.details_submitted and self.payouts_enabled


@dataclass(frozen=True)
class LinkResult:
    url: Optional[str] = None
    error: Optional[str] = None


class PayoutGateway(Protocol):
    name: str

    def initiate(self, intent: PayoutIntent) -> InitiationResult: ...
    def fetch_status(self, external_ref: str, *, destination: Optional[str] = None) -> GatewayStatus: ...
    def cancel(self, external_ref: str, *, destination: Optional[str] = None) -> CancelResult: ...

    # connected-account onboarding
    def create_account(self, partner_id: str, *, email: Optional[str], country: str) -> AccountResult: ...
    def fetch_account(self, account_id: str) -> AccountInfo: ...
    def account_link(self, account_id: str, *, refresh_url: str, return_url: str) -> LinkResult: ...
    def login_link(self, account_id: str) -> LinkResult: ...

