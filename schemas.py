# schemas.py
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.payouts.model import Payout, PayoutSummary

PayoutMethodName = Literal["gateway", "manual"]
PayoutStatusName = Literal["PENDING", "PROCESSING", "COMPLETED", "FAILED", "CANCELLED"]
AdminActionName = Literal["approve", "reject", "cancel"]


# -------- PAYOUTS --------
class PayoutRequest(BaseModel):
    partner_id: str = Field(min_length=1, max_length=100)
    # sign and size are business rules (INVALID_AMOUNT, BELOW_MINIMUM), not schema rules
    amount_cents: int
    method: PayoutMethodName = "gateway"


class PayoutCreatedResponse(BaseModel):
    payout_id: UUID
    status: PayoutStatusName
    amount_cents: int
    fee_cents: int
    net_cents: int
    failure_reason: Optional[str] = None


class PayoutResponse(BaseModel):
    payout_id: UUID
    partner_id: str
    amount_cents: int
    fee_cents: int
    net_cents: int
    method: PayoutMethodName
    status: PayoutStatusName
    external_ref: Optional[str] = None
    requested_at: datetime
    processed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    version: int

    @classmethod
    def from_payout(cls, p: Payout) -> "PayoutResponse":
        return cls(
            payout_id=p.id,
            partner_id=p.partner_id,
            amount_cents=p.amount_cents,
            fee_cents=p.fee_cents,
            net_cents=p.net_cents,
            method=p.method.value,
            status=p.status.value,
            external_ref=p.external_ref,
            requested_at=p.requested_at,
            processed_at=p.processed_at,
            failure_reason=p.failure_reason,
            version=p.version,
        )


class PayoutListResponse(BaseModel):
    items: List[PayoutResponse]
    limit: int
    offset: int


class PayoutSummaryResponse(BaseModel):
    partner_id: str
    total_paid_cents: int
    total_pending_cents: int
    total_processing_cents: int
    completed_count: int
    last_payout_at: Optional[datetime] = None

    @classmethod
    def from_summary(cls, partner_id: str, s: PayoutSummary) -> "PayoutSummaryResponse":
        return cls(
            partner_id=partner_id,
            total_paid_cents=s.total_paid_cents,
            total_pending_cents=s.total_pending_cents,
            total_processing_cents=s.total_processing_cents,
            completed_count=s.completed_count,
            last_payout_at=s.last_payout_at,
        )


class BalanceResponse(BaseModel):
    partner_id: str
    available_cents: int
    min_payout_cents: int
    can_request_payout: bool


# -------- CONNECTED ACCOUNT --------
class ConnectSetupRequest(BaseModel):
    email: Optional[str] = Field(None, max_length=254)


class ConnectSetupResponse(BaseModel):
    partner_id: str
    account_id: str
    onboarding_url: str
    created: bool


class ConnectStatusResponse(BaseModel):
    partner_id: str
    has_account: bool
    account_id: Optional[str] = None
    onboarding_complete: bool
    payouts_enabled: bool
    available_cents: int
    min_payout_cents: int
    can_request_payout: bool


class DashboardLinkResponse(BaseModel):
    partner_id: str
    dashboard_url: str



# -------- ADMIN --------
class BulkActionRequest(BaseModel):
    action: AdminActionName
    ids: List[str] = Field(min_length=1, max_length=500)
    reason: Optional[str] = Field(default=None, max_length=500)


class BulkErrorItem(BaseModel):
    id: str
    error: str


class BulkActionResponse(BaseModel):
    total: int
    successful: int
    failed: int
    errors: List[BulkErrorItem]


class AdminActionRequest(BaseModel):
    action: AdminActionName
    reason: Optional[str] = Field(default=None, max_length=500)


class AdminActionResponse(BaseModel):
    payout_id: UUID
    status: PayoutStatusName
    applied: bool
    already_terminal: bool


class AuditEventItem(BaseModel):
    id: str
    created_at: Optional[str] = None
    actor_id: str
    action: str
    payout_id: Optional[str] = None
    metadata: dict
    request_id: Optional[str] = None


class AuditEventListResponse(BaseModel):
    items: List[AuditEventItem]
