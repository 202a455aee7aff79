# routes/partners.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.container import PayoutContainer
from app.payouts.errors import PayoutError
from app.payouts.model import PayoutStatus
from deps.auth import CurrentUser, get_current_user
from deps.engine import get_container
from schemas import (
    BalanceResponse,
    ConnectSetupRequest,
    ConnectSetupResponse,
    ConnectStatusResponse,
    DashboardLinkResponse,
    PayoutListResponse,
    PayoutResponse,
    PayoutStatusName,
    PayoutSummaryResponse,
)
from services.authz import ACTION_MANAGE_PAYMENTS, ACTION_READ_BALANCE, ACTION_READ_PAYOUT, authorize
from services.payout_errors import raise_http_from_payout_error

router = APIRouter(prefix="/v1/partners", tags=["partners"])


def _require(user: CurrentUser, action: str, partner_id: str) -> None:
    if not authorize(user, action, partner_id):
        raise HTTPException(status_code=403, detail="FORBIDDEN")


@router.get("/{partner_id}/payouts", response_model=PayoutListResponse, operation_id="list_partner_payouts")
def list_partner_payouts(
    partner_id: str,
    status: Optional[PayoutStatusName] = Query(None),
    limit: int = Query(12, ge=1, le=50),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    container: PayoutContainer = Depends(get_container),
):
    _require(user, ACTION_READ_PAYOUT, partner_id)
    payouts = container.payouts.history(
        partner_id,
        status=PayoutStatus(status) if status else None,
        limit=limit,
        offset=offset,
    )
    return PayoutListResponse(
        items=[PayoutResponse.from_payout(p) for p in payouts],
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{partner_id}/payouts/summary",
    response_model=PayoutSummaryResponse,
    operation_id="get_partner_payout_summary",
)
def get_partner_payout_summary(
    partner_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: PayoutContainer = Depends(get_container),
):
    _require(user, ACTION_READ_PAYOUT, partner_id)
    return PayoutSummaryResponse.from_summary(partner_id, container.payouts.summary(partner_id))


@router.get("/{partner_id}/balance", response_model=BalanceResponse, operation_id="get_partner_balance")
def get_partner_balance(
    partner_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: PayoutContainer = Depends(get_container),
):
    _require(user, ACTION_READ_BALANCE, partner_id)
    try:
        return BalanceResponse(**container.payouts.balance(partner_id))
    except PayoutError as exc:
        raise_http_from_payout_error(exc)


# ---------------------------
# Connected payout account
# ---------------------------

@router.post(
    "/{partner_id}/payments/connect",
    response_model=ConnectSetupResponse,
    operation_id="start_partner_connect_onboarding",
)
def start_connect_onboarding(
    partner_id: str,
    payload: Optional[ConnectSetupRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    container: PayoutContainer = Depends(get_container),
):
    _require(user, ACTION_MANAGE_PAYMENTS, partner_id)
    try:
        email = payload.email if payload else None
        return ConnectSetupResponse(**container.onboarding.start(partner_id, email=email))
    except PayoutError as exc:
        raise_http_from_payout_error(exc)


@router.get(
    "/{partner_id}/payments/connect",
    response_model=ConnectStatusResponse,
    operation_id="get_partner_connect_status",
)
def get_connect_status(
    partner_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: PayoutContainer = Depends(get_container),
):
    _require(user, ACTION_MANAGE_PAYMENTS, partner_id)
    try:
        return ConnectStatusResponse(**container.onboarding.status(partner_id))
    except PayoutError as exc:
        raise_http_from_payout_error(exc)


@router.get(
    "/{partner_id}/payments/dashboard",
    response_model=DashboardLinkResponse,
    operation_id="get_partner_dashboard_link",
)
def get_dashboard_link(
    partner_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: PayoutContainer = Depends(get_container),
):
    _require(user, ACTION_MANAGE_PAYMENTS, partner_id)
    try:
        return DashboardLinkResponse(partner_id=partner_id, dashboard_url=container.onboarding.dashboard_link(partner_id))
    except PayoutError as exc:
        raise_http_from_payout_error(exc)
