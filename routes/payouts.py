# routes/payouts.py
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request

from app.container import PayoutContainer
from app.payouts.errors import PayoutError
from app.payouts.model import PayoutMethod
from deps.auth import CurrentUser, get_current_user
from deps.engine import get_container
from rate_limit import rate_limit_or_429
from schemas import PayoutCreatedResponse, PayoutRequest, PayoutResponse
from services.authz import ACTION_READ_PAYOUT, ACTION_REQUEST_PAYOUT, authorize
from services.payout_errors import raise_http_from_payout_error

logger = logging.getLogger("partner_payouts.payouts")
router = APIRouter(prefix="/v1", tags=["payouts"])


@router.post("/payouts", response_model=PayoutCreatedResponse, status_code=201, operation_id="request_payout")
def request_payout(
    body: PayoutRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    container: PayoutContainer = Depends(get_container),
):
    if not authorize(user, ACTION_REQUEST_PAYOUT, body.partner_id):
        raise HTTPException(status_code=403, detail="FORBIDDEN")

    rate_limit_or_429(
        key=f"payout:{body.partner_id}",
        limit=container.settings.RATE_LIMIT_PAYOUT_PER_MIN,
        window_seconds=60,
    )

    try:
        payout = container.payouts.request_payout(body.partner_id, body.amount_cents, PayoutMethod(body.method))
    except PayoutError as exc:
        raise_http_from_payout_error(exc)

    logger.info(
        "payout_requested request_id=%s partner_id=%s payout_id=%s status=%s",
        getattr(request.state, "request_id", None),
        payout.partner_id,
        payout.id,
        payout.status.value,
    )
    return PayoutCreatedResponse(
        payout_id=payout.id,
        status=payout.status.value,
        amount_cents=payout.amount_cents,
        fee_cents=payout.fee_cents,
        net_cents=payout.net_cents,
        failure_reason=payout.failure_reason,
    )


@router.get("/payouts/{payout_id}", response_model=PayoutResponse, operation_id="get_payout")
def get_payout(
    payout_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    container: PayoutContainer = Depends(get_container),
):
    try:
        payout = container.payouts.get(payout_id)
    except PayoutError as exc:
        raise_http_from_payout_error(exc)

    # same answer as a missing payout, so ids of other partners do not leak
    if not authorize(user, ACTION_READ_PAYOUT, payout.partner_id):
        raise HTTPException(status_code=404, detail={"error": "PAYOUT_NOT_FOUND", "message": "Payout not found"})

    return PayoutResponse.from_payout(payout)
