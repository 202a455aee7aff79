# routes/admin_payouts.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.bulk.coordinator import BulkAction
from app.container import PayoutContainer
from app.payouts.errors import PayoutError
from app.payouts.model import PayoutStatus
from app.payouts.state_machine import TransitionOutcome
from deps.admin import require_admin
from deps.auth import CurrentUser
from deps.engine import get_container
from schemas import (
    AdminActionRequest,
    AdminActionResponse,
    AuditEventListResponse,
    BulkActionRequest,
    BulkActionResponse,
    PayoutListResponse,
    PayoutResponse,
    PayoutStatusName,
)
from services.payout_errors import raise_http_from_payout_error

router = APIRouter(prefix="/v1/admin/payouts", tags=["admin-payouts"])


@router.get("", response_model=PayoutListResponse, operation_id="admin_list_payouts")
def admin_list_payouts(
    status: Optional[PayoutStatusName] = Query(None),
    partner_id: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _admin: CurrentUser = Depends(require_admin),
    container: PayoutContainer = Depends(get_container),
):
    payouts = container.store.list_payouts(
        partner_id=(partner_id or "").strip() or None,
        status=PayoutStatus(status) if status else None,
        limit=limit,
        offset=offset,
    )
    return PayoutListResponse(items=[PayoutResponse.from_payout(p) for p in payouts], limit=limit, offset=offset)


@router.post("/bulk", response_model=BulkActionResponse, operation_id="admin_bulk_payout_action")
def admin_bulk_action(
    body: BulkActionRequest,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    container: PayoutContainer = Depends(get_container),
):
    result = container.bulk.apply_bulk(
        BulkAction(body.action),
        body.ids,
        actor_id=admin.user_id,
        reason=body.reason,
        request_id=getattr(request.state, "request_id", None),
    )
    return result.to_dict()


@router.post("/{payout_id}/action", response_model=AdminActionResponse, operation_id="admin_payout_action")
def admin_payout_action(
    payout_id: UUID,
    body: AdminActionRequest,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    container: PayoutContainer = Depends(get_container),
):
    try:
        result = container.admin_actions.perform(
            payout_id,
            BulkAction(body.action),
            actor_id=admin.user_id,
            reason=body.reason,
            request_id=getattr(request.state, "request_id", None),
        )
    except PayoutError as exc:
        raise_http_from_payout_error(exc)

    return AdminActionResponse(
        payout_id=result.payout.id,
        status=result.payout.status.value,
        applied=result.applied,
        already_terminal=result.outcome == TransitionOutcome.ALREADY_TERMINAL,
    )


@router.get("/{payout_id}/audit", response_model=AuditEventListResponse, operation_id="admin_payout_audit")
def admin_payout_audit(
    payout_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    _admin: CurrentUser = Depends(require_admin),
    container: PayoutContainer = Depends(get_container),
):
    return AuditEventListResponse(items=container.audit.list_events(payout_id=str(payout_id), limit=limit))
