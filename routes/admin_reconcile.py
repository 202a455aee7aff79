from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.concurrency import run_in_threadpool

from app.container import PayoutContainer
from deps.admin import require_admin
from deps.auth import CurrentUser
from deps.engine import get_container


router = APIRouter(prefix="/v1/admin/reconcile", tags=["admin-reconcile"])


@router.post("/run", operation_id="admin_run_sweep")
async def run_sweep(
    _admin: CurrentUser = Depends(require_admin),
    container: PayoutContainer = Depends(get_container),
):
    return await run_in_threadpool(container.sweep.run)


@router.get("/reports", operation_id="admin_list_reconcile_reports")
def list_reconcile_reports(
    limit: int = Query(20, ge=1, le=200),
    _admin: CurrentUser = Depends(require_admin),
    container: PayoutContainer = Depends(get_container),
):
    rows = container.reports.list_reports(limit=limit)
    return {"reports": rows, "count": len(rows), "limit": limit}


@router.get("/reports/{report_id}", operation_id="admin_get_reconcile_report")
def get_reconcile_report(
    report_id: UUID,
    _admin: CurrentUser = Depends(require_admin),
    container: PayoutContainer = Depends(get_container),
):
    row = container.reports.get_report(str(report_id))
    if not row:
        raise HTTPException(status_code=404, detail="REPORT_NOT_FOUND")
    return row
