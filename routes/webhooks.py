# routes/webhooks.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from app.container import PayoutContainer
from app.webhooks.intake import WebhookRejected
from deps.engine import get_container


router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])
logger = logging.getLogger("partner_payouts.webhooks")


def _resolve_request_id(req: Request) -> str | None:
    candidates = (
        req.headers.get("X-Request-ID"),
        req.headers.get("Request-Id"),
    )
    for value in candidates:
        if value and value.strip():
            return value.strip()
    return getattr(req.state, "request_id", None)


@router.post("/gateway", operation_id="gateway_webhook")
async def gateway_webhook(req: Request, container: PayoutContainer = Depends(get_container)):
    raw = await req.body()
    request_id = _resolve_request_id(req)

    try:
        result = await run_in_threadpool(
            container.intake.receive,
            raw,
            req.headers.get("Stripe-Signature"),
            request_id=request_id,
        )
    except WebhookRejected as exc:
        raise HTTPException(status_code=exc.status_code, detail={"error": exc.error})

    logger.info(
        "webhook_received request_id=%s event_id=%s outcome=%s payout_id=%s reason=%s",
        request_id,
        result.event_id,
        result.outcome,
        result.payout_id,
        result.reason,
    )
    return result.to_dict()
