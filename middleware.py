# middleware.py
from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from services import metrics
from services.observability import set_request_id
from services.redaction import redact_headers


logger = logging.getLogger("partner_payouts.http")


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = (request.headers.get("X-Request-ID") or "").strip() or str(uuid.uuid4())
        start = time.time()

        request.state.request_id = req_id
        set_request_id(req_id)

        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            duration_ms = int((time.time() - start) * 1000)
            metrics.increment_http_requests(_route_label(request), status)
            logger.info(
                "http_request_end method=%s path=%s status=%s duration_ms=%s client=%s headers=%s",
                request.method,
                request.url.path,
                status,
                duration_ms,
                request.client.host if request.client else None,
                redact_headers(dict(request.headers)),
            )
            set_request_id(None)
