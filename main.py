# main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.container import PayoutContainer, build_container
from middleware import RequestContextMiddleware
from routes.admin_payouts import router as admin_payouts_router
from routes.admin_reconcile import router as admin_reconcile_router
from routes.health import router as health_router
from routes.metrics import router as metrics_router
from routes.partners import router as partners_router
from routes.payouts import router as payouts_router
from routes.webhooks import router as webhooks_router
from services.observability import configure_logging
from settings import settings


logger = logging.getLogger("partner_payouts")


def create_app(container: Optional[PayoutContainer] = None) -> FastAPI:
    """
    Build the API. Tests pass a ready container; otherwise a PostgreSQL-backed
    one is built at startup and closed at shutdown.
    """
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "container", None) is None:
            owned = build_container(settings)
            app.state.container = owned
        try:
            yield
        finally:
            if owned is not None:
                owned.close()
                app.state.container = None

    app = FastAPI(title="Partner Payouts API", version="1.0.0", lifespan=lifespan)
    app.state.container = container

    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(payouts_router)
    app.include_router(partners_router)
    app.include_router(admin_payouts_router)
    app.include_router(admin_reconcile_router)
    app.include_router(webhooks_router)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_error path=%s request_id=%s",
            request.url.path,
            getattr(request.state, "request_id", None),
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()
