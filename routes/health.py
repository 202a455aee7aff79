from __future__ import annotations

import os

from fastapi import APIRouter, Depends

from app.container import PayoutContainer
from deps.engine import get_container

router = APIRouter(tags=["health"])

MIGRATION_REVISION = "0001_payout_engine_schema"


def _resolve_env() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("ENV") or "").strip()


def _resolve_git_sha() -> str | None:
    return (os.getenv("GIT_SHA") or "").strip() or None


@router.get("/health")
def health(container: PayoutContainer = Depends(get_container)):
    return {
        "ok": True,
        "env": _resolve_env(),
        "gateway_mode": container.settings.GATEWAY_MODE,
        "gateway": container.gateway.name,
        "git_sha": _resolve_git_sha(),
    }


@router.get("/readyz")
def readyz(container: PayoutContainer = Depends(get_container)):
    db_ok, db_error = container.ping()
    return {
        "ready": bool(db_ok),
        "version": os.getenv("APP_VERSION", "1.0.0"),
        "git_sha": _resolve_git_sha(),
        "db_ok": db_ok,
        "db_error": db_error,
        "migration_revision": MIGRATION_REVISION,
    }
