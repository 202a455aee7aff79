# deps/engine.py
from fastapi import HTTPException, Request

from app.container import PayoutContainer


def get_container(request: Request) -> PayoutContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="SERVICE_NOT_READY")
    return container
