# security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from settings import settings


# -----------------------
# Access tokens (JWT)
# Issued by the portal's auth service; this service only verifies them.
# create_access_token exists for tooling and tests.
# -----------------------
def create_access_token(
    sub: str,
    *,
    role: str,
    partner_id: Optional[str] = None,
    minutes: Optional[int] = None,
) -> str:
    exp_minutes = minutes or settings.JWT_ACCESS_MINUTES
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": sub,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=exp_minutes)).timestamp()),
    }
    if partner_id:
        payload["partner_id"] = partner_id
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        return {}
