# deps/auth.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from security import decode_token
from services.authz import ROLE_ADMIN, ROLE_PARTNER

bearer = HTTPBearer(auto_error=False)

_ROLES = {ROLE_ADMIN, ROLE_PARTNER}


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: str
    partner_id: Optional[str] = None


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> CurrentUser:
    if not creds:
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    # must be "Bearer"
    if (creds.scheme or "").lower() != "bearer":
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    payload = decode_token(creds.credentials)
    sub = str(payload.get("sub") or "").strip()
    role = str(payload.get("role") or "").strip().upper()
    if not sub or role not in _ROLES:
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    partner_id = str(payload.get("partner_id") or "").strip() or None
    return CurrentUser(user_id=sub, role=role, partner_id=partner_id)
