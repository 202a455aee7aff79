# services/authz.py
from __future__ import annotations

from typing import Optional, Protocol


ROLE_ADMIN = "ADMIN"
ROLE_PARTNER = "PARTNER"

ACTION_REQUEST_PAYOUT = "payout:request"
ACTION_READ_PAYOUT = "payout:read"
ACTION_READ_BALANCE = "balance:read"
ACTION_MANAGE_PAYMENTS = "payments:manage"
ACTION_ADMIN_PAYOUTS = "payout:admin"

# what a partner may do for its own partner id
_PARTNER_ACTIONS = frozenset(
    {ACTION_REQUEST_PAYOUT, ACTION_READ_PAYOUT, ACTION_READ_BALANCE, ACTION_MANAGE_PAYMENTS}
)


class Actor(Protocol):
    user_id: str
    role: str
    partner_id: Optional[str]


def authorize(actor: Actor, action: str, partner_id: Optional[str]) -> bool:
    role = (getattr(actor, "role", "") or "").strip().upper()
    if role == ROLE_ADMIN:
        return True

    if role != ROLE_PARTNER or action not in _PARTNER_ACTIONS:
        return False

    own = (getattr(actor, "partner_id", None) or "").strip()
    return bool(own) and own == (partner_id or "").strip()
