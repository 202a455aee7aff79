# services/payout_errors.py
from __future__ import annotations

from fastapi import HTTPException

from app.payouts.errors import PayoutError


PAYOUT_ERROR_HTTP_MAP: dict[str, tuple[int, str]] = {
    "INVALID_AMOUNT": (422, "Invalid amount"),
    "BELOW_MINIMUM": (422, "Amount is below the minimum payout"),
    "INSUFFICIENT_BALANCE": (409, "Insufficient balance"),
    "PAYOUT_IN_FLIGHT": (409, "A payout is already in progress"),
    "PARTNER_NOT_FOUND": (404, "Partner not found"),
    "PAYOUT_NOT_FOUND": (404, "Payout not found"),
    "INVALID_TRANSITION": (409, "Payout cannot perform this action"),
    "CONCURRENT_MODIFICATION": (409, "Payout was modified concurrently"),
    "TRANSIENT_CONFLICT": (503, "Payout is busy, retry later"),
    "GATEWAY_CANCEL_REJECTED": (502, "Gateway refused to cancel payout"),
    "GATEWAY_ACCOUNT_ERROR": (502, "Gateway account request failed"),
    "NO_CONNECTED_ACCOUNT": (409, "Partner has no connected payout account"),
}


def http_error_for(exc: PayoutError) -> HTTPException:
    """
    Translate a domain error into an HTTPException; unknown codes fail closed.
    """
    code = getattr(exc, "code", None)
    if code not in PAYOUT_ERROR_HTTP_MAP:
        return HTTPException(status_code=500, detail="Internal server error")

    status, message = PAYOUT_ERROR_HTTP_MAP[code]
    detail = {"error": code, "message": message}
    if code in ("INVALID_TRANSITION", "GATEWAY_CANCEL_REJECTED", "GATEWAY_ACCOUNT_ERROR"):
        detail["reason"] = str(exc)

    headers = {"Retry-After": "1"} if code == "TRANSIENT_CONFLICT" else None
    return HTTPException(status_code=status, detail=detail, headers=headers)


def raise_http_from_payout_error(exc: PayoutError) -> None:
    raise http_error_for(exc) from exc
