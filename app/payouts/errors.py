from __future__ import annotations

from enum import Enum
from typing import Optional
from uuid import UUID


class RejectionReason(str, Enum):
    INVALID_AMOUNT = "INVALID_AMOUNT"
    PAYOUT_IN_FLIGHT = "PAYOUT_IN_FLIGHT"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    BELOW_MINIMUM = "BELOW_MINIMUM"


class PayoutError(Exception):
    code = "PAYOUT_ERROR"


class PayoutRejected(PayoutError):
    """Validation failure; never retried, never partially applied."""

    def __init__(self, reason: RejectionReason, message: Optional[str] = None):
        self.reason = reason
        self.code = reason.value
        super().__init__(message or reason.value)


class PartnerNotFound(PayoutError):
    code = "PARTNER_NOT_FOUND"

    def __init__(self, partner_id: str):
        self.partner_id = partner_id
        super().__init__(f"Partner not found: {partner_id}")


class PayoutNotFound(PayoutError):
    code = "PAYOUT_NOT_FOUND"

    def __init__(self, payout_id: UUID | str):
        self.payout_id = payout_id
        super().__init__(f"Payout not found: {payout_id}")


class InvalidTransition(PayoutError):
    code = "INVALID_TRANSITION"


class ConcurrentModification(PayoutError):
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, payout_id: UUID, expected_version: int):
        self.payout_id = payout_id
        self.expected_version = expected_version
        super().__init__(f"Payout {payout_id} moved past version {expected_version}")


class TransientConflict(PayoutError):
    """Conflict retries exhausted; the caller may try again later."""

    code = "TRANSIENT_CONFLICT"

    def __init__(self, payout_id: UUID, attempts: int):
        self.payout_id = payout_id
        self.attempts = attempts
        super().__init__(f"Payout {payout_id} still contended after {attempts} attempts")


class GatewayCancelRejected(PayoutError):
    """The gateway refused to cancel an in-flight payout; status is unchanged."""

    code = "GATEWAY_CANCEL_REJECTED"

    def __init__(self, payout_id: UUID, message: Optional[str]):
        self.payout_id = payout_id
        self.gateway_message = message or "Gateway refused to cancel payout"
        super().__init__(self.gateway_message)


class GatewayAccountError(PayoutError):
    """The gateway could not create or link the partner's connected account."""

    code = "GATEWAY_ACCOUNT_ERROR"

    def __init__(self, partner_id: str, message: Optional[str]):
        self.partner_id = partner_id
        self.gateway_message = message or "Gateway account request failed"
        super().__init__(self.gateway_message)


class NoConnectedAccount(PayoutError):
    code = "NO_CONNECTED_ACCOUNT"

    def __init__(self, partner_id: str):
        self.partner_id = partner_id
        super().__init__(f"Partner {partner_id} has no connected payout account")
