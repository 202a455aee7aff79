# app/gateways/mock.py
from __future__ import annotations

from typing import Optional
from uuid import uuid4

from app.gateways.base import (
    AccountInfo,
    AccountResult,
    CancelResult,
    GatewayStatus,
    InitiationResult,
    LinkResult,
    PayoutIntent,
)


class MockGateway:
    """
    Sandbox gateway.

    Accepts every payout (or fails every payout with `error`), remembers what
    it was asked to do, and reports whatever status tests set for a ref.
    """

    name = "mock"

    def __init__(
        self,
        *,
        succeed: bool = True,
        error: str = "Gateway timeout",
        default_status: str = "in_transit",
        cancel_ok: bool = True,
        cancel_error: str = "Payout can no longer be canceled",
    ):
        self.succeed = succeed
        self.error = error
        self.default_status = default_status
        self.cancel_ok = cancel_ok
        self.cancel_error = cancel_error

        self.initiated: list[PayoutIntent] = []
        self.cancelled: list[str] = []
        self._statuses: dict[str, GatewayStatus] = {}
        self.accounts: dict[str, AccountInfo] = {}
        self.account_error: Optional[str] = None

    def initiate(self, intent: PayoutIntent) -> InitiationResult:
        self.initiated.append(intent)
        if not self.succeed:
            return InitiationResult(accepted=False, error=self.error)
        return InitiationResult(accepted=True, external_ref=f"mock_po_{uuid4().hex[:24]}", response={"mock": True})

    def set_status(self, external_ref: str, status: str, failure_message: Optional[str] = None) -> None:
        self._statuses[external_ref] = GatewayStatus(status=status, failure_message=failure_message)

    def fetch_status(self, external_ref: str, *, destination: Optional[str] = None) -> GatewayStatus:
        return self._statuses.get(external_ref, GatewayStatus(status=self.default_status))

    def cancel(self, external_ref: str, *, destination: Optional[str] = None) -> CancelResult:
        if not self.cancel_ok:
            return CancelResult(ok=False, error=self.cancel_error)
        self.cancelled.append(external_ref)
        self.set_status(external_ref, "canceled")
        return CancelResult(ok=True)

    def create_account(self, partner_id: str, *, email: Optional[str], country: str) -> AccountResult:
        if self.account_error:
            return AccountResult(error=self.account_error)
        account_id = f"acct_mock_{uuid4().hex[:16]}"
        self.accounts[account_id] = AccountInfo(account_id=account_id)
        return AccountResult(account_id=account_id)

    def complete_onboarding(self, account_id: str) -> None:
        self.accounts[account_id] = AccountInfo(account_id=account_id, details_submitted=True, payouts_enabled=True)

    def fetch_account(self, account_id: str) -> AccountInfo:
        return self.accounts.get(account_id, AccountInfo(account_id=account_id, error="No such account"))

    def account_link(self, account_id: str, *, refresh_url: str, return_url: str) -> LinkResult:
        if self.account_error:
            return LinkResult(error=self.account_error)
        sep = "&" if "?" in return_url else "?"
        return LinkResult(url=f"{return_url}{sep}mock=true&account={account_id}")

    def login_link(self, account_id: str) -> LinkResult:
        if self.account_error:
            return LinkResult(error=self.account_error)
        return LinkResult(url=f"https://dashboard.stripe.com/test/express/{account_id}")
