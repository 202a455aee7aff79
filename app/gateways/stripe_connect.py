# app/gateways/stripe_connect.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from app.gateways.base import (
    AccountInfo,
    AccountResult,
    CancelResult,
    GatewayStatus,
    InitiationResult,
    LinkResult,
    PayoutIntent,
)


logger = logging.getLogger("partner_payouts.gateway")


class StripeConnectGateway:
    """
    Stripe Connect adapter.

    A payout is two calls: a platform transfer into the partner's connected
    account, then a payout from that account to its bank. The payout id
    (po_...) is the external reference webhooks refer to.
    """

    name = "stripe"

    def __init__(
        self,
        *,
        secret_key: str,
        api_base: str = "https://api.stripe.com",
        timeout_s: float = 20.0,
        client: httpx.Client | None = None,
    ):
        self.secret_key = (secret_key or "").strip()
        self.api_base = (api_base or "").strip().rstrip("/")
        self._client = client or httpx.Client(timeout=timeout_s)

    def _headers(self, *, idempotency_key: str | None = None, account: str | None = None) -> Dict[str, str]:
        h = {"Authorization": f"Bearer {self.secret_key}"}
        if idempotency_key:
            h["Idempotency-Key"] = idempotency_key
        if account:
            h["Stripe-Account"] = account
        return h

    @staticmethod
    def _error_message(r: httpx.Response) -> str:
        try:
            body = r.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            msg = body["error"].get("message")
            if msg:
                return str(msg)
        return f"Gateway HTTP {r.status_code}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        data: dict[str, Any] | None = None,
        headers: Dict[str, str],
    ) -> tuple[Optional[dict[str, Any]], Optional[str]]:
        url = f"{self.api_base}{path}"
        try:
            r = self._client.request(method, url, data=data, headers=headers)
        except httpx.TimeoutException:
            logger.warning("gateway_timeout method=%s path=%s", method, path)
            return None, "Gateway timeout"
        except httpx.HTTPError as exc:
            logger.warning("gateway_unreachable method=%s path=%s error=%s", method, path, exc)
            return None, f"Gateway unreachable: {type(exc).__name__}"

        if r.status_code >= 400:
            message = self._error_message(r)
            logger.warning("gateway_error method=%s path=%s http_status=%s", method, path, r.status_code)
            return None, message

        try:
            body = r.json()
        except ValueError:
            return None, "Gateway returned an invalid response"
        return (body if isinstance(body, dict) else {}), None

    # ==========================================================
    # Initiation
    # ==========================================================

    def initiate(self, intent: PayoutIntent) -> InitiationResult:
        if not intent.destination:
            return InitiationResult(accepted=False, error="Partner has no connected payout account")

        payout_id = str(intent.payout_id)
        metadata = {"metadata[internal_payout_id]": payout_id, "metadata[partner_id]": intent.partner_id}

        transfer, err = self._request(
            "POST",
            "/v1/transfers",
            data={
                "amount": intent.amount_cents,
                "currency": intent.currency,
                "destination": intent.destination,
                **metadata,
            },
            headers=self._headers(idempotency_key=f"{payout_id}-transfer"),
        )
        if err:
            return InitiationResult(accepted=False, error=err)

        payout, err = self._request(
            "POST",
            "/v1/payouts",
            data={"amount": intent.amount_cents, "currency": intent.currency, **metadata},
            headers=self._headers(idempotency_key=f"{payout_id}-payout", account=intent.destination),
        )
        if err:
            return self._unwind_transfer(intent, transfer, err)

        external_ref = (payout.get("id") or "").strip()
        if not external_ref:
            return self._unwind_transfer(intent, transfer, "Gateway response missing payout id")

        logger.info(
            "gateway_payout_created payout_id=%s transfer_id=%s external_ref=%s",
            payout_id,
            transfer.get("id"),
            external_ref,
        )
        return InitiationResult(
            accepted=True,
            external_ref=external_ref,
            response={"transfer_id": transfer.get("id"), "status": payout.get("status")},
        )

    def _unwind_transfer(self, intent: PayoutIntent, transfer: dict[str, Any], error: str) -> InitiationResult:
        """
        The transfer reached the connected account but the payout leg did not
        happen. Pull the transfer back so a FAILED payout really frees the
        amount. If the reversal fails too, the result asks for review instead
        of reporting a plain rejection.
        """
        payout_id = str(intent.payout_id)
        transfer_id = (transfer.get("id") or "").strip()
        if not transfer_id:
            logger.error("gateway_transfer_unreversed payout_id=%s error=%s", payout_id, "transfer id missing")
            return InitiationResult(
                accepted=False,
                needs_review=True,
                error=f"{error}; transfer reversal failed: transfer id missing",
            )

        reversal, rev_err = self._request(
            "POST",
            f"/v1/transfers/{transfer_id}/reversals",
            data={"amount": intent.amount_cents, "metadata[internal_payout_id]": payout_id},
            headers=self._headers(idempotency_key=f"{payout_id}-reversal"),
        )
        if rev_err:
            logger.error(
                "gateway_transfer_unreversed payout_id=%s transfer_id=%s error=%s",
                payout_id,
                transfer_id,
                rev_err,
            )
            return InitiationResult(
                accepted=False,
                needs_review=True,
                error=f"{error}; transfer reversal failed: {rev_err}",
                response={"transfer_id": transfer_id},
            )

        logger.info(
            "gateway_transfer_reversed payout_id=%s transfer_id=%s reversal_id=%s",
            payout_id,
            transfer_id,
            reversal.get("id"),
        )
        return InitiationResult(
            accepted=False,
            error=error,
            response={"transfer_id": transfer_id, "reversal_id": reversal.get("id")},
        )

    # ==========================================================
    # Status / cancel
    # ==========================================================

    def fetch_status(self, external_ref: str, *, destination: Optional[str] = None) -> GatewayStatus:
        body, err = self._request(
            "GET",
            f"/v1/payouts/{external_ref}",
            headers=self._headers(account=destination),
        )
        if err:
            return GatewayStatus(status="unknown", error=err)
        return GatewayStatus(
            status=str(body.get("status") or "unknown").strip().lower(),
            failure_message=body.get("failure_message"),
        )

    def cancel(self, external_ref: str, *, destination: Optional[str] = None) -> CancelResult:
        _, err = self._request(
            "POST",
            f"/v1/payouts/{external_ref}/cancel",
            headers=self._headers(account=destination),
        )
        if err:
            return CancelResult(ok=False, error=err)
        return CancelResult(ok=True)

    # ==========================================================
    # Connected-account onboarding
    # ==========================================================

    def create_account(self, partner_id: str, *, email: Optional[str], country: str) -> AccountResult:
        data: dict[str, Any] = {
            "type": "express",
            "country": country,
            "business_type": "individual",
            "capabilities[transfers][requested]": "true",
            "metadata[partner_id]": partner_id,
        }
        if email:
            data["email"] = email
        body, err = self._request(
            "POST",
            "/v1/accounts",
            data=data,
            # one account per partner even when setup is clicked twice
            headers=self._headers(idempotency_key=f"{partner_id}-account"),
        )
        if err:
            return AccountResult(error=err)
        account_id = (body.get("id") or "").strip()
        if not account_id:
            return AccountResult(error="Gateway response missing account id")
        logger.info("gateway_account_created partner_id=%s account_id=%s", partner_id, account_id)
        return AccountResult(account_id=account_id)

    def fetch_account(self, account_id: str) -> AccountInfo:
        body, err = self._request("GET", f"/v1/accounts/{account_id}", headers=self._headers())
        if err:
            return AccountInfo(account_id=account_id, error=err)
        return AccountInfo(
            account_id=account_id,
            details_submitted=bool(body.get("details_submitted")),
            payouts_enabled=bool(body.get("payouts_enabled")),
        )

    def account_link(self, account_id: str, *, refresh_url: str, return_url: str) -> LinkResult:
        body, err = self._request(
            "POST",
            "/v1/account_links",
            data={
                "account": account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            },
            headers=self._headers(),
        )
        if err:
            return LinkResult(error=err)
        return LinkResult(url=body.get("url"))

    def login_link(self, account_id: str) -> LinkResult:
        body, err = self._request("POST", f"/v1/accounts/{account_id}/login_links", headers=self._headers())
        if err:
            return LinkResult(error=err)
        return LinkResult(url=body.get("url"))
