# app/partners/onboarding.py
from __future__ import annotations

import logging
from typing import Any, Optional

from app.gateways.base import PayoutGateway
from app.ledger.accessor import Ledger
from app.partners.accounts import PartnerAccounts
from app.payouts.errors import GatewayAccountError, NoConnectedAccount


logger = logging.getLogger("partner_payouts.onboarding")


class ConnectOnboarding:
    """
    Connected-account setup for gateway payouts.

    A partner gets at most one account: setup reuses the linked account and
    only asks the gateway for a fresh onboarding link.
    """

    def __init__(
        self,
        gateway: PayoutGateway,
        ledger: Ledger,
        accounts: PartnerAccounts,
        *,
        refresh_url: str,
        return_url: str,
        country: str,
        min_payout_cents: int,
    ):
        self.gateway = gateway
        self.ledger = ledger
        self.accounts = accounts
        self.refresh_url = refresh_url
        self.return_url = return_url
        self.country = country
        self.min_payout_cents = int(min_payout_cents)

    def start(self, partner_id: str, *, email: Optional[str] = None) -> dict[str, Any]:
        account_id = self.ledger.payout_destination(partner_id)
        created = False

        if not account_id:
            result = self.gateway.create_account(partner_id, email=email, country=self.country)
            if result.error or not result.account_id:
                logger.error("connect_account_failed partner_id=%s error=%s", partner_id, result.error)
                raise GatewayAccountError(partner_id, result.error)
            account_id = self.accounts.link_account(partner_id, result.account_id)
            created = account_id == result.account_id

        link = self.gateway.account_link(account_id, refresh_url=self.refresh_url, return_url=self.return_url)
        if link.error or not link.url:
            logger.error("connect_link_failed partner_id=%s account_id=%s error=%s", partner_id, account_id, link.error)
            raise GatewayAccountError(partner_id, link.error)

        logger.info("connect_onboarding_started partner_id=%s account_id=%s created=%s", partner_id, account_id, created)
        return {"partner_id": partner_id, "account_id": account_id, "onboarding_url": link.url, "created": created}

    def status(self, partner_id: str) -> dict[str, Any]:
        account_id = self.ledger.payout_destination(partner_id)
        available = self.ledger.available_balance(partner_id)
        out = {
            "partner_id": partner_id,
            "has_account": bool(account_id),
            "account_id": account_id,
            "onboarding_complete": False,
            "payouts_enabled": False,
            "available_cents": available,
            "min_payout_cents": self.min_payout_cents,
            "can_request_payout": False,
        }
        if not account_id:
            return out

        info = self.gateway.fetch_account(account_id)
        if info.error:
            # gateway trouble reads as "not ready", never as an error page
            logger.warning("connect_status_unavailable partner_id=%s account_id=%s error=%s", partner_id, account_id, info.error)
            return out

        out.update(
            onboarding_complete=info.onboarding_complete,
            payouts_enabled=info.payouts_enabled,
            can_request_payout=info.payouts_enabled and available >= self.min_payout_cents,
        )
        return out

    def dashboard_link(self, partner_id: str) -> str:
        account_id = self.ledger.payout_destination(partner_id)
        if not account_id:
            raise NoConnectedAccount(partner_id)
        link = self.gateway.login_link(account_id)
        if link.error or not link.url:
            logger.warning("connect_dashboard_link_failed partner_id=%s error=%s", partner_id, link.error)
            raise GatewayAccountError(partner_id, link.error)
        return link.url
