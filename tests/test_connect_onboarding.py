from __future__ import annotations

import pytest

from app.gateways.mock import MockGateway
from app.payouts.errors import GatewayAccountError, NoConnectedAccount, PartnerNotFound
from app.payouts.model import PayoutMethod, PayoutStatus


def test_setup_creates_and_links_account(container, ledger, gateway):
    pid = ledger.add_partner("new-partner", earned_cents=5000, account=None)

    out = container.onboarding.start(pid, email="p@example.com")

    assert out["created"] is True
    assert out["account_id"].startswith("acct_mock_")
    assert ledger.payout_destination(pid) == out["account_id"]
    assert "tab=payments&success=true&mock=true" in out["onboarding_url"]


def test_setup_reuses_linked_account(container, partner_id, ledger, gateway):
    out = container.onboarding.start(partner_id)

    assert out["created"] is False
    assert out["account_id"] == "acct_test0001"
    assert gateway.accounts == {}


def test_concurrent_setup_keeps_first_account(container, ledger, monkeypatch):
    pid = ledger.add_partner("raced", account=None)
    real_link = container.accounts.link_account

    def someone_linked_first(partner_id, account_id):
        ledger.accounts[partner_id] = "acct_winner"
        return real_link(partner_id, account_id)

    monkeypatch.setattr(container.accounts, "link_account", someone_linked_first)
    out = container.onboarding.start(pid)

    assert out["account_id"] == "acct_winner"
    assert out["created"] is False


def test_gateway_refusal_links_nothing(container, ledger, gateway):
    pid = ledger.add_partner("refused", account=None)
    gateway.account_error = "Country not supported"

    with pytest.raises(GatewayAccountError) as exc:
        container.onboarding.start(pid)
    assert str(exc.value) == "Country not supported"
    assert ledger.payout_destination(pid) is None


def test_unknown_partner(container):
    with pytest.raises(PartnerNotFound):
        container.onboarding.start("ghost")


def test_status_reflects_gateway_account(container, ledger, gateway):
    pid = ledger.add_partner("status", earned_cents=5000, account=None)
    assert container.onboarding.status(pid)["has_account"] is False

    account_id = container.onboarding.start(pid)["account_id"]
    status = container.onboarding.status(pid)
    assert status["has_account"] is True
    assert status["onboarding_complete"] is False
    assert status["can_request_payout"] is False

    gateway.complete_onboarding(account_id)
    status = container.onboarding.status(pid)
    assert status["onboarding_complete"] is True
    assert status["payouts_enabled"] is True
    assert status["available_cents"] == 5000
    assert status["can_request_payout"] is True


def test_status_with_unreachable_gateway_is_not_ready(container, partner_id):
    status = container.onboarding.status(partner_id)
    assert status["has_account"] is True
    assert status["payouts_enabled"] is False


def test_dashboard_link(container, partner_id, ledger):
    assert container.onboarding.dashboard_link(partner_id).endswith("/acct_test0001")

    pid = ledger.add_partner("no-account", account=None)
    with pytest.raises(NoConnectedAccount):
        container.onboarding.dashboard_link(pid)


def test_onboarded_partner_can_be_paid(container, ledger, gateway):
    pid = ledger.add_partner("fresh", earned_cents=10_000, account=None)
    account_id = container.onboarding.start(pid)["account_id"]

    p = container.payouts.request_payout(pid, 5000, PayoutMethod.GATEWAY)

    assert p.status == PayoutStatus.PROCESSING
    assert gateway.initiated[-1].destination == account_id
