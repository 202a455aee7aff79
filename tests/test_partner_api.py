from __future__ import annotations

from tests.conftest import admin_headers, partner_headers


def _request(client, partner_id, amount=5000, method="gateway"):
    r = client.post(
        "/v1/payouts",
        json={"partner_id": partner_id, "amount_cents": amount, "method": method},
        headers=partner_headers(partner_id),
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_history_lists_own_payouts(client, partner_id):
    created = _request(client, partner_id)

    r = client.get(f"/v1/partners/{partner_id}/payouts", headers=partner_headers(partner_id))
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["limit"] == 12
    assert data["offset"] == 0
    assert [i["payout_id"] for i in data["items"]] == [created["payout_id"]]


def test_history_status_filter_and_bounds(client, partner_id):
    _request(client, partner_id)
    headers = partner_headers(partner_id)

    r = client.get(f"/v1/partners/{partner_id}/payouts", params={"status": "COMPLETED"}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["items"] == []

    assert client.get(f"/v1/partners/{partner_id}/payouts", params={"limit": 51}, headers=headers).status_code == 422
    assert client.get(f"/v1/partners/{partner_id}/payouts", params={"status": "BOGUS"}, headers=headers).status_code == 422


def test_summary_and_balance(client, partner_id):
    _request(client, partner_id, amount=4000, method="manual")
    headers = partner_headers(partner_id)

    r = client.get(f"/v1/partners/{partner_id}/payouts/summary", headers=headers)
    assert r.status_code == 200, r.text
    summary = r.json()
    assert summary["total_pending_cents"] == 3960
    assert summary["total_paid_cents"] == 0
    assert summary["completed_count"] == 0
    assert summary["last_payout_at"] is None

    r = client.get(f"/v1/partners/{partner_id}/balance", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json() == {
        "partner_id": partner_id,
        "available_cents": 6000,
        "min_payout_cents": 1000,
        "can_request_payout": False,
    }


def test_other_partner_forbidden_admin_allowed(client, partner_id, ledger):
    other = ledger.add_partner("nosy", earned_cents=0)
    r = client.get(f"/v1/partners/{partner_id}/balance", headers=partner_headers(other))
    assert r.status_code == 403, r.text

    r = client.get(f"/v1/partners/{partner_id}/balance", headers=admin_headers())
    assert r.status_code == 200, r.text


def test_balance_unknown_partner(client):
    r = client.get("/v1/partners/ghost/balance", headers=admin_headers())
    assert r.status_code == 404, r.text
    assert r.json()["detail"]["error"] == "PARTNER_NOT_FOUND"
