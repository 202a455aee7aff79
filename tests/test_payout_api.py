from __future__ import annotations

import uuid

from tests.conftest import admin_headers, auth_headers, partner_headers


def test_request_payout_201(client, partner_id):
    r = client.post(
        "/v1/payouts",
        json={"partner_id": partner_id, "amount_cents": 5000},
        headers=partner_headers(partner_id),
    )
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["status"] == "PROCESSING"
    assert data["amount_cents"] == 5000
    assert data["fee_cents"] == 75
    assert data["net_cents"] == 4925
    assert data["failure_reason"] is None


def test_request_manual_payout_stays_pending(client, partner_id):
    r = client.post(
        "/v1/payouts",
        json={"partner_id": partner_id, "amount_cents": 5000, "method": "manual"},
        headers=partner_headers(partner_id),
    )
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "PENDING"


def test_gateway_failure_is_still_201_with_reason(client, partner_id, gateway):
    gateway.succeed = False
    gateway.error = "Insufficient funds in Stripe account"

    r = client.post("/v1/payouts", json={"partner_id": partner_id, "amount_cents": 5000}, headers=partner_headers(partner_id))
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "FAILED"
    assert r.json()["failure_reason"] == "Insufficient funds in Stripe account"


def test_second_request_conflicts(client, partner_id):
    headers = partner_headers(partner_id)
    body = {"partner_id": partner_id, "amount_cents": 2000}

    assert client.post("/v1/payouts", json=body, headers=headers).status_code == 201
    r = client.post("/v1/payouts", json=body, headers=headers)
    assert r.status_code == 409, r.text
    assert r.json()["detail"]["error"] == "PAYOUT_IN_FLIGHT"


def test_validation_errors_map_to_codes(client, partner_id):
    headers = partner_headers(partner_id)

    r = client.post("/v1/payouts", json={"partner_id": partner_id, "amount_cents": 0}, headers=headers)
    assert (r.status_code, r.json()["detail"]["error"]) == (422, "INVALID_AMOUNT")

    r = client.post("/v1/payouts", json={"partner_id": partner_id, "amount_cents": 999}, headers=headers)
    assert (r.status_code, r.json()["detail"]["error"]) == (422, "BELOW_MINIMUM")

    r = client.post("/v1/payouts", json={"partner_id": partner_id, "amount_cents": 50_000}, headers=headers)
    assert (r.status_code, r.json()["detail"]["error"]) == (409, "INSUFFICIENT_BALANCE")


def test_unknown_partner_404_for_admin(client):
    r = client.post("/v1/payouts", json={"partner_id": "ghost", "amount_cents": 5000}, headers=admin_headers())
    assert r.status_code == 404, r.text
    assert r.json()["detail"]["error"] == "PARTNER_NOT_FOUND"


def test_partner_cannot_request_for_another_partner(client, partner_id, ledger):
    other = ledger.add_partner("someone-else", earned_cents=10_000)
    r = client.post("/v1/payouts", json={"partner_id": other, "amount_cents": 5000}, headers=partner_headers(partner_id))
    assert r.status_code == 403, r.text


def test_requires_auth(client, partner_id):
    r = client.post("/v1/payouts", json={"partner_id": partner_id, "amount_cents": 5000})
    assert r.status_code == 401, r.text

    r = client.post(
        "/v1/payouts",
        json={"partner_id": partner_id, "amount_cents": 5000},
        headers=auth_headers("not-a-jwt"),
    )
    assert r.status_code == 401, r.text


def test_get_payout_owner_and_admin(client, partner_id, ledger):
    r = client.post("/v1/payouts", json={"partner_id": partner_id, "amount_cents": 5000}, headers=partner_headers(partner_id))
    payout_id = r.json()["payout_id"]

    r = client.get(f"/v1/payouts/{payout_id}", headers=partner_headers(partner_id))
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["partner_id"] == partner_id
    assert data["version"] == 2
    assert data["external_ref"]

    assert client.get(f"/v1/payouts/{payout_id}", headers=admin_headers()).status_code == 200

    stranger = ledger.add_partner("stranger", earned_cents=0)
    r = client.get(f"/v1/payouts/{payout_id}", headers=partner_headers(stranger))
    assert r.status_code == 404, r.text
    assert r.json()["detail"]["error"] == "PAYOUT_NOT_FOUND"


def test_get_unknown_payout_404(client):
    r = client.get(f"/v1/payouts/{uuid.uuid4()}", headers=admin_headers())
    assert r.status_code == 404, r.text


def test_rate_limited_per_partner(client, partner_id, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "1")
    headers = partner_headers(partner_id)
    body = {"partner_id": partner_id, "amount_cents": 0}

    # limit is 2 per minute in the test settings
    assert client.post("/v1/payouts", json=body, headers=headers).status_code == 422
    assert client.post("/v1/payouts", json=body, headers=headers).status_code == 422
    r = client.post("/v1/payouts", json=body, headers=headers)
    assert r.status_code == 429, r.text
    assert r.headers.get("Retry-After")
    assert r.headers.get("X-Request-ID")
