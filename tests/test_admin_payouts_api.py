from __future__ import annotations

import uuid

from app.payouts.model import NewPayout, PayoutMethod, PayoutStatus
from app.payouts.state_machine import Trigger
from tests.conftest import admin_headers, partner_headers


def _manual(container, ledger, name):
    pid = ledger.add_partner(name, earned_cents=10_000)
    return container.machine.create(NewPayout(partner_id=pid, amount_cents=2000, fee_cents=20, method=PayoutMethod.MANUAL))


def test_admin_endpoints_require_admin(client, partner_id):
    r = client.get("/v1/admin/payouts", headers=partner_headers(partner_id))
    assert r.status_code == 403, r.text
    assert r.json()["detail"] == "ADMIN_REQUIRED"

    assert client.get("/v1/admin/payouts").status_code == 401


def test_list_filters_by_status(client, container, ledger):
    a = _manual(container, ledger, "adm-a")
    b = _manual(container, ledger, "adm-b")
    container.machine.apply(b.id, Trigger.ADMIN_APPROVE, expected_version=b.version)

    r = client.get("/v1/admin/payouts", params={"status": "PENDING"}, headers=admin_headers())
    assert r.status_code == 200, r.text
    assert [i["payout_id"] for i in r.json()["items"]] == [str(a.id)]

    r = client.get("/v1/admin/payouts", params={"partner_id": "adm-b"}, headers=admin_headers())
    assert [i["status"] for i in r.json()["items"]] == ["COMPLETED"]


def test_bulk_reject_mixed_batch(client, container, ledger):
    ok = _manual(container, ledger, "adm-ok")
    done = _manual(container, ledger, "adm-done")
    container.machine.apply(done.id, Trigger.ADMIN_APPROVE, expected_version=done.version)
    missing = str(uuid.uuid4())

    r = client.post(
        "/v1/admin/payouts/bulk",
        json={"action": "reject", "ids": [str(ok.id), str(done.id), missing], "reason": "Duplicate account"},
        headers=admin_headers(),
    )
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["total"] == 3
    assert data["successful"] == 1
    assert data["failed"] == 2
    assert {e["id"]: e["error"] for e in data["errors"]} == {
        str(done.id): "already terminal",
        missing: "Payout not found",
    }
    assert container.store.get(ok.id).failure_reason == "Duplicate account"


def test_bulk_validates_body(client):
    r = client.post("/v1/admin/payouts/bulk", json={"action": "reject", "ids": []}, headers=admin_headers())
    assert r.status_code == 422

    r = client.post("/v1/admin/payouts/bulk", json={"action": "explode", "ids": ["x"]}, headers=admin_headers())
    assert r.status_code == 422


def test_single_action_and_audit_trail(client, container, ledger):
    p = _manual(container, ledger, "adm-single")

    r = client.post(
        f"/v1/admin/payouts/{p.id}/action",
        json={"action": "approve"},
        headers={**admin_headers("admin-7"), "X-Request-ID": "req-approve"},
    )
    assert r.status_code == 200, r.text
    assert r.json() == {"payout_id": str(p.id), "status": "COMPLETED", "applied": True, "already_terminal": False}

    r = client.post(f"/v1/admin/payouts/{p.id}/action", json={"action": "cancel"}, headers=admin_headers())
    assert r.status_code == 200, r.text
    assert r.json()["already_terminal"] is True
    assert r.json()["status"] == "COMPLETED"

    r = client.get(f"/v1/admin/payouts/{p.id}/audit", headers=admin_headers())
    assert r.status_code == 200, r.text
    items = r.json()["items"]
    assert [i["action"] for i in items] == ["payout.cancel", "payout.approve"]
    assert items[1]["actor_id"] == "admin-7"
    assert items[1]["request_id"] == "req-approve"


def test_single_action_errors(client, container, ledger, gateway):
    r = client.post(f"/v1/admin/payouts/{uuid.uuid4()}/action", json={"action": "approve"}, headers=admin_headers())
    assert r.status_code == 404, r.text

    pid = ledger.add_partner("adm-gw", earned_cents=10_000)
    p = container.machine.create(NewPayout(partner_id=pid, amount_cents=2000, fee_cents=45, method=PayoutMethod.GATEWAY))
    r = client.post(f"/v1/admin/payouts/{p.id}/action", json={"action": "approve"}, headers=admin_headers())
    assert r.status_code == 409, r.text
    assert r.json()["detail"]["error"] == "INVALID_TRANSITION"

    p = container.machine.apply(p.id, Trigger.GATEWAY_ACCEPTED, expected_version=p.version, external_ref="po_adm").payout
    gateway.cancel_ok = False
    r = client.post(f"/v1/admin/payouts/{p.id}/action", json={"action": "cancel"}, headers=admin_headers())
    assert r.status_code == 502, r.text
    assert r.json()["detail"]["error"] == "GATEWAY_CANCEL_REJECTED"
    assert container.store.get(p.id).status == PayoutStatus.PROCESSING


def test_reconcile_run_and_reports(client, container):
    r = client.post("/v1/admin/reconcile/run", headers=admin_headers())
    assert r.status_code == 200, r.text
    report_id = r.json()["id"]

    r = client.get("/v1/admin/reconcile/reports", headers=admin_headers())
    assert r.status_code == 200, r.text
    assert r.json()["count"] == 1

    r = client.get(f"/v1/admin/reconcile/reports/{report_id}", headers=admin_headers())
    assert r.status_code == 200, r.text
    assert r.json()["summary"]["processing_checked"] == 0

    r = client.get(f"/v1/admin/reconcile/reports/{uuid.uuid4()}", headers=admin_headers())
    assert r.status_code == 404
