from __future__ import annotations

import dataclasses
import json
from datetime import datetime, timedelta, timezone

from app.gateways.signing import signature_header
from app.payouts.model import NewPayout, PayoutMethod, PayoutStatus
from app.payouts.state_machine import Trigger
from app.webhooks.repository import ReceiptStatus
from services import metrics
from tests.conftest import WEBHOOK_SECRET


def _stale_processing(container, ledger, name, ref, *, age_minutes=120):
    pid = ledger.add_partner(name, earned_cents=10_000)
    p = container.machine.create(NewPayout(partner_id=pid, amount_cents=5000, fee_cents=75, method=PayoutMethod.GATEWAY))
    p = container.machine.apply(p.id, Trigger.GATEWAY_ACCEPTED, expected_version=p.version, external_ref=ref).payout
    aged = dataclasses.replace(p, updated_at=datetime.now(timezone.utc) - timedelta(minutes=age_minutes))
    container.store.rows[p.id] = aged
    return aged


def test_resolves_stale_processing_from_gateway(container, ledger, gateway):
    paid = _stale_processing(container, ledger, "sw-paid", "po_sw_paid")
    failed = _stale_processing(container, ledger, "sw-failed", "po_sw_failed")
    canceled = _stale_processing(container, ledger, "sw-cxl", "po_sw_cxl")
    stuck = _stale_processing(container, ledger, "sw-stuck", "po_sw_stuck")
    fresh = _stale_processing(container, ledger, "sw-fresh", "po_sw_fresh", age_minutes=5)

    gateway.set_status("po_sw_paid", "paid")
    gateway.set_status("po_sw_failed", "failed", failure_message="Account closed")
    gateway.set_status("po_sw_cxl", "canceled")

    report = container.sweep.run()

    assert report["summary"]["processing_checked"] == 4
    assert report["summary"]["processing_resolved"] == 3
    assert report["summary"]["stale_processing"] == 1

    assert container.store.get(paid.id).status == PayoutStatus.COMPLETED
    assert container.store.get(failed.id).failure_reason == "Account closed"
    assert container.store.get(canceled.id).status == PayoutStatus.FAILED
    assert container.store.get(canceled.id).failure_reason == "Payout was canceled"
    assert container.store.get(stuck.id).status == PayoutStatus.PROCESSING
    assert container.store.get(fresh.id).status == PayoutStatus.PROCESSING

    stale_items = [i for i in report["items"] if i["category"] == "stale_processing"]
    assert [i["payout_id"] for i in stale_items] == [str(stuck.id)]
    assert metrics.counter_value("stale_processing_payouts_total") == 1


def test_report_is_persisted(container):
    report = container.sweep.run()
    stored = container.reports.get_report(report["id"])
    assert stored["summary"] == report["summary"]
    assert [r["id"] for r in container.reports.list_reports()] == [report["id"]]


def test_replays_deferred_receipts(container, ledger, event_log, monkeypatch):
    pid = ledger.add_partner("sw-replay", earned_cents=10_000)
    p = container.machine.create(NewPayout(partner_id=pid, amount_cents=5000, fee_cents=75, method=PayoutMethod.GATEWAY))
    container.machine.apply(p.id, Trigger.GATEWAY_ACCEPTED, expected_version=p.version, external_ref="po_replay")

    raw = json.dumps({"id": "evt_replay", "type": "payout.paid", "data": {"object": {"id": "po_replay"}}}).encode()
    monkeypatch.setattr(container.reconciler, "reconcile", lambda event: (_ for _ in ()).throw(RuntimeError("x")))
    assert container.intake.receive(raw, signature_header(WEBHOOK_SECRET, raw)).outcome == "deferred"
    monkeypatch.undo()

    report = container.sweep.run()

    assert report["summary"]["receipts_replayed"] == 1
    assert event_log.receipts[1]["status"] == ReceiptStatus.APPLIED
    assert container.store.get(p.id).status == PayoutStatus.COMPLETED

    # nothing left to replay
    assert container.sweep.run()["summary"]["receipts_replayed"] == 0


def test_gives_up_after_max_attempts(container, event_log):
    receipt_id = event_log.record_receipt(event_id="evt_x", event_type="payout.paid", external_ref="po_x", payload={})
    event_log.receipts[receipt_id].update(status=ReceiptStatus.ERROR, attempts=container.settings.RECEIPT_REPLAY_MAX_ATTEMPTS)

    assert container.sweep.run()["summary"]["receipts_replayed"] == 0


def test_purges_old_processed_events(container, event_log):
    event_log.mark_processed("evt_old", applied=True, outcome="applied")
    event_log.mark_processed("evt_new", applied=True, outcome="applied")
    old = event_log.processed["evt_old"]
    event_log.processed["evt_old"] = dataclasses.replace(old, processed_at=old.processed_at - timedelta(days=90))

    report = container.sweep.run()

    assert report["summary"]["processed_events_purged"] == 1
    assert set(event_log.processed) == {"evt_new"}


def test_reports_gateway_payouts_stuck_in_pending(container, ledger):
    pid = ledger.add_partner("sw-pending", earned_cents=10_000)
    stuck = container.machine.create(NewPayout(partner_id=pid, amount_cents=5000, fee_cents=75, method=PayoutMethod.GATEWAY))
    container.store.rows[stuck.id] = dataclasses.replace(
        stuck, updated_at=datetime.now(timezone.utc) - timedelta(minutes=120)
    )
    manual = container.machine.create(
        NewPayout(partner_id=ledger.add_partner("sw-manual", earned_cents=10_000), amount_cents=5000, fee_cents=50, method=PayoutMethod.MANUAL)
    )
    container.store.rows[manual.id] = dataclasses.replace(
        manual, updated_at=datetime.now(timezone.utc) - timedelta(minutes=120)
    )

    report = container.sweep.run()

    assert report["summary"]["stuck_pending"] == 1
    stuck_items = [i for i in report["items"] if i["category"] == "stuck_pending"]
    assert [i["payout_id"] for i in stuck_items] == [str(stuck.id)]
    assert container.store.get(stuck.id).status == PayoutStatus.PENDING
