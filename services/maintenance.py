from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Protocol

from psycopg2.extras import Json, RealDictCursor

from app.gateways.base import PayoutGateway
from app.ledger.accessor import Ledger
from app.payouts.errors import PartnerNotFound, PayoutError
from app.payouts.model import Payout
from app.payouts.repository import PayoutStore
from app.payouts.state_machine import PayoutStateMachine, Trigger
from app.webhooks.intake import WebhookIntake
from app.webhooks.repository import EventLog
from db import Database
from services import metrics


logger = logging.getLogger("partner_payouts.maintenance")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportStore(Protocol):
    def save(self, *, run_at: datetime, summary: dict[str, Any], items: list[dict[str, Any]]) -> str: ...
    def list_reports(self, *, limit: int = 20) -> list[dict[str, Any]]: ...
    def get_report(self, report_id: str) -> Optional[dict[str, Any]]: ...


class PgReportStore:
    def __init__(self, db: Database):
        self.db = db

    def save(self, *, run_at: datetime, summary: dict[str, Any], items: list[dict[str, Any]]) -> str:
        with self.db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.reconcile_reports (run_at, summary, items)
                    VALUES (%s, %s::jsonb, %s::jsonb)
                    RETURNING id::text
                    """,
                    (run_at, Json(summary), Json(items)),
                )
                return cur.fetchone()[0]

    def list_reports(self, *, limit: int = 20) -> list[dict[str, Any]]:
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT id::text AS id, run_at, summary, items
                    FROM app.reconcile_reports
                    ORDER BY run_at DESC
                    LIMIT %s
                    """,
                    (max(1, min(int(limit), 200)),),
                )
                return [dict(r) for r in cur.fetchall()]

    def get_report(self, report_id: str) -> Optional[dict[str, Any]]:
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT id::text AS id, run_at, summary, items
                    FROM app.reconcile_reports
                    WHERE id = %s::uuid
                    """,
                    (report_id,),
                )
                row = cur.fetchone()
        return dict(row) if row else None


class MaintenanceSweep:
    """
    Periodic companion to webhook reconciliation.

    - PROCESSING payouts past the SLA: poll the gateway; apply a terminal
      answer, otherwise report them as stale for manual follow-up.
    - PENDING gateway payouts past the SLA: report them. They only stay
      PENDING when initiation was interrupted or left money to settle by hand.
    - Receipts stuck in RECEIVED/ERROR: run them through reconciliation again.
    - Processed-event records past retention: purge.
    """

    def __init__(
        self,
        *,
        store: PayoutStore,
        machine: PayoutStateMachine,
        gateway: PayoutGateway,
        ledger: Ledger,
        intake: WebhookIntake,
        event_log: EventLog,
        reports: ReportStore,
        processing_sla_minutes: int,
        receipt_replay_after_s: int,
        receipt_max_attempts: int,
        retention_days: int,
        batch_size: int = 100,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.machine = machine
        self.gateway = gateway
        self.ledger = ledger
        self.intake = intake
        self.event_log = event_log
        self.reports = reports
        self.processing_sla_minutes = processing_sla_minutes
        self.receipt_replay_after_s = receipt_replay_after_s
        self.receipt_max_attempts = receipt_max_attempts
        self.retention_days = retention_days
        self.batch_size = batch_size
        self.clock = clock

    def run(self) -> dict[str, Any]:
        run_at = self.clock()
        items: list[dict[str, Any]] = []
        summary = {
            "processing_checked": 0,
            "processing_resolved": 0,
            "stale_processing": 0,
            "processing_errors": 0,
            "stuck_pending": 0,
            "receipts_replayed": 0,
            "receipts_failed": 0,
            "processed_events_purged": 0,
        }

        self._check_processing(run_at, summary, items)
        self._report_stuck_pending(run_at, summary, items)
        self._replay_receipts(run_at, summary, items)

        purged = self.event_log.purge_processed(older_than=run_at - timedelta(days=self.retention_days))
        summary["processed_events_purged"] = purged

        report_id = self.reports.save(run_at=run_at, summary=summary, items=items)
        metrics.increment_stale_processing(summary["stale_processing"])
        logger.info(
            "sweep_completed report_id=%s processing_checked=%s resolved=%s stale=%s receipts_replayed=%s purged=%s",
            report_id,
            summary["processing_checked"],
            summary["processing_resolved"],
            summary["stale_processing"],
            summary["receipts_replayed"],
            purged,
        )
        return {"id": report_id, "run_at": run_at.isoformat(), "summary": summary, "items": items}

    # ==========================================================
    # PROCESSING SLA
    # ==========================================================

    def _check_processing(self, run_at: datetime, summary: dict[str, Any], items: list[dict[str, Any]]) -> None:
        cutoff = run_at - timedelta(minutes=self.processing_sla_minutes)
        stale = self.store.list_stale_processing(updated_before=cutoff, limit=self.batch_size)
        summary["processing_checked"] = len(stale)

        for payout in stale:
            try:
                item = self._resolve_processing(payout)
            except PayoutError as exc:
                summary["processing_errors"] += 1
                items.append(
                    {
                        "category": "processing_error",
                        "payout_id": str(payout.id),
                        "external_ref": payout.external_ref,
                        "error": f"{exc.code}: {exc}",
                    }
                )
                continue

            if item["category"] == "resolved":
                summary["processing_resolved"] += 1
            else:
                summary["stale_processing"] += 1
            items.append(item)

    def _resolve_processing(self, payout: Payout) -> dict[str, Any]:
        try:
            destination = self.ledger.payout_destination(payout.partner_id)
        except PartnerNotFound:
            destination = None

        status = self.gateway.fetch_status(payout.external_ref or "", destination=destination)
        base = {
            "payout_id": str(payout.id),
            "partner_id": payout.partner_id,
            "external_ref": payout.external_ref,
            "gateway_status": status.status,
            "updated_at": payout.updated_at.isoformat() if payout.updated_at else None,
        }

        if status.status == "paid":
            result = self.machine.apply_latest(payout.id, Trigger.GATEWAY_PAID)
        elif status.status in ("failed", "canceled"):
            default = "Payout was canceled" if status.status == "canceled" else "Payout failed"
            result = self.machine.apply_latest(
                payout.id,
                Trigger.GATEWAY_FAILED,
                failure_reason=status.failure_message or default,
            )
        else:
            logger.warning(
                "payout_stale_processing payout_id=%s external_ref=%s gateway_status=%s error=%s",
                payout.id,
                payout.external_ref,
                status.status,
                status.error,
            )
            return {**base, "category": "stale_processing", "error": status.error}

        return {**base, "category": "resolved", "status": result.payout.status.value, "transition": result.outcome.value}

    # ==========================================================
    # Stuck PENDING gateway payouts
    # ==========================================================

    def _report_stuck_pending(self, run_at: datetime, summary: dict[str, Any], items: list[dict[str, Any]]) -> None:
        cutoff = run_at - timedelta(minutes=self.processing_sla_minutes)
        for payout in self.store.list_stuck_gateway_pending(updated_before=cutoff, limit=self.batch_size):
            summary["stuck_pending"] += 1
            logger.warning("payout_stuck_pending payout_id=%s partner_id=%s", payout.id, payout.partner_id)
            items.append(
                {
                    "category": "stuck_pending",
                    "payout_id": str(payout.id),
                    "partner_id": payout.partner_id,
                    "amount_cents": payout.amount_cents,
                    "updated_at": payout.updated_at.isoformat() if payout.updated_at else None,
                }
            )

    # ==========================================================
    # Receipt replay
    # ==========================================================


    def _replay_receipts(self, run_at: datetime, summary: dict[str, Any], items: list[dict[str, Any]]) -> None:
        receipts = self.event_log.list_replayable(
            received_before=run_at - timedelta(seconds=self.receipt_replay_after_s),
            max_attempts=self.receipt_max_attempts,
            limit=self.batch_size,
        )
        for receipt in receipts:
            result = self.intake.replay(receipt)
            if result.outcome == "deferred":
                summary["receipts_failed"] += 1
            else:
                summary["receipts_replayed"] += 1
            items.append(
                {
                    "category": "receipt_replay",
                    "receipt_id": receipt.id,
                    "event_id": receipt.event_id,
                    "outcome": result.outcome,
                    "reason": result.reason,
                }
            )
