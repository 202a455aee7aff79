#app/webhooks/repository.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol
from uuid import UUID

from psycopg2.extras import Json, RealDictCursor

from db import Database


class ReceiptStatus:
    RECEIVED = "RECEIVED"
    APPLIED = "APPLIED"
    DUPLICATE = "DUPLICATE"
    IGNORED = "IGNORED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ProcessedEvent:
    event_id: str
    applied: bool
    payout_id: Optional[UUID]
    outcome: str
    processed_at: datetime


@dataclass(frozen=True)
class WebhookReceipt:
    id: int
    event_id: str
    event_type: str
    external_ref: Optional[str]
    payload: dict[str, Any]
    status: str
    reason: Optional[str]
    attempts: int
    received_at: datetime


class EventLog(Protocol):
    def get_processed(self, event_id: str) -> Optional[ProcessedEvent]: ...

    def mark_processed(
        self,
        event_id: str,
        *,
        applied: bool,
        outcome: str,
        payout_id: Optional[UUID] = None,
    ) -> None: ...

    def purge_processed(self, *, older_than: datetime) -> int: ...

    def record_receipt(
        self,
        *,
        event_id: str,
        event_type: str,
        external_ref: Optional[str],
        payload: dict[str, Any],
        request_id: Optional[str] = None,
    ) -> int: ...

    def finish_receipt(
        self,
        receipt_id: int,
        *,
        status: str,
        reason: Optional[str] = None,
        payout_id: Optional[UUID] = None,
    ) -> None: ...

    def list_replayable(self, *, received_before: datetime, max_attempts: int, limit: int) -> list[WebhookReceipt]: ...


class PgEventLog:
    """
    app.processed_gateway_events (dedup) and app.webhook_receipts (durable
    record of every signature-valid delivery).
    """

    def __init__(self, db: Database):
        self.db = db

    # ==========================================================
    # Processed events
    # ==========================================================

    def get_processed(self, event_id: str) -> Optional[ProcessedEvent]:
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT event_id, applied, payout_id, outcome, processed_at
                    FROM app.processed_gateway_events
                    WHERE event_id = %s
                    """,
                    (event_id,),
                )
                row = cur.fetchone()
        if not row:
            return None
        return ProcessedEvent(
            event_id=row["event_id"],
            applied=bool(row["applied"]),
            payout_id=row["payout_id"],
            outcome=row["outcome"],
            processed_at=row["processed_at"],
        )

    def mark_processed(
        self,
        event_id: str,
        *,
        applied: bool,
        outcome: str,
        payout_id: Optional[UUID] = None,
    ) -> None:
        # an applied record is never downgraded by a later ignored redelivery
        with self.db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.processed_gateway_events (event_id, applied, payout_id, outcome)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (event_id) DO UPDATE
                    SET applied = app.processed_gateway_events.applied OR EXCLUDED.applied,
                        payout_id = COALESCE(EXCLUDED.payout_id, app.processed_gateway_events.payout_id),
                        outcome = CASE
                          WHEN app.processed_gateway_events.applied THEN app.processed_gateway_events.outcome
                          ELSE EXCLUDED.outcome
                        END,
                        processed_at = now()
                    """,
                    (event_id, applied, payout_id, outcome),
                )

    def purge_processed(self, *, older_than: datetime) -> int:
        with self.db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM app.processed_gateway_events WHERE processed_at < %s",
                    (older_than,),
                )
                return int(cur.rowcount or 0)

    # ==========================================================
    # Receipts
    # ==========================================================

    def record_receipt(
        self,
        *,
        event_id: str,
        event_type: str,
        external_ref: Optional[str],
        payload: dict[str, Any],
        request_id: Optional[str] = None,
    ) -> int:
        with self.db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.webhook_receipts (
                      event_id, event_type, external_ref, payload, request_id, status
                    )
                    VALUES (%s, %s, %s, %s, %s, 'RECEIVED')
                    RETURNING id
                    """,
                    (event_id, event_type, external_ref, Json(payload), request_id),
                )
                row = cur.fetchone()
                assert row and row[0], "record_receipt: missing id"
                return int(row[0])

    def finish_receipt(
        self,
        receipt_id: int,
        *,
        status: str,
        reason: Optional[str] = None,
        payout_id: Optional[UUID] = None,
    ) -> None:
        with self.db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE app.webhook_receipts
                    SET status = %s,
                        reason = %s,
                        payout_id = COALESCE(%s, payout_id),
                        attempts = attempts + 1,
                        updated_at = now()
                    WHERE id = %s
                    """,
                    (status, reason, payout_id, receipt_id),
                )

    def list_replayable(self, *, received_before: datetime, max_attempts: int, limit: int) -> list[WebhookReceipt]:
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT id, event_id, event_type, external_ref, payload, status, reason, attempts, received_at
                    FROM app.webhook_receipts
                    WHERE status IN ('RECEIVED', 'ERROR')
                      AND received_at <= %s
                      AND attempts < %s
                    ORDER BY received_at ASC
                    LIMIT %s
                    """,
                    (received_before, max_attempts, limit),
                )
                rows = cur.fetchall()
        return [
            WebhookReceipt(
                id=int(r["id"]),
                event_id=r["event_id"],
                event_type=r["event_type"],
                external_ref=r["external_ref"],
                payload=r["payload"] or {},
                status=r["status"],
                reason=r["reason"],
                attempts=int(r["attempts"] or 0),
                received_at=r["received_at"],
            )
            for r in rows
        ]
