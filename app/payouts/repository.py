# app/payouts/repository.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol
from uuid import UUID

from psycopg2 import errors as pg_errors
from psycopg2.extras import RealDictCursor

from app.ledger.accessor import read_partner_balance
from app.payouts.errors import PayoutRejected, RejectionReason
from app.payouts.model import (
    IN_FLIGHT_STATUSES,
    NewPayout,
    Payout,
    PayoutMethod,
    PayoutStatus,
    PayoutSummary,
)
from db import Database


_IN_FLIGHT = tuple(sorted(s.value for s in IN_FLIGHT_STATUSES))

_COLUMNS = """
  id, partner_id, amount_cents, fee_cents, method, status,
  external_ref, requested_at, processed_at, failure_reason, version, updated_at
"""


class PayoutStore(Protocol):
    def create_pending(self, draft: NewPayout) -> Payout: ...
    def get(self, payout_id: UUID) -> Optional[Payout]: ...
    def get_by_external_ref(self, external_ref: str) -> Optional[Payout]: ...
    def find_in_flight(self, partner_id: str) -> Optional[Payout]: ...

    def compare_and_set(
        self,
        payout_id: UUID,
        expected_version: int,
        *,
        status: PayoutStatus,
        external_ref: Optional[str] = None,
        failure_reason: Optional[str] = None,
        processed_at: Optional[datetime] = None,
    ) -> Optional[Payout]: ...

    def list_payouts(
        self,
        *,
        partner_id: Optional[str] = None,
        status: Optional[PayoutStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Payout]: ...

    def list_stale_processing(self, *, updated_before: datetime, limit: int) -> list[Payout]: ...
    def list_stuck_gateway_pending(self, *, updated_before: datetime, limit: int) -> list[Payout]: ...
    def partner_summary(self, partner_id: str) -> PayoutSummary: ...


def _row_to_payout(row: dict[str, Any]) -> Payout:
    return Payout(
        id=row["id"] if isinstance(row["id"], UUID) else UUID(str(row["id"])),
        partner_id=str(row["partner_id"]),
        amount_cents=int(row["amount_cents"]),
        fee_cents=int(row["fee_cents"]),
        method=PayoutMethod(row["method"]),
        status=PayoutStatus(row["status"]),
        external_ref=row.get("external_ref"),
        requested_at=row["requested_at"],
        processed_at=row.get("processed_at"),
        failure_reason=row.get("failure_reason"),
        version=int(row["version"]),
        updated_at=row.get("updated_at"),
    )


class PgPayoutStore:
    """
    Payout rows in app.payouts.

    Status only changes through compare_and_set, which is guarded by
    (id, version) and refuses rows that are already terminal.
    """

    def __init__(self, db: Database):
        self.db = db

    # ==========================================================
    # Creation
    # ==========================================================

    def create_pending(self, draft: NewPayout) -> Payout:
        """
        Insert a PENDING payout after re-checking the in-flight rule and the
        available balance under a per-partner transaction lock.
        """
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    "SELECT pg_advisory_xact_lock(hashtext(%s));",
                    (f"payout:{draft.partner_id}",),
                )

                cur.execute(
                    "SELECT 1 FROM app.payouts WHERE partner_id = %s AND status IN %s LIMIT 1",
                    (draft.partner_id, _IN_FLIGHT),
                )
                if cur.fetchone():
                    raise PayoutRejected(RejectionReason.PAYOUT_IN_FLIGHT)

                balance = read_partner_balance(cur, draft.partner_id)
                if draft.amount_cents > balance["available_cents"]:
                    raise PayoutRejected(RejectionReason.INSUFFICIENT_BALANCE)

                try:
                    cur.execute(
                        f"""
                        INSERT INTO app.payouts (
                          id, partner_id, amount_cents, fee_cents, method, status, version
                        )
                        VALUES (gen_random_uuid(), %s, %s, %s, %s, 'PENDING', 1)
                        RETURNING {_COLUMNS}
                        """,
                        (draft.partner_id, draft.amount_cents, draft.fee_cents, draft.method.value),
                    )
                except pg_errors.UniqueViolation:
                    # partial unique index on in-flight payouts per partner
                    raise PayoutRejected(RejectionReason.PAYOUT_IN_FLIGHT)

                return _row_to_payout(cur.fetchone())

    # ==========================================================
    # Reads
    # ==========================================================

    def _fetch_one(self, where_sql: str, params: tuple) -> Optional[Payout]:
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM app.payouts WHERE {where_sql} LIMIT 1", params)
                row = cur.fetchone()
        return _row_to_payout(row) if row else None

    def get(self, payout_id: UUID) -> Optional[Payout]:
        return self._fetch_one("id = %s", (payout_id,))

    def get_by_external_ref(self, external_ref: str) -> Optional[Payout]:
        return self._fetch_one("external_ref = %s", (external_ref,))

    def find_in_flight(self, partner_id: str) -> Optional[Payout]:
        return self._fetch_one("partner_id = %s AND status IN %s", (partner_id, _IN_FLIGHT))

    def list_payouts(
        self,
        *,
        partner_id: Optional[str] = None,
        status: Optional[PayoutStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Payout]:
        where = []
        params: list[Any] = []
        if partner_id:
            where.append("partner_id = %s")
            params.append(partner_id)
        if status:
            where.append("status = %s")
            params.append(status.value)
        where_sql = ("WHERE " + " AND ".join(where)) if where else ""
        params.extend([max(1, min(int(limit), 200)), max(0, int(offset))])

        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM app.payouts
                    {where_sql}
                    ORDER BY requested_at DESC, id DESC
                    LIMIT %s OFFSET %s
                    """,
                    tuple(params),
                )
                rows = cur.fetchall()
        return [_row_to_payout(r) for r in rows]

    def list_stale_processing(self, *, updated_before: datetime, limit: int) -> list[Payout]:
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM app.payouts
                    WHERE status = 'PROCESSING'
                      AND updated_at <= %s
                    ORDER BY updated_at ASC
                    LIMIT %s
                    """,
                    (updated_before, limit),
                )
                rows = cur.fetchall()
        return [_row_to_payout(r) for r in rows]

    def list_stuck_gateway_pending(self, *, updated_before: datetime, limit: int) -> list[Payout]:
        # gateway payouts leave PENDING within the request; one that stays is
        # waiting on an operator
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM app.payouts
                    WHERE status = 'PENDING'
                      AND method = %s
                      AND updated_at <= %s
                    ORDER BY updated_at ASC
                    LIMIT %s
                    """,
                    (PayoutMethod.GATEWAY.value, updated_before, limit),
                )
                rows = cur.fetchall()
        return [_row_to_payout(r) for r in rows]

    def partner_summary(self, partner_id: str) -> PayoutSummary:
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT
                      COALESCE(SUM(net_cents) FILTER (WHERE status = 'COMPLETED'), 0)::bigint AS paid,
                      COALESCE(SUM(net_cents) FILTER (WHERE status = 'PENDING'), 0)::bigint AS pending,
                      COALESCE(SUM(net_cents) FILTER (WHERE status = 'PROCESSING'), 0)::bigint AS processing,
                      COUNT(*) FILTER (WHERE status = 'COMPLETED')::int AS completed_count,
                      MAX(processed_at) FILTER (WHERE status = 'COMPLETED') AS last_payout_at
                    FROM app.payouts
                    WHERE partner_id = %s
                    """,
                    (partner_id,),
                )
                row = cur.fetchone() or {}
        return PayoutSummary(
            total_paid_cents=int(row.get("paid") or 0),
            total_pending_cents=int(row.get("pending") or 0),
            total_processing_cents=int(row.get("processing") or 0),
            completed_count=int(row.get("completed_count") or 0),
            last_payout_at=row.get("last_payout_at"),
        )

    # ==========================================================
    # Conditional update
    # ==========================================================

    def compare_and_set(
        self,
        payout_id: UUID,
        expected_version: int,
        *,
        status: PayoutStatus,
        external_ref: Optional[str] = None,
        failure_reason: Optional[str] = None,
        processed_at: Optional[datetime] = None,
    ) -> Optional[Payout]:
        """
        Apply one transition if the stored version still equals expected_version.
        Returns the updated payout, or None when the row moved on.
        """
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    UPDATE app.payouts
                    SET
                      status = %s,
                      external_ref = COALESCE(%s, external_ref),
                      failure_reason = %s,
                      processed_at = COALESCE(processed_at, %s),
                      version = version + 1,
                      updated_at = now()
                    WHERE id = %s
                      AND version = %s
                      AND status IN %s
                    RETURNING {_COLUMNS}
                    """,
                    (
                        status.value,
                        external_ref,
                        failure_reason,
                        processed_at,
                        payout_id,
                        expected_version,
                        _IN_FLIGHT,
                    ),
                )
                row = cur.fetchone()
        return _row_to_payout(row) if row else None
