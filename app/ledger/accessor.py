# app/ledger/accessor.py
from __future__ import annotations

from typing import Optional, Protocol

from psycopg2.extensions import cursor as Cursor
from psycopg2.extras import RealDictCursor

from app.payouts.errors import PartnerNotFound
from app.payouts.model import COMMITTED_STATUSES
from db import Database


_COMMITTED = tuple(sorted(s.value for s in COMMITTED_STATUSES))

_BALANCE_SQL = """
SELECT
  p.id,
  p.gateway_account_id,
  COALESCE((
    SELECT SUM(c.amount_cents)
    FROM app.commissions c
    WHERE c.partner_id = p.id
      AND c.status = 'CONFIRMED'
  ), 0)::bigint AS earned_cents,
  COALESCE((
    SELECT SUM(po.amount_cents)
    FROM app.payouts po
    WHERE po.partner_id = p.id
      AND po.status IN %s
  ), 0)::bigint AS committed_cents
FROM app.partners p
WHERE p.id = %s
"""


class Ledger(Protocol):
    def available_balance(self, partner_id: str) -> int: ...
    def payout_destination(self, partner_id: str) -> Optional[str]: ...


def read_partner_balance(cur: Cursor, partner_id: str) -> dict:
    """
    Earned-but-unpaid snapshot for one partner, read on the caller's cursor so
    payout creation can re-check it inside its own transaction.
    """
    cur.execute(_BALANCE_SQL, (_COMMITTED, partner_id))
    row = cur.fetchone()
    if not row:
        raise PartnerNotFound(partner_id)
    if not isinstance(row, dict):
        row = dict(zip([d[0] for d in cur.description], row))
    earned = int(row["earned_cents"] or 0)
    committed = int(row["committed_cents"] or 0)
    return {
        "partner_id": row["id"],
        "gateway_account_id": row["gateway_account_id"],
        "earned_cents": earned,
        "committed_cents": committed,
        "available_cents": max(0, earned - committed),
    }


class PgLedger:
    """Read-only view over confirmed commissions and committed payouts."""

    def __init__(self, db: Database):
        self.db = db

    def available_balance(self, partner_id: str) -> int:
        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                return read_partner_balance(cur, partner_id)["available_cents"]

    def payout_destination(self, partner_id: str) -> Optional[str]:
        with self.db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT gateway_account_id FROM app.partners WHERE id = %s", (partner_id,))
                row = cur.fetchone()
        if not row:
            raise PartnerNotFound(partner_id)
        return (row[0] or "").strip() or None
