# app/partners/accounts.py
from __future__ import annotations

from typing import Protocol

from app.payouts.errors import PartnerNotFound
from db import Database


class PartnerAccounts(Protocol):
    def link_account(self, partner_id: str, account_id: str) -> str: ...


class PgPartnerAccounts:
    """Writes the partner's connected gateway account; reads go through the ledger."""

    def __init__(self, db: Database):
        self.db = db

    def link_account(self, partner_id: str, account_id: str) -> str:
        """
        Store `account_id` unless the partner already has one, and return the
        account that is linked afterwards. First writer wins.
        """
        with self.db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE app.partners
                    SET gateway_account_id = COALESCE(NULLIF(gateway_account_id, ''), %s)
                    WHERE id = %s
                    RETURNING gateway_account_id
                    """,
                    (account_id, partner_id),
                )
                row = cur.fetchone()
        if not row:
            raise PartnerNotFound(partner_id)
        return row[0]
