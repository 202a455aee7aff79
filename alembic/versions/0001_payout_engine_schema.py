"""payout engine schema

Revision ID: 0001_payout_engine_schema
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from __future__ import annotations

from pathlib import Path

from alembic import op


revision = "0001_payout_engine_schema"
down_revision = None
branch_labels = None
depends_on = None


def _load_schema_sql() -> str:
    root = Path(__file__).resolve().parents[2]
    return (root / "sql" / "schema_v1.sql").read_text(encoding="utf-8")


def upgrade() -> None:
    op.execute(_load_schema_sql())


def downgrade() -> None:
    for table in (
        "reconcile_reports",
        "audit_log",
        "webhook_receipts",
        "processed_gateway_events",
        "payouts",
        "commissions",
        "partners",
    ):
        op.execute(f"DROP TABLE IF EXISTS app.{table};")
