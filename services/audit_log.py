from __future__ import annotations

from typing import Any, Optional, Protocol

from psycopg2.extras import Json, RealDictCursor

from db import Database


class AuditLog(Protocol):
    def record(
        self,
        *,
        actor_id: str,
        action: str,
        payout_id: str | None,
        metadata: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> None: ...

    def list_events(self, *, payout_id: Optional[str] = None, limit: int = 50) -> list[dict[str, Any]]: ...


def write_audit_log(
    cur,
    *,
    actor_id: str,
    action: str,
    payout_id: str | None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> None:
    cur.execute(
        """
        INSERT INTO app.audit_log (actor_id, action, payout_id, metadata, request_id)
        VALUES (%s, %s, %s::uuid, %s::jsonb, %s);
        """,
        (
            actor_id,
            action,
            payout_id,
            Json(metadata or {}),
            request_id,
        ),
    )


class PgAuditLog:
    def __init__(self, db: Database):
        self.db = db

    def record(
        self,
        *,
        actor_id: str,
        action: str,
        payout_id: str | None,
        metadata: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> None:
        with self.db.connection() as conn:
            with conn.cursor() as cur:
                write_audit_log(
                    cur,
                    actor_id=actor_id,
                    action=action,
                    payout_id=payout_id,
                    metadata=metadata,
                    request_id=request_id,
                )

    def list_events(self, *, payout_id: Optional[str] = None, limit: int = 50) -> list[dict[str, Any]]:
        where_sql = "WHERE payout_id = %s::uuid" if payout_id else ""
        params: list[Any] = [payout_id] if payout_id else []
        params.append(max(1, min(int(limit), 200)))

        with self.db.connection() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT
                      id::text AS id,
                      created_at,
                      actor_id,
                      action,
                      payout_id::text AS payout_id,
                      metadata,
                      request_id
                    FROM app.audit_log
                    {where_sql}
                    ORDER BY created_at DESC, id DESC
                    LIMIT %s
                    """,
                    params,
                )
                rows = cur.fetchall() or []

        return [
            {
                "id": row["id"],
                "created_at": row["created_at"].isoformat() if row.get("created_at") else None,
                "actor_id": row["actor_id"],
                "action": row["action"],
                "payout_id": row["payout_id"],
                "metadata": row.get("metadata") or {},
                "request_id": row.get("request_id"),
            }
            for row in rows
        ]
