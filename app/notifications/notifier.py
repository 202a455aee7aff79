# app/notifications/notifier.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Protocol

import httpx


logger = logging.getLogger("partner_payouts.notify")


class Notifier(Protocol):
    def notify(self, partner_id: str, event_kind: str, payload: dict[str, Any]) -> None: ...


class LogNotifier:
    """Default notifier: records the notification in the application log."""

    def notify(self, partner_id: str, event_kind: str, payload: dict[str, Any]) -> None:
        logger.info(
            "payout_notification partner_id=%s event=%s payout_id=%s",
            partner_id,
            event_kind,
            payload.get("payout_id"),
        )


class HttpNotifier:
    """
    Posts notifications to the portal's mailer endpoint.

    Delivery is best effort: HTTP errors are logged, never raised.
    """

    def __init__(self, url: str, *, timeout_s: float = 5.0, client: httpx.Client | None = None):
        self.url = url
        self._client = client or httpx.Client(timeout=timeout_s)

    def notify(self, partner_id: str, event_kind: str, payload: dict[str, Any]) -> None:
        body = {"partner_id": partner_id, "event": event_kind, "payload": payload}
        try:
            r = self._client.post(self.url, json=body)
        except httpx.HTTPError as exc:
            logger.warning("notification_failed partner_id=%s event=%s error=%s", partner_id, event_kind, exc)
            return
        if r.status_code >= 400:
            logger.warning(
                "notification_rejected partner_id=%s event=%s http_status=%s",
                partner_id,
                event_kind,
                r.status_code,
            )


class BackgroundNotifier:
    """
    Hands notifications to a small worker pool so a slow mailer never holds
    up a state transition. `close()` drains what is queued.
    """

    def __init__(self, inner: Notifier, *, max_workers: int = 2):
        self.inner = inner
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="payout-notify")

    def notify(self, partner_id: str, event_kind: str, payload: dict[str, Any]) -> None:
        try:
            self._pool.submit(self._deliver, partner_id, event_kind, payload)
        except RuntimeError:
            # pool already shut down during process exit
            logger.warning("notification_dropped partner_id=%s event=%s", partner_id, event_kind)

    def _deliver(self, partner_id: str, event_kind: str, payload: dict[str, Any]) -> None:
        try:
            self.inner.notify(partner_id, event_kind, payload)
        except Exception:
            logger.exception("notification_crashed partner_id=%s event=%s", partner_id, event_kind)

    def close(self, *, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
