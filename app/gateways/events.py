# app/gateways/events.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional


class MalformedEvent(ValueError):
    pass


@dataclass(frozen=True)
class GatewayEvent:
    event_id: str
    event_type: str
    external_ref: Optional[str]
    payout_id_hint: Optional[str]
    occurred_at: Optional[datetime]
    raw: dict[str, Any] = field(repr=False, compare=False)

    kind: ClassVar[str] = "unknown"


@dataclass(frozen=True)
class PaidEvent(GatewayEvent):
    kind: ClassVar[str] = "paid"


@dataclass(frozen=True)
class FailedEvent(GatewayEvent):
    failure_message: Optional[str] = None

    kind: ClassVar[str] = "failed"


@dataclass(frozen=True)
class CanceledEvent(GatewayEvent):
    failure_message: Optional[str] = None

    kind: ClassVar[str] = "canceled"


@dataclass(frozen=True)
class UnknownEvent(GatewayEvent):
    pass


_KINDS = {
    "payout.paid": PaidEvent,
    "payout.failed": FailedEvent,
    "payout.canceled": CanceledEvent,
}

# metadata keys that carry our payout id on the gateway object
_HINT_KEYS = ("internal_payout_id", "internalPayoutId", "payout_id")


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _occurred_at(created: Any) -> Optional[datetime]:
    if isinstance(created, bool) or not isinstance(created, (int, float)):
        return None
    return datetime.fromtimestamp(created, tz=timezone.utc)


def parse_stripe_event(body: bytes | str | dict[str, Any]) -> GatewayEvent:
    """
    Parse a Stripe event envelope into one of the tagged event variants.
    Raises MalformedEvent when the body is not an event at all.
    """
    if isinstance(body, (bytes, str)):
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedEvent(f"invalid JSON: {exc}") from exc
    else:
        payload = body

    if not isinstance(payload, dict):
        raise MalformedEvent("event must be a JSON object")

    event_id = _clean(payload.get("id"))
    event_type = _clean(payload.get("type"))
    if not event_id or not event_type:
        raise MalformedEvent("event id and type are required")

    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    obj = data.get("object") if isinstance(data.get("object"), dict) else {}
    metadata = obj.get("metadata") if isinstance(obj.get("metadata"), dict) else {}

    hint = next((_clean(metadata.get(k)) for k in _HINT_KEYS if _clean(metadata.get(k))), None)

    common = dict(
        event_id=event_id,
        event_type=event_type,
        external_ref=_clean(obj.get("id")),
        payout_id_hint=hint,
        occurred_at=_occurred_at(payload.get("created")),
        raw=payload,
    )

    cls = _KINDS.get(event_type)
    if cls is None:
        return UnknownEvent(**common)
    if cls is PaidEvent:
        return PaidEvent(**common)
    return cls(**common, failure_message=_clean(obj.get("failure_message")))
