# app/gateways/factory.py
from __future__ import annotations

import httpx

from app.gateways.base import PayoutGateway


class GatewayConfigError(RuntimeError):
    pass


def build_gateway(s, *, client: httpx.Client | None = None) -> PayoutGateway:
    mode = (s.GATEWAY_MODE or "sandbox").strip().lower()

    if mode == "sandbox":
        from app.gateways.mock import MockGateway
        return MockGateway()

    if mode == "live":
        if not (s.STRIPE_SECRET_KEY or "").strip():
            raise GatewayConfigError("STRIPE_SECRET_KEY is required when GATEWAY_MODE=live")
        from app.gateways.stripe_connect import StripeConnectGateway
        return StripeConnectGateway(
            secret_key=s.STRIPE_SECRET_KEY,
            api_base=s.STRIPE_API_BASE,
            timeout_s=s.GATEWAY_HTTP_TIMEOUT_S,
            client=client,
        )

    raise GatewayConfigError(f"Unsupported GATEWAY_MODE: {s.GATEWAY_MODE}")
