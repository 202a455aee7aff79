from __future__ import annotations

from dataclasses import dataclass

from app.payouts.model import PayoutMethod


@dataclass(frozen=True)
class FeeBreakdown:
    gross_cents: int
    platform_fee_cents: int
    gateway_fee_cents: int

    @property
    def fee_cents(self) -> int:
        return self.platform_fee_cents + self.gateway_fee_cents

    @property
    def net_cents(self) -> int:
        return self.gross_cents - self.fee_cents


def compute_fees(
    amount_cents: int,
    method: PayoutMethod,
    *,
    platform_fee_bps: int,
    gateway_fee_cents: int,
) -> FeeBreakdown:
    """
    Platform fee is a basis-point share of the gross amount (half-up rounding);
    the flat gateway fee applies to gateway payouts only. Fees never exceed
    the gross amount, so net is never negative.
    """
    amount = max(0, int(amount_cents))
    platform = (amount * platform_fee_bps + 5000) // 10000
    gateway = gateway_fee_cents if method == PayoutMethod.GATEWAY else 0

    platform = min(platform, amount)
    gateway = min(gateway, amount - platform)
    return FeeBreakdown(gross_cents=amount, platform_fee_cents=platform, gateway_fee_cents=gateway)
