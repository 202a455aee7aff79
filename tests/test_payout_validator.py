from __future__ import annotations

import pytest

from app.payouts.errors import PartnerNotFound, PayoutRejected, RejectionReason
from app.payouts.model import NewPayout, PayoutMethod


def _reason(container, partner_id, amount):
    return container.validator.validate(partner_id, amount).reason


def test_accepts_amount_within_balance(container, partner_id):
    verdict = container.validator.validate(partner_id, 5000)
    assert verdict.ok
    assert verdict.reason is None
    verdict.raise_if_rejected()


def test_non_positive_amount_is_invalid(container, partner_id):
    assert _reason(container, partner_id, 0) == RejectionReason.INVALID_AMOUNT
    assert _reason(container, partner_id, -100) == RejectionReason.INVALID_AMOUNT


def test_invalid_amount_checked_before_partner_lookup(container):
    # no ledger lookup happens for a non-positive amount
    assert _reason(container, "nobody", 0) == RejectionReason.INVALID_AMOUNT


def test_in_flight_payout_blocks_new_request(container, partner_id):
    container.machine.create(NewPayout(partner_id=partner_id, amount_cents=2000, fee_cents=0, method=PayoutMethod.MANUAL))
    assert _reason(container, partner_id, 1000) == RejectionReason.PAYOUT_IN_FLIGHT


def test_balance_checked_before_minimum(container, ledger):
    pid = ledger.add_partner("p-small", earned_cents=500)
    # 800 is below the minimum AND above the balance; balance wins
    assert _reason(container, pid, 800) == RejectionReason.INSUFFICIENT_BALANCE


def test_below_minimum(container, partner_id):
    assert _reason(container, partner_id, 999) == RejectionReason.BELOW_MINIMUM
    assert container.validator.validate(partner_id, 1000).ok


def test_exact_balance_is_allowed(container, partner_id):
    assert container.validator.validate(partner_id, 10_000).ok
    assert _reason(container, partner_id, 10_001) == RejectionReason.INSUFFICIENT_BALANCE


def test_unknown_partner_raises(container):
    with pytest.raises(PartnerNotFound):
        container.validator.validate("missing-partner", 5000)


def test_raise_if_rejected_carries_reason(container, partner_id):
    verdict = container.validator.validate(partner_id, 10)
    with pytest.raises(PayoutRejected) as exc:
        verdict.raise_if_rejected()
    assert exc.value.code == "BELOW_MINIMUM"
    assert exc.value.reason == RejectionReason.BELOW_MINIMUM
