from __future__ import annotations

import time

from app.gateways.signing import compute_signature, signature_header, verify_signature


SECRET = "whsec_unit"
RAW = b'{"id":"evt_1","type":"payout.paid"}'


def test_valid_signature():
    header = signature_header(SECRET, RAW)
    assert verify_signature(raw=RAW, signature_header=header, secret=SECRET) == (True, None)


def test_any_v1_entry_may_match():
    ts = int(time.time())
    header = f"t={ts},v1=deadbeef,v1={compute_signature(SECRET, ts, RAW)}"
    ok, err = verify_signature(raw=RAW, signature_header=header, secret=SECRET)
    assert ok, err


def test_wrong_secret_rejected():
    header = signature_header("whsec_other", RAW)
    assert verify_signature(raw=RAW, signature_header=header, secret=SECRET) == (False, "INVALID_SIGNATURE")


def test_tampered_body_rejected():
    header = signature_header(SECRET, RAW)
    ok, err = verify_signature(raw=RAW + b" ", signature_header=header, secret=SECRET)
    assert not ok
    assert err == "INVALID_SIGNATURE"


def test_old_timestamp_rejected():
    header = signature_header(SECRET, RAW, timestamp=1_000)
    ok, err = verify_signature(raw=RAW, signature_header=header, secret=SECRET, now=1_000 + 301)
    assert (ok, err) == (False, "TIMESTAMP_OUT_OF_TOLERANCE")

    ok, _ = verify_signature(raw=RAW, signature_header=header, secret=SECRET, now=1_000 + 299)
    assert ok


def test_missing_and_malformed_headers():
    assert verify_signature(raw=RAW, signature_header=None, secret=SECRET) == (False, "MISSING_SIGNATURE")
    assert verify_signature(raw=RAW, signature_header="v1=abc", secret=SECRET) == (False, "MALFORMED_SIGNATURE")
    assert verify_signature(raw=RAW, signature_header="t=abc,v1=x", secret=SECRET) == (False, "MALFORMED_SIGNATURE")


def test_unconfigured_secret():
    header = signature_header(SECRET, RAW)
    assert verify_signature(raw=RAW, signature_header=header, secret="") == (False, "WEBHOOK_SECRET_NOT_CONFIGURED")
