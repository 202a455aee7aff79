import logging

from services.redaction import redact_dict, redact_headers, redact_text


def test_redact_text_masks_email_and_secrets():
    text = "partner jane.doe@example.com key sk_live_abc123 hook whsec_xyz789"
    redacted = redact_text(text)
    assert "jane.doe@example.com" not in redacted
    assert "j***@example.com" in redacted
    assert "sk_live_abc123" not in redacted
    assert "whsec_xyz789" not in redacted


def test_redact_text_bearer_wipes_everything():
    assert redact_text("token Bearer abcdef") == "[REDACTED]"


def test_redact_text_masks_connected_account():
    assert redact_text("destination acct_1NvXq2ABCD9876") == "destination acct_***9876"


def test_redact_dict_masks_sensitive_keys():
    payload = {
        "email": "jane.doe@example.com",
        "access_token": "abc",
        "Stripe-Signature": "t=1,v1=deadbeef",
        "nested": {"api_key": "k", "destination": "acct_1234567890"},
        "amount_cents": 4925,
    }
    redacted = redact_dict(payload)
    assert redacted["email"] == "j***@example.com"
    assert redacted["access_token"] == "[REDACTED]"
    assert redacted["Stripe-Signature"] == "[REDACTED]"
    assert redacted["nested"] == {"api_key": "[REDACTED]", "destination": "acct_***7890"}
    assert redacted["amount_cents"] == 4925


def test_redact_headers():
    headers = {"authorization": "Bearer x", "cookie": "s=1", "user-agent": "pytest"}
    assert redact_headers(headers) == {"authorization": "[REDACTED]", "cookie": "[REDACTED]", "user-agent": "pytest"}


def test_log_line_uses_redaction_helper(caplog):
    logger = logging.getLogger("redaction-test")
    caplog.set_level(logging.INFO)
    logger.info("payload=%s", redact_text("email jane.doe@example.com key sk_test_123"))
    assert "jane.doe@example.com" not in caplog.text
    assert "sk_test_123" not in caplog.text
