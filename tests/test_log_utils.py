import logging

from app.core.log_utils import RedactingFilter, mask_email, mask_uid, redact


def test_redact_nested_payload():
    payload = {
        "slot": 4,
        "email": "budi@nitip.id",
        "user": {"uid": "abc12345", "name": "Budi"},
        "events": [{"token": "t0k3n"}],
    }

    cleaned = redact(payload)

    assert cleaned["slot"] == 4
    assert cleaned["email"] == "[REDACTED]"
    assert cleaned["user"] == {"uid": "[REDACTED]", "name": "Budi"}
    assert cleaned["events"] == [{"token": "[REDACTED]"}]
    # original untouched
    assert payload["email"] == "budi@nitip.id"


def test_mask_email():
    assert mask_email("budi@nitip.id") == "b**i@nitip.id"
    assert mask_email("bu@nitip.id") == "bu@nitip.id"
    assert mask_email(None) == "[NO EMAIL]"


def test_mask_uid():
    assert mask_uid("0123456789abcdef") == "0123...cdef"
    assert mask_uid("short") == "[INVALID UID]"


def test_filter_scrubs_dict_arguments():
    record = logging.LogRecord(
        "test",
        logging.ERROR,
        __file__,
        1,
        "lookup failed: %s",
        ({"email": "budi@nitip.id", "code": "ABC123"},),
        None,
    )

    assert RedactingFilter().filter(record)
    message = record.getMessage()
    assert "budi@nitip.id" not in message
    assert "ABC123" in message
