"""
Tests for log redaction.
"""

from app.core.logging import redact_sensitive


def test_redacts_contact_details_and_tokens():
    event = redact_sensitive(
        None,
        "info",
        {
            "event": "booking_created",
            "booking_id": 7,
            "contact_details": {"phone": "+91 98765 43210"},
            "token": "eyJ...",
        },
    )

    assert event["contact_details"] == "***"
    assert event["token"] == "***"
    assert event["booking_id"] == 7
    assert event["event"] == "booking_created"
