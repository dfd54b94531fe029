import json
from decimal import Decimal
from typing import Any, List

import pytest
from court_booking.models import BookingStatus
from court_booking.utils import audit_log
from court_booking.utils.request_id import set_request_id


class DummyLogger:
    def __init__(self) -> None:
        self.messages: List[str] = []

    def info(self, message: str) -> None:
        self.messages.append(message)


def test_emit_audit_log_outputs_json(monkeypatch: pytest.MonkeyPatch) -> None:
    logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", logger)

    set_request_id("req-123")
    audit_log.emit_audit_log(
        action="booking.created",
        initiator="member",
        booking_id=1,
        member_id=4,
        status_to=BookingStatus.PENDING,
        amount=Decimal("390.00"),
        version=1,
        extra={"reallocated": True},
    )
    set_request_id(None)

    [message] = logger.messages
    payload = json.loads(message)
    assert payload["action"] == "booking.created"
    assert payload["initiator"] == "member"
    assert payload["request_id"] == "req-123"
    assert payload["status_to"] == "pending"
    assert payload["amount"] == "390.00"
    assert payload["reallocated"] is True
    assert "status_from" not in payload
    assert "timestamp" in payload


def test_no_show_status_is_hyphenated(monkeypatch: pytest.MonkeyPatch) -> None:
    logger = DummyLogger()
    monkeypatch.setattr(audit_log, "_audit_logger", logger)
    audit_log.emit_audit_log(
        action="booking.no_show",
        initiator="system",
        booking_id=2,
        status_from="pending",
        status_to=BookingStatus.NO_SHOW,
    )
    payload = json.loads(logger.messages[0])
    assert (payload["status_from"], payload["status_to"]) == ("pending", "no-show")


def test_emit_audit_log_raises_on_logger_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    class FailingLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    monkeypatch.setattr(audit_log, "_audit_logger", FailingLogger())

    with pytest.raises(audit_log.AuditLogError):
        audit_log.emit_audit_log(
            action="booking.cancelled",
            initiator="member",
            booking_id=1,
            status_from=BookingStatus.PENDING,
            status_to=BookingStatus.CANCELLED,
            version=2,
        )
