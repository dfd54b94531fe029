from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "booking.created",
    "booking.updated",
    "booking.cancelled",
    "booking.blocked",
    "booking.status_changed",
    "booking.no_show",
    "obligation.created",
    "obligation.cancelled",
    "allocation.inconsistent",
    "refund.triggered",
]
AuditInitiator = Literal["member", "admin", "system"]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


class AuditLogError(RuntimeError):
    """The audit trail could not be written."""


def _enum_to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    booking_id: Optional[int],
    member_id: Optional[int] = None,
    obligation_id: Optional[int] = None,
    status_from: Any = None,
    status_to: Any = None,
    amount: Optional[Decimal] = None,
    version: Optional[int] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises AuditLogError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "booking_id": booking_id,
        "member_id": member_id,
        "obligation_id": obligation_id,
        "status_from": _enum_to_str(status_from),
        "status_to": _enum_to_str(status_to),
        "amount": str(amount) if amount is not None else None,
        "version": version,
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True, default=str))
    except Exception as exc:
        raise AuditLogError("failed to emit audit log") from exc
