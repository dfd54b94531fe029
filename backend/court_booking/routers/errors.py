import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

from ..domain.errors import (
    AllocationInconsistency,
    BookingError,
    ConflictError,
    GateError,
    NotFoundError,
    StateError,
    ValidationError,
)
from ..utils.audit_log import AuditInitiator, AuditLogError
from .audit import record_inconsistency

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: list[tuple[type[BookingError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (GateError, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (StateError, status.HTTP_409_CONFLICT),
    (AllocationInconsistency, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def http_error(exc: BookingError) -> HTTPException:
    """Map a domain rejection to an HTTP error whose detail carries reason and payload."""
    code = next((code for cls, code in STATUS_BY_ERROR if isinstance(exc, cls)), status.HTTP_400_BAD_REQUEST)
    if code >= 500:
        logger.error("%s: %s %s", exc.reason, exc.message, exc.detail)
    return HTTPException(status_code=code, detail=exc.to_payload())


def audit_failure() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log")


def storage_conflict() -> HTTPException:
    return http_error(
        ConflictError(
            "The requested hours were taken by another request",
            reason="slot-conflict",
            detail={"sources": ["storage-unique-key"]},
        )
    )


@contextmanager
def translate_errors(*, initiator: AuditInitiator, actor_id: int | None) -> Iterator[None]:
    """Turn domain rejections, storage conflicts and audit failures into HTTP errors."""
    try:
        yield
    except AllocationInconsistency as exc:
        record_inconsistency(exc, initiator=initiator, actor_id=actor_id)
        raise http_error(exc) from exc
    except BookingError as exc:
        raise http_error(exc) from exc
    except IntegrityError as exc:
        logger.warning("storage conflict: %s", exc.orig)
        raise storage_conflict() from exc
    except AuditLogError as exc:
        logger.error("audit log failure: %s", exc)
        raise audit_failure() from exc
