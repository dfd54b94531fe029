import uuid
from contextvars import ContextVar
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64

_request_id_ctx: ContextVar[str | None] = ContextVar("court_request_id", default=None)


def generate_request_id() -> str:
    return uuid.uuid4().hex


def resolve_request_id(incoming: str | None) -> str:
    """Reuse a caller-supplied id when it is usable, otherwise mint one."""
    candidate = (incoming or "").strip()
    if not candidate or len(candidate) > MAX_REQUEST_ID_LENGTH:
        return generate_request_id()
    return candidate


def set_request_id(request_id: str | None) -> None:
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    """Id of the request being served, picked up by audit entries."""
    return _request_id_ctx.get()
