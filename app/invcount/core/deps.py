from fastapi import Depends, Request

from app.invcount.core.context import RequestContext, get_request_context
from app.invcount.core.error_catalog import AppError, ErrorCatalog

ACTOR_HEADER = "X-Actor-Id"


def require_actor(context: RequestContext = Depends(get_request_context)) -> str:
    """Mutating calls must say who performed them; nothing is authenticated."""
    if not context.actor:
        raise AppError(ErrorCatalog.ACTOR_REQUIRED, details={"header": ACTOR_HEADER})
    return context.actor


def get_trace_id(request: Request) -> str | None:
    return getattr(request.state, "trace_id", "") or None


__all__ = [
    "ACTOR_HEADER",
    "get_request_context",
    "get_trace_id",
    "require_actor",
]
