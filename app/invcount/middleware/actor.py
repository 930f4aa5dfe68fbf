from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.invcount.core.context import RequestContext
from app.invcount.core.deps import ACTOR_HEADER


class ActorContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        actor = (request.headers.get(ACTOR_HEADER) or "").strip() or None
        request.state.actor = actor
        request.state.context = RequestContext(
            actor=actor,
            trace_id=getattr(request.state, "trace_id", ""),
        )
        return await call_next(request)
