import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

TRACE_HEADER = "X-Trace-ID"
# Matches audit_events.trace_id.
MAX_TRACE_ID_LENGTH = 100


def resolve_trace_id(raw: str | None) -> str:
    trace_id = (raw or "").strip()[:MAX_TRACE_ID_LENGTH]
    return trace_id or str(uuid.uuid4())


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = resolve_trace_id(request.headers.get(TRACE_HEADER))
        request.state.trace_id = trace_id
        response: Response = await call_next(request)
        response.headers[TRACE_HEADER] = trace_id
        return response
