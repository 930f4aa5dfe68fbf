from dataclasses import dataclass

from fastapi import Request


@dataclass(frozen=True)
class RequestContext:
    actor: str | None
    trace_id: str


def get_request_context(request: Request) -> RequestContext:
    context = getattr(request.state, "context", None)
    if isinstance(context, RequestContext):
        return context
    return RequestContext(
        actor=getattr(request.state, "actor", None),
        trace_id=getattr(request.state, "trace_id", ""),
    )
