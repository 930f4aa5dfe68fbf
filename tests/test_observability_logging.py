import json
import logging
from types import SimpleNamespace

from starlette.requests import Request
from starlette.responses import Response

from app.invcount.core.db_timing import QueryStats
from app.invcount.core.logging import log_json
from app.invcount.middleware.observability import build_request_log_payload


def test_build_request_log_payload():
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/invcount/count-sessions/abc/actions",
        "headers": [],
        "route": SimpleNamespace(path="/invcount/count-sessions/{session_id}/actions"),
        "path_params": {"session_id": "abc"},
    }
    request = Request(scope)
    request.state.trace_id = "trace-1"
    request.state.actor = "counter-1"
    request.state.error_code = "ITEMS_UNRESOLVED"
    response = Response(status_code=409)

    payload = build_request_log_payload(
        request=request,
        response=response,
        latency_ms=12.3456,
        query_stats=QueryStats(elapsed_ms=4.5678, statements=3),
    )

    assert payload["event"] == "http_request"
    assert payload["trace_id"] == "trace-1"
    assert payload["actor"] == "counter-1"
    assert payload["session_id"] == "abc"
    assert payload["route"] == "/invcount/count-sessions/{session_id}/actions"
    assert payload["method"] == "POST"
    assert payload["status_code"] == 409
    assert payload["latency_ms"] == 12.35
    assert payload["db_time_ms"] == 4.57
    assert payload["db_statements"] == 3
    assert payload["error_code"] == "ITEMS_UNRESOLVED"


def test_payload_without_route_or_response():
    request = Request({"type": "http", "method": "GET", "path": "/missing", "headers": []})

    payload = build_request_log_payload(request=request, response=None, latency_ms=1.0, query_stats=None)

    assert payload["route"] == "/missing"
    assert payload["status_code"] == 500
    assert payload["actor"] is None
    assert payload["session_id"] is None
    assert payload["db_time_ms"] is None


def test_log_json_writes_one_json_line(caplog):
    logger = logging.getLogger("invcount.test")
    with caplog.at_level(logging.INFO, logger="invcount.test"):
        log_json(logger, {"event": "count_session_started", "total_items": 4})

    assert json.loads(caplog.records[-1].getMessage()) == {"event": "count_session_started", "total_items": 4}
