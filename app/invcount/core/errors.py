import logging
from decimal import Decimal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException

from app.invcount.core.error_catalog import AppError, ErrorCatalog, ErrorDefinition
from app.invcount.core.logging import log_json
from app.invcount.core.metrics import metrics

logger = logging.getLogger("invcount.errors")

_HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}
_LOCK_MESSAGES = (
    "database is locked",
    "lock timeout",
    "deadlock detected",
    "could not obtain lock",
)


def _set_error_context(request: Request, code: str, exc: Exception | None = None) -> None:
    request.state.error_code = code
    if exc is not None:
        request.state.error_class = exc.__class__.__name__


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


def _http_error_code(status_code: int) -> str:
    return _HTTP_STATUS_CODES.get(status_code, "HTTP_ERROR")


def is_lock_timeout(exc: Exception) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc).lower()
    return any(token in message for token in _LOCK_MESSAGES)


def classify_unhandled(exc: Exception) -> ErrorDefinition:
    if is_lock_timeout(exc):
        return ErrorCatalog.LEDGER_LOCKED
    if isinstance(exc, OperationalError):
        return ErrorCatalog.DB_UNAVAILABLE
    return ErrorCatalog.INTERNAL_ERROR


def _json_safe(value):
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, Exception):
        return str(value)
    return value


def _validation_error_details(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        field = ".".join(str(item) for item in loc if item not in {"body", "query", "path", "header"}) or None
        errors.append(
            {
                "field": field,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": loc,
                "input": _json_safe(error.get("input")),
                "ctx": _json_safe(error.get("ctx")),
            }
        )
    return {"errors": errors}


def error_response(code: str, message: str, details: object, trace_id: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "code": code,
            "message": message,
            "details": _json_safe(details),
            "trace_id": trace_id,
        },
    )


def _definition_response(request: Request, error: ErrorDefinition, details: object) -> JSONResponse:
    return error_response(
        code=error.code,
        message=error.message,
        details=details,
        trace_id=_trace_id(request),
        status_code=error.status_code,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        _set_error_context(request, exc.error.code, exc)
        return _definition_response(request, exc.error, exc.details)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        code = _http_error_code(exc.status_code)
        _set_error_context(request, code, exc)
        detail = exc.detail
        return error_response(
            code=code,
            message=str(detail) if detail is not None else "HTTP error",
            details=None,
            trace_id=_trace_id(request),
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        _set_error_context(request, ErrorCatalog.VALIDATION_ERROR.code, exc)
        return _definition_response(request, ErrorCatalog.VALIDATION_ERROR, _validation_error_details(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        error = classify_unhandled(exc)
        _set_error_context(request, error.code, exc)
        if error is ErrorCatalog.LEDGER_LOCKED:
            metrics.increment_lock_timeout()
            log_json(
                logger,
                {
                    "event": "ledger_lock_timeout",
                    "trace_id": _trace_id(request),
                    "path": request.url.path,
                    "error_class": exc.__class__.__name__,
                },
            )
        else:
            logger.exception("Unhandled error", extra={"trace_id": _trace_id(request), "path": request.url.path})
        return _definition_response(request, error, {"type": exc.__class__.__name__})
