from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import text

from app.invcount.core.config import settings
from app.invcount.core.error_catalog import ErrorCatalog
from app.invcount.core.errors import error_response
from app.invcount.core.metrics import metrics
from app.invcount.db.session import get_db

router = APIRouter()
metrics_router = APIRouter()


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "service": settings.APP_NAME, "trace_id": _trace_id(request)}


@router.get("/ready")
def ready(request: Request, db=Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:
        return error_response(
            code=ErrorCatalog.DB_UNAVAILABLE.code,
            message=ErrorCatalog.DB_UNAVAILABLE.message,
            details={"message": str(exc)},
            trace_id=_trace_id(request),
            status_code=ErrorCatalog.DB_UNAVAILABLE.status_code,
        )
    return {"status": "ready", "trace_id": _trace_id(request)}


@metrics_router.get("/metrics", include_in_schema=False)
def get_metrics():
    snapshot = metrics.render()
    return Response(content=snapshot.content, media_type=snapshot.content_type)
