from fastapi import APIRouter

from app.invcount.core.config import settings
from app.invcount.routers.count_sessions import router as count_sessions_router
from app.invcount.routers.ops import metrics_router, router as ops_router

api_router = APIRouter()
api_router.include_router(ops_router, tags=["ops"])
api_router.include_router(count_sessions_router, tags=["count-sessions"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
