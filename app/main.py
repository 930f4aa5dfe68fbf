from fastapi import FastAPI

from app.invcount.api import api_router
from app.invcount.core.config import settings
from app.invcount.core.errors import setup_exception_handlers
from app.invcount.core.logging import configure_logging
from app.invcount.middleware.actor import ActorContextMiddleware
from app.invcount.middleware.observability import ObservabilityMiddleware
from app.invcount.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(ActorContextMiddleware)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
