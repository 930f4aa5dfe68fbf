from __future__ import annotations

import json
import logging

from app.invcount.core.config import settings

_QUIET_LOGGERS = ("sqlalchemy.engine", "alembic.runtime.migration")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format="%(message)s")
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_json(logger: logging.Logger, payload: dict) -> None:
    logger.info(json.dumps(payload, ensure_ascii=False, default=str))
